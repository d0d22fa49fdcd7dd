import pytest
from dmselect.analysis import weights
from dmselect.analysis.exceptions import ConfigurationError

CONFIG = {
    "luminosity": 20.0,
    "samples": {
        "data": {"weighted": False},
        "ggH": {"weighted": True, "xs_br": 0.5},
        "broken": {"weighted": True},
    },
}

def test_data_is_unweighted():
    assert not weights.is_weighted_sample(CONFIG, "data")
    assert weights.sample_scale(CONFIG, "data") == 1.0
    assert weights.event_weight({"PileupWeight": 3.0}, 1.0, weighted=False) == 1.0

def test_mc_weight_includes_luminosity_xsbr_and_pileup():
    assert weights.is_weighted_sample(CONFIG, "ggH")
    scale = weights.sample_scale(CONFIG, "ggH")
    assert scale == pytest.approx(10.0)
    assert weights.event_weight({"PileupWeight": 1.5}, scale) == pytest.approx(15.0)
    # Missing pileup weight counts as 1
    assert weights.event_weight({}, scale) == pytest.approx(10.0)

def test_default_luminosity():
    config = {"samples": {"ZH": {"weighted": True, "xs_br": 1.0}}}
    assert weights.sample_scale(config, "ZH") == pytest.approx(weights.DEFAULT_LUMINOSITY)

def test_configuration_errors():
    with pytest.raises(ConfigurationError, match="not defined"):
        weights.sample_config(CONFIG, "ttH")
    with pytest.raises(ConfigurationError, match="xs_br"):
        weights.sample_scale(CONFIG, "broken")
