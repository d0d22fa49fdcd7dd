import pytest
from dmselect.analysis import cuts
from dmselect.analysis.exceptions import ConfigurationError


def _make_event(**overrides):
    # A diphoton event passing every default cut
    event = {
        "y1_pt": 60.0,
        "y2_pt": 40.0,
        "y1_eta": 0.5,
        "y2_eta": -1.2,
        "m_yy": 125.0,
        "pt_yy": 150.0,
        "metref_final": 200.0,
    }
    event.update(overrides)
    return event


def test_default_cut_order_ends_with_aggregate():
    assert cuts.DEFAULT_CUTS == [
        "photonPt",
        "photonEta",
        "diphotonMass",
        "diphotonPt",
        "diphotonETMiss",
        "allCuts",
    ]
    assert cuts.AGGREGATE_CUT == "allCuts"
    assert str(cuts.Cut.PHOTON_PT) == "photonPt"


def test_default_predicates_pass_good_event():
    predicates = cuts.make_cut_predicates()
    event = _make_event()
    assert set(predicates) == set(cuts.DEFAULT_CUTS) - {"allCuts"}
    assert all(predicate(event) for predicate in predicates.values())


@pytest.mark.parametrize(
    "cut_name, overrides",
    [
        ("photonPt", {"y1_pt": 40.0}),            # 40 / 125 < 0.35
        ("photonPt", {"y2_pt": 30.0}),            # 30 / 125 < 0.25
        ("photonEta", {"y2_eta": -2.6}),
        ("diphotonMass", {"m_yy": 104.0}),
        ("diphotonMass", {"m_yy": 160.0}),
        ("diphotonPt", {"pt_yy": 120.0}),
        ("diphotonETMiss", {"metref_final": 50.0}),
    ],
)
def test_default_predicates_reject(cut_name, overrides):
    predicates = cuts.make_cut_predicates()
    assert predicates[cut_name](_make_event(**overrides)) is False


def test_photon_pt_with_zero_mass_fails():
    predicates = cuts.make_cut_predicates()
    assert predicates["photonPt"](_make_event(m_yy=0.0)) is False


def test_threshold_overrides():
    predicates = cuts.make_cut_predicates({"etmiss_min": 40.0})
    assert predicates["diphotonETMiss"](_make_event(metref_final=50.0)) is True

    with pytest.raises(ConfigurationError, match="Unknown cut thresholds"):
        cuts.make_cut_predicates({"met_min": 40.0})


def test_registry_membership_and_atomic_names():
    registry = cuts.CutRegistry(cuts.DEFAULT_CUTS)
    assert len(registry) == 6
    assert "photonEta" in registry
    assert cuts.Cut.ALL_CUTS in registry
    assert "looseCuts" not in registry
    assert registry.is_aggregate("allCuts")
    assert registry.atomic_names() == cuts.DEFAULT_CUTS[:-1]


def test_registry_rejects_cut_without_predicate():
    with pytest.raises(ConfigurationError, match="No predicate"):
        cuts.CutRegistry(["photonPt", "looseCuts"])


def test_registry_rejects_duplicates():
    with pytest.raises(ConfigurationError, match="Duplicate"):
        cuts.CutRegistry(["photonPt", "photonPt"])


def test_registry_accepts_custom_predicates():
    registry = cuts.CutRegistry(
        ["nPhotons", "everything"],
        predicates={"nPhotons": lambda event: event["n"] >= 2},
        aggregate="everything",
    )
    assert registry.evaluate("nPhotons", {"n": 2}) is True
    assert registry.evaluate("nPhotons", {"n": 1}) is False
    assert registry.atomic_names() == ["nPhotons"]


def test_registry_rejects_aggregate_missing_from_cut_list():
    with pytest.raises(ConfigurationError, match="Aggregate cut 'allCuts'"):
        cuts.CutRegistry(["photonPt", "diphotonMass"])

    # No aggregate at all is a valid registry
    registry = cuts.CutRegistry(["photonPt", "diphotonMass"], aggregate=None)
    assert registry.atomic_names() == ["photonPt", "diphotonMass"]
    assert not registry.is_aggregate("allCuts")
