"""
Event weights for data and simulated samples.

Data is unweighted. Simulated samples are normalized to the analysis
luminosity: weight = pileup weight * luminosity [fb-1] * (XS * BR) [fb].
"""

from .exceptions import ConfigurationError


DEFAULT_LUMINOSITY = 20.3  # fb-1


def sample_config(config, sample_name):
    samples = config.get("samples", {}) or {}
    if sample_name not in samples:
        raise ConfigurationError(f"Sample '{sample_name}' not defined in config")
    return samples[sample_name] or {}


def is_weighted_sample(config, sample_name):
    return bool(sample_config(config, sample_name).get("weighted", False))


def sample_scale(config, sample_name):
    """
    Per-sample normalization (luminosity * XS * BR), 1.0 for data.
    """
    sample_cfg = sample_config(config, sample_name)
    if not sample_cfg.get("weighted", False):
        return 1.0
    if "xs_br" not in sample_cfg:
        raise ConfigurationError(f"Weighted sample '{sample_name}' has no xs_br")
    luminosity = config.get("luminosity", DEFAULT_LUMINOSITY)
    return float(luminosity) * float(sample_cfg["xs_br"])


def event_weight(event, scale, weighted=True):
    """Weight of one event, given the sample scale."""
    if not weighted:
        return 1.0
    return float(event.get("PileupWeight", 1.0)) * scale
