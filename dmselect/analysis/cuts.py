"""
Cut definitions for the H -> gamma gamma + DM analysis.

Each cut is a named boolean predicate over a single event record (any
mapping of branch name to number). The predicates are built once into a
lookup table; the registry fixes which of them are active, and in which
order they appear in the cutflow.

To add a cut, add a member to ``Cut`` and one entry to the table built
by ``make_cut_predicates``. Existing cuts are not touched.
"""

from enum import Enum

from .exceptions import ConfigurationError


class Cut(str, Enum):
    PHOTON_PT = "photonPt"
    PHOTON_ETA = "photonEta"
    DIPHOTON_MASS = "diphotonMass"
    DIPHOTON_PT = "diphotonPt"
    DIPHOTON_ETMISS = "diphotonETMiss"
    ALL_CUTS = "allCuts"

    def __str__(self):
        return self.value


AGGREGATE_CUT = Cut.ALL_CUTS.value

DEFAULT_CUTS = [cut.value for cut in Cut]

# All energies in GeV
DEFAULT_THRESHOLDS = {
    "y1_pt_frac_min": 0.35,
    "y2_pt_frac_min": 0.25,
    "eta_max": 2.5,
    "m_yy_min": 105.0,
    "m_yy_max": 160.0,
    "pt_yy_min": 120.0,
    "etmiss_min": 120.0,
}


def make_cut_predicates(thresholds=None):
    """
    Build the table of cut name -> predicate.

    Parameters
    ----------
    thresholds : dict, optional
        Overrides for entries of ``DEFAULT_THRESHOLDS``.

    Returns
    -------
    dict
        Mapping from cut name (str) to a callable ``predicate(event) -> bool``.
        The aggregate cut has no entry: it is composed by the selector.
    """
    t = dict(DEFAULT_THRESHOLDS)
    if thresholds:
        unknown = set(thresholds) - set(DEFAULT_THRESHOLDS)
        if unknown:
            raise ConfigurationError(
                f"Unknown cut thresholds: {', '.join(sorted(unknown))}"
            )
        t.update(thresholds)

    def photon_pt(event):
        m_yy = event["m_yy"]
        if m_yy <= 0:
            return False
        return (event["y1_pt"] / m_yy > t["y1_pt_frac_min"] and
                event["y2_pt"] / m_yy > t["y2_pt_frac_min"])

    def photon_eta(event):
        return (abs(event["y1_eta"]) < t["eta_max"] and
                abs(event["y2_eta"]) < t["eta_max"])

    def diphoton_mass(event):
        return t["m_yy_min"] < event["m_yy"] < t["m_yy_max"]

    def diphoton_pt(event):
        return event["pt_yy"] > t["pt_yy_min"]

    def diphoton_etmiss(event):
        return event["metref_final"] > t["etmiss_min"]

    return {
        Cut.PHOTON_PT.value: photon_pt,
        Cut.PHOTON_ETA.value: photon_eta,
        Cut.DIPHOTON_MASS.value: diphoton_mass,
        Cut.DIPHOTON_PT.value: diphoton_pt,
        Cut.DIPHOTON_ETMISS.value: diphoton_etmiss,
    }


class CutRegistry:
    """
    Ordered, fixed collection of named cuts.

    Parameters
    ----------
    names : list of str
        Cut names in cutflow order. May include the aggregate cut.
    predicates : dict, optional
        Mapping name -> predicate. Defaults to ``make_cut_predicates()``.
    aggregate : str or None
        Name of the "all cuts" cut, the logical AND of every other cut.
    """

    def __init__(self, names, predicates=None, aggregate=AGGREGATE_CUT):
        if predicates is None:
            predicates = make_cut_predicates()

        self.names = [str(name) for name in names]
        self.aggregate = str(aggregate) if aggregate is not None else None

        if len(set(self.names)) != len(self.names):
            raise ConfigurationError(f"Duplicate cut names in {self.names}")

        self._predicates = {}
        for name in self.names:
            if name == self.aggregate:
                continue
            if name not in predicates:
                raise ConfigurationError(f"No predicate defined for cut '{name}'")
            self._predicates[name] = predicates[name]

        if self.aggregate is not None and self.aggregate not in self.names:
            raise ConfigurationError(
                f"Aggregate cut '{self.aggregate}' is not in the cut list {self.names}"
            )

    def __contains__(self, name):
        return str(name) in self._predicates or self.is_aggregate(name)

    def __iter__(self):
        return iter(self.names)

    def __len__(self):
        return len(self.names)

    def is_aggregate(self, name):
        return self.aggregate is not None and str(name) == self.aggregate

    def atomic_names(self):
        """Registered cut names without the aggregate, in order."""
        return [name for name in self.names if not self.is_aggregate(name)]

    def evaluate(self, name, event):
        """Evaluate one atomic cut on an event."""
        return bool(self._predicates[str(name)](event))
