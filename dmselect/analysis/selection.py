"""
Event selection for the H -> gamma gamma + DM analysis.

The ``Selector`` ties together the cut registry, the categorization
schemes and the event counters. It is bound to one event at a time:
callers load an event with ``set_event``, ask for every cut and
category they need, then move on to the next event.

Every ``passes_cut`` call is counted, except the atomic cuts evaluated
on behalf of the "all cuts" aggregate. Every successful ``classify``
call is counted in its (scheme, index) bucket.
"""

import logging
from contextlib import contextmanager

from .categories import CategoryRegistry, DEFAULT_SCHEME_SIZES, make_classifiers
from .counters import CounterStore
from .cuts import AGGREGATE_CUT, DEFAULT_CUTS, CutRegistry, make_cut_predicates
from .exceptions import ConfigurationError, EventNotLoadedError


logger = logging.getLogger(__name__)


class Selector:
    """
    Cutflow, categorization and event counting for one analysis job.

    Parameters
    ----------
    cut_names : list of str
        Ordered cut names; the order is the cutflow order.
    scheme_sizes : dict
        Categorization scheme name -> number of categories.
    predicates : dict, optional
        Cut name -> predicate, see ``cuts.make_cut_predicates``.
    classifiers : dict, optional
        Scheme name -> classifier, see ``categories.make_classifiers``.
    aggregate : str or None
        Name of the "all cuts" cut.
    event : mapping, optional
        Initial event record.
    """

    def __init__(self, cut_names=None, scheme_sizes=None, predicates=None,
                 classifiers=None, aggregate=AGGREGATE_CUT, event=None):
        if cut_names is None:
            cut_names = DEFAULT_CUTS
        if scheme_sizes is None:
            scheme_sizes = DEFAULT_SCHEME_SIZES

        self.cuts = CutRegistry(cut_names, predicates, aggregate=aggregate)
        self.schemes = CategoryRegistry(scheme_sizes, classifiers)
        self.counters = CounterStore(self.cuts.names, self.schemes.sizes)

        self._event = event
        self._counting_enabled = True

        logger.debug(
            "Selector initialized with cuts %s and schemes %s",
            self.cuts.names, self.schemes.sizes,
        )

    # Event binding

    def set_event(self, event):
        """Bind the event record that following evaluations read."""
        self._event = event

    @property
    def event(self):
        return self._event

    def _current_event(self):
        if self._event is None:
            raise EventNotLoadedError("No event loaded; call set_event() first")
        return self._event

    # Existence checks

    def has_cut(self, cut_name):
        """True if ``cut_name`` is a registered cut (including the aggregate)."""
        return cut_name in self.cuts

    def has_scheme(self, scheme_name):
        """True if ``scheme_name`` is a declared categorization scheme."""
        return scheme_name in self.schemes

    def _check_cut(self, cut_name):
        if self.has_cut(cut_name):
            return True
        logger.warning("Cut '%s' not defined", cut_name)
        return False

    def _check_scheme(self, scheme_name):
        if self.has_scheme(scheme_name):
            return True
        logger.warning("Category scheme '%s' not defined", scheme_name)
        return False

    def validate_manifest(self, cut_names, scheme_names):
        """
        Raise ConfigurationError unless the registered cuts and schemes are
        exactly ``cut_names`` and ``scheme_names``.
        """
        expected_cuts = {str(name) for name in cut_names}
        expected_schemes = {str(name) for name in scheme_names}
        problems = []

        missing = expected_cuts - set(self.cuts.names)
        extra = set(self.cuts.names) - expected_cuts
        if missing:
            problems.append(f"missing cuts {sorted(missing)}")
        if extra:
            problems.append(f"unexpected cuts {sorted(extra)}")

        missing = expected_schemes - set(self.schemes.sizes)
        extra = set(self.schemes.sizes) - expected_schemes
        if missing:
            problems.append(f"missing schemes {sorted(missing)}")
        if extra:
            problems.append(f"unexpected schemes {sorted(extra)}")

        if problems:
            raise ConfigurationError("Selector manifest mismatch: " + "; ".join(problems))

    # Cut evaluation

    @contextmanager
    def _counting_suppressed(self):
        previous = self._counting_enabled
        self._counting_enabled = False
        try:
            yield
        finally:
            self._counting_enabled = previous

    def passes_cut(self, cut_name, weight=1.0):
        """
        Check whether the current event passes the named cut.

        The cut's total counters are always incremented, its passing
        counters only if the event passes. The aggregate cut evaluates all
        other cuts without touching their counters.

        Returns False for an unknown cut name.
        """
        if not self._check_cut(cut_name):
            return False
        cut_name = str(cut_name)

        if self.cuts.is_aggregate(cut_name):
            with self._counting_suppressed():
                passes = all(
                    self.passes_cut(name, weight)
                    for name in self.cuts.atomic_names()
                )
        else:
            passes = self.cuts.evaluate(cut_name, self._current_event())

        if self._counting_enabled:
            self.counters.record_cut(cut_name, passes, weight)
        return passes

    # Categorization

    def n_categories(self, scheme_name):
        if not self._check_scheme(scheme_name):
            return 0
        return self.schemes.size(scheme_name)

    def classify(self, scheme_name, weight=1.0):
        """
        Category index of the current event under ``scheme_name``.

        Returns None if the scheme is unknown or the event does not fall
        into any category; counters are only updated on success.
        """
        if not self._check_scheme(scheme_name):
            return None
        scheme_name = str(scheme_name)

        index = self.schemes.classify(scheme_name, self._current_event())
        if index is None:
            logger.error("Event not classifiable under scheme '%s'", scheme_name)
            return None

        self.counters.record_category(scheme_name, index, weight)
        return index

    get_category_number = classify

    # Counter queries

    def passing_count(self, cut_name):
        if not self._check_cut(cut_name):
            return 0
        return self.counters.cut(str(cut_name)).passed

    def passing_count_weighted(self, cut_name):
        if not self._check_cut(cut_name):
            return 0.0
        return self.counters.cut(str(cut_name)).passed_weighted

    def total_count(self, cut_name):
        if not self._check_cut(cut_name):
            return 0
        return self.counters.cut(str(cut_name)).total

    def total_count_weighted(self, cut_name):
        if not self._check_cut(cut_name):
            return 0.0
        return self.counters.cut(str(cut_name)).total_weighted

    def category_count(self, scheme_name, index):
        if not self._check_scheme(scheme_name):
            return 0
        key = (str(scheme_name), index)
        if key not in self.counters.categories:
            logger.warning("Category %s of scheme '%s' not defined", index, scheme_name)
            return 0
        return self.counters.categories[key].count

    def category_count_weighted(self, scheme_name, index):
        if not self._check_scheme(scheme_name):
            return 0.0
        key = (str(scheme_name), index)
        if key not in self.counters.categories:
            logger.warning("Category %s of scheme '%s' not defined", index, scheme_name)
            return 0.0
        return self.counters.categories[key].weighted

    def reset(self):
        """Zero all counters. Registered cuts and schemes are kept."""
        self.counters.reset()

    # Reports

    def render_cutflow(self, weighted=False):
        """
        List of (cut name, passing, total) tuples in cutflow order.
        """
        rows = []
        for name in self.cuts.names:
            counts = self.counters.cut(name)
            if weighted:
                rows.append((name, counts.passed_weighted, counts.total_weighted))
            else:
                rows.append((name, counts.passed, counts.total))
        return rows

    def render_categorization(self, weighted=False):
        """
        List of (scheme name, [count per category]) tuples.
        """
        rows = []
        for scheme, size in self.schemes.sizes.items():
            values = []
            for index in range(size):
                counts = self.counters.category(scheme, index)
                values.append(counts.weighted if weighted else counts.count)
            rows.append((scheme, values))
        return rows

    def print_cutflow(self, weighted=False):
        print_cutflow(self.render_cutflow(weighted))

    def print_categorization(self, weighted=False):
        print_categorization(self.render_categorization(weighted))

    def save_cutflow(self, path, weighted=False):
        write_cutflow(self.render_cutflow(weighted), path)

    def save_categorization(self, path, weighted=False):
        write_categorization(self.render_categorization(weighted), path)


def selector_from_config(config):
    """
    Build a Selector from the ``selection`` block of a job config.

    Recognized keys: ``cuts``, ``aggregate``, ``categories``,
    ``thresholds`` and ``category_thresholds``. Missing keys fall back to
    the built-in defaults.
    """
    selection_cfg = config.get("selection", {}) or {}
    return Selector(
        cut_names=selection_cfg.get("cuts", DEFAULT_CUTS),
        scheme_sizes=selection_cfg.get("categories", DEFAULT_SCHEME_SIZES),
        predicates=make_cut_predicates(selection_cfg.get("thresholds")),
        classifiers=make_classifiers(selection_cfg.get("category_thresholds")),
        aggregate=selection_cfg.get("aggregate", AGGREGATE_CUT),
    )


# Text tables

def _format_count(value):
    if isinstance(value, float):
        return repr(float(value))
    return str(value)


def format_cutflow(rows):
    """One ``<name>\\t<pass>/<total>`` line per cut."""
    return [
        f"{name}\t{_format_count(passed)}/{_format_count(total)}"
        for name, passed, total in rows
    ]


def format_categorization(rows):
    """One ``<name>\\t<c0> <c1> ...`` line per scheme."""
    return [
        f"{name}\t" + " ".join(_format_count(value) for value in values)
        for name, values in rows
    ]


def print_cutflow(rows):
    print("Printing Cutflow:")
    for line in format_cutflow(rows):
        print(f"\t{line}")


def print_categorization(rows):
    print("Printing Categories:")
    for line in format_categorization(rows):
        print(f"\t{line}")


def write_cutflow(rows, path):
    with open(path, "w") as f:
        for line in format_cutflow(rows):
            f.write(line + "\n")


def write_categorization(rows, path):
    with open(path, "w") as f:
        for line in format_categorization(rows):
            f.write(line + "\n")


def merge_cutflows(cutflows):
    """
    Sum cutflows rendered by independent selectors with the same cuts.
    """
    merged = None
    for rows in cutflows:
        if merged is None:
            merged = [list(row) for row in rows]
            continue
        if [row[0] for row in rows] != [row[0] for row in merged]:
            raise ValueError("Cannot merge cutflows with different cuts")
        for target, (_, passed, total) in zip(merged, rows):
            target[1] += passed
            target[2] += total
    return [tuple(row) for row in merged] if merged else []


def merge_categorizations(categorizations):
    """
    Sum categorizations rendered by independent selectors with the same schemes.
    """
    merged = None
    for rows in categorizations:
        if merged is None:
            merged = [(name, list(values)) for name, values in rows]
            continue
        if [(n, len(v)) for n, v in rows] != [(n, len(v)) for n, v in merged]:
            raise ValueError("Cannot merge categorizations with different schemes")
        for (_, target), (_, values) in zip(merged, rows):
            for i, value in enumerate(values):
                target[i] += value
    return merged or []
