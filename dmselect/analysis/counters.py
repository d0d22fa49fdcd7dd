"""
Event counters for the cutflow and the categorization.
"""

from dataclasses import dataclass


@dataclass
class CutCounts:
    total: int = 0
    total_weighted: float = 0.0
    passed: int = 0
    passed_weighted: float = 0.0


@dataclass
class CategoryCounts:
    count: int = 0
    weighted: float = 0.0


class CounterStore:
    """
    Weighted and unweighted counters for every cut and (scheme, index) pair.

    The set of keys is fixed at construction. ``reset`` zeroes every
    counter but keeps the keys, so categories that no event reaches still
    show up in reports.
    """

    def __init__(self, cut_names, scheme_sizes):
        self._cut_names = list(cut_names)
        self._scheme_sizes = dict(scheme_sizes)
        self.reset()

    def reset(self):
        self.cuts = {name: CutCounts() for name in self._cut_names}
        self.categories = {
            (scheme, index): CategoryCounts()
            for scheme, size in self._scheme_sizes.items()
            for index in range(size)
        }

    def record_cut(self, name, passed, weight=1.0):
        weight = float(weight)
        counts = self.cuts[name]
        counts.total += 1
        counts.total_weighted += weight
        if passed:
            counts.passed += 1
            counts.passed_weighted += weight

    def record_category(self, scheme, index, weight=1.0):
        weight = float(weight)
        counts = self.categories[(scheme, index)]
        counts.count += 1
        counts.weighted += weight

    def cut(self, name):
        return self.cuts[name]

    def category(self, scheme, index):
        return self.categories[(scheme, index)]
