"""
Event categorization schemes.

A scheme splits kept events into a fixed number of mutually exclusive,
numbered categories. Each scheme is a classifier ``classify(event)``
returning an index in ``[0, size)`` or ``None`` when no branch matches.

To add a scheme, add a member to ``CategoryScheme``, its size to
``DEFAULT_SCHEME_SIZES`` and one entry to ``make_classifiers``.
"""

from enum import Enum

from .exceptions import ConfigurationError


class CategoryScheme(str, Enum):
    INCLUSIVE = "inclusive"
    SPLIT_ETMISS = "splitETMiss"

    def __str__(self):
        return self.value


DEFAULT_SCHEME_SIZES = {
    CategoryScheme.INCLUSIVE.value: 1,
    CategoryScheme.SPLIT_ETMISS.value: 2,
}

DEFAULT_CATEGORY_THRESHOLDS = {
    "etmiss_split": 180.0,  # GeV
}


def make_classifiers(thresholds=None):
    """
    Build the table of scheme name -> classifier.
    """
    t = dict(DEFAULT_CATEGORY_THRESHOLDS)
    if thresholds:
        unknown = set(thresholds) - set(DEFAULT_CATEGORY_THRESHOLDS)
        if unknown:
            raise ConfigurationError(
                f"Unknown category thresholds: {', '.join(sorted(unknown))}"
            )
        t.update(thresholds)

    def inclusive(event):
        return 0

    def split_etmiss(event):
        # High ETmiss first
        if event["metref_final"] > t["etmiss_split"]:
            return 0
        return 1

    return {
        CategoryScheme.INCLUSIVE.value: inclusive,
        CategoryScheme.SPLIT_ETMISS.value: split_etmiss,
    }


class CategoryRegistry:
    """
    Fixed, ordered set of categorization schemes and their sizes.

    Parameters
    ----------
    sizes : dict
        Scheme name -> number of categories (>= 1), in declaration order.
    classifiers : dict, optional
        Scheme name -> classifier. Defaults to ``make_classifiers()``.
    """

    def __init__(self, sizes, classifiers=None):
        if classifiers is None:
            classifiers = make_classifiers()

        self.sizes = {}
        self._classifiers = {}
        for name, size in sizes.items():
            name = str(name)
            if isinstance(size, bool) or not isinstance(size, int) or size < 1:
                raise ConfigurationError(
                    f"Scheme '{name}' must declare at least one category, got {size!r}"
                )
            if name not in classifiers:
                raise ConfigurationError(f"No classifier defined for scheme '{name}'")
            self.sizes[name] = size
            self._classifiers[name] = classifiers[name]

    def __contains__(self, name):
        return str(name) in self.sizes

    def __iter__(self):
        return iter(self.sizes)

    def __len__(self):
        return len(self.sizes)

    def size(self, name):
        return self.sizes[str(name)]

    def classify(self, name, event):
        """
        Category index of the event under scheme ``name``, or None.

        Indices outside the declared range count as "no category".
        """
        index = self._classifiers[str(name)](event)
        if index is None or not 0 <= index < self.sizes[str(name)]:
            return None
        return int(index)
