"""
Per-category diphoton mass points.

Events that pass the selection are sorted into the categories of one
scheme with ``Selector.classify``; each category keeps the list of
m_yy values (and event weights, for simulation). The points are stored
as one text file per category so later steps can reload them without
looping over the ntuples again.
"""

import logging
import os

import numpy as np
import hist
from hist import Hist

from .exceptions import DataLoadError


logger = logging.getLogger(__name__)

MASS_RANGE = (105.0, 160.0)  # GeV


def mass_points_file_name(output_dir, scheme, index):
    return os.path.join(output_dir, f"{scheme}_{index}.txt")


class MassPoints:
    """
    Diphoton mass points, split by category.

    Parameters
    ----------
    scheme : str
        Name of the categorization scheme.
    n_categories : int
        Number of categories in the scheme.
    weighted : bool
        Whether per-event weights are stored alongside the masses.
    """

    def __init__(self, scheme, n_categories, weighted=False):
        self.scheme = str(scheme)
        self.n_categories = n_categories
        self.weighted = weighted
        self._masses = [[] for _ in range(n_categories)]
        self._weights = [[] for _ in range(n_categories)]

    def append(self, index, mass, weight=1.0):
        self._masses[index].append(float(mass))
        self._weights[index].append(float(weight) if self.weighted else 1.0)

    def extend(self, other):
        """Add the points of another MassPoints for the same scheme."""
        if other.scheme != self.scheme or other.n_categories != self.n_categories:
            raise ValueError(
                f"Cannot merge mass points of '{other.scheme}' into '{self.scheme}'"
            )
        for index in range(self.n_categories):
            self._masses[index].extend(other._masses[index])
            self._weights[index].extend(other._weights[index])

    def masses(self, index):
        return np.asarray(self._masses[index], dtype=float)

    def weights(self, index):
        return np.asarray(self._weights[index], dtype=float)

    def __len__(self):
        return sum(len(m) for m in self._masses)

    def combined(self):
        """
        All points in one set of arrays.

        Returns
        -------
        tuple of np.ndarray
            (masses, weights, category index of each point)
        """
        masses = np.concatenate([self.masses(i) for i in range(self.n_categories)])
        weights = np.concatenate([self.weights(i) for i in range(self.n_categories)])
        categories = np.concatenate([
            np.full(len(self._masses[i]), i, dtype=int)
            for i in range(self.n_categories)
        ])
        return masses, weights, categories

    def histogram(self, index, nbins=55, lo=MASS_RANGE[0], hi=MASS_RANGE[1]):
        """m_yy histogram of one category, with weight storage."""
        h = Hist(
            hist.axis.Regular(
                nbins, lo, hi, name="m_yy", label=r"$m_{\gamma\gamma}\,\mathrm{[GeV]}$"
            ),
            storage=hist.storage.Weight(),
        )
        if self._masses[index]:
            h.fill(self.masses(index), weight=self.weights(index))
        return h

    def save(self, output_dir):
        """Write one ``<scheme>_<index>.txt`` file per category."""
        os.makedirs(output_dir, exist_ok=True)
        for index in range(self.n_categories):
            path = mass_points_file_name(output_dir, self.scheme, index)
            with open(path, "w") as f:
                for mass, weight in zip(self._masses[index], self._weights[index]):
                    if self.weighted:
                        f.write(f"{mass!r} {weight!r}\n")
                    else:
                        f.write(f"{mass!r}\n")
        logger.info(
            "Saved %d mass points for scheme '%s' to %s",
            len(self), self.scheme, output_dir,
        )

    @classmethod
    def from_files(cls, output_dir, scheme, n_categories, weighted=False):
        """
        Load mass points written by ``save``.

        Raises DataLoadError if any category file is missing or has a
        line that does not match the weighted/unweighted layout.
        """
        points = cls(scheme, n_categories, weighted)
        for index in range(n_categories):
            path = mass_points_file_name(output_dir, scheme, index)
            if not os.path.exists(path):
                raise DataLoadError(f"Cannot load mass points from {path}")
            n_columns = 2 if weighted else 1
            with open(path) as f:
                for line_number, line in enumerate(f, start=1):
                    values = line.split()
                    if not values:
                        continue
                    try:
                        if len(values) != n_columns:
                            raise ValueError(f"expected {n_columns} column(s)")
                        points.append(index, *(float(v) for v in values))
                    except ValueError as e:
                        raise DataLoadError(
                            f"Malformed mass point in {path}:{line_number}: {e}"
                        ) from e
        return points
