"""
I/O utilities for reading diphoton ntuples with uproot
"""

import logging

import uproot
import awkward as ak

from .exceptions import BranchMissingError, DataLoadError
from .physics import diphoton_observables


logger = logging.getLogger(__name__)

DEFAULT_TREE = "CollectionTree"

DEFAULT_BRANCHES = [
    "y1_pt",
    "y1_eta",
    "y1_phi",
    "y2_pt",
    "y2_eta",
    "y2_phi",
    "m_yy",
    "pt_yy",
    "metref_final",
    "PileupWeight",
]

PHOTON_BRANCHES = ["y1_pt", "y1_eta", "y1_phi", "y2_pt", "y2_eta", "y2_phi"]


def _find_tree(file, tree_name=DEFAULT_TREE):
    """
    Detect the correct TTree inside the ROOT file.

    Logic:
    1. If ``tree_name`` exists, use it.
    2. Otherwise, search for exactly one TTree.
    3. Otherwise, search for a TTree inside subdirectories.
    """
    keys = file.keys()
    if tree_name in keys:
        return file[tree_name]

    # Match with ';1' versioning
    if f"{tree_name};1" in keys:
        return file[f"{tree_name};1"]

    tt_keys = [k for k, v in file.classnames().items() if v == "TTree"]
    if len(tt_keys) == 1:
        return file[tt_keys[0]]

    for key in keys:
        directory = file[key]
        if not hasattr(directory, "keys"):
            continue
        for subkey in directory.keys():
            full = f"{key}/{subkey}"
            if file[full].classname == "TTree":
                return file[full]

    raise DataLoadError(f"No TTree found in file {file.file_path}")


def add_diphoton_observables(arrays):
    """
    Fill in ``m_yy`` and ``pt_yy`` from the photon kinematics if missing.
    """
    fields = arrays.fields
    if "m_yy" in fields and "pt_yy" in fields:
        return arrays

    for branch in PHOTON_BRANCHES:
        if branch not in fields:
            raise BranchMissingError(branch)

    m_yy, pt_yy = diphoton_observables(*(arrays[b] for b in PHOTON_BRANCHES))
    if "m_yy" not in fields:
        arrays = ak.with_field(arrays, m_yy, "m_yy")
    if "pt_yy" not in fields:
        arrays = ak.with_field(arrays, pt_yy, "pt_yy")
    return arrays


def load_events(filename, branches=None, tree_name=DEFAULT_TREE):
    """
    Load selected branches into an Awkward Array.

    Branches that are absent from the tree are skipped; the diphoton mass
    and transverse momentum are derived from the photons when needed.
    """
    if branches is None:
        branches = DEFAULT_BRANCHES

    with uproot.open(filename) as f:
        tree = _find_tree(f, tree_name)
        available = set(tree.keys())
        present = [b for b in branches if b in available]
        skipped = [b for b in branches if b not in available]
        if skipped:
            logger.debug("Branches not in %s: %s", filename, skipped)
        arrays = tree.arrays(present, library="ak")

    return add_diphoton_observables(arrays)
