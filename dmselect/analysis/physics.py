"""
Physics utilities for diphoton analyses.

This module provides basic four-vector operations and the diphoton
invariant mass and transverse momentum, using NumPy and Awkward Arrays.
"""

import numpy as np
import awkward as ak


def build_four_vector(pt, eta, phi, energy):
    """
    Construct four-vectors from (pt, eta, phi, E).

    Parameters
    ----------
    pt : array-like (Awkward or NumPy)
        Transverse momentum of the particles [GeV].
    eta : array-like
        Pseudorapidity of the particles.
    phi : array-like
        Azimuthal angle of the particles [radians].
    energy : array-like
        Energy of the particles [GeV].

    Returns
    -------
    dict of arrays
        A dictionary with components 'E', 'px', 'py', 'pz'.
    """
    return {
        "E": energy,
        "px": pt * np.cos(phi),
        "py": pt * np.sin(phi),
        "pz": pt * np.sinh(eta),
    }


def invariant_mass(E, px, py, pz):
    """
    Compute invariant mass m = sqrt(E^2 - |p|^2) with c = 1.
    """
    m2 = E**2 - (px**2 + py**2 + pz**2)
    # guard against small negative values from numerical precision
    m2 = ak.where(m2 < 0, 0, m2)
    return np.sqrt(m2)


def diphoton_observables(y1_pt, y1_eta, y1_phi, y2_pt, y2_eta, y2_phi):
    """
    Diphoton invariant mass and transverse momentum for massless photons.

    Returns
    -------
    tuple of arrays
        (m_yy, pt_yy), in the units of the input momenta.
    """
    y1 = build_four_vector(y1_pt, y1_eta, y1_phi, y1_pt * np.cosh(y1_eta))
    y2 = build_four_vector(y2_pt, y2_eta, y2_phi, y2_pt * np.cosh(y2_eta))

    E = y1["E"] + y2["E"]
    px = y1["px"] + y2["px"]
    py = y1["py"] + y2["py"]
    pz = y1["pz"] + y2["pz"]

    m_yy = invariant_mass(E, px, py, pz)
    pt_yy = np.sqrt(px**2 + py**2)
    return m_yy, pt_yy
