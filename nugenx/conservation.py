# conservation.py
# Energy, momentum and charge bookkeeping checks for four-vector lists and
# whole event records.
from typing import Dict, Iterable

from .kinematics import FourVector
from .particles import PDGLibrary


def check_energy_conservation(initial_vectors, final_vectors, tol=1e-6):
    """
    Check conservation of energy for any N-body interaction.

    Parameters
    ----------
    initial_vectors : list of FourVector
        List of incoming particles.
    final_vectors : list of FourVector
        List of outgoing particles.
    tol : float
        Numerical tolerance (default 1e-6).

    Returns
    -------
    bool
        True if |E_initial - E_final| < tol, else False.

    Examples
    --------
    >>> p_initial = FourVector(10, 0, 0, 0)
    >>> check_energy_conservation([p_initial], [FourVector(5, 3, 0, 0), FourVector(5, -3, 0, 0)])
    True
    """
    E_initial = sum(v.E for v in initial_vectors)
    E_final = sum(v.E for v in final_vectors)
    return abs(E_initial - E_final) < tol


def check_momentum_conservation(initial_vectors, final_vectors, tol=1e-6):
    """
    Check conservation of 3-momentum for any N-body interaction.

    Returns
    -------
    bool
        True if all components (px, py, pz) are conserved within tol.
    """
    for component in ("px", "py", "pz"):
        before = sum(getattr(v, component) for v in initial_vectors)
        after = sum(getattr(v, component) for v in final_vectors)
        if abs(before - after) >= tol:
            return False
    return True


def check_conservation(initial_vectors, final_vectors, tol=1e-6):
    """Full 4-momentum conservation (energy and momentum)."""
    return (
        check_energy_conservation(initial_vectors, final_vectors, tol) and
        check_momentum_conservation(initial_vectors, final_vectors, tol)
    )


def check_energy_momentum(initial_vectors, final_vectors, tol=1e-6) -> Dict:
    """Return diagnostic dict for full 4-momentum conservation.

    Returns dict with deltas for energy and momentum components and a
    boolean 'conserved' key summarizing result within tolerance.
    """
    initial_vectors = list(initial_vectors)
    final_vectors = list(final_vectors)
    Ei = sum(v.E for v in initial_vectors)
    Ef = sum(v.E for v in final_vectors)
    dE = Ei - Ef
    dPx = sum(v.px for v in initial_vectors) - sum(v.px for v in final_vectors)
    dPy = sum(v.py for v in initial_vectors) - sum(v.py for v in final_vectors)
    dPz = sum(v.pz for v in initial_vectors) - sum(v.pz for v in final_vectors)
    conserved = (abs(dE) < tol and abs(dPx) < tol and abs(dPy) < tol and abs(dPz) < tol)
    return {
        'conserved': conserved,
        'deltaE': dE,
        'deltaPx': dPx,
        'deltaPy': dPy,
        'deltaPz': dPz,
        'E_initial': Ei,
        'E_final': Ef
    }


def total_charge(pdgs: Iterable[int]) -> float:
    return sum(PDGLibrary.lookup(pdg).charge for pdg in pdgs)


def check_record_conservation(record, tol=1e-6) -> Dict:
    """
    Compare the initial state (probe + target) with the final state
    (stable particles + nuclear remnant) of an event record.

    Adds 'charge_conserved' and 'deltaQ' to the energy-momentum diagnostics.
    """
    initial = record.initial_state()
    final = record.final_state()
    result = check_energy_momentum([p.momentum for p in initial], [p.momentum for p in final], tol)
    dQ = total_charge(p.pdg for p in initial) - total_charge(p.pdg for p in final)
    result['deltaQ'] = dQ
    result['charge_conserved'] = abs(dQ) < 1e-9
    return result


def missing_four_momentum(record) -> FourVector:
    """Initial minus final four-momentum of a record."""
    total = FourVector(0.0, 0.0, 0.0, 0.0)
    for p in record.initial_state():
        total = total + p.momentum
    for p in record.final_state():
        total = total - p.momentum
    return total
