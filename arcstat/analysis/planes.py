"""
arcstat/analysis/planes.py

Interplanar spacings of a lattice plane family.

Algorithm
---------
1.  Fit the reference plane through three chosen atoms.
2.  Walk every atom.  If it lies farther than ``in_plane_tolerance`` from
    every plane found so far, add a parallel plane through it.
3.  Sort the planes by d.  All planes share the reference normal, so d
    alone orders them along the normal.
4.  Adjacent differences in d, divided by the normal's norm, are the
    spacings.

The nearest-plane search restarts for every atom; an atom is never compared
against a distance left over from the previous atom.

Usage
-----
    from arcstat.analysis.planes import interplanar_spacings

    spacings = interplanar_spacings(block, 0, 1, 2)
"""

from __future__ import annotations

import logging

from arcstat.analysis.geometry import Plane, as_positions
from arcstat.errors import InvalidInput

logger = logging.getLogger(__name__)

IN_PLANE_TOLERANCE = 0.1    # Å
PARALLEL_EPSILON = 1e-5


def _check_indices(n_atoms: int, indices: tuple[int, int, int]) -> None:
    if n_atoms < 3:
        raise InvalidInput(f"Plane extraction needs at least 3 atoms, got {n_atoms}.")
    if len(set(indices)) != 3:
        raise InvalidInput(f"Reference atom indices must be distinct, got {indices}.")
    for idx in indices:
        if not 0 <= idx < n_atoms:
            raise InvalidInput(
                f"Reference atom index {idx} out of range for {n_atoms} atoms."
            )


def plane_family(
    atoms,
    i: int,
    j: int,
    k: int,
    in_plane_tolerance: float = IN_PLANE_TOLERANCE,
) -> list[Plane]:
    """
    Every distinct plane parallel to the (i, j, k) plane that holds an atom.

    Parameters
    ----------
    atoms:
        StructureBlock, list of Atom, or (n, 3) positions.
    i, j, k:
        Indices of three non-collinear reference atoms.
    in_plane_tolerance:
        Atoms within this distance (Å) of an existing plane belong to it.

    Returns
    -------
    list[Plane]
        Sorted by d ascending.

    Raises
    ------
    InvalidInput
        Fewer than 3 atoms, repeated or out-of-range indices.
    CollinearPoints
        The reference atoms do not define a plane.
    """
    positions = as_positions(atoms)
    _check_indices(len(positions), (i, j, k))

    reference = Plane.from_points(positions[i], positions[j], positions[k])
    planes: list[Plane] = [reference]

    for pos in positions:
        min_dist = min(plane.distance_to(pos) for plane in planes)
        if min_dist > in_plane_tolerance:
            planes.append(reference.through(pos))

    planes.sort(key=lambda plane: plane.d)
    logger.debug(f"Found {len(planes)} planes parallel to atoms ({i}, {j}, {k})")
    return planes


def interplanar_spacings(
    atoms,
    i: int,
    j: int,
    k: int,
    in_plane_tolerance: float = IN_PLANE_TOLERANCE,
    parallel_epsilon: float = PARALLEL_EPSILON,
) -> list[float]:
    """
    Perpendicular spacings between adjacent planes of the (i, j, k) family.

    A structure with a single plane gives an empty list.  See plane_family()
    for the parameters and errors.
    """
    planes = plane_family(atoms, i, j, k, in_plane_tolerance=in_plane_tolerance)
    return [
        lower.spacing_to(upper, eps=parallel_epsilon)
        for lower, upper in zip(planes, planes[1:])
    ]
