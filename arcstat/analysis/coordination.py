"""
arcstat/analysis/coordination.py

Bond detection from per-element radii.

Two atoms i and j are bonded when

    |r_i - r_j| <= radius(e_i) + radius(e_j) + bond_tolerance

The comparison is symmetric, so the coordination matrix is symmetric by
construction.  An atom is never bonded to itself.

Unknown elements
----------------
If any atom's element is missing from the radius table the whole call
raises UnknownElement before any distance is computed.  Callers that want
to skip such atoms should filter the block first (StructureBlock.select).

Public API
----------
    coordination_matrix(atoms, radius_table, bond_tolerance) → (n, n) int ndarray
    coordination_numbers(atoms, radius_table, bond_tolerance) → list[int]
    neighbor_lists(atoms, radius_table, bond_tolerance)       → list[list[int]]
    bond_graph(atoms, radius_table, bond_tolerance)           → networkx.Graph
    periodic_neighbor_vectors(block, radius_table, bond_tolerance) → list[list[ndarray]]
"""

from __future__ import annotations

from itertools import product

import networkx as nx
import numpy as np

from arcstat.analysis.geometry import ZERO_NORM, as_positions
from arcstat.errors import InvalidInput
from arcstat.structure.block import Atom, StructureBlock
from arcstat.structure.periodic import ElementRadiusTable

BOND_TOLERANCE = 0.3    # Å added to the radius sum


def _atoms_of(atoms) -> list[Atom]:
    if isinstance(atoms, StructureBlock):
        return atoms.atoms
    return list(atoms)


def coordination_matrix(
    atoms: StructureBlock | list[Atom],
    radius_table: ElementRadiusTable,
    bond_tolerance: float = BOND_TOLERANCE,
) -> np.ndarray:
    """
    Symmetric adjacency matrix of bonded atom pairs.

    Parameters
    ----------
    atoms:
        A StructureBlock or a list of Atom.
    radius_table:
        Element radii.  Shared and never modified.
    bond_tolerance:
        Margin (Å) added to the radius sum of every pair.

    Returns
    -------
    np.ndarray
        (n, n) int64 array, entry 1 where bonded and 0 elsewhere.

    Raises
    ------
    UnknownElement
        If an element is not in radius_table.
    """
    atom_list = _atoms_of(atoms)
    n = len(atom_list)
    if n == 0:
        return np.zeros((0, 0), dtype=np.int64)

    radii = np.array([radius_table.radius(a.element) for a in atom_list], dtype=float)
    pos = as_positions(atom_list)

    diff = pos[:, np.newaxis, :] - pos[np.newaxis, :, :]   # (n, n, 3)
    dist = np.linalg.norm(diff, axis=-1)                   # (n, n)
    threshold = radii[:, np.newaxis] + radii[np.newaxis, :] + bond_tolerance

    bonded = dist <= threshold
    np.fill_diagonal(bonded, False)
    return bonded.astype(np.int64)


def coordination_numbers(
    atoms: StructureBlock | list[Atom],
    radius_table: ElementRadiusTable,
    bond_tolerance: float = BOND_TOLERANCE,
) -> list[int]:
    """Number of bonded partners of each atom, in input order."""
    matrix = coordination_matrix(atoms, radius_table, bond_tolerance)
    return [int(v) for v in matrix.sum(axis=1)]


def neighbor_lists(
    atoms: StructureBlock | list[Atom],
    radius_table: ElementRadiusTable,
    bond_tolerance: float = BOND_TOLERANCE,
) -> list[list[int]]:
    """Ascending indices of the bonded partners of each atom."""
    matrix = coordination_matrix(atoms, radius_table, bond_tolerance)
    return [np.flatnonzero(row).tolist() for row in matrix]


def bond_graph(
    atoms: StructureBlock | list[Atom],
    radius_table: ElementRadiusTable,
    bond_tolerance: float = BOND_TOLERANCE,
) -> nx.Graph:
    """
    Bonding graph of a block.

    Nodes are atom indices carrying ``element`` and ``position`` attributes;
    edges are bonded pairs carrying their ``distance`` (Å).
    """
    atom_list = _atoms_of(atoms)
    matrix = coordination_matrix(atom_list, radius_table, bond_tolerance)

    g = nx.Graph()
    for i, atom in enumerate(atom_list):
        g.add_node(i, element=atom.element, position=atom.position)
    for i, j in zip(*np.nonzero(np.triu(matrix))):
        g.add_edge(int(i), int(j), distance=atom_list[i].distance(atom_list[j]))
    return g


def periodic_neighbor_vectors(
    block: StructureBlock,
    radius_table: ElementRadiusTable,
    bond_tolerance: float = BOND_TOLERANCE,
) -> list[list[np.ndarray]]:
    """
    Bond vectors of each atom in a rectangular periodic cell.

    Every atom is compared with the 27 images (shifts of -1, 0, +1 cell
    lengths along x, y and z) of every atom, using the same bond criterion
    as coordination_matrix().  A bond that crosses the cell boundary shows
    up as a vector to the nearest bonded image.

    Returns
    -------
    list[list[np.ndarray]]
        For atom i, the displacement vectors from i to its bonded images,
        ordered by partner index and then by image shift.

    Raises
    ------
    InvalidInput
        If the block's cell is not an axis-aligned box.
    UnknownElement
        If an element is not in radius_table.
    """
    if not block.cell.is_rectangular:
        raise InvalidInput(
            f"Periodic neighbours need a rectangular cell, got {block.cell.as_tuple()}."
        )
    n = len(block)
    if n == 0:
        return []

    radii = np.array([radius_table.radius(a.element) for a in block.atoms], dtype=float)
    pos = block.positions
    lengths = np.array([block.cell.x, block.cell.y, block.cell.z], dtype=float)
    shifts = np.array(list(product((-1, 0, 1), repeat=3)), dtype=float) * lengths   # (27, 3)

    # diff[i, j, s] = position of image s of atom j, seen from atom i
    diff = (
        pos[np.newaxis, :, np.newaxis, :]
        + shifts[np.newaxis, np.newaxis, :, :]
        - pos[:, np.newaxis, np.newaxis, :]
    )                                                       # (n, n, 27, 3)
    dist = np.linalg.norm(diff, axis=-1)                    # (n, n, 27)
    threshold = radii[:, np.newaxis] + radii[np.newaxis, :] + bond_tolerance

    bonded = (dist <= threshold[:, :, np.newaxis]) & (dist > ZERO_NORM)
    return [
        [diff[i, j, s] for j, s in zip(*np.nonzero(bonded[i]))]
        for i in range(n)
    ]
