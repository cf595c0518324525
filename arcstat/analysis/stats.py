"""
arcstat/analysis/stats.py

Aggregate statistics over a list of StructureBlocks, plus bond angles.

Public API
----------
    find_minimum_energy(blocks)        → float | None
    count_structure_blocks(blocks)     → int
    check_atom_consistency(blocks)     → bool
    list_energy(blocks, threshold)     → list[EnergyInfo]
    extract_minimum(blocks)            → StructureBlock | None
    bond_angle(a, b, c)                → float (degrees)
    bond_angles(block, radius_table, center_element, bond_tolerance) → list[float]
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import combinations
from typing import Sequence

from arcstat.analysis.coordination import BOND_TOLERANCE, bond_graph, periodic_neighbor_vectors
from arcstat.analysis.geometry import angle
from arcstat.structure.block import Atom, StructureBlock
from arcstat.structure.periodic import ElementRadiusTable

ENERGY_THRESHOLD = 0.001    # eV


# ---------------------------------------------------------------------------
# Energy statistics
# ---------------------------------------------------------------------------

def find_minimum_energy(blocks: Sequence[StructureBlock]) -> float | None:
    """Lowest energy among the blocks, or None for an empty list."""
    if not blocks:
        return None
    return min(b.energy for b in blocks)


def count_structure_blocks(blocks: Sequence[StructureBlock]) -> int:
    return len(blocks)


def extract_minimum(blocks: Sequence[StructureBlock]) -> StructureBlock | None:
    """
    The block with the lowest energy.  The first one wins ties.
    None for an empty list.
    """
    if not blocks:
        return None
    return min(blocks, key=lambda b: b.energy)


@dataclass
class EnergyInfo:
    """One bin of the energy histogram."""

    energy: float
    count: int = 1


def list_energy(
    blocks: Sequence[StructureBlock],
    threshold: float = ENERGY_THRESHOLD,
) -> list[EnergyInfo]:
    """
    Group block energies into bins of near-identical values.

    Each block joins the existing bin whose energy is closest to its own,
    provided the difference is below ``threshold``; otherwise it opens a new
    bin at its energy.  Bins are returned in first-seen order.
    """
    bins: list[EnergyInfo] = []
    for block in blocks:
        best_index = None
        best_diff = threshold
        for i, info in enumerate(bins):
            diff = abs(info.energy - block.energy)
            if diff < best_diff:
                best_diff = diff
                best_index = i

        if best_index is None:
            bins.append(EnergyInfo(energy=block.energy))
        else:
            bins[best_index].count += 1
    return bins


# ---------------------------------------------------------------------------
# Composition
# ---------------------------------------------------------------------------

def check_atom_consistency(blocks: Sequence[StructureBlock]) -> bool:
    """
    True if every block holds the same multiset of elements.

    An empty list is trivially consistent.
    """
    if not blocks:
        return True
    reference = blocks[0].element_counts()
    return all(b.element_counts() == reference for b in blocks[1:])


# ---------------------------------------------------------------------------
# Bond angles
# ---------------------------------------------------------------------------

def bond_angle(a: Atom, b: Atom, c: Atom) -> float:
    """Angle a-b-c at atom b, in degrees."""
    return angle(a.position, b.position, c.position)


def bond_angles(
    block: StructureBlock,
    radius_table: ElementRadiusTable,
    center_element: str,
    bond_tolerance: float = BOND_TOLERANCE,
) -> list[float]:
    """
    Every neighbour–centre–neighbour angle around atoms of ``center_element``.

    Neighbours come from the bonding graph.  When the block carries a
    rectangular cell, neighbours in the periodic images are included, so a
    bond that crosses the cell boundary still contributes its angles.
    Angles are listed per centre atom (ascending index), then per neighbour
    pair in lexicographic order.

    Raises
    ------
    UnknownElement
        If any element in the block is not in radius_table.
    """
    if block.cell.is_rectangular:
        return _periodic_bond_angles(block, radius_table, center_element, bond_tolerance)

    graph = bond_graph(block, radius_table, bond_tolerance)
    atoms = block.atoms
    angles: list[float] = []
    for centre, element in sorted(graph.nodes(data="element")):
        if element != center_element:
            continue
        for i, j in combinations(sorted(graph.neighbors(centre)), 2):
            angles.append(bond_angle(atoms[i], atoms[centre], atoms[j]))
    return angles


def _periodic_bond_angles(
    block: StructureBlock,
    radius_table: ElementRadiusTable,
    center_element: str,
    bond_tolerance: float,
) -> list[float]:
    vectors = periodic_neighbor_vectors(block, radius_table, bond_tolerance)
    origin = (0.0, 0.0, 0.0)
    angles: list[float] = []
    for atom, bonds in zip(block.atoms, vectors):
        if atom.element != center_element:
            continue
        for u, v in combinations(bonds, 2):
            angles.append(angle(u, origin, v))
    return angles
