"""
arcstat/structure/block.py

In-memory representation of one structural snapshot (a "block").

A block is what one Energy ... end section of an .arc archive, or one frame
of an XYZ trajectory, turns into: an ordered list of atoms, the energy, the
symmetry label and the cell parameters.  The analysis modules treat blocks
as read-only; the only mutation offered is reorder_atoms().

Usage
-----
    from arcstat.structure.block import Atom, StructureBlock

    block = StructureBlock(
        atoms=[Atom("Fe", (0.0, 0.0, 0.0)), Atom("Fe", (2.3, 0.0, 0.0))],
        energy=-3620.68,
    )
    block.positions          # (2, 3) ndarray
    block.element_counts()   # Counter({'Fe': 2})
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import numpy as np
from ase import Atoms


# ---------------------------------------------------------------------------
# Atom and cell
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Atom:
    """An element symbol plus a Cartesian position (Å)."""

    element: str
    position: tuple[float, float, float]

    def __post_init__(self) -> None:
        # Accept lists / arrays but always store a plain float triple
        pos = tuple(float(v) for v in self.position)
        if len(pos) != 3:
            raise ValueError(f"Atom position must have 3 components, got {len(pos)}.")
        object.__setattr__(self, "position", pos)

    @property
    def coordinates(self) -> np.ndarray:
        return np.array(self.position, dtype=float)

    def distance(self, other: "Atom") -> float:
        """Euclidean distance to another atom (Å)."""
        return float(np.linalg.norm(self.coordinates - other.coordinates))


@dataclass(frozen=True)
class CellParameters:
    """
    Cell lengths (Å) and angles (degrees) from a PBC line.

    All zeros means the block carried no cell information.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    alpha: float = 0.0
    beta: float = 0.0
    gamma: float = 0.0

    @property
    def is_set(self) -> bool:
        return any(v != 0.0 for v in self.as_tuple())

    @property
    def is_rectangular(self) -> bool:
        """True for an axis-aligned box: positive lengths and 90° angles."""
        lengths_ok = all(v > 0.0 for v in (self.x, self.y, self.z))
        return lengths_ok and all(
            abs(v - 90.0) < 1e-6 for v in (self.alpha, self.beta, self.gamma)
        )

    def as_tuple(self) -> tuple[float, float, float, float, float, float]:
        return (self.x, self.y, self.z, self.alpha, self.beta, self.gamma)


# ---------------------------------------------------------------------------
# StructureBlock
# ---------------------------------------------------------------------------

@dataclass
class StructureBlock:
    """
    One structural snapshot.

    Attributes
    ----------
    atoms:
        Ordered list of Atom objects.
    energy:
        Total energy of the snapshot (eV).
    symmetry:
        Point-group / symmetry label, "C1" when the source has none.
    cell:
        Cell parameters from the PBC line.
    number:
        Serial number of the block in its source file.
    """

    atoms: list[Atom] = field(default_factory=list)
    energy: float = 0.0
    symmetry: str = "C1"
    cell: CellParameters = field(default_factory=CellParameters)
    number: int = 0

    def __len__(self) -> int:
        return len(self.atoms)

    @property
    def positions(self) -> np.ndarray:
        """(n, 3) array of Cartesian positions."""
        if not self.atoms:
            return np.zeros((0, 3), dtype=float)
        return np.array([a.position for a in self.atoms], dtype=float)

    @property
    def symbols(self) -> list[str]:
        return [a.element for a in self.atoms]

    def add_atom(self, atom: Atom) -> None:
        self.atoms.append(atom)

    def element_counts(self) -> Counter:
        """Multiset of element symbols in this block."""
        return Counter(a.element for a in self.atoms)

    def select(self, elements: str | Iterable[str] | None) -> list[int]:
        """
        Return indices of atoms whose element is in ``elements``.

        A single symbol string is accepted.  None selects every atom.
        """
        if elements is None:
            return list(range(len(self.atoms)))
        if isinstance(elements, str):
            elements = {elements}
        wanted = set(elements)
        return [i for i, a in enumerate(self.atoms) if a.element in wanted]

    def subset(self, indices: Iterable[int]) -> "StructureBlock":
        """New block holding only the given atoms, metadata copied."""
        return StructureBlock(
            atoms=[self.atoms[i] for i in indices],
            energy=self.energy,
            symmetry=self.symmetry,
            cell=self.cell,
            number=self.number,
        )

    def reorder_atoms(self, key: Callable[[Atom], Any]) -> None:
        """
        Sort atoms in place by ``key``.

        The sort is stable, so atoms with equal keys (e.g. tied coordinates)
        keep their input order and the result is always well defined.
        """
        self.atoms.sort(key=key)

    # ------------------------------------------------------------------
    # ASE conversion
    # ------------------------------------------------------------------

    def to_ase(self) -> Atoms:
        """Convert to an ase.Atoms object (energy stored in info)."""
        atoms = Atoms(symbols=self.symbols, positions=self.positions)
        if self.cell.is_set:
            atoms.set_cell(list(self.cell.as_tuple()))
            atoms.set_pbc(True)
        atoms.info["energy"] = self.energy
        atoms.info["symmetry"] = self.symmetry
        return atoms

    @classmethod
    def from_ase(cls, atoms: Atoms, number: int = 0) -> "StructureBlock":
        """Build a block from an ase.Atoms object."""
        cell = CellParameters()
        if atoms.cell.rank == 3:
            cell = CellParameters(*(float(v) for v in atoms.cell.cellpar()))
        energy = atoms.info.get("energy")
        if energy is None and atoms.calc is not None:
            energy = atoms.get_potential_energy()
        return cls(
            atoms=[
                Atom(sym, tuple(pos))
                for sym, pos in zip(atoms.get_chemical_symbols(), atoms.positions)
            ],
            energy=float(energy) if energy is not None else 0.0,
            symmetry=str(atoms.info.get("symmetry", "C1")),
            cell=cell,
            number=number,
        )
