"""
arcstat/structure/periodic.py

Element radius lookup used by the coordination engine.

The table is built from ASE's periodic data (covalent radii, masses,
atomic numbers) once per process and passed explicitly into every bonding
call.  Per-element overrides from arcstat.yaml produce a separate table;
the default one is never mutated.

Usage
-----
    from arcstat.structure.periodic import default_radius_table

    table = default_radius_table()
    table.radius("Fe")          # Å
    table.lookup("Xx")          # None
    custom = table.with_overrides({"Fe": 1.17})
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType
from typing import Iterator, Mapping

from ase.data import atomic_masses, atomic_numbers, chemical_symbols, covalent_radii

from arcstat.errors import UnknownElement


@dataclass(frozen=True)
class ElementInfo:
    """Static properties of one element."""

    symbol: str
    atomic_number: int
    mass: float
    atom_radius: float


class ElementRadiusTable(Mapping[str, ElementInfo]):
    """
    Read-only mapping of element symbol to ElementInfo.

    Safe to share between worker threads.
    """

    def __init__(self, elements: Mapping[str, ElementInfo]) -> None:
        self._elements = MappingProxyType(dict(elements))

    def __getitem__(self, symbol: str) -> ElementInfo:
        return self._elements[symbol]

    def __iter__(self) -> Iterator[str]:
        return iter(self._elements)

    def __len__(self) -> int:
        return len(self._elements)

    def lookup(self, symbol: str) -> ElementInfo | None:
        return self._elements.get(symbol)

    def radius(self, symbol: str) -> float:
        """
        Reference radius of ``symbol`` (Å).

        Raises
        ------
        UnknownElement
            If the symbol is not in the table.
        """
        info = self._elements.get(symbol)
        if info is None:
            raise UnknownElement(symbol)
        return info.atom_radius

    def with_overrides(self, radii: Mapping[str, float]) -> "ElementRadiusTable":
        """
        Return a new table with some radii replaced.

        Unknown symbols are added with atomic number 0 and mass 0.0 so that
        pseudo-elements used by some archives can still be bonded.
        """
        elements = dict(self._elements)
        for symbol, radius in radii.items():
            base = elements.get(symbol)
            if base is None:
                elements[symbol] = ElementInfo(symbol, 0, 0.0, float(radius))
            else:
                elements[symbol] = ElementInfo(
                    base.symbol, base.atomic_number, base.mass, float(radius)
                )
        return ElementRadiusTable(elements)

    @classmethod
    def from_radii(cls, radii: Mapping[str, float]) -> "ElementRadiusTable":
        """Build a table holding only the given symbols."""
        return cls({}).with_overrides(radii)

    def __repr__(self) -> str:
        return f"ElementRadiusTable({len(self)} elements)"


@lru_cache(maxsize=1)
def default_radius_table() -> ElementRadiusTable:
    """The ASE covalent-radius table, built once per process."""
    elements = {}
    for symbol in chemical_symbols[1:]:     # index 0 is the dummy 'X'
        z = atomic_numbers[symbol]
        elements[symbol] = ElementInfo(
            symbol=symbol,
            atomic_number=z,
            mass=float(atomic_masses[z]),
            atom_radius=float(covalent_radii[z]),
        )
    return ElementRadiusTable(elements)
