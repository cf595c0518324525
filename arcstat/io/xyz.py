"""
arcstat/io/xyz.py

XYZ / extended-XYZ codec backed by ase.io.

Multi-frame files become one block per frame.  Energies are taken from the
comment line (extxyz ``energy=...``) when present, otherwise 0.0.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from ase.io import read, write

from arcstat.io.base import CODEC_REGISTRY, StructureCodec
from arcstat.structure.block import StructureBlock


class XyzCodec(StructureCodec):
    """Reader / writer for .xyz and .extxyz files."""

    extensions = (".xyz", ".extxyz")
    format_name = "xyz"

    def read(self, path: str | Path) -> list[StructureBlock]:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Structure file not found: {path}")
        frames = read(str(path), index=":", format="extxyz")
        return [StructureBlock.from_ase(atoms, number=i) for i, atoms in enumerate(frames)]

    def write(self, blocks: Sequence[StructureBlock], path: str | Path) -> None:
        write(str(path), [b.to_ase() for b in blocks], format="extxyz")


for _ext in XyzCodec.extensions:
    CODEC_REGISTRY[_ext] = XyzCodec()
