"""
arcstat/io/base.py

Abstract base class for structure file codecs and the extension registry.

The analysis modules only ever see StructureBlock lists; which file format
they came from is decided here, by file extension.

Adding a new format
-------------------
1. Subclass StructureCodec and implement read() and write()
2. Declare the extensions it handles
3. Register an instance in CODEC_REGISTRY at the bottom of its module,
   and import that module in get_codec()

Usage
-----
    from arcstat.io.base import read_structures, write_structures

    blocks = read_structures("all.arc")
    write_structures(blocks[:1], "first.xyz")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Sequence

from arcstat.structure.block import StructureBlock


class StructureCodec(ABC):
    """Reads and writes lists of StructureBlock for one file format."""

    #: Lower-case file extensions, including the dot
    extensions: tuple[str, ...] = ()

    #: Short name shown in messages
    format_name: str = ""

    @abstractmethod
    def read(self, path: str | Path) -> list[StructureBlock]:
        """
        Parse every block in the file.

        Raises
        ------
        FileNotFoundError
            If the file does not exist.
        """
        ...

    @abstractmethod
    def write(self, blocks: Sequence[StructureBlock], path: str | Path) -> None:
        """Write blocks to ``path``, replacing any existing file."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({', '.join(self.extensions)})"


# ---------------------------------------------------------------------------
# Codec registry
# ---------------------------------------------------------------------------

CODEC_REGISTRY: dict[str, StructureCodec] = {}


def get_codec(path: str | Path) -> StructureCodec:
    """
    Codec for ``path`` chosen by its extension.

    Raises
    ------
    ValueError
        If no codec handles the extension.
    """
    # Importing the codec modules fills CODEC_REGISTRY
    import arcstat.io.arc  # noqa: F401
    import arcstat.io.xyz  # noqa: F401

    suffix = Path(path).suffix.lower()
    try:
        return CODEC_REGISTRY[suffix]
    except KeyError:
        raise ValueError(
            f"Unsupported structure file extension '{suffix}' for {path}.  "
            f"Supported: {sorted(CODEC_REGISTRY)}"
        ) from None


def read_structures(path: str | Path) -> list[StructureBlock]:
    return get_codec(path).read(path)


def write_structures(blocks: Sequence[StructureBlock], path: str | Path) -> None:
    get_codec(path).write(blocks, path)
