"""
arcstat/io/arc.py

BIOSYM archive (.arc) reader and writer, as produced by LASP.

File layout
-----------
    !BIOSYM archive 2
    PBC=ON
                                 Energy         0          0.0099      -3620.679360        C1
    !DATE
    PBC   20.19500000   20.19500000   29.51410000   90.00000000   90.00000000  120.00000000
    C        7.210469000   10.148070000    0.813536200 CORE    1 C  C    0.0000    1
    ...
    end
    end

Every "Energy" header opens a block; the first following "end" closes it.
The symmetry field of the header is optional and defaults to C1.  Lines
that match none of the patterns are ignored.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Sequence

from arcstat.io.base import CODEC_REGISTRY, StructureCodec
from arcstat.structure.block import Atom, CellParameters, StructureBlock

logger = logging.getLogger(__name__)

_FLOAT = r"-?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][-+]?\d+)?"

HEADER_RE = re.compile(
    rf"^\s*Energy\s+(?P<number>\d+)\s+(?P<aux>{_FLOAT})\s+(?P<energy>{_FLOAT})"
    r"(?:\s+(?P<symmetry>\S.*?))?\s*$"
)
CELL_RE = re.compile(
    rf"^PBC\s+(?P<x>{_FLOAT})\s+(?P<y>{_FLOAT})\s+(?P<z>{_FLOAT})"
    rf"\s+(?P<alpha>{_FLOAT})\s+(?P<beta>{_FLOAT})\s+(?P<gamma>{_FLOAT})"
)
ATOM_RE = re.compile(
    rf"^(?P<element>\w+)\s+(?P<x>{_FLOAT})\s+(?P<y>{_FLOAT})\s+(?P<z>{_FLOAT})\s+CORE\b"
)


def parse_arc_lines(lines) -> list[StructureBlock]:
    """Parse an iterable of .arc lines into blocks."""
    blocks: list[StructureBlock] = []
    current: StructureBlock | None = None

    for lineno, raw in enumerate(lines, 1):
        line = raw.rstrip("\n")

        m = ATOM_RE.match(line)
        if m:
            if current is None:
                logger.debug(f"line {lineno}: atom outside a block ignored")
                continue
            current.add_atom(
                Atom(m["element"], (float(m["x"]), float(m["y"]), float(m["z"])))
            )
            continue

        m = HEADER_RE.match(line)
        if m:
            if current is not None:
                logger.warning(f"line {lineno}: new block header before 'end'; previous block kept")
                blocks.append(current)
            current = StructureBlock(
                energy=float(m["energy"]),
                symmetry=m["symmetry"] or "C1",
                number=int(m["number"]),
            )
            continue

        if line.strip() == "end":
            if current is not None:
                blocks.append(current)
                current = None
            continue

        m = CELL_RE.match(line)
        if m and current is not None:
            current.cell = CellParameters(
                *(float(m[k]) for k in ("x", "y", "z", "alpha", "beta", "gamma"))
            )

    if current is not None:
        logger.warning("File ended inside a block; the unterminated block was kept")
        blocks.append(current)

    return blocks


def format_block(block: StructureBlock) -> list[str]:
    """Lines for one block, without trailing newlines."""
    c = block.cell
    lines = [
        f"{'':>28} Energy {block.number:>10} {0.0:>16.4f} {block.energy:>18.6f} {block.symmetry:>10}",
        "!DATE",
        f"PBC {c.x:>14.8f} {c.y:>14.8f} {c.z:>14.8f} "
        f"{c.alpha:>14.8f} {c.beta:>14.8f} {c.gamma:>14.8f}",
    ]
    for i, atom in enumerate(block.atoms, 1):
        x, y, z = atom.position
        lines.append(
            f"{atom.element:<5} {x:>15.9f} {y:>15.9f} {z:>15.9f} CORE {i:>5} "
            f"{'':>1} {atom.element:<3} {atom.element:<5} {0.0:<6.4f} {i:>5}"
        )
    lines += ["end", "end"]
    return lines


class ArcCodec(StructureCodec):
    """Reader / writer for LASP .arc archives."""

    extensions = (".arc",)
    format_name = "arc"

    def read(self, path: str | Path) -> list[StructureBlock]:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Structure file not found: {path}")
        with path.open("r", encoding="utf-8") as fh:
            blocks = parse_arc_lines(fh)
        logger.debug(f"Read {len(blocks)} block(s) from {path}")
        return blocks

    def write(self, blocks: Sequence[StructureBlock], path: str | Path) -> None:
        lines = ["!BIOSYM archive 2", "PBC=ON"]
        for block in blocks:
            lines += format_block(block)
        Path(path).write_text("\n".join(lines) + "\n", encoding="utf-8")


# ---------------------------------------------------------------------------
# Register default instance
# ---------------------------------------------------------------------------

for _ext in ArcCodec.extensions:
    CODEC_REGISTRY[_ext] = ArcCodec()
