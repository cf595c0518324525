"""
arcstat/io/lasp.py

Scan a LASP lasp.out log for structures that failed to converge.

LASP prints a "Str symm and Q <n>" line for each structure and, when the
optimisation of that structure does not converge, a following line
containing "not converged".  The structure number is taken from the last
"Str symm and Q" line seen before the failure message.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

STRUCTURE_RE = re.compile(r"^Str symm and Q\s+(?P<num>\d+)")


def find_unconverged_structures(path: str | Path = "lasp.out") -> list[int]:
    """
    Structure numbers reported as not converged, in file order.

    Raises
    ------
    FileNotFoundError
        If the log file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"LASP output not found: {path}")

    unconverged: list[int] = []
    previous = ""
    with path.open("r", encoding="utf-8", errors="replace") as fh:
        for lineno, raw in enumerate(fh, 1):
            line = raw.rstrip("\n")
            if "not converged" not in line:
                previous = line
                continue

            m = STRUCTURE_RE.match(previous)
            if m:
                unconverged.append(int(m["num"]))
            else:
                logger.warning(
                    f"{path}:{lineno}: 'not converged' without a structure line "
                    f"before it (previous line: {previous!r})"
                )
    return unconverged
