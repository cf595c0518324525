"""
arcstat/errors.py

Typed failures raised by the analysis core.

Every error here is a ValueError subclass so callers that already guard
against bad input with ``except ValueError`` keep working.  None of them is
fatal inside the core; the CLI turns them into messages and exit codes.
"""

from __future__ import annotations


class ArcstatError(Exception):
    """Base class for all arcstat analysis errors."""


class InvalidInput(ArcstatError, ValueError):
    """Malformed arguments: too few atoms, bad indices, empty point sets."""


class UnknownElement(ArcstatError, ValueError):
    """An element symbol is missing from the radius table."""

    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(
            f"Element '{symbol}' is not in the radius table.  "
            "Add it under 'radii:' in arcstat.yaml or remove the atom."
        )


class CollinearPoints(ArcstatError, ValueError):
    """Three reference points do not define a unique plane."""


class CardinalityMismatch(ArcstatError, ValueError):
    """RMSD comparison requested for point sets of different sizes."""

    def __init__(self, n_a: int, n_b: int) -> None:
        self.n_a = n_a
        self.n_b = n_b
        super().__init__(
            f"Point sets must have the same number of atoms, got {n_a} and {n_b}."
        )
