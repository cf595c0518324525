"""
arcstat/analysis/geometry.py

Small geometric building blocks: distances, angles and planes.

A Plane is stored as the coefficients of a*x + b*y + c*z + d = 0.  The
normal (a, b, c) is not normalised; distances divide by its norm.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np

from arcstat.errors import CollinearPoints, InvalidInput

# Cross products with a norm below this are treated as zero
ZERO_NORM = 1e-12


def as_point(p: Sequence[float] | np.ndarray) -> np.ndarray:
    point = np.asarray(p, dtype=float)
    if point.shape != (3,):
        raise InvalidInput(f"Expected a 3D point, got shape {point.shape}.")
    return point


def as_positions(points) -> np.ndarray:
    """
    Coerce a StructureBlock, a sequence of Atom, or an array-like of
    triples into an (n, 3) float array.
    """
    from arcstat.structure.block import Atom, StructureBlock

    if isinstance(points, StructureBlock):
        return points.positions
    if isinstance(points, (list, tuple)) and points and isinstance(points[0], Atom):
        return np.array([a.position for a in points], dtype=float)
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3), dtype=float)
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise InvalidInput(f"Expected an (n, 3) array of positions, got shape {arr.shape}.")
    return arr


def distance(p: Sequence[float], q: Sequence[float]) -> float:
    """Euclidean distance between two points (Å)."""
    return float(np.linalg.norm(as_point(p) - as_point(q)))


def angle(a: Sequence[float], b: Sequence[float], c: Sequence[float]) -> float:
    """
    Angle a-b-c at vertex b, in degrees.

    Raises
    ------
    InvalidInput
        If a or c coincides with b.
    """
    ba = as_point(a) - as_point(b)
    bc = as_point(c) - as_point(b)
    norm = np.linalg.norm(ba) * np.linalg.norm(bc)
    if norm < ZERO_NORM:
        raise InvalidInput("Angle is undefined when an end point coincides with the vertex.")
    cos_theta = np.clip(np.dot(ba, bc) / norm, -1.0, 1.0)
    return float(np.degrees(np.arccos(cos_theta)))


@dataclass(frozen=True)
class Plane:
    """Plane a*x + b*y + c*z + d = 0."""

    a: float
    b: float
    c: float
    d: float

    @property
    def normal(self) -> np.ndarray:
        return np.array([self.a, self.b, self.c], dtype=float)

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.normal))

    @classmethod
    def from_points(
        cls,
        p1: Sequence[float],
        p2: Sequence[float],
        p3: Sequence[float],
    ) -> "Plane":
        """
        Plane through three points.

        Raises
        ------
        CollinearPoints
            If the points do not define a unique plane.
        """
        p1, p2, p3 = as_point(p1), as_point(p2), as_point(p3)
        normal = np.cross(p2 - p1, p3 - p1)
        if np.linalg.norm(normal) < ZERO_NORM:
            raise CollinearPoints(
                "The three reference atoms are collinear (or coincide); "
                "pick atoms that span a plane."
            )
        a, b, c = (float(v) for v in normal)
        return cls(a, b, c, -float(np.dot(normal, p1)))

    def through(self, point: Sequence[float]) -> "Plane":
        """Parallel plane with the same normal passing through ``point``."""
        p = as_point(point)
        return Plane(self.a, self.b, self.c, -(self.a * p[0] + self.b * p[1] + self.c * p[2]))

    def distance_to(self, point: Sequence[float]) -> float:
        """Perpendicular distance from ``point`` to this plane."""
        p = as_point(point)
        return abs(float(np.dot(self.normal, p)) + self.d) / self.norm

    def is_parallel(self, other: "Plane", eps: float = 1e-5) -> bool:
        """True if both unit normals agree (up to sign) within ``eps``."""
        n1 = self.normal / self.norm
        n2 = other.normal / other.norm
        return bool(np.linalg.norm(np.cross(n1, n2)) < eps)

    def spacing_to(self, other: "Plane", eps: float = 1e-5) -> float:
        """
        Distance between two parallel planes sharing this normal.

        Raises
        ------
        InvalidInput
            If the planes are not parallel.
        """
        if not self.is_parallel(other, eps):
            raise InvalidInput("Interplanar distance is only defined for parallel planes.")
        return abs(self.d - other.d) / self.norm
