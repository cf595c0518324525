"""
arcstat/analysis/rmsd.py

Minimum RMSD between two equal-sized point sets under relabelling and
reflection.

For sets A and B of n points, the search covers every permutation of A's
rows crossed with three variants of B (identity, mirror through the xy
plane, full inversion).  Each pair is scored with the Kabsch algorithm:

    1. centre both sets on their centroids
    2. H = Pᵀ·Q
    3. H = U·Σ·Vᵀ
    4. s = sign(det(U·Vᵀ))
    5. R = U·diag(1, 1, s)·Vᵀ
    6. RMSD = ‖Q·Rᵀ − P‖_F / √n

The smallest value over all pairs is reported.  Because R is always a
proper rotation, the mirror variant is what lets reflected copies match.

Cost is O(n!·n), so this is for substructures of roughly 4–11 atoms.
Permutations are scored in batches with stacked SVDs to keep the Python
overhead per permutation small.

Public API
----------
    kabsch_rmsd(p, q)          → float
    mirror(points, axis)       → ndarray
    invert(points)             → ndarray
    best_alignment(a, b)       → AlignmentResult
    minimum_rmsd(a, b)         → float
"""

from __future__ import annotations

from dataclasses import dataclass
from itertools import islice, permutations
from typing import Iterator

import numpy as np

from arcstat.analysis.geometry import as_positions
from arcstat.errors import CardinalityMismatch, InvalidInput

# Permutations scored per stacked SVD call
BATCH_SIZE = 2048

#: Fixed exploration order of the B variants
VARIANTS = ("identity", "mirror", "inversion")


@dataclass(frozen=True)
class AlignmentResult:
    """
    Best alignment found by best_alignment().

    Attributes
    ----------
    rmsd:
        Minimum RMSD (Å).
    permutation:
        Row order of A that achieved it: A[permutation[k]] pairs with B[k].
    variant:
        Which variant of B achieved it: "identity", "mirror" or "inversion".
    """

    rmsd: float
    permutation: tuple[int, ...]
    variant: str


def centered(points: np.ndarray) -> np.ndarray:
    return points - points.mean(axis=0)


def mirror(points, axis: int = 2) -> np.ndarray:
    """Reflect a point set by negating one Cartesian axis."""
    if axis not in (0, 1, 2):
        raise InvalidInput(f"Mirror axis must be 0, 1 or 2, got {axis}.")
    out = as_positions(points).copy()
    out[:, axis] *= -1.0
    return out


def invert(points) -> np.ndarray:
    """Point inversion through the origin."""
    return -as_positions(points)


def _kabsch_batch(p_stack: np.ndarray, q: np.ndarray) -> np.ndarray:
    """
    RMSD of each centred set in p_stack (k, n, 3) against centred q (n, 3).
    """
    n = q.shape[0]
    h = np.einsum("kni,nj->kij", p_stack, q)               # (k, 3, 3)
    u, _, vt = np.linalg.svd(h)
    s = np.sign(np.linalg.det(u @ vt))
    s[s == 0] = 1.0
    correction = np.zeros_like(h)
    correction[:, 0, 0] = 1.0
    correction[:, 1, 1] = 1.0
    correction[:, 2, 2] = s
    r = u @ correction @ vt                                # (k, 3, 3)
    rotated = np.einsum("kij,nj->kni", r, q)               # Q·Rᵀ
    sq = np.sum((rotated - p_stack) ** 2, axis=(1, 2))
    return np.sqrt(sq / n)


def kabsch_rmsd(p, q) -> float:
    """
    RMSD between two paired point sets after optimal superposition.

    Rows are paired in the given order; no permutation search.

    Raises
    ------
    CardinalityMismatch
        If the sets have different sizes.
    InvalidInput
        If the sets are empty or not (n, 3).
    """
    p_arr, q_arr = _validated_pair(p, q)
    return float(_kabsch_batch(centered(p_arr)[np.newaxis], centered(q_arr))[0])


def _validated_pair(a, b) -> tuple[np.ndarray, np.ndarray]:
    a_arr = as_positions(a)
    b_arr = as_positions(b)
    if len(a_arr) != len(b_arr):
        raise CardinalityMismatch(len(a_arr), len(b_arr))
    if len(a_arr) == 0:
        raise InvalidInput("RMSD needs at least one point in each set.")
    if not (np.isfinite(a_arr).all() and np.isfinite(b_arr).all()):
        raise InvalidInput("Point sets contain NaN or infinite coordinates.")
    return a_arr, b_arr


def _permutation_batches(n: int) -> Iterator[np.ndarray]:
    perms = permutations(range(n))
    while True:
        chunk = list(islice(perms, BATCH_SIZE))
        if not chunk:
            return
        yield np.array(chunk, dtype=np.intp)


def best_alignment(a, b) -> AlignmentResult:
    """
    Lowest-RMSD pairing of two equal-sized point sets.

    Parameters
    ----------
    a, b:
        StructureBlock, list of Atom, or (n, 3) array-likes.

    Returns
    -------
    AlignmentResult
        Ties are resolved in favour of the first pair explored.  Permutations
        are walked in lexicographic order and, for each one, the variants in
        VARIANTS order (identity, mirror, inversion).

    Raises
    ------
    CardinalityMismatch
        If the sets have different sizes.
    InvalidInput
        If the sets are empty or not (n, 3).
    """
    a_arr, b_arr = _validated_pair(a, b)
    n = len(a_arr)

    p = centered(a_arr)
    q = centered(b_arr)
    variants = {
        "identity": q,
        "mirror": mirror(q),
        "inversion": invert(q),
    }

    best: AlignmentResult | None = None
    for batch in _permutation_batches(n):
        p_batch = p[batch]
        # (k, 3): row-major argmin follows permutation, then variant order
        scores = np.stack(
            [_kabsch_batch(p_batch, variants[name]) for name in VARIANTS], axis=1
        )
        perm_idx, variant_idx = divmod(int(np.argmin(scores)), len(VARIANTS))
        score = float(scores[perm_idx, variant_idx])
        if best is None or score < best.rmsd:
            best = AlignmentResult(
                rmsd=score,
                permutation=tuple(int(v) for v in batch[perm_idx]),
                variant=VARIANTS[variant_idx],
            )
    return best


def minimum_rmsd(a, b) -> float:
    """
    Minimum RMSD over all relabellings of ``a`` and the identity, mirror
    and inversion of ``b``.  See best_alignment() for details.
    """
    return best_alignment(a, b).rmsd
