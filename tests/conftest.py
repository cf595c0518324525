"""
tests/conftest.py

Shared pytest fixtures for the arcstat test suite.

All fixtures here are pure geometry; no LASP output beyond small text
snippets written to tmp_path is needed.

Fixture overview
----------------
Radius tables
    radius_table        Process-wide default (ASE covalent radii)
    fe_table            Reference LASP radii for Fe and O (Fe = 1.17 Å)

Point sets
    chiral_points       4 points with distinct arm lengths (no mirror symmetry)
    random_points       6 reproducible random points

Structures
    square_grid         3×3 Pt grid, spacing 2.5 Å, in the z = 0 plane
    right_angle_motif   3-atom Pt motif: centre plus two perpendicular arms
    cubic_slab          3×3×4 simple cubic Fe slab, layer spacing 2.0 Å
    water               O with two H at 90°
    rotation            Factory for Rodrigues rotation matrices

Files
    arc_text            Two-block .arc archive as a string
    arc_file            arc_text written to tmp_path / "all.arc"
    lasp_out            A small lasp.out with two unconverged structures
"""

from __future__ import annotations

import textwrap

import numpy as np
import pytest

from arcstat.structure.block import Atom, StructureBlock


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_grid(
    element: str = "Pt",
    n: int = 3,
    spacing: float = 2.5,
    origin: tuple = (0.0, 0.0, 0.0),
    energy: float = -10.0,
) -> StructureBlock:
    """n×n square grid of atoms in a plane parallel to xy."""
    ox, oy, oz = origin
    atoms = [
        Atom(element, (ox + i * spacing, oy + j * spacing, oz))
        for i in range(n)
        for j in range(n)
    ]
    return StructureBlock(atoms=atoms, energy=energy)


def _make_cubic_slab(
    element: str = "Fe",
    n: int = 3,
    layers: int = 4,
    a: float = 2.5,
    d: float = 2.0,
) -> StructureBlock:
    """
    Simple cubic slab.  Atom index = layer * n² + i * n + j, position
    (i·a, j·a, layer·d).
    """
    atoms = [
        Atom(element, (i * a, j * a, k * d))
        for k in range(layers)
        for i in range(n)
        for j in range(n)
    ]
    return StructureBlock(atoms=atoms, energy=-50.0)


def _rotation_matrix(axis, theta: float) -> np.ndarray:
    """Proper rotation by theta (radians) about axis (Rodrigues)."""
    axis = np.asarray(axis, dtype=float)
    axis = axis / np.linalg.norm(axis)
    k = np.array([
        [0.0, -axis[2], axis[1]],
        [axis[2], 0.0, -axis[0]],
        [-axis[1], axis[0], 0.0],
    ])
    return np.eye(3) + np.sin(theta) * k + (1.0 - np.cos(theta)) * (k @ k)


# ---------------------------------------------------------------------------
# Radius tables
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def radius_table():
    from arcstat.structure.periodic import default_radius_table
    return default_radius_table()


@pytest.fixture(scope="session")
def fe_table():
    """Radii used by the LASP analysis scripts (Fe 1.17 Å)."""
    from arcstat.structure.periodic import ElementRadiusTable
    return ElementRadiusTable.from_radii({"Fe": 1.17, "O": 0.73})


# ---------------------------------------------------------------------------
# Point sets
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def chiral_points() -> np.ndarray:
    return np.array([
        [0.0, 0.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 2.0, 0.0],
        [0.0, 0.0, 3.0],
    ])


@pytest.fixture
def random_points() -> np.ndarray:
    rng = np.random.default_rng(7)
    return rng.uniform(-3.0, 3.0, size=(6, 3))


# ---------------------------------------------------------------------------
# Structures
# ---------------------------------------------------------------------------

@pytest.fixture
def square_grid() -> StructureBlock:
    return _make_grid()


@pytest.fixture(scope="session")
def right_angle_motif() -> StructureBlock:
    return StructureBlock(atoms=[
        Atom("Pt", (2.5, 0.0, 0.0)),
        Atom("Pt", (0.0, 2.5, 0.0)),
        Atom("Pt", (0.0, 0.0, 0.0)),
    ])


@pytest.fixture
def cubic_slab() -> StructureBlock:
    return _make_cubic_slab()


@pytest.fixture
def water() -> StructureBlock:
    return StructureBlock(atoms=[
        Atom("O", (0.0, 0.0, 0.0)),
        Atom("H", (0.96, 0.0, 0.0)),
        Atom("H", (0.0, 0.96, 0.0)),
    ])


@pytest.fixture(scope="session")
def make_grid():
    """Factory fixture: returns _make_grid for tests needing several grids."""
    return _make_grid


@pytest.fixture(scope="session")
def make_cubic_slab():
    return _make_cubic_slab


@pytest.fixture(scope="session")
def rotation():
    """Factory fixture: rotation(axis, theta) -> 3x3 proper rotation matrix."""
    return _rotation_matrix


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def arc_text() -> str:
    return textwrap.dedent("""\
        !BIOSYM archive 2
        PBC=ON
                                     Energy         0          0.0099      -3620.679360        C1
        !DATE
        PBC   20.19500000   20.19500000   29.51410000   90.00000000   90.00000000  120.00000000
        Fe       0.000000000    0.000000000    0.000000000 CORE    1 Fe Fe   0.0000    1
        Fe       2.340000000    0.000000000    0.000000000 CORE    2 Fe Fe   0.0000    2
        O        1.170000000    1.500000000    0.000000000 CORE    3 O  O    0.0000    3
        end
        end
                                     Energy         1          0.0100      -3621.500000
        !DATE
        PBC   20.19500000   20.19500000   29.51410000   90.00000000   90.00000000  120.00000000
        Fe       0.000000000    0.000000000    0.000000000 CORE    1 Fe Fe   0.0000    1
        Fe       3.000000000    0.000000000    0.000000000 CORE    2 Fe Fe   0.0000    2
        O        1.500000000    2.000000000    0.000000000 CORE    3 O  O    0.0000    3
        end
        end
        """)


@pytest.fixture
def arc_file(tmp_path, arc_text):
    path = tmp_path / "all.arc"
    path.write_text(arc_text)
    return path


@pytest.fixture
def lasp_out(tmp_path):
    path = tmp_path / "lasp.out"
    path.write_text(textwrap.dedent("""\
        Str symm and Q     1
        converged in 120 steps
        Str symm and Q     2
        optimisation not converged
        Str symm and Q     3
        converged in 80 steps
        Str symm and Q     4
        optimisation not converged
        """))
    return path
