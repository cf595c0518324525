"""
arcstat/config.py

Load and validate an arcstat.yaml file into typed configuration models.

Usage
-----
    from arcstat.config import load_config, build_radius_table

    cfg = load_config("arcstat.yaml")
    print(cfg.tolerances.bond_tolerance)
    table = build_radius_table(cfg)

All models use pydantic v2.  Every field has a default, so an arcstat.yaml
only needs the values that differ from them, and the CLI works without one.
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, field_validator

from arcstat.structure.periodic import ElementRadiusTable, default_radius_table


# ---------------------------------------------------------------------------
# Sub-models
# ---------------------------------------------------------------------------


class ToleranceConfig(BaseModel):
    """
    Numerical tolerances used by the analysis core.

    No single value suits every element pair; the defaults reproduce the
    behaviour of the LASP analysis scripts.
    """

    bond_tolerance: float = 0.3         # Å added to the radius sum of a pair
    in_plane_tolerance: float = 0.1     # Å; atoms closer than this share a plane
    parallel_epsilon: float = 1e-5      # unit-normal cross-product threshold
    energy_threshold: float = 0.001     # eV; energies closer than this share a bin

    @field_validator("bond_tolerance", "in_plane_tolerance", "parallel_epsilon", "energy_threshold")
    @classmethod
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"tolerances must be > 0, got {v}.")
        return v


class SearchConfig(BaseModel):
    """
    Defaults for `arcstat search`.  Command-line options take precedence.

    element
    -------
    Element symbol whose atoms take part in the search.  None uses every
    atom.
    """

    element: str | None = None
    substructure_size: int | None = None    # must equal the reference size
    rmsd_threshold: float = 0.3             # Å
    max_neighbors: int = 11                 # skip busier centre atoms
    workers: int = 1

    @field_validator("substructure_size")
    @classmethod
    def _valid_size(cls, v: int | None) -> int | None:
        if v is not None and v < 2:
            raise ValueError(f"substructure_size must be >= 2, got {v}.")
        return v

    @field_validator("rmsd_threshold")
    @classmethod
    def _positive_threshold(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"rmsd_threshold must be > 0 Å, got {v}.")
        return v

    @field_validator("max_neighbors", "workers")
    @classmethod
    def _positive_int(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"search integer parameters must be >= 1, got {v}.")
        return v


# ---------------------------------------------------------------------------
# Root config model
# ---------------------------------------------------------------------------


class ArcstatConfig(BaseModel):
    """
    Root configuration object loaded from arcstat.yaml.

    Example
    -------
    .. code-block:: yaml

        tolerances:
          bond_tolerance: 0.3
          in_plane_tolerance: 0.1

        search:
          element: Pt
          rmsd_threshold: 0.25
          workers: 4

        radii:
          Fe: 1.17
    """

    tolerances: ToleranceConfig = ToleranceConfig()
    search: SearchConfig = SearchConfig()
    radii: dict[str, float] = {}

    @field_validator("radii")
    @classmethod
    def _positive_radii(cls, v: dict[str, float]) -> dict[str, float]:
        bad = {sym: r for sym, r in v.items() if r <= 0}
        if bad:
            raise ValueError(f"radii must be > 0 Å, got {bad}.")
        return v


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------


def load_config(path: str | Path) -> ArcstatConfig:
    """
    Load and validate an arcstat.yaml file.

    Raises
    ------
    FileNotFoundError
        If the YAML file does not exist.
    ValueError
        If the file is empty or its top level is not a mapping.
    pydantic.ValidationError
        If the YAML content fails validation.
    yaml.YAMLError
        If the file is not valid YAML.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    if raw is None:
        raise ValueError(
            f"{path} contains no YAML keys.  "
            "Generate a template with: arcstat init"
        )
    if not isinstance(raw, dict):
        raise ValueError(
            f"Expected a YAML mapping at the top level, got {type(raw).__name__}."
        )

    return ArcstatConfig.model_validate(raw)


def build_radius_table(config: ArcstatConfig | None = None) -> ElementRadiusTable:
    """Default radius table with the config's per-element overrides applied."""
    table = default_radius_table()
    if config is None or not config.radii:
        return table
    return table.with_overrides(config.radii)


EXAMPLE_CONFIG = """\
# arcstat.yaml: arcstat configuration file
# Every key is optional; the values below are the defaults.

# ---------------------------------------------------------------------------
# Numerical tolerances
# ---------------------------------------------------------------------------
tolerances:
  bond_tolerance: 0.3          # Å added to r_i + r_j when detecting bonds
  in_plane_tolerance: 0.1      # Å; atoms this close to a plane lie on it
  parallel_epsilon: 1.0e-5     # parallel-plane check
  energy_threshold: 0.001      # eV; energy histogram bin width

# ---------------------------------------------------------------------------
# Substructure search defaults (command-line options override these)
# ---------------------------------------------------------------------------
search:
  element: null                # e.g. Pt; null uses every atom
  substructure_size: null      # defaults to the reference atom count
  rmsd_threshold: 0.3          # Å
  max_neighbors: 11            # skip centre atoms with more neighbours
  workers: 1                   # worker threads

# ---------------------------------------------------------------------------
# Per-element radius overrides (Å); defaults are ASE covalent radii
# ---------------------------------------------------------------------------
radii: {}
#  Fe: 1.17
"""


def generate_example_config(path: str | Path = "arcstat.yaml") -> Path:
    """
    Write a fully commented example arcstat.yaml to disk.

    Called by `arcstat init`.
    """
    path = Path(path)
    path.write_text(EXAMPLE_CONFIG, encoding="utf-8")
    return path
