"""
arcstat/cli.py

Command-line interface for arcstat.

Commands
--------
  arcstat init          Write a commented arcstat.yaml template.
  arcstat summary       Minimum energy, block count, atom consistency, energy list.
  arcstat extract       Write the minimum-energy block to a new file.
  arcstat rearrange     Write the minimum-energy block with atoms sorted by one axis.
  arcstat coordination  Coordination numbers of every atom in one block.
  arcstat spacings      Interplanar spacings for a plane through three atoms.
  arcstat angles        Bond angles around every atom of one element.
  arcstat compare       Minimum RMSD between two blocks.
  arcstat search        Find neighbourhoods matching a reference motif.
  arcstat unconverged   List unconverged structures from lasp.out.

Usage
-----
    arcstat summary all.arc
    arcstat spacings all.arc 0 1 2 --block 3
    arcstat search all.arc motif.xyz --element Pt --threshold 0.25 --workers 4
"""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

import click

from arcstat.errors import ArcstatError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Logging is configured once per command, never at import time
# ---------------------------------------------------------------------------

def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s  %(levelname)-8s  %(message)s",
        datefmt="%H:%M:%S",
        level=level,
        stream=sys.stderr,
    )


def _log_memory_usage() -> None:
    """Peak resident memory of this process, logged on interrupt."""
    if sys.platform.startswith("win"):
        return
    import resource

    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # ru_maxrss is in KiB on Linux and bytes on macOS
    peak_mib = peak / 1024**2 if sys.platform == "darwin" else peak / 1024
    logger.warning(f"Interrupted; peak memory usage {peak_mib:.1f} MiB")


# ---------------------------------------------------------------------------
# Shared options and helpers
# ---------------------------------------------------------------------------

_config_option = click.option(
    "--config", "-c",
    default="arcstat.yaml",
    show_default=True,
    type=click.Path(dir_okay=False),
    help="Optional arcstat.yaml; defaults are used when it does not exist.",
)

_verbose_option = click.option(
    "--verbose", "-v",
    is_flag=True,
    default=False,
    help="Enable debug logging.",
)

_block_option = click.option(
    "--block", "-b",
    type=int,
    default=0,
    show_default=True,
    help="Index of the block to analyse.",
)

_structure_file = click.argument(
    "structure_file", type=click.Path(exists=True, dir_okay=False)
)


def _fail(message: str) -> None:
    click.echo(f"Error: {message}", err=True)
    raise SystemExit(1)


def _load_settings(config: str):
    from arcstat.config import ArcstatConfig, load_config

    path = Path(config)
    if not path.exists():
        return ArcstatConfig()
    try:
        return load_config(path)
    except Exception as exc:
        _fail(f"config validation failed:\n  {exc}")


def _read_blocks(path: str):
    from arcstat.io.base import read_structures

    try:
        blocks = read_structures(path)
    except (OSError, ValueError) as exc:
        _fail(str(exc))
    if not blocks:
        _fail(f"no structure blocks found in {path}")
    return blocks


def _pick_block(blocks, index: int, path: str):
    if not -len(blocks) <= index < len(blocks):
        _fail(f"block {index} out of range; {path} has {len(blocks)} block(s)")
    return blocks[index]


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------

@click.group()
@click.version_option(package_name="arcstat")
def cli() -> None:
    """
    arcstat: analysis of LASP .arc structure archives.

    Energy statistics, coordination, interplanar spacings and RMSD-based
    structure matching.
    """


# ---------------------------------------------------------------------------
# arcstat init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "-o", default="arcstat.yaml", show_default=True,
              type=click.Path(dir_okay=False), help="Where to write the template.")
@click.option("--force", is_flag=True, default=False,
              help="Overwrite an existing file.")
def cmd_init(output: str, force: bool) -> None:
    """Write a fully commented arcstat.yaml template."""
    from arcstat.config import generate_example_config

    path = Path(output)
    if path.exists() and not force:
        _fail(f"{path} already exists; pass --force to overwrite it")
    generate_example_config(path)
    click.echo(f"✓ Example configuration written to {path}")


# ---------------------------------------------------------------------------
# arcstat summary
# ---------------------------------------------------------------------------

@cli.command("summary")
@_structure_file
@click.option("--minimum", "-m", is_flag=True, help="Print the minimum energy.")
@click.option("--count", "show_count", is_flag=True, help="Print the number of blocks.")
@click.option("--consistency", is_flag=True, help="Check that every block has the same atoms.")
@click.option("--energy-list", "-e", "energy_list", is_flag=True,
              help="Print distinct energies and how often each occurs.")
@_config_option
@_verbose_option
def cmd_summary(
    structure_file: str,
    minimum: bool,
    show_count: bool,
    consistency: bool,
    energy_list: bool,
    config: str,
    verbose: bool,
) -> None:
    """
    Energy and composition statistics of a structure file.

    With no flags every statistic is printed.
    """
    _setup_logging(verbose)
    from arcstat.analysis import stats

    cfg = _load_settings(config)
    blocks = _read_blocks(structure_file)

    if not (minimum or show_count or consistency or energy_list):
        minimum = show_count = consistency = energy_list = True

    if minimum:
        click.echo(f"minimum energy: {stats.find_minimum_energy(blocks)}")
    if show_count:
        click.echo(f"structures: {stats.count_structure_blocks(blocks)}")
    if consistency:
        if stats.check_atom_consistency(blocks):
            click.echo("atoms: " + click.style("consistent", fg="green"))
        else:
            click.echo("atoms: " + click.style("non-consistent", fg="red"))
    if energy_list:
        bins = stats.list_energy(blocks, threshold=cfg.tolerances.energy_threshold)
        for info in sorted(bins, key=lambda b: b.energy, reverse=True):
            click.echo(f"energy: {info.energy}, present {info.count} time(s)")


# ---------------------------------------------------------------------------
# arcstat extract / rearrange
# ---------------------------------------------------------------------------

@cli.command("extract")
@_structure_file
@click.option("--output", "-o", default="minimum.arc", show_default=True,
              type=click.Path(dir_okay=False), help="Output file (.arc or .xyz).")
@_verbose_option
def cmd_extract(structure_file: str, output: str, verbose: bool) -> None:
    """Write the minimum-energy block to a new file."""
    _setup_logging(verbose)
    from arcstat.analysis.stats import extract_minimum
    from arcstat.io.base import write_structures

    block = extract_minimum(_read_blocks(structure_file))
    try:
        write_structures([block], output)
    except ValueError as exc:
        _fail(str(exc))
    click.echo(f"✓ Minimum structure (E = {block.energy}) written to {output}")


_AXES = {"x": 0, "y": 1, "z": 2}


@cli.command("rearrange")
@_structure_file
@click.option("--axis", type=click.Choice(sorted(_AXES)), default="x", show_default=True,
              help="Coordinate to sort atoms by.")
@click.option("--output", "-o", default="rearranged.arc", show_default=True,
              type=click.Path(dir_okay=False), help="Output file (.arc or .xyz).")
@_verbose_option
def cmd_rearrange(structure_file: str, axis: str, output: str, verbose: bool) -> None:
    """Write the minimum-energy block with atoms sorted along one axis."""
    _setup_logging(verbose)
    from arcstat.analysis.stats import extract_minimum
    from arcstat.io.base import write_structures

    block = extract_minimum(_read_blocks(structure_file))
    k = _AXES[axis]
    block.reorder_atoms(key=lambda atom: atom.position[k])
    try:
        write_structures([block], output)
    except ValueError as exc:
        _fail(str(exc))
    click.echo(f"✓ Minimum structure sorted by {axis} written to {output}")


# ---------------------------------------------------------------------------
# arcstat coordination / spacings / angles
# ---------------------------------------------------------------------------

@cli.command("coordination")
@_structure_file
@_block_option
@_config_option
@_verbose_option
def cmd_coordination(structure_file: str, block: int, config: str, verbose: bool) -> None:
    """Coordination number of every atom in one block."""
    _setup_logging(verbose)
    from arcstat.analysis.coordination import coordination_numbers
    from arcstat.config import build_radius_table

    cfg = _load_settings(config)
    target = _pick_block(_read_blocks(structure_file), block, structure_file)
    try:
        numbers = coordination_numbers(
            target, build_radius_table(cfg), cfg.tolerances.bond_tolerance
        )
    except ArcstatError as exc:
        _fail(str(exc))

    for i, (atom, cn) in enumerate(zip(target.atoms, numbers)):
        click.echo(f"{i:>5}  {atom.element:<3} {cn}")


@cli.command("spacings")
@_structure_file
@click.argument("i", type=int)
@click.argument("j", type=int)
@click.argument("k", type=int)
@_block_option
@_config_option
@_verbose_option
def cmd_spacings(
    structure_file: str, i: int, j: int, k: int, block: int, config: str, verbose: bool
) -> None:
    """Interplanar spacings for the plane family through atoms I, J, K."""
    _setup_logging(verbose)
    from arcstat.analysis.planes import interplanar_spacings

    cfg = _load_settings(config)
    target = _pick_block(_read_blocks(structure_file), block, structure_file)
    try:
        spacings = interplanar_spacings(
            target, i, j, k,
            in_plane_tolerance=cfg.tolerances.in_plane_tolerance,
            parallel_epsilon=cfg.tolerances.parallel_epsilon,
        )
    except ArcstatError as exc:
        _fail(str(exc))

    if not spacings:
        click.echo("All atoms lie in a single plane.")
    for n, d in enumerate(spacings, 1):
        click.echo(f"{n:>4}  {d:.6f}")


@cli.command("angles")
@_structure_file
@click.argument("element")
@_block_option
@_config_option
@_verbose_option
def cmd_angles(structure_file: str, element: str, block: int, config: str, verbose: bool) -> None:
    """Bond angles (degrees) around every ELEMENT atom in one block."""
    _setup_logging(verbose)
    from arcstat.analysis.stats import bond_angles
    from arcstat.config import build_radius_table

    cfg = _load_settings(config)
    target = _pick_block(_read_blocks(structure_file), block, structure_file)
    try:
        angles = bond_angles(
            target, build_radius_table(cfg), element, cfg.tolerances.bond_tolerance
        )
    except ArcstatError as exc:
        _fail(str(exc))

    for value in angles:
        click.echo(f"{value:.4f}")
    click.echo(f"\n{len(angles)} angle(s) around {element}.")


# ---------------------------------------------------------------------------
# arcstat compare
# ---------------------------------------------------------------------------

@cli.command("compare")
@click.argument("file_a", type=click.Path(exists=True, dir_okay=False))
@click.argument("file_b", type=click.Path(exists=True, dir_okay=False))
@click.option("--block-a", type=int, default=0, show_default=True)
@click.option("--block-b", type=int, default=0, show_default=True)
@click.option("--element", "-e", default=None,
              help="Compare only atoms of this element.")
@_verbose_option
def cmd_compare(
    file_a: str, file_b: str, block_a: int, block_b: int, element: str | None, verbose: bool
) -> None:
    """
    Minimum RMSD between two blocks over atom relabelling, mirror and
    inversion.  Meant for small structures; cost grows as n!.
    """
    _setup_logging(verbose)
    from arcstat.analysis.rmsd import best_alignment

    a = _pick_block(_read_blocks(file_a), block_a, file_a)
    b = _pick_block(_read_blocks(file_b), block_b, file_b)
    a = a.subset(a.select(element))
    b = b.subset(b.select(element))

    try:
        result = best_alignment(a, b)
    except ArcstatError as exc:
        _fail(str(exc))

    click.echo(f"minimum RMSD: {result.rmsd:.6f}")
    click.echo(f"variant: {result.variant}")
    click.echo(f"permutation: {list(result.permutation)}")


# ---------------------------------------------------------------------------
# arcstat search
# ---------------------------------------------------------------------------

@cli.command("search")
@_structure_file
@click.argument("reference_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--element", "-e", default=None, help="Element taking part in the search.")
@click.option("--size", type=int, default=None, help="Motif size (defaults to the reference size).")
@click.option("--threshold", "-t", type=float, default=None, help="RMSD acceptance threshold (Å).")
@click.option("--workers", "-w", type=int, default=None, help="Number of worker threads.")
@click.option("--max-neighbors", type=int, default=None,
              help="Skip centre atoms with more neighbours than this.")
@click.option("--reference-block", type=int, default=0, show_default=True,
              help="Block of REFERENCE_FILE holding the motif.")
@_config_option
@_verbose_option
def cmd_search(
    structure_file: str,
    reference_file: str,
    element: str | None,
    size: int | None,
    threshold: float | None,
    workers: int | None,
    max_neighbors: int | None,
    reference_block: int,
    config: str,
    verbose: bool,
) -> None:
    """
    Find neighbourhoods in every block of STRUCTURE_FILE that match the
    motif in REFERENCE_FILE.

    Matches are printed as they are found; with several workers the order
    is not deterministic.
    """
    _setup_logging(verbose)
    from arcstat.analysis.search import find_substructure_matches
    from arcstat.config import build_radius_table

    cfg = _load_settings(config)
    blocks = _read_blocks(structure_file)
    reference = _pick_block(_read_blocks(reference_file), reference_block, reference_file)

    element = element if element is not None else cfg.search.element
    if element is not None:
        reference = reference.subset(reference.select(element))

    def _echo_match(report) -> None:
        click.echo(
            f"structure {report.structure_index:>6}  "
            f"atoms {list(report.atom_indices)}  rmsd {report.rmsd:.4f}"
        )

    cancel = threading.Event()
    try:
        matches = find_substructure_matches(
            blocks,
            reference,
            element_filter=element,
            substructure_size=size if size is not None else cfg.search.substructure_size,
            rmsd_threshold=threshold if threshold is not None else cfg.search.rmsd_threshold,
            worker_count=workers if workers is not None else cfg.search.workers,
            radius_table=build_radius_table(cfg),
            bond_tolerance=cfg.tolerances.bond_tolerance,
            max_neighbors=max_neighbors if max_neighbors is not None else cfg.search.max_neighbors,
            on_match=_echo_match,
            cancel=cancel,
        )
    except ArcstatError as exc:
        _fail(str(exc))
    except KeyboardInterrupt:
        cancel.set()
        _log_memory_usage()
        click.echo("\nInterrupted by user.", err=True)
        raise SystemExit(130)

    click.echo(f"\n{len(matches)} match(es) in {len(blocks)} structure(s).")


# ---------------------------------------------------------------------------
# arcstat unconverged
# ---------------------------------------------------------------------------

@cli.command("unconverged")
@click.argument("lasp_out", default="lasp.out", type=click.Path(dir_okay=False))
@_verbose_option
def cmd_unconverged(lasp_out: str, verbose: bool) -> None:
    """List structure numbers that LASP_OUT reports as not converged."""
    _setup_logging(verbose)
    from arcstat.io.lasp import find_unconverged_structures

    try:
        numbers = find_unconverged_structures(lasp_out)
    except FileNotFoundError as exc:
        _fail(str(exc))

    for n in numbers:
        click.echo(n)
    click.echo(f"\n{len(numbers)} unconverged structure(s).", err=True)
