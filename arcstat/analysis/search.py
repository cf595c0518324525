"""
arcstat/analysis/search.py

Find local neighbourhoods in many structures that match a small reference
motif under the minimum-RMSD criterion.

Per candidate structure
-----------------------
1.  Keep only atoms of the requested element(s).
2.  Build neighbour lists from the coordination engine.
3.  For every centre atom with at most ``max_neighbors`` neighbours, take
    every combination of (size − 1) neighbours, append the centre, and
    compare the resulting point set with the reference via minimum_rmsd().
4.  Report combinations with RMSD below ``rmsd_threshold``.

Workers
-------
Structures are split across ``worker_count`` threads by index:
worker w handles every structure with ``index % worker_count == w``.
Inputs are read-only and each worker keeps its own result list, so nothing
is locked while workers run.  Matches are handed to ``on_match`` as soon as
they are found; with more than one worker that happens in no particular
order.  Within a worker the order is fixed: structures ascending, centre
atoms ascending, neighbour combinations lexicographic.

Cancellation
------------
Pass a threading.Event as ``cancel``.  Workers check it before each
structure and each centre atom, stop when it is set, and the matches found
so far are returned.

Usage
-----
    from arcstat.analysis.search import find_substructure_matches

    matches = find_substructure_matches(
        blocks, motif, element_filter="Pt", rmsd_threshold=0.3, worker_count=4,
    )
    for m in matches:
        print(m.structure_index, m.atom_indices, m.rmsd)
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from itertools import combinations
from typing import Callable, Iterable, Iterator, Sequence

import numpy as np

from arcstat.analysis.coordination import BOND_TOLERANCE, neighbor_lists
from arcstat.analysis.geometry import as_positions
from arcstat.analysis.rmsd import minimum_rmsd
from arcstat.errors import InvalidInput, UnknownElement
from arcstat.structure.block import StructureBlock
from arcstat.structure.periodic import ElementRadiusTable, default_radius_table

logger = logging.getLogger(__name__)

RMSD_THRESHOLD = 0.3    # Å
MAX_NEIGHBORS = 11


@dataclass(frozen=True)
class MatchReport:
    """
    One neighbourhood that matched the reference motif.

    Attributes
    ----------
    structure_index:
        Position of the structure in the candidate list.
    atom_indices:
        Indices into that structure's full atom list, neighbours first and
        the centre atom last.
    rmsd:
        Minimum RMSD against the reference (Å).
    """

    structure_index: int
    atom_indices: tuple[int, ...]
    rmsd: float

    @property
    def center(self) -> int:
        return self.atom_indices[-1]


def _log_match(report: MatchReport) -> None:
    logger.info(
        f"  match: structure {report.structure_index}  "
        f"atoms {list(report.atom_indices)}  rmsd={report.rmsd:.4f}"
    )


def search_structure(
    structure_index: int,
    block: StructureBlock,
    reference_points: np.ndarray,
    element_filter: str | Iterable[str] | None,
    radius_table: ElementRadiusTable,
    rmsd_threshold: float = RMSD_THRESHOLD,
    bond_tolerance: float = BOND_TOLERANCE,
    max_neighbors: int = MAX_NEIGHBORS,
    cancel: threading.Event | None = None,
) -> Iterator[MatchReport]:
    """
    Yield every neighbourhood of one structure that matches the reference.

    The motif size is len(reference_points).  An unknown element in the
    filtered atoms skips the whole structure with a warning.  A failed
    alignment (LinAlgError, invalid coordinates or a non-finite RMSD) on one
    combination skips that combination with a warning.
    """
    size = len(reference_points)
    selected = block.select(element_filter)
    sub = block.subset(selected)

    try:
        neighbors = neighbor_lists(sub, radius_table, bond_tolerance)
    except UnknownElement as exc:
        logger.warning(f"Structure {structure_index} skipped: {exc}")
        return

    positions = sub.positions
    for centre, nbrs in enumerate(neighbors):
        if cancel is not None and cancel.is_set():
            return
        if len(nbrs) > max_neighbors or len(nbrs) < size - 1:
            continue

        for combo in combinations(nbrs, size - 1):
            local = (*combo, centre)
            try:
                rmsd = minimum_rmsd(reference_points, positions[list(local)])
            except (np.linalg.LinAlgError, InvalidInput) as exc:
                logger.warning(
                    f"Structure {structure_index}, atoms {local}: "
                    f"alignment failed ({exc}); skipped"
                )
                continue
            if not np.isfinite(rmsd):
                logger.warning(
                    f"Structure {structure_index}, atoms {local}: non-finite RMSD; skipped"
                )
                continue

            if rmsd < rmsd_threshold:
                yield MatchReport(
                    structure_index=structure_index,
                    atom_indices=tuple(selected[j] for j in local),
                    rmsd=rmsd,
                )


def _run_worker(
    worker_id: int,
    worker_count: int,
    candidates: Sequence[StructureBlock],
    on_match: Callable[[MatchReport], None],
    cancel: threading.Event | None,
    **search_kwargs,
) -> list[MatchReport]:
    found: list[MatchReport] = []
    logger.debug(f"[worker {worker_id}] started")

    for index in range(worker_id, len(candidates), worker_count):
        if cancel is not None and cancel.is_set():
            logger.info(f"[worker {worker_id}] cancelled before structure {index}")
            break
        for report in search_structure(index, candidates[index], cancel=cancel, **search_kwargs):
            on_match(report)
            found.append(report)

    logger.debug(f"[worker {worker_id}] finished with {len(found)} match(es)")
    return found


def find_substructure_matches(
    candidates: Sequence[StructureBlock],
    reference,
    element_filter: str | Iterable[str] | None,
    substructure_size: int | None = None,
    rmsd_threshold: float = RMSD_THRESHOLD,
    worker_count: int = 1,
    radius_table: ElementRadiusTable | None = None,
    bond_tolerance: float = BOND_TOLERANCE,
    max_neighbors: int = MAX_NEIGHBORS,
    on_match: Callable[[MatchReport], None] | None = None,
    cancel: threading.Event | None = None,
) -> list[MatchReport]:
    """
    Search every candidate structure for neighbourhoods matching ``reference``.

    Parameters
    ----------
    candidates:
        Structures to search.  Read-only.
    reference:
        The motif: StructureBlock, list of Atom, or (n, 3) positions.
    element_filter:
        Element symbol (or symbols) whose atoms take part.  None uses all.
    substructure_size:
        Motif size.  Defaults to len(reference) and must equal it if given.
    rmsd_threshold:
        Matches need an RMSD strictly below this (Å).
    worker_count:
        Number of worker threads.  1 runs in the calling thread.
    radius_table:
        Element radii.  The process-wide default table if None.
    bond_tolerance:
        Margin added to radius sums when building neighbour lists (Å).
    max_neighbors:
        Centre atoms with more neighbours than this are skipped.
    on_match:
        Called once per match from the worker thread that found it.
        Defaults to logging the match at INFO.
    cancel:
        Event checked before each structure and centre atom.

    Returns
    -------
    list[MatchReport]
        All matches, grouped by worker in worker order.  Partial if
        cancelled.

    Raises
    ------
    InvalidInput
        Motif smaller than 2 atoms, a size that disagrees with the
        reference, or worker_count < 1.
    """
    reference_points = as_positions(reference)
    size = len(reference_points)
    if size < 2:
        raise InvalidInput(f"Reference substructure needs at least 2 atoms, got {size}.")
    if substructure_size is not None and substructure_size != size:
        raise InvalidInput(
            f"substructure_size ({substructure_size}) does not match the "
            f"reference atom count ({size})."
        )
    if worker_count < 1:
        raise InvalidInput(f"worker_count must be >= 1, got {worker_count}.")

    search_kwargs = dict(
        reference_points=reference_points,
        element_filter=element_filter,
        radius_table=radius_table if radius_table is not None else default_radius_table(),
        rmsd_threshold=rmsd_threshold,
        bond_tolerance=bond_tolerance,
        max_neighbors=max_neighbors,
    )
    callback = on_match if on_match is not None else _log_match

    logger.info(
        f"Searching {len(candidates)} structure(s) for a {size}-atom motif "
        f"with {worker_count} worker(s)"
    )

    if worker_count == 1:
        return _run_worker(0, 1, candidates, callback, cancel, **search_kwargs)

    # Workers need an event to see Ctrl-C (main thread only) or a failed sibling
    if cancel is None:
        cancel = threading.Event()

    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="arcstat-search") as pool:
        futures = [
            pool.submit(_run_worker, w, worker_count, candidates, callback, cancel, **search_kwargs)
            for w in range(worker_count)
        ]
        try:
            results = [future.result() for future in futures]
        except BaseException:
            cancel.set()
            raise

    return [report for worker_matches in results for report in worker_matches]
