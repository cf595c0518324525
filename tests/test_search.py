from __future__ import annotations

import threading

import numpy as np
import pytest

from arcstat.structure.block import Atom, StructureBlock


def _keys(matches):
    return {(m.structure_index, m.atom_indices) for m in matches}


class TestSingleStructure:

    def test_right_angles_in_square_grid(self, square_grid, right_angle_motif, radius_table):
        """
        4 corners x 1 + 4 edge atoms x 2 + centre x 4 right angles; the
        straight 180° triples do not match.
        """
        from arcstat.analysis.search import find_substructure_matches

        matches = find_substructure_matches(
            [square_grid], right_angle_motif, "Pt", radius_table=radius_table,
        )
        assert len(matches) == 16
        assert all(m.rmsd < 0.3 for m in matches)
        assert all(m.structure_index == 0 for m in matches)

    def test_centre_atom_listed_last(self, square_grid, right_angle_motif, radius_table):
        from arcstat.analysis.search import find_substructure_matches

        matches = find_substructure_matches(
            [square_grid], right_angle_motif, "Pt", radius_table=radius_table,
        )
        centre_matches = [m for m in matches if m.center == 4]
        assert len(centre_matches) == 4
        assert {m.atom_indices for m in centre_matches} == {
            (1, 3, 4), (1, 5, 4), (3, 7, 4), (5, 7, 4),
        }

    def test_busy_centre_atoms_skipped(self, square_grid, right_angle_motif, radius_table):
        from arcstat.analysis.search import find_substructure_matches

        matches = find_substructure_matches(
            [square_grid], right_angle_motif, "Pt",
            radius_table=radius_table, max_neighbors=3,
        )
        assert len(matches) == 12
        assert all(m.center != 4 for m in matches)

    def test_rotated_structure_still_matches(self, square_grid, right_angle_motif, rotation):
        from arcstat.analysis.search import find_substructure_matches

        r = rotation([1.0, 1.0, 0.2], 0.9)
        rotated = StructureBlock(atoms=[
            Atom(a.element, np.asarray(a.position) @ r.T) for a in square_grid.atoms
        ])
        assert len(find_substructure_matches([rotated], right_angle_motif, "Pt")) == 16

    def test_default_radius_table_used(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        assert len(find_substructure_matches([square_grid], right_angle_motif, "Pt")) == 16

    def test_threshold_is_strict(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        matches = find_substructure_matches(
            [square_grid], right_angle_motif, "Pt", rmsd_threshold=1e-12,
        )
        assert all(m.rmsd < 1e-12 for m in matches)


class TestElementFilter:

    def test_indices_refer_to_full_structure(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        block = StructureBlock(
            atoms=[Atom("O", (2.5, 2.5, 1.2))] + list(square_grid.atoms),
        )
        matches = find_substructure_matches([block], right_angle_motif, "Pt")
        assert len(matches) == 16
        assert all(0 not in m.atom_indices for m in matches)
        assert all(block.atoms[i].element == "Pt" for m in matches for i in m.atom_indices)

    def test_other_element_finds_nothing(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        assert find_substructure_matches([square_grid], right_angle_motif, "Fe") == []

    def test_unknown_element_skips_structure(self, square_grid, right_angle_motif, make_grid):
        from arcstat.analysis.search import find_substructure_matches

        bad = make_grid(element="Xx")
        matches = find_substructure_matches(
            [bad, square_grid], right_angle_motif, element_filter=None,
        )
        assert len(matches) == 16
        assert {m.structure_index for m in matches} == {1}


class TestWorkers:

    @pytest.mark.parametrize("workers", [2, 3, 5])
    def test_workers_find_same_matches(self, make_grid, right_angle_motif, workers):
        from arcstat.analysis.search import find_substructure_matches

        candidates = [make_grid(origin=(float(i), 0.0, 0.0)) for i in range(4)]
        serial = find_substructure_matches(candidates, right_angle_motif, "Pt")
        parallel = find_substructure_matches(
            candidates, right_angle_motif, "Pt", worker_count=workers,
        )
        assert len(serial) == 64
        assert len(parallel) == 64
        assert _keys(parallel) == _keys(serial)

    def test_serial_order_is_deterministic(self, make_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        candidates = [make_grid(), make_grid()]
        matches = find_substructure_matches(candidates, right_angle_motif, "Pt")
        order = [(m.structure_index, m.center) for m in matches]
        assert order == sorted(order)

    def test_on_match_called_for_every_match(self, make_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        seen = []
        lock = threading.Lock()

        def collect(report):
            with lock:
                seen.append(report)

        matches = find_substructure_matches(
            [make_grid(), make_grid()], right_angle_motif, "Pt",
            worker_count=2, on_match=collect,
        )
        assert len(seen) == len(matches) == 32
        assert _keys(seen) == _keys(matches)

    @pytest.mark.parametrize("workers", [1, 2])
    def test_cancelled_before_start(self, make_grid, right_angle_motif, workers):
        from arcstat.analysis.search import find_substructure_matches

        cancel = threading.Event()
        cancel.set()
        matches = find_substructure_matches(
            [make_grid(), make_grid()], right_angle_motif, "Pt",
            worker_count=workers, cancel=cancel,
        )
        assert matches == []

    def test_cancel_from_callback_stops_search(self, make_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        cancel = threading.Event()
        matches = find_substructure_matches(
            [make_grid() for _ in range(5)], right_angle_motif, "Pt",
            on_match=lambda report: cancel.set(), cancel=cancel,
        )
        # The centre atom that produced the first match finishes its combinations
        assert 1 <= len(matches) < 80
        assert {m.structure_index for m in matches} == {0}

    def test_worker_error_propagates(self, make_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        def explode(report):
            raise RuntimeError("callback failed")

        with pytest.raises(RuntimeError, match="callback failed"):
            find_substructure_matches(
                [make_grid(), make_grid()], right_angle_motif, "Pt",
                worker_count=2, on_match=explode,
            )


class TestSearchErrors:

    def test_reference_too_small(self, square_grid):
        from arcstat.analysis.search import find_substructure_matches
        from arcstat.errors import InvalidInput

        with pytest.raises(InvalidInput):
            find_substructure_matches([square_grid], [Atom("Pt", (0, 0, 0))], "Pt")

    def test_size_disagrees_with_reference(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches
        from arcstat.errors import InvalidInput

        with pytest.raises(InvalidInput):
            find_substructure_matches(
                [square_grid], right_angle_motif, "Pt", substructure_size=4,
            )

    def test_matching_size_accepted(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        matches = find_substructure_matches(
            [square_grid], right_angle_motif, "Pt", substructure_size=3,
        )
        assert len(matches) == 16

    def test_zero_workers(self, square_grid, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches
        from arcstat.errors import InvalidInput

        with pytest.raises(InvalidInput):
            find_substructure_matches(
                [square_grid], right_angle_motif, "Pt", worker_count=0,
            )

    def test_no_candidates(self, right_angle_motif):
        from arcstat.analysis.search import find_substructure_matches

        assert find_substructure_matches([], right_angle_motif, "Pt", worker_count=3) == []


def _grid_point(index: int, spacing: float = 2.5) -> tuple[float, float, float]:
    i, j = divmod(index, 3)
    return (i * spacing, j * spacing, 0.0)


class TestCombinationFailures:
    """
    A failing alignment only drops its own neighbour combination; the other
    matches of the structure are still reported.
    """

    @staticmethod
    def _patch_rmsd(monkeypatch, failures):
        from arcstat.analysis import search
        from arcstat.analysis.rmsd import minimum_rmsd

        def fake(reference, candidate):
            key = tuple(tuple(float(v) for v in row) for row in np.asarray(candidate))
            outcome = failures.get(key)
            if outcome is None:
                return minimum_rmsd(reference, candidate)
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome

        monkeypatch.setattr(search, "minimum_rmsd", fake)

    @staticmethod
    def _combo(*indices):
        return tuple(_grid_point(i) for i in indices)

    def test_linalg_error_and_nan_skipped(self, monkeypatch, caplog, square_grid, right_angle_motif):
        import logging

        from arcstat.analysis.search import find_substructure_matches

        self._patch_rmsd(monkeypatch, {
            self._combo(1, 3, 4): np.linalg.LinAlgError("SVD did not converge"),
            self._combo(5, 7, 4): float("nan"),
        })
        with caplog.at_level(logging.WARNING, logger="arcstat.analysis.search"):
            matches = find_substructure_matches([square_grid], right_angle_motif, "Pt")

        keys = {m.atom_indices for m in matches}
        assert len(matches) == 14
        assert (1, 3, 4) not in keys
        assert (5, 7, 4) not in keys
        assert {(1, 5, 4), (3, 7, 4)} <= keys
        assert "alignment failed" in caplog.text
        assert "non-finite RMSD" in caplog.text

    def test_invalid_input_skipped(self, monkeypatch, caplog, square_grid, right_angle_motif):
        import logging

        from arcstat.analysis.search import find_substructure_matches
        from arcstat.errors import InvalidInput

        self._patch_rmsd(monkeypatch, {
            self._combo(1, 5, 4): InvalidInput("Point sets contain NaN or infinite coordinates."),
        })
        with caplog.at_level(logging.WARNING, logger="arcstat.analysis.search"):
            matches = find_substructure_matches(
                [square_grid, square_grid], right_angle_motif, "Pt", worker_count=2,
            )

        assert len(matches) == 30
        assert all(m.atom_indices != (1, 5, 4) for m in matches)
        assert caplog.text.count("alignment failed") == 2
