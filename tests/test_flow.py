"""Tests for terraflora.terrain.flow."""

import numpy as np
import pytest

from terraflora.terrain.flow import (
    NO_TARGET,
    accumulate,
    compute_flow_field,
    d8_flow_targets,
    downhill_neighbour,
    flow_accumulation_at,
    weighted_blur,
)
from terraflora.terrain.heightmap import ElevationField, generate_terrain


def _ramp(cols: int = 5, rows: int = 4) -> ElevationField:
    # Height rises with the column, so everything drains west
    return ElevationField.from_array([[float(c) for c in range(cols)] for _ in range(rows)])


class TestFlowTargets:
    """Tests for D8 steepest descent."""

    def test_ramp_drains_west(self) -> None:
        field = _ramp()
        targets = d8_flow_targets(field)
        for row in range(field.rows):
            for col in range(1, field.cols):
                target = targets[row * field.cols + col]
                assert target % field.cols == col - 1

    def test_west_column_is_sink(self) -> None:
        field = _ramp()
        targets = d8_flow_targets(field)
        for row in range(field.rows):
            assert targets[row * field.cols] == NO_TARGET
            assert downhill_neighbour(targets, row * field.cols) is None

    def test_bowl_drains_to_centre(self, bowl: ElevationField) -> None:
        targets = d8_flow_targets(bowl)
        centre = 2 * bowl.cols + 2
        assert targets[centre] == NO_TARGET
        assert downhill_neighbour(targets, 1 * bowl.cols + 1) == centre

    def test_flat_terrain_has_no_targets(self) -> None:
        field = ElevationField.from_array(np.zeros((3, 3)))
        assert np.all(d8_flow_targets(field) == NO_TARGET)


class TestAccumulation:
    """Tests for raw flow accumulation."""

    def test_flow_is_conserved(self, bowl: ElevationField) -> None:
        raw = accumulate(bowl.heights, d8_flow_targets(bowl))
        assert raw.min() >= 1.0
        # Every cell drains to the centre exactly once
        assert raw[2 * bowl.cols + 2] == bowl.cell_count

    def test_sinks_collect_every_cell(self) -> None:
        field = generate_terrain(0.0, 0.0, 640.0, 640.0, 32.0, 150.0, seed=11)
        targets = d8_flow_targets(field)
        raw = accumulate(field.heights, targets)
        assert raw[targets == NO_TARGET].sum() == field.cell_count

    def test_total_matches_path_lengths(self) -> None:
        # Slope falling to the north-east corner
        field = ElevationField.from_array([[3.0, 2.0, 1.0], [4.0, 3.0, 2.0]])
        targets = d8_flow_targets(field)
        raw = accumulate(field.heights, targets)
        path_lengths = 0
        for start in range(field.cell_count):
            cell = downhill_neighbour(targets, start)
            while cell is not None:
                path_lengths += 1
                cell = downhill_neighbour(targets, cell)
        assert path_lengths == 7
        assert raw.sum() == field.cell_count + path_lengths
        assert raw.tolist() == [1.0, 3.0, 6.0, 1.0, 1.0, 1.0]


class TestBlur:
    """Tests for the 4/2/1 blur."""

    def test_constant_field_unchanged(self) -> None:
        values = np.full((4, 6), 0.3)
        assert np.allclose(weighted_blur(values), 0.3)

    def test_spreads_a_peak(self) -> None:
        values = np.zeros((3, 3))
        values[1, 1] = 1.0
        blurred = weighted_blur(values)
        assert blurred[1, 1] == pytest.approx(4.0 / 16.0)
        assert blurred[0, 1] > blurred[0, 0] > 0.0


class TestFlowField:
    """Tests for the normalised flow field."""

    def test_values_normalised(self) -> None:
        field = generate_terrain(0.0, 0.0, 640.0, 640.0, 32.0, 150.0, seed=5)
        flow = compute_flow_field(field)
        assert flow.values.shape == field.heights.shape
        assert flow.values.min() == 0.0
        assert flow.values.max() == pytest.approx(1.0)

    def test_deterministic(self) -> None:
        field = generate_terrain(0.0, 0.0, 640.0, 640.0, 32.0, 150.0, seed=5)
        a = compute_flow_field(field)
        b = compute_flow_field(field)
        assert np.array_equal(a.values, b.values)

    def test_flat_terrain_is_zero(self) -> None:
        flow = compute_flow_field(ElevationField.from_array(np.ones((4, 4))))
        assert not flow.values.any()

    def test_convergence_scores_highest(self, bowl: ElevationField) -> None:
        flow = compute_flow_field(bowl)
        assert flow.values[2, 2] == flow.values.max()
        assert flow_accumulation_at(flow, 2.5, 2.5) == pytest.approx(1.0)

    def test_out_of_bounds_query(self, bowl: ElevationField) -> None:
        flow = compute_flow_field(bowl)
        assert flow_accumulation_at(flow, -1.0, 2.0) == 0.0
        assert flow_accumulation_at(flow, 2.0, 5.0) == 0.0
