import numpy as np
import pytest

pytest.importorskip("mlx.core")

from spatial_correlation_mlx.utils.window import (
    base_coordinate,
    compute_axis_positions,
    compute_shifts,
    dilated_kernel_size,
    displacement_shift,
    output_size,
    patch_radius,
    within_bounds,
)


def test_dilated_kernel_size():
    assert dilated_kernel_size(1, 4) == 1
    assert dilated_kernel_size(3, 1) == 3
    assert dilated_kernel_size(3, 2) == 5


def test_output_size_matches_shape_law():
    for length in range(1, 9):
        for kernel_size in (1, 2, 3):
            for stride in (1, 2, 3):
                for padding in (0, 1, 2):
                    for dilation in (1, 2):
                        expected = (
                            length + 2 * padding - ((kernel_size - 1) * dilation + 1)
                        ) // stride + 1
                        assert output_size(length, kernel_size, stride, padding, dilation) == expected


def test_output_size_can_be_degenerate():
    assert output_size(2, 5, 1, 0, 1) <= 0


def test_patch_radius_and_shifts():
    assert patch_radius(1) == 0
    assert patch_radius(3) == 1
    assert patch_radius(4) == 1
    assert displacement_shift(0, 5, 2) == -4
    assert displacement_shift(2, 5, 2) == 0
    np.testing.assert_array_equal(compute_shifts(3, 1), [-1, 0, 1])
    np.testing.assert_array_equal(compute_shifts(4, 1), [-1, 0, 1, 2])
    np.testing.assert_array_equal(compute_shifts(3, 0), [0, 0, 0])


def test_base_coordinate():
    assert base_coordinate(0, 1, 0) == 0
    assert base_coordinate(0, 2, 1) == -1
    assert base_coordinate(3, 2, 1) == 5


def test_within_bounds_scalar_and_array():
    assert within_bounds(0, 2, 3)
    assert not within_bounds(-1, 0, 3)
    assert not within_bounds(1, 3, 3)
    np.testing.assert_array_equal(
        within_bounds(np.array([-1, 0, 2]), np.array([0, 1, 3]), 3),
        [False, True, False],
    )


def test_compute_axis_positions_masks_out_of_bounds():
    base, shifted, valid = compute_axis_positions(
        length=4, out_length=4, kernel_size=3, stride=1, padding=1, dilation=1, shift=1
    )
    assert base.shape == shifted.shape == valid.shape == (3, 4)
    # raw base positions for kernel offset 0 are [-1, 0, 1, 2]
    np.testing.assert_array_equal(valid[0], [False, True, True, True])
    # kernel offset 2 pushes the shifted position past the end for the last two outputs
    np.testing.assert_array_equal(valid[2], [True, True, False, False])
    np.testing.assert_array_equal(base[0], [0, 0, 1, 2])
    np.testing.assert_array_equal(shifted[0], [0, 1, 2, 3])
    assert base.min() >= 0 and base.max() <= 3
    assert shifted.min() >= 0 and shifted.max() <= 3
