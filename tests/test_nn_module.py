import numpy as np
import pytest

mx = pytest.importorskip("mlx.core")

from spatial_correlation_mlx.functional import spatial_correlation_sample
from spatial_correlation_mlx.nn import SpatialCorrelationSampler


def test_spatial_correlation_sampler_2d_shape():
    layer = SpatialCorrelationSampler(kernel_size=1, patch_size=9, padding=0, dilation_patch=2)
    a = mx.random.normal((2, 8, 7, 5))
    b = mx.random.normal((2, 8, 7, 5))
    y = layer(a, b)
    assert y.shape == (2, 9, 9, 7, 5)


def test_spatial_correlation_sampler_3d_shape():
    layer = SpatialCorrelationSampler(kernel_size=3, patch_size=(3, 3, 1), padding=1, stride=2)
    a = mx.random.normal((1, 4, 6, 5, 4))
    y = layer(a, a)
    assert y.shape == (1, 3, 3, 1, 3, 3, 2)


def test_spatial_correlation_sampler_matches_functional():
    layer = SpatialCorrelationSampler(kernel_size=3, patch_size=5, padding=1, dilation=1)
    a = mx.random.normal((1, 3, 6, 6))
    b = mx.random.normal((1, 3, 6, 6))
    expected = spatial_correlation_sample(a, b, kernel_size=3, patch_size=5, padding=1)
    np.testing.assert_allclose(np.array(layer(a, b)), np.array(expected), rtol=1e-6, atol=1e-6)


def test_spatial_correlation_sampler_has_no_parameters():
    layer = SpatialCorrelationSampler(patch_size=3)
    assert layer.trainable_parameters() == {}


def test_spatial_correlation_sampler_rank_mismatched_geometry_raises():
    layer = SpatialCorrelationSampler(patch_size=(3, 3, 3))
    x = mx.random.normal((1, 2, 4, 4))
    with pytest.raises(ValueError, match="patch_size must have length 2"):
        layer(x, x)


def test_spatial_correlation_sampler_grad_flows_to_inputs():
    layer = SpatialCorrelationSampler(kernel_size=3, patch_size=3, padding=1)
    a = mx.random.normal((1, 2, 4, 4))
    b = mx.random.normal((1, 2, 4, 4))

    def loss_fn(x1, x2):
        return mx.sum(layer(x1, x2))

    g1, g2 = mx.grad(loss_fn, argnums=(0, 1))(a, b)
    assert g1.shape == a.shape
    assert g2.shape == b.shape
