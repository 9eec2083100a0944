import numpy as np
import pytest

mx = pytest.importorskip("mlx.core")

from spatial_correlation_mlx.functional import spatial_correlation_sample


def test_correlation2d_grad_shape():
    a = mx.random.normal((1, 3, 5, 5))
    b = mx.random.normal((1, 3, 5, 5))

    def loss_fn(x1):
        out = spatial_correlation_sample(x1, b, kernel_size=3, patch_size=3, padding=1)
        return mx.sum(out)

    grad = mx.grad(loss_fn)(a)
    assert grad.shape == a.shape


def test_correlation3d_value_and_grad():
    a = mx.random.normal((1, 2, 4, 4, 4))
    b = mx.random.normal((1, 2, 4, 4, 4))

    def loss_fn(x2):
        out = spatial_correlation_sample(a, x2, patch_size=3)
        return mx.sum(out)

    value, grad = mx.value_and_grad(loss_fn)(b)
    assert np.isscalar(np.array(value).item())
    assert grad.shape == b.shape


def test_single_cell_grad_is_other_input():
    # kernel 1, patch 1: out = sum_c a * b, so d(sum out)/da = b
    a = mx.random.normal((2, 3, 4, 4))
    b = mx.random.normal((2, 3, 4, 4))

    def loss_fn(x1, x2):
        return mx.sum(spatial_correlation_sample(x1, x2))

    g1, g2 = mx.grad(loss_fn, argnums=(0, 1))(a, b)
    np.testing.assert_allclose(np.array(g1), np.array(b), rtol=1e-6, atol=1e-6)
    np.testing.assert_allclose(np.array(g2), np.array(a), rtol=1e-6, atol=1e-6)
