import pytest

pytest.importorskip("mlx.core")

import spatial_correlation_mlx


def test_support_matrix_shape():
    matrix = spatial_correlation_mlx.get_support_matrix()
    assert set(matrix.keys()) == {"pure", "cpu"}
    for backend_name, row in matrix.items():
        assert isinstance(row["available"], bool), backend_name
        assert set(row["forward"].keys()) == {"correlation2d", "correlation3d"}
        assert set(row["backward"].keys()) == {"correlation2d", "correlation3d"}
        assert set(row["parallelism"].keys()) == {"forward", "backward"}
        assert isinstance(row["dtypes"], list)
        assert isinstance(row["constraints"], list)

    assert matrix["cpu"]["parallelism"]["backward"] == "batch"


def test_support_matrix_dtypes_cover_float64():
    matrix = spatial_correlation_mlx.get_support_matrix()
    for backend_name, row in matrix.items():
        assert row["dtypes"] == ["float16", "bfloat16", "float32", "float64"], backend_name
