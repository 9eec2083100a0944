from __future__ import annotations

import os
import re

from setuptools import find_packages, setup


def _read_version() -> str:
    project_root = os.path.dirname(__file__)
    with open(os.path.join(project_root, "src", "spatial_correlation_mlx", "version.py")) as fh:
        match = re.search(r"^__version__ = [\"']([^\"']+)[\"']", fh.read(), re.M)
    if match is None:
        raise RuntimeError("Unable to find __version__ in version.py")
    return match.group(1)


setup(
    name="spatial-correlation-mlx",
    version=_read_version(),
    description="Spatial correlation (cost volume) sampling for MLX with explicit backward kernels.",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "mlx; platform_system == 'Darwin'",
        "mlx[cpu]; platform_system == 'Linux'",
        "numpy",
    ],
    extras_require={"test": ["pytest"]},
)
