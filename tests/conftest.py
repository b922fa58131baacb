"""Shared fixtures: a structured volumetric box with nodal flow fields."""

import numpy as np
import pytest

from abl_postproc import MeshDatabase, Partition

LENGTH = 100.0
LEVELS = (0.0, 20.0, 40.0, 60.0, 80.0, 100.0)
SQUARE = [[0.0, 0.0], [LENGTH, 0.0], [LENGTH, LENGTH], [0.0, LENGTH]]


def make_box(name="fluid", n=5, levels=LEVELS, length=LENGTH, jitter=2.0, seed=0):
    """
    Box of nodes on horizontal levels.

    Interior columns are shifted horizontally by a fixed random jitter so the
    tessellation is not degenerate; boundary nodes stay on the box faces and
    every node keeps its exact level height.
    """
    xs = np.linspace(0.0, length, n)
    X, Y, Z = np.meshgrid(xs, xs, np.asarray(levels), indexing="ij")
    coords = np.column_stack([X.ravel(), Y.ravel(), Z.ravel()])
    interior = (
        (coords[:, 0] > 0) & (coords[:, 0] < length)
        & (coords[:, 1] > 0) & (coords[:, 1] < length)
    )
    rng = np.random.default_rng(seed)
    coords[interior, :2] += rng.uniform(-jitter, jitter, size=(int(interior.sum()), 2))
    return Partition(name, coords)


def set_flow(part, velocity=(5.0, 0.0, 0.0), temperature=300.0, stress=None):
    """
    Assign nodal fields; each argument is a constant or a function of coordinates.
    """
    c = part.coordinates
    part.set_field("velocity", velocity(c) if callable(velocity) else velocity)
    part.set_field("temperature", temperature(c) if callable(temperature) else temperature)
    if stress is None:
        stress = np.zeros(6)
    part.set_field("sfs_stress", stress(c) if callable(stress) else stress)


def make_ground(name="ground", n=4, length=LENGTH):
    """Quad surface at z=0 used as the ABL wall."""
    from abl_postproc.mesh import build_quad_plane

    coords, elements = build_quad_plane(np.asarray(SQUARE), n, n, 0.0)
    return Partition(name, coords, elements=elements)


@pytest.fixture
def box():
    part = make_box()
    set_flow(part)
    return part


@pytest.fixture
def mesh(box):
    return MeshDatabase([box])


@pytest.fixture
def base_config(tmp_path):
    return {
        "from_target_part": ["fluid"],
        "target_part_format": "zplane_%.1f",
        "heights": [80.0],
        "generate_parts": True,
        "domain_vertices": SQUARE,
        "num_points": [4, 4],
        "output_frequency": 1,
        "output_file_format": str(tmp_path / "abl_stats_%s.dat"),
    }
