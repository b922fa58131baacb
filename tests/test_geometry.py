import numpy as np
import pytest

from abl_postproc import (
    ConfigurationError, ExistingPartition, GeneratedQuad, GeometryError, MeshDatabase,
    PartCatalog, Partition, PartNotFoundError, PlaneGenerationSpec, PlaneGeometryProvider,
)
from abl_postproc.mesh import build_quad_plane, element_areas, validate_quad_vertices

from conftest import SQUARE, make_box


class TestQuadPlane:

    def test_node_and_element_counts(self):
        coords, elements = build_quad_plane(np.asarray(SQUARE), 4, 2, 80.0)
        assert coords.shape == (5 * 3, 3)
        assert elements.shape == (4 * 2, 4)
        np.testing.assert_allclose(coords[:, 2], 80.0)

    def test_covers_the_quadrilateral(self):
        coords, elements = build_quad_plane(np.asarray(SQUARE), 3, 5, 0.0)
        assert element_areas(coords, elements).sum() == pytest.approx(100.0 * 100.0)
        assert coords[:, 0].min() == pytest.approx(0.0)
        assert coords[:, 1].max() == pytest.approx(100.0)

    def test_skewed_quad_area(self):
        verts = np.array([[0.0, 0.0], [4.0, 0.0], [5.0, 3.0], [1.0, 3.0]])
        coords, elements = build_quad_plane(verts, 6, 6, 10.0)
        assert element_areas(coords, elements).sum() == pytest.approx(12.0)

    def test_lumped_areas_sum_to_plane_area(self):
        coords, elements = build_quad_plane(np.asarray(SQUARE), 4, 4, 0.0)
        part = Partition("p", coords, elements=elements)
        weights = part.node_areas()
        assert weights.sum() == pytest.approx(1.0e4)
        # corner nodes carry a quarter of one element
        assert weights[0] == pytest.approx(25.0 * 25.0 / 4.0)


class TestQuadValidation:

    def test_accepts_clockwise_and_3d_vertices(self):
        verts = [[0, 0, 5], [0, 1, 5], [1, 1, 5], [1, 0, 5]]
        assert validate_quad_vertices(verts).shape == (4, 2)

    @pytest.mark.parametrize("verts", [
        [[0, 0], [1, 0], [1, 1]],
        [[0, 0], [1, 0], [0, 1], [1, 1]],
        [[0, 0], [1, 0], [2, 0], [3, 0]],
        [[0, 0], [2, 0], [1, 0.1], [1, 2]],
    ])
    def test_rejects_degenerate(self, verts):
        with pytest.raises(GeometryError):
            validate_quad_vertices(verts)


class TestPlaneGeometryProvider:

    def test_reuses_existing_partition(self):
        mesh = MeshDatabase([make_box(), Partition("zplane_80.0", np.zeros((1, 3)))])
        provider = PlaneGeometryProvider(mesh)
        assert provider.plan(80.0, "zplane_80.0") == ExistingPartition("zplane_80.0")

    def test_generates_missing_partition(self):
        mesh = MeshDatabase([make_box()])
        provider = PlaneGeometryProvider(mesh, PlaneGenerationSpec(SQUARE, 4, 4))
        parts = provider.build([20.0, 80.0], ["zplane_20.0", "zplane_80.0"])
        assert [p.name for p in parts] == ["zplane_20.0", "zplane_80.0"]
        assert all(p.generated for p in parts)
        assert all(isinstance(src, GeneratedQuad) for src in provider.planes)
        np.testing.assert_allclose(mesh.get_part("zplane_20.0").coordinates[:, 2], 20.0)

    def test_missing_partition_without_generation(self):
        mesh = MeshDatabase([make_box(), Partition("zplane_20.0", np.zeros((1, 3)))])
        provider = PlaneGeometryProvider(mesh)
        with pytest.raises(ConfigurationError):
            provider.build([20.0, 80.0], ["zplane_20.0", "zplane_80.0"])
        assert provider.planes == []

    def test_bad_resolution(self):
        mesh = MeshDatabase([make_box()])
        provider = PlaneGeometryProvider(mesh, PlaneGenerationSpec(SQUARE, 0, 4))
        with pytest.raises(GeometryError):
            provider.build([20.0], ["zplane_20.0"])
        assert not mesh.has_part("zplane_20.0")


class TestPartCatalog:

    def test_union_selector_deduplicates(self):
        mesh = MeshDatabase([make_box(), Partition("zplane_80.0", np.zeros((1, 3)))])
        catalog = PartCatalog(mesh)
        catalog.add_sources(["fluid", "fluid"])
        catalog.add_planes(["zplane_80.0"])
        selector = catalog.inactive_selector()
        assert selector.part_names == {"fluid", "zplane_80.0"}
        assert catalog.source_names == ["fluid"]
        assert len(selector.select(mesh)) == 2

    def test_unknown_source(self):
        catalog = PartCatalog(MeshDatabase([make_box()]))
        with pytest.raises(PartNotFoundError) as exc:
            catalog.add_sources(["fluid", "block-2"])
        assert exc.value.missing_parts == ["block-2"]
        assert len(catalog) == 0


class TestPartitionFields:

    def test_vector_broadcast_on_three_node_partition(self):
        part = Partition("p", np.zeros((3, 3)))
        part.set_field("velocity", (5.0, 0.0, 0.0))
        assert part.get_field("velocity").shape == (3, 3)
        np.testing.assert_array_equal(part.get_field("velocity")[:, 0], 5.0)

    def test_per_node_scalars_on_three_node_partition(self):
        part = Partition("p", np.zeros((3, 3)))
        part.set_field("temperature", [300.0, 301.0, 302.0])
        np.testing.assert_array_equal(part.get_field("temperature")[:, 0], [300.0, 301.0, 302.0])

    def test_stress_vector_on_six_node_partition(self):
        part = Partition("p", np.zeros((6, 3)))
        part.set_field("sfs_stress", np.arange(6.0))
        assert part.get_field("sfs_stress").shape == (6, 6)
        np.testing.assert_array_equal(part.get_field("sfs_stress")[4], np.arange(6.0))

    def test_wrong_length_rejected(self):
        part = Partition("p", np.zeros((4, 3)))
        with pytest.raises(ValueError):
            part.set_field("velocity", np.zeros((2, 3)))
