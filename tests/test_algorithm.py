import numpy as np
import pytest
import xarray as xr

from abl_postproc import (
    ABLPostProcessingAlgorithm, ConfigurationError, GeometryError, MeshDatabase,
    PartNotFoundError, SpatialAveragingAlgorithm, TransferError,
)

from conftest import make_box, make_ground, set_flow


def _run(mesh, config, steps=1, **kwargs):
    algo = ABLPostProcessingAlgorithm(mesh, config, **kwargs)
    algo.setup()
    algo.initialize()
    for _ in range(steps):
        algo.execute()
    return algo


def _linear_velocity(c):
    return np.column_stack([0.1 * c[:, 2], np.zeros(len(c)), np.zeros(len(c))])


class TestScenarios:

    def test_uniform_single_height(self, mesh, base_config):
        algo = _run(mesh, base_config)
        np.testing.assert_array_equal(algo.UmeanCalc[0], [5.0, 0.0, 0.0])
        assert np.all(algo.varCalc[0] == 0.0)
        assert algo.TmeanCalc[0] == 300.0
        assert algo.utau == 0.0

    @pytest.mark.parametrize("jitter", [0.0, 2.0])
    def test_uniform_field_is_exact_between_levels(self, base_config, jitter):
        box = make_box(n=7, jitter=jitter)
        set_flow(box)
        algo = _run(MeshDatabase([box]), dict(base_config, heights=[80.0, 33.3]))
        np.testing.assert_array_equal(algo.UmeanCalc, [[5.0, 0.0, 0.0]] * 2)
        assert np.all(algo.varCalc == 0.0)
        assert np.all(algo.TmeanCalc == 300.0)

    def test_linear_profile_two_heights(self, box, mesh, base_config):
        set_flow(box, velocity=_linear_velocity)
        algo = _run(mesh, dict(base_config, heights=[20.0, 80.0]))
        np.testing.assert_allclose(algo.UmeanCalc, [[2.0, 0.0, 0.0], [8.0, 0.0, 0.0]], atol=1e-10)
        np.testing.assert_allclose(algo.eval_vel_mean(50.0), [5.0, 0.0, 0.0], atol=1e-10)

    def test_missing_plane_leaves_no_state(self, mesh, base_config):
        config = dict(base_config, heights=[20.0, 80.0])
        del config["generate_parts"], config["domain_vertices"], config["num_points"]
        parts_before = set(mesh.part_names())
        algo = ABLPostProcessingAlgorithm(mesh, config)
        with pytest.raises(ConfigurationError):
            algo.setup()
        assert set(mesh.part_names()) == parts_before
        assert algo.catalog is None and algo.stats is None
        assert not algo.inactive_selector()


class TestLifecycle:

    def test_existing_planes_are_reused(self, box, base_config):
        from abl_postproc.mesh import build_quad_plane
        from abl_postproc import Partition

        coords, elements = build_quad_plane(np.array([[0, 0], [100, 0], [100, 100], [0, 100]], float), 2, 2, 80.0)
        plane = Partition("zplane_80.0", coords, elements=elements)
        mesh = MeshDatabase([box, plane])
        config = dict(base_config, generate_parts=False)
        algo = _run(mesh, config)
        assert algo.records[0].generated is False
        assert mesh.get_part("zplane_80.0") is plane
        np.testing.assert_allclose(algo.UmeanCalc[0], [5.0, 0.0, 0.0])

    def test_unsorted_heights_keep_user_rows(self, box, mesh, base_config):
        set_flow(box, velocity=_linear_velocity)
        algo = _run(mesh, dict(base_config, heights=[80.0, 20.0]))
        np.testing.assert_allclose(algo.UmeanCalc[:, 0], [8.0, 2.0], atol=1e-10)
        np.testing.assert_allclose(algo.eval_vel_mean(5.0), [2.0, 0.0, 0.0], atol=1e-10)
        np.testing.assert_allclose(algo.eval_vel_mean(95.0), [8.0, 0.0, 0.0], atol=1e-10)

    def test_temperature_heights_and_queries(self, box, mesh, base_config):
        set_flow(box, temperature=lambda c: 300.0 + 0.01 * c[:, 2])
        algo = _run(mesh, dict(base_config, heights=[20.0, 80.0], temperature_heights=[40.0, 60.0]))
        np.testing.assert_allclose(algo.TmeanCalc, [300.4, 300.6])
        assert algo.eval_temp_mean(50.0) == pytest.approx(300.5)
        assert algo.eval_temp_mean(0.0) == pytest.approx(300.4)
        # temperature moments still use the temperature on the velocity planes
        np.testing.assert_allclose(algo.varCalc[:, 7:], 0.0, atol=1e-10)

    def test_temperature_disabled(self, mesh, base_config):
        algo = _run(mesh, dict(base_config, temperature_heights=[]))
        assert algo.TmeanCalc.shape == (0,)
        assert algo.eval_temp_mean(50.0) == 0.0

    def test_eval_fills_out_argument(self, mesh, base_config):
        algo = _run(mesh, base_config)
        out = np.full(3, -1.0)
        result = algo.eval_vel_mean(10.0, out)
        assert result is out
        np.testing.assert_allclose(out, [5.0, 0.0, 0.0])

    def test_execute_is_idempotent(self, box, mesh, base_config):
        set_flow(box, velocity=_linear_velocity, temperature=lambda c: 300.0 + c[:, 0] * 0.01)
        algo = _run(mesh, dict(base_config, heights=[20.0, 50.0, 80.0]))
        first = (algo.UmeanCalc.copy(), algo.varCalc.copy(), algo.TmeanCalc.copy())
        algo.execute()
        np.testing.assert_array_equal(first[0], algo.UmeanCalc)
        np.testing.assert_array_equal(first[1], algo.varCalc)
        np.testing.assert_array_equal(first[2], algo.TmeanCalc)

    def test_tables_follow_field_changes(self, box, mesh, base_config):
        algo = _run(mesh, base_config)
        set_flow(box, velocity=(7.0, 1.0, 0.0))
        algo.execute()
        np.testing.assert_allclose(algo.UmeanCalc[0], [7.0, 1.0, 0.0])

    def test_unknown_source_partition(self, mesh, base_config):
        algo = ABLPostProcessingAlgorithm(mesh, dict(base_config, from_target_part=["fluid", "nope"]))
        with pytest.raises(PartNotFoundError):
            algo.setup()
        assert mesh.part_names() == ["fluid"]

    def test_degenerate_generation(self, mesh, base_config):
        algo = ABLPostProcessingAlgorithm(mesh, dict(base_config, num_points=[0, 4]))
        with pytest.raises(GeometryError):
            algo.setup()

    def test_plane_outside_domain_fails_transfer(self, mesh, base_config):
        algo = ABLPostProcessingAlgorithm(mesh, dict(base_config, heights=[500.0]))
        algo.setup()
        with pytest.raises(TransferError):
            algo.initialize()

    def test_call_order_enforced(self, mesh, base_config):
        algo = ABLPostProcessingAlgorithm(mesh)
        with pytest.raises(ConfigurationError):
            algo.setup()
        algo.load(base_config)
        with pytest.raises(ConfigurationError):
            algo.initialize()
        algo.setup()
        with pytest.raises(ConfigurationError):
            algo.execute()

    def test_load_from_yaml(self, mesh, tmp_path):
        path = tmp_path / "input.yaml"
        path.write_text(
            "abl_postprocessing:\n"
            "  from_target_part: [fluid]\n"
            "  target_part_format: \"zplane_%.1f\"\n"
            "  heights: [80.0]\n"
            "  generate_parts: true\n"
            "  domain_vertices: [[0, 0], [100, 0], [100, 100], [0, 100]]\n"
            "  num_points: [4, 4]\n"
            f"  output_file_format: \"{tmp_path / 'out_%s.dat'}\"\n"
        )
        algo = _run(mesh, path)
        np.testing.assert_allclose(algo.UmeanCalc[0], [5.0, 0.0, 0.0])


class TestSurfaces:

    def test_inactive_selector_covers_planes_and_sources(self, mesh, base_config):
        mesh.add_part(make_ground())
        mesh.get_part("ground").set_field("wall_friction_velocity", 0.35)
        algo = _run(mesh, dict(base_config, heights=[20.0, 80.0], abl_wall_parts=["ground"]))
        selector = algo.inactive_selector()
        assert selector.part_names == {"fluid", "zplane_20.0", "zplane_80.0"}
        assert "ground" not in selector
        assert selector.exclude(mesh.part_names()) == ["ground"]
        assert algo.utau == pytest.approx(0.35)
        assert algo.utau >= 0.0

    def test_borrowed_engine_keeps_host_requests(self, mesh, base_config):
        host_engine = SpatialAveragingAlgorithm(mesh)
        host_engine.register_fields(["fluid"], ["velocity"])
        algo = _run(mesh, base_config, spatial_avg=host_engine)
        assert ("zplane_80.0", "velocity") in host_engine.means
        assert ("fluid", "velocity") not in host_engine.means
        assert host_engine.requested_fields("fluid") == ["velocity"]
        np.testing.assert_allclose(algo.UmeanCalc[0], [5.0, 0.0, 0.0])


class TestOutput:

    def test_time_series_files(self, box, mesh, base_config, tmp_path):
        set_flow(box, velocity=_linear_velocity)
        algo = ABLPostProcessingAlgorithm(mesh, dict(base_config, heights=[20.0, 80.0]))
        algo.setup()
        algo.initialize()
        algo.execute(time=0.5)
        algo.execute(time=1.0)

        ux = tmp_path / "abl_stats_Ux.dat"
        assert ux.read_text().startswith("# Time 20 80")
        rows = np.loadtxt(ux, ndmin=2)
        np.testing.assert_allclose(rows, [[0.5, 2.0, 8.0], [1.0, 2.0, 8.0]], atol=1e-8)
        for name in ("Uy", "Uz", "T", "uu", "wT", "www", "sfs_xx", "utau"):
            assert (tmp_path / f"abl_stats_{name}.dat").exists()

    def test_output_frequency(self, mesh, base_config, tmp_path):
        algo = _run(mesh, dict(base_config, output_frequency=2), steps=3)
        rows = np.loadtxt(tmp_path / "abl_stats_Ux.dat", ndmin=2)
        assert rows.shape[0] == 1
        assert rows[0, 0] == pytest.approx(2.0)
        assert algo.step == 3

    def test_to_dataset(self, mesh, base_config):
        algo = _run(mesh, dict(base_config, heights=[20.0, 80.0]))
        ds = algo.to_dataset()
        assert isinstance(ds, xr.Dataset)
        assert ds["Umean"].dims == ("height", "component")
        assert ds.sizes["moment"] == 9
        np.testing.assert_allclose(ds["Umean"].sel(component="Ux"), 5.0)
        assert float(ds["utau"]) == 0.0


class TestBeforeTimeLoop:

    def test_queries_before_setup_are_no_ops(self, mesh, base_config):
        algo = ABLPostProcessingAlgorithm(mesh, base_config)
        out = np.full(3, -1.0)
        assert algo.eval_vel_mean(50.0, out) is out
        np.testing.assert_array_equal(out, [-1.0, -1.0, -1.0])
        np.testing.assert_array_equal(algo.eval_vel_mean(50.0), [0.0, 0.0, 0.0])
        assert algo.eval_temp_mean(50.0) == 0.0
        assert algo.utau == 0.0

    def test_wall_without_friction_field_fails_at_initialize(self, mesh, base_config):
        mesh.add_part(make_ground())
        algo = ABLPostProcessingAlgorithm(mesh, dict(base_config, abl_wall_parts=["ground"]))
        algo.setup()
        with pytest.raises(ConfigurationError, match="wall_friction_velocity"):
            algo.initialize()
        assert algo.step == 0

    def test_log_law_needs_wall_velocity_at_initialize(self, mesh, base_config):
        mesh.add_part(make_ground())
        algo = ABLPostProcessingAlgorithm(mesh, dict(
            base_config, abl_wall_parts=["ground"], utau_method="log_law", reference_height=10.0,
        ))
        algo.setup()
        with pytest.raises(ConfigurationError, match="velocity"):
            algo.initialize()
