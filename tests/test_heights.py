import numpy as np
import pytest

from abl_postproc import ConfigurationError, HeightRegistry, OutOfRangeError, QueryInterpolator


class TestHeightRegistry:

    def test_keeps_user_order_and_sorted_index(self):
        reg = HeightRegistry([80.0, 20.0, 50.0], part_format="zplane_%.1f")
        np.testing.assert_array_equal(reg.heights(), [80.0, 20.0, 50.0])
        assert reg.part_names() == ["zplane_80.0", "zplane_20.0", "zplane_50.0"]
        np.testing.assert_array_equal(reg.sorted_index(), [1, 2, 0])

    def test_temperature_heights_default_to_velocity_heights(self):
        reg = HeightRegistry([20.0, 80.0], part_format="z_%.0f")
        assert reg.part_names("temperature") == ["z_20", "z_80"]
        assert reg.all_plane_names() == ["z_20", "z_80"]

    def test_separate_temperature_heights(self):
        reg = HeightRegistry([20.0, 80.0], [50.0, 20.0], part_format="z_%.0f")
        assert reg.n_heights("temperature") == 2
        assert reg.all_plane_names() == ["z_20", "z_80", "z_50"]

    def test_explicit_names(self):
        reg = HeightRegistry([20.0, 80.0], part_names=["low", "high"])
        assert reg.part_names() == ["low", "high"]
        assert reg.part_name(80.0) == "high"

    def test_repeated_heights_with_explicit_names(self):
        with pytest.raises(ConfigurationError, match="Repeated heights"):
            HeightRegistry([20.0, 20.0], part_names=["a", "b"])

    def test_repeated_heights_with_format_share_a_plane(self):
        reg = HeightRegistry([20.0, 20.0], part_format="z_%.0f")
        assert reg.part_names() == ["z_20", "z_20"]
        assert reg.all_plane_names() == ["z_20"]

    def test_explicit_names_cannot_cover_other_temperature_heights(self):
        with pytest.raises(ConfigurationError):
            HeightRegistry([20.0, 80.0], [50.0], part_names=["low", "high"])

    def test_heights_view_is_read_only(self):
        reg = HeightRegistry([20.0], part_format="z_%.0f")
        with pytest.raises(ValueError):
            reg.heights()[0] = 1.0


class TestQueryInterpolator:

    def test_linear_between_bracketing_rows(self):
        table = np.array([[8.0, 0.0, 1.0], [2.0, 0.0, 0.0]])
        query = QueryInterpolator([80.0, 20.0], table)
        np.testing.assert_allclose(query.interpolate(50.0), [5.0, 0.0, 0.5])

    def test_clamps_outside_range(self):
        table = np.array([[8.0, 0.0, 0.0], [2.0, 0.0, 0.0]])
        query = QueryInterpolator([80.0, 20.0], table)
        np.testing.assert_allclose(query.interpolate(-10.0), table[1])
        np.testing.assert_allclose(query.interpolate(1000.0), table[0])

    def test_exact_at_configured_heights(self):
        table = np.array([1.0, 2.0, 3.0])
        query = QueryInterpolator([10.0, 30.0, 20.0], table)
        assert query.interpolate(30.0) == pytest.approx(2.0)
        assert query.interpolate(20.0) == pytest.approx(3.0)

    def test_result_is_convex_combination(self):
        heights = [20.0, 80.0, 50.0]
        table = np.array([[1.0, -2.0, 0.5], [4.0, 3.0, -1.0], [0.0, 7.0, 2.0]])
        query = QueryInterpolator(heights, table)
        for z in np.linspace(20.0, 80.0, 13):
            lo, hi, w = query.bracket(z)
            assert 0.0 <= w <= 1.0
            expected = (1.0 - w) * table[lo] + w * table[hi]
            np.testing.assert_allclose(query.interpolate(z), expected, atol=1e-12)

    def test_sees_in_place_table_updates(self):
        table = np.zeros(2)
        query = QueryInterpolator([0.0, 10.0], table)
        table[:] = [1.0, 3.0]
        assert query.interpolate(5.0) == pytest.approx(2.0)

    def test_empty_height_list(self):
        query = QueryInterpolator([], np.zeros((0, 3)))
        assert query.empty
        with pytest.raises(OutOfRangeError):
            query.interpolate(10.0)
