import math

import numpy as np
import pytest
from pixelcache import Circle, PixelCache, PixelOffsetTemplate, Rectangle, TilePlacement, pixel_offset_grid


def arange_cache(h=10, w=10, **kwargs):
    return PixelCache.from_array(np.arange(h * w).reshape(h, w), **kwargs)


class TestPixelOffsetTemplate:
    def test_matches_direct_query(self):
        cache = arange_cache()
        template = cache.offset_template(Circle(2, 2, 1))
        assert len(template) == 5
        assert template.anchor == (2, 2)
        np.testing.assert_array_equal(
            np.sort(cache.pixels_for_template(template)),
            np.sort(cache.pixels_for_shape(Circle(2, 2, 1))),
        )

    def test_reuse_at_another_position(self):
        cache = arange_cache()
        template = cache.offset_template(Circle(2, 2, 1))
        np.testing.assert_array_equal(
            np.sort(cache.pixels_for_template(template, 6, 7)),
            np.sort(cache.pixels_for_shape(Circle(6, 7, 1))),
        )

    def test_outside_is_nan(self):
        cache = arange_cache()
        template = cache.offset_template(Circle(2, 2, 1))
        values = cache.pixels_for_template(template, 0, 0)
        assert np.isnan(values).sum() == 2
        assert cache.aggregate_template(template, 'count', 0, 0) == 3
        assert cache.aggregate_template(template, 'sum', 0, 0) == 0 + 1 + 10

    def test_skip(self):
        cache = arange_cache()
        full = cache.offset_template(Circle(5, 5, 3))
        sparse = cache.offset_template(Circle(5, 5, 3), skip=1)
        assert 0 < len(sparse) < len(full)

    def test_offsets_are_read_only(self):
        template = PixelOffsetTemplate([[0, 0], [1, 0]], (0, 0))
        with pytest.raises(ValueError):
            template.offsets[0, 0] = 5

    def test_local_points(self):
        template = PixelOffsetTemplate([[0, 0], [1, -1]], (0, 0))
        np.testing.assert_array_equal(template.local_points(2.7, 3.1), [[2, 3], [3, 2]])

    def test_unknown_shape(self):
        assert arange_cache().offset_template('circle') is None


class TestPixelOffsetGrid:
    def test_no_skip_is_center(self):
        np.testing.assert_array_equal(pixel_offset_grid(Rectangle(0, 0, 4, 4), 0), [[0, 0]])

    def test_rectangle(self):
        offsets = pixel_offset_grid(Rectangle(0, 0, 4, 4), 2)
        np.testing.assert_array_equal(offsets[0], [0, 0])
        assert sorted(map(tuple, offsets.tolist())) == [(-2, -2), (-2, 0), (0, -2), (0, 0)]

    def test_circle(self):
        offsets = pixel_offset_grid(Circle(0, 0, 2), 1)
        np.testing.assert_array_equal(offsets[0], [0, 0])
        assert len(offsets) == 13
        assert np.all(np.hypot(offsets[:, 0], offsets[:, 1]) <= 2)


class TestRelativePoints:
    def test_canvas_offsets_to_local(self):
        cache = arange_cache(resolution=2)
        np.testing.assert_array_equal(cache.convert_canvas_offset_grid_to_local([[1, 0], [0, -1]]), [[2, 0], [0, -2]])

    def test_rotated_offsets(self):
        cache = PixelCache.from_tile_pixels(np.zeros((10, 10)), TilePlacement(0, 0, 10, 10, rotation=90))
        np.testing.assert_array_equal(cache.convert_canvas_offset_grid_to_local([[0, 1]]), [[1, 0]])

    def test_pixels_for_relative_points(self):
        cache = arange_cache()
        values = cache.pixels_for_relative_points_from_canvas(5, 5, np.array([[0, 0], [1, 0], [100, 0]]))
        assert values[0] == 55
        assert values[1] == 56
        assert math.isnan(values[2])

    def test_default_is_the_point(self):
        cache = arange_cache()
        np.testing.assert_array_equal(cache.pixels_for_relative_points_from_canvas(3.5, 4.5), [43])

    def test_with_offset_grid(self):
        cache = arange_cache()
        grid = PixelCache.pixel_offset_grid(Circle(0, 0, 1), 1)
        local = cache.convert_canvas_offset_grid_to_local(grid)
        values = cache.pixels_for_relative_points_from_canvas(5, 5, local)
        assert values[0] == 55
        assert sorted(values.tolist()) == [45, 54, 55, 56, 65]


class TestTemplateSample:
    def test_sample_on_translated_cache(self):
        """A template built on one cache applies to a translated copy of it."""
        arr = np.arange(100).reshape(10, 10)
        template = PixelCache.from_array(arr).offset_template(Rectangle(1, 1, 2, 2))
        moved = PixelCache.from_array(arr, x=50, y=50)
        np.testing.assert_array_equal(np.sort(template.sample(moved, 52, 52)), [11, 12, 21, 22])
