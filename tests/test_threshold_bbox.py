import numpy as np
import pytest
from pixelcache import PixelCache, Rectangle


def single_pixel_cache(**kwargs):
    arr = np.zeros((10, 10), dtype=np.uint8)
    arr[5, 5] = 255
    return PixelCache.from_array(arr, **kwargs)


class TestThresholdBoundingBox:
    def test_single_pixel(self):
        cache = single_pixel_cache()
        assert cache.threshold_bounding_box(0.5) == Rectangle(5, 5, 1, 1)

    def test_spans_all_hits(self):
        arr = np.zeros((6, 8))
        arr[1, 6] = 200
        arr[4, 2] = 200
        arr[3, 0] = 100
        cache = PixelCache.from_array(arr)
        assert cache.threshold_bounding_box(0.75) == Rectangle(2, 1, 5, 4)
        assert cache.threshold_bounding_box(0.3) == Rectangle(0, 1, 7, 4)

    def test_strictly_greater(self):
        cache = PixelCache.from_array(np.full((3, 3), 127))
        assert cache.threshold_bounding_box(0.5).area == 0
        assert cache.threshold_bounding_box(0.49) == Rectangle(0, 0, 3, 3)

    def test_max_pixel_value(self):
        cache = PixelCache.from_array(np.array([[0, 1], [0, 0]]), max_pixel_value=1)
        assert cache.threshold_bounding_box(0.5) == Rectangle(1, 0, 1, 1)

    def test_empty_is_zero_area(self):
        cache = PixelCache.from_array(np.zeros((4, 4)))
        assert cache.threshold_bounding_box().area == 0
        assert cache.threshold_canvas_bounding_box().area == 0

    def test_larger_threshold_is_nested(self):
        arr = np.zeros((8, 8))
        arr[1:7, 1:7] = 100
        arr[3:5, 2:6] = 250
        cache = PixelCache.from_array(arr)
        outer = cache.threshold_bounding_box(0.3)
        inner = cache.threshold_bounding_box(0.9)
        assert outer.contains_rectangle(inner)
        assert inner == Rectangle(2, 3, 4, 2)

    @pytest.mark.parametrize('threshold', [0, -0.5, 1.5])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(ValueError):
            single_pixel_cache().threshold_bounding_box(threshold)


class TestCanvasBoundingBox:
    def test_translated_and_scaled(self):
        cache = single_pixel_cache(x=100, y=50, resolution=2)
        assert cache.threshold_canvas_bounding_box(0.5) == Rectangle(102.5, 52.5, 0.5, 0.5)

    def test_memoized(self):
        cache = single_pixel_cache()
        assert cache.threshold_canvas_bounding_box(0.5) is cache.threshold_canvas_bounding_box(0.5)
        assert cache.threshold_bounding_box(0.5) is cache.threshold_bounding_box(0.5)

    def test_moving_invalidates(self):
        cache = single_pixel_cache()
        assert cache.threshold_canvas_bounding_box(0.5) == Rectangle(5, 5, 1, 1)
        cache.set_origin(10, 0)
        assert cache.threshold_canvas_bounding_box(0.5) == Rectangle(15, 5, 1, 1)
        assert cache.threshold_bounding_box(0.5) == Rectangle(5, 5, 1, 1)


class TestRayIntersectsBoundary:
    def test_crossing(self):
        cache = single_pixel_cache()
        hits = cache.ray_intersects_boundary(((0, 5.5), (10, 5.5)), 0.5)
        assert [t for _, t in hits] == pytest.approx([0.5, 0.6])
        assert hits[0][0] == pytest.approx((5, 5.5))

    def test_start_inside(self):
        cache = single_pixel_cache()
        hits = cache.ray_intersects_boundary(((5.5, 5.5), (5.5, 20)), 0.5)
        assert len(hits) == 1
        assert hits[0][0] == pytest.approx((5.5, 6))

    def test_miss(self):
        cache = single_pixel_cache()
        assert cache.ray_intersects_boundary(((0, 0), (10, 0)), 0.5) == []

    def test_empty_cache(self):
        cache = PixelCache.from_array(np.zeros((4, 4)))
        assert cache.ray_intersects_boundary(((0, 0), (4, 4))) == []
