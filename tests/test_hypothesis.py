"""Hypothesis-based property tests for pixel cache queries.

Each test compares the cache against a direct numpy computation on the same array.
"""

import cv2
import numpy as np
from hypothesis import HealthCheck, given, settings, strategies as st
from pixelcache import (
    PixelCache,
    Rectangle,
    ResampleConfig,
    TilePlacement,
    TileTransform,
    box_downscaling,
    nearest_neighbor_scaling,
)
from pixelcache.resample import round_half_up

slow_settings = settings(
    max_examples=100,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.data_too_large],
    deadline=None
)


@st.composite
def pixel_array(draw, max_h=20, max_w=20, min_h=1, min_w=1):
    """Generate a random uint8 pixel array with mostly empty pixels."""
    h = draw(st.integers(min_value=min_h, max_value=max_h))
    w = draw(st.integers(min_value=min_w, max_value=max_w))
    data = draw(st.lists(st.sampled_from([0, 0, 0, 100, 200, 255]), min_size=h * w, max_size=h * w))
    return np.array(data, dtype=np.uint8).reshape(h, w)


@st.composite
def placement(draw):
    return TilePlacement(
        draw(st.floats(-100, 100)),
        draw(st.floats(-100, 100)),
        draw(st.floats(1, 200)),
        draw(st.floats(1, 200)),
        rotation=draw(st.floats(0, 360)),
        scale_x=draw(st.sampled_from([-2, -1, -0.5, 0.5, 1, 2])),
        scale_y=draw(st.sampled_from([-2, -1, -0.5, 0.5, 1, 2])),
    )


class TestThresholdBoxHypothesis:
    @given(arr=pixel_array(), threshold=st.sampled_from([0.2, 0.5, 0.75, 0.9]))
    @slow_settings
    def test_matches_numpy(self, arr, threshold):
        """The threshold box is the bounding box of the nonzero mask."""
        box = PixelCache.from_array(arr).threshold_bounding_box(threshold)
        ys, xs = np.nonzero(arr > threshold * 255)
        if len(xs) == 0:
            assert box.area == 0
        else:
            assert box == Rectangle(xs.min(), ys.min(), xs.max() - xs.min() + 1, ys.max() - ys.min() + 1)

    @given(arr=pixel_array())
    @slow_settings
    def test_monotonic(self, arr):
        cache = PixelCache.from_array(arr)
        low = cache.threshold_bounding_box(0.3)
        high = cache.threshold_bounding_box(0.9)
        if high.area > 0:
            assert low.contains_rectangle(high)


class TestRectangleQueryHypothesis:
    @given(
        arr=pixel_array(),
        x=st.integers(-5, 25),
        y=st.integers(-5, 25),
        w=st.integers(0, 15),
        h=st.integers(0, 15),
    )
    @slow_settings
    def test_count_matches_slice(self, arr, x, y, w, h):
        cache = PixelCache.from_array(arr)
        window = arr[max(y, 0) : max(y + h, 0), max(x, 0) : max(x + w, 0)]
        assert cache.count(Rectangle(x, y, w, h), 0.5) == np.count_nonzero(window > 127.5)


class TestTransformHypothesis:
    @given(p=placement(), x=st.floats(-500, 500), y=st.floats(-500, 500))
    @slow_settings
    def test_round_trip(self, p, x, y):
        t = TileTransform(p)
        back = t.to_canvas_coordinates(*t.from_canvas_coordinates(x, y))
        np.testing.assert_allclose(back, (x, y), atol=1e-5)

    @given(p=placement())
    @slow_settings
    def test_center_maps_to_texture_center(self, p):
        local = TileTransform(p).from_canvas_coordinates(*p.center)
        np.testing.assert_allclose(local, (p.width / 2, p.height / 2), atol=1e-5)


class TestBoxDownscalingHypothesis:
    @given(arr=pixel_array(max_h=16, max_w=16), factor=st.sampled_from([2, 4]))
    @slow_settings
    def test_matches_opencv(self, arr, factor):
        h = arr.shape[0] // factor * factor
        w = arr.shape[1] // factor * factor
        if h == 0 or w == 0:
            return
        arr = np.ascontiguousarray(arr[:h, :w])
        result = box_downscaling(arr.reshape(-1), w, h, 1 / factor, ResampleConfig(channel=0, stride=1))
        expected = cv2.resize(arr, (w // factor, h // factor), interpolation=cv2.INTER_AREA)
        np.testing.assert_allclose(
            result.reshape(h // factor, w // factor).astype(int), expected.astype(int), atol=1
        )


@st.composite
def inside_point(draw, w, h):
    frac = st.sampled_from([0, 0.25, 0.5, 0.75])
    return draw(st.integers(0, w - 1)) + draw(frac), draw(st.integers(0, h - 1)) + draw(frac)


class TestLineHypothesis:
    @given(data=st.data(), w=st.integers(1, 20), h=st.integers(1, 20))
    @slow_settings
    def test_endpoints_included(self, data, w, h):
        cache = PixelCache.from_array(np.zeros((h, w)))
        a = data.draw(inside_point(w, h))
        b = data.draw(inside_point(w, h))
        walk = cache.pixel_values_for_line(a, b)
        np.testing.assert_array_equal(walk.coordinates[0], np.floor(a))
        np.testing.assert_array_equal(walk.coordinates[-1], np.floor(b))

    @given(data=st.data(), w=st.integers(1, 20), h=st.integers(1, 20), skip=st.integers(0, 5))
    @slow_settings
    def test_skip_keeps_endpoints(self, data, w, h, skip):
        cache = PixelCache.from_array(np.zeros((h, w)))
        a = data.draw(inside_point(w, h))
        b = data.draw(inside_point(w, h))
        walk = cache.pixel_values_for_line(a, b, skip=skip)
        np.testing.assert_array_equal(walk.coordinates[-1], np.floor(b))
        assert np.all(np.diff(walk.t) >= 0)


class TestResampleHypothesis:
    @given(
        w=st.integers(1, 30),
        h=st.integers(1, 30),
        resolution=st.sampled_from([0.1, 0.25, 0.3, 0.5, 0.75, 1, 1.5, 2]),
    )
    @slow_settings
    def test_nearest_size(self, w, h, resolution):
        result = nearest_neighbor_scaling(np.zeros(w * h * 4, dtype=np.uint8), w, h, resolution)
        assert len(result) == round_half_up(w * resolution) * round_half_up(h * resolution)

    @given(
        w=st.integers(1, 30),
        h=st.integers(1, 30),
        value=st.integers(0, 255),
        resolution=st.sampled_from([0.1, 0.25, 0.3, 0.5, 0.75, 1]),
    )
    @slow_settings
    def test_box_uniform(self, w, h, value, resolution):
        result = box_downscaling(np.full(w * h * 4, value, dtype=np.uint8), w, h, resolution)
        assert len(result) == round_half_up(w * resolution) * round_half_up(h * resolution)
        np.testing.assert_array_equal(result, value)
