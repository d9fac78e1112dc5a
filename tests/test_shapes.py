import numpy as np
import pytest
from pixelcache import Circle, Ellipse, Polygon, Rectangle


class TestRectangle:
    def test_properties(self):
        r = Rectangle(1, 2, 3, 4)
        assert (r.left, r.top, r.right, r.bottom) == (1, 2, 4, 6)
        assert r.center == (2.5, 4)
        assert r.area == 12

    def test_contains_is_half_open(self):
        r = Rectangle(0, 0, 2, 2)
        assert r.contains(0, 0)
        assert r.contains(1.99, 1.99)
        assert not r.contains(2, 0)
        assert not r.contains(0, 2)

    def test_contains_arrays(self):
        r = Rectangle(0, 0, 2, 2)
        result = r.contains(np.array([-1, 0, 1, 2]), np.array([0, 0, 1, 1]))
        np.testing.assert_array_equal(result, [False, True, True, False])

    def test_empty_contains_nothing(self):
        assert not Rectangle(0, 0, 0, 5).contains(0, 0)

    def test_from_corners_and_normalize(self):
        assert Rectangle.from_corners(4, 5, 1, 2) == Rectangle(1, 2, 3, 3)
        assert Rectangle(4, 5, -3, -3).normalize() == Rectangle(1, 2, 3, 3)

    def test_corners(self):
        np.testing.assert_array_equal(
            Rectangle(0, 0, 2, 1).corners(), [[0, 0], [2, 0], [2, 1], [0, 1]]
        )

    def test_intersect(self):
        a = Rectangle(0, 0, 4, 4)
        assert a.intersect(Rectangle(2, 2, 4, 4)) == Rectangle(2, 2, 2, 2)
        assert a.intersect(Rectangle(5, 5, 1, 1)).area == 0
        assert a.contains_rectangle(Rectangle(1, 1, 2, 2))
        assert not a.contains_rectangle(Rectangle(3, 3, 2, 2))

    def test_clip_segment(self):
        r = Rectangle(0, 0, 4, 4)
        assert r.clip_segment((-2, 1), (6, 1)) == pytest.approx((0.25, 0.75))
        assert r.clip_segment((1, 1), (2, 2)) == (0.0, 1.0)
        assert r.clip_segment((-2, 5), (6, 5)) is None
        assert r.clip_segment((5, 5), (8, 9)) is None
        assert Rectangle(0, 0, 0, 0).clip_segment((0, 0), (1, 1)) is None


class TestRoundShapes:
    def test_circle(self):
        c = Circle(2, 2, 1)
        assert c.contains(2, 3)
        assert not c.contains(3, 3)
        assert c.bounds() == Rectangle(1, 1, 2, 2)
        assert c.center == (2, 2)

    def test_ellipse(self):
        e = Ellipse(0, 0, 4, 1)
        assert e.contains(3.9, 0)
        assert not e.contains(0, 1.5)
        assert e.bounds() == Rectangle(-4, -1, 8, 2)

    def test_ellipse_to_polygon(self):
        poly = Ellipse(0, 0, 4, 1).to_polygon(16)
        assert len(poly) == 16
        assert poly.bounds().width == pytest.approx(8)


class TestPolygon:
    def test_flat_and_pairs_are_equal(self):
        assert Polygon([0, 0, 4, 0, 4, 4]) == Polygon([[0, 0], [4, 0], [4, 4]])

    def test_odd_flat_length(self):
        with pytest.raises(ValueError):
            Polygon([0, 0, 1])

    def test_contains(self):
        square = Polygon([0, 0, 4, 0, 4, 4, 0, 4])
        assert square.contains(2, 2)
        assert not square.contains(5, 2)
        result = square.contains(np.array([1, 5]), np.array([1, 1]))
        np.testing.assert_array_equal(result, [True, False])

    def test_concave(self):
        # A U shape: the notch is outside.
        u = Polygon([0, 0, 1, 0, 1, 2, 2, 2, 2, 0, 3, 0, 3, 3, 0, 3])
        assert u.contains(0.5, 0.5)
        assert not u.contains(1.5, 1)
        assert u.contains(1.5, 2.5)

    def test_bounds_and_center(self):
        tri = Polygon([0, 0, 4, 0, 0, 2])
        assert tri.bounds() == Rectangle(0, 0, 4, 2)
        assert tri.center == (2, 1)

    def test_segment_intersections(self):
        square = Polygon([0, 0, 4, 0, 4, 4, 0, 4])
        hits = square.segment_intersections((-1, 2), (5, 2))
        assert [t for _, t in hits] == pytest.approx([1 / 6, 5 / 6])
        assert hits[0][0] == pytest.approx((0, 2))
        assert hits[1][0] == pytest.approx((4, 2))

    def test_segment_through_vertex_reported_once(self):
        square = Polygon([0, 0, 4, 0, 4, 4, 0, 4])
        hits = square.segment_intersections((-1, -1), (5, 5))
        assert len(hits) == 2

    def test_segment_misses(self):
        square = Polygon([0, 0, 4, 0, 4, 4, 0, 4])
        assert square.segment_intersections((5, 5), (6, 6)) == []
