"""Tests for the hard collision resolver and the flight envelope clamp."""

import numpy as np
import pytest

from geofence_nav.environment import Obstacle, ObstacleRegistry
from geofence_nav.planning import CollisionResolver, clamp_to_envelope, envelope_limits


@pytest.fixture
def resolver(registry):
    return CollisionResolver(registry, epsilon=0.01)


def test_outside_point_is_untouched(resolver):
    result = resolver.resolve([8.0, 0.0, 0.0], [1.0, 2.0, 3.0])
    assert not result.collided
    np.testing.assert_allclose(result.position, [8.0, 0.0, 0.0])
    np.testing.assert_allclose(result.velocity, [1.0, 2.0, 3.0])


def test_push_out_along_minimal_axis(resolver):
    # penetration depths: x = 1, y = 10, z = 4
    result = resolver.resolve([4.0, 0.0, 1.0], [-3.0, 1.0, 2.0])
    assert result.collided
    assert result.hits == [(0, 0)]
    np.testing.assert_allclose(result.position, [5.01, 0.0, 1.0])
    np.testing.assert_allclose(result.velocity, [0.0, 1.0, 2.0])


def test_push_out_towards_nearer_negative_face(resolver):
    result = resolver.resolve([-1.0, 0.0, -4.5], [0.0, 0.0, 5.0])
    np.testing.assert_allclose(result.position, [-1.0, 0.0, -5.01])
    assert result.velocity[2] == 0.0


def test_push_out_through_roof(resolver):
    result = resolver.resolve([0.5, 9.8, -0.5], [0.0, -4.0, 0.0])
    np.testing.assert_allclose(result.position, [0.5, 10.01, -0.5])
    assert result.velocity[1] == 0.0


def test_surface_point_is_not_a_collision(resolver):
    assert not resolver.resolve([5.0, 0.0, 0.0], np.zeros(3)).collided


def test_random_interior_points_end_outside(resolver, box, rng):
    points = rng.uniform(box.min_corner + 1e-3, box.max_corner - 1e-3, size=(200, 3))
    velocities = rng.normal(size=(200, 3))
    for p, v in zip(points, velocities):
        result = resolver.resolve(p, v)
        assert result.collided
        assert not box.contains(result.position, strict=True)

        _, axis = result.hits[0]
        penetration = box.half_extents - np.abs(p - box.center)
        assert axis == int(np.argmin(penetration))
        assert abs(result.position[axis] - box.center[axis]) >= box.half_extents[axis]
        assert result.velocity[axis] == 0.0


def test_resolves_against_every_obstacle():
    registry = ObstacleRegistry([
        Obstacle(center=[0.0, 0.0, 0.0], half_extents=[5.0, 5.0, 5.0]),
        Obstacle(center=[30.0, 0.0, 0.0], half_extents=[2.0, 2.0, 2.0]),
    ])
    resolver = CollisionResolver(registry)
    result = resolver.resolve([31.5, 0.0, 0.2], np.zeros(3))
    assert result.hits == [(1, 0)]
    assert result.position[0] == pytest.approx(32.01)


def test_penetrating_lists_indices(resolver):
    assert resolver.penetrating([0.0, 0.0, 0.0]) == [0]
    assert resolver.penetrating([50.0, 0.0, 0.0]) == []


def test_negative_epsilon_rejected(registry):
    with pytest.raises(ValueError):
        CollisionResolver(registry, epsilon=-0.1)


def test_envelope_clamp_zeroes_outward_velocity():
    pos, vel = clamp_to_envelope(
        np.array([190.0, 1.0, -50.0]),
        np.array([4.0, -2.0, -1.0]),
        horizontal_bounds=(-180.0, 180.0, -180.0, 180.0),
        floor=2.0,
        ceiling=80.0,
    )
    np.testing.assert_allclose(pos, [180.0, 2.0, -50.0])
    np.testing.assert_allclose(vel, [0.0, 0.0, -1.0])


class TestOverlappingColliders:

    @pytest.fixture
    def overlapping(self):
        return ObstacleRegistry([
            Obstacle(center=[0.0, 0.0, 0.0], half_extents=[10.0, 50.0, 50.0]),
            Obstacle(center=[19.5, 0.0, 0.0], half_extents=[10.5, 50.0, 50.0]),
        ])

    def test_push_out_skips_face_inside_neighbour(self, overlapping):
        resolver = CollisionResolver(overlapping)
        result = resolver.resolve([9.5, 0.0, 0.0], [3.0, 0.0, 0.0])
        assert result.collided
        assert not result.fell_back
        assert resolver.penetrating(result.position) == []
        np.testing.assert_allclose(result.position, [-10.01, 0.0, 0.0])
        assert result.velocity[0] == 0.0

    def test_random_points_in_overlap_end_outside(self, overlapping, rng):
        resolver = CollisionResolver(overlapping)
        points = rng.uniform([9.0, -40.0, -40.0], [10.0, 40.0, 40.0], size=(100, 3))
        for p in points:
            result = resolver.resolve(p, np.zeros(3))
            assert not any(o.contains(result.position) for o in overlapping)


class TestEnvelopeAwareResolution:

    def test_face_below_floor_is_skipped(self):
        building = ObstacleRegistry([Obstacle(center=[100.0, 30.0, 100.0], half_extents=[25.0, 35.0, 25.0])])
        envelope = envelope_limits((-180.0, 180.0, -180.0, 180.0), floor=2.0, ceiling=80.0)
        resolver = CollisionResolver(building, envelope=envelope)
        result = resolver.resolve([100.0, 3.0, 100.0], np.zeros(3))
        assert result.hits == [(0, 0)]
        np.testing.assert_allclose(result.position, [125.01, 3.0, 100.0])
        assert not building[0].contains(result.position)

    def test_falls_back_when_no_face_is_free(self, registry):
        resolver = CollisionResolver(registry, envelope=(np.full(3, -5.0), np.full(3, 5.0)))
        result = resolver.resolve([1.0, 2.0, 3.0], [4.0, 5.0, 6.0], fallback=[20.0, 0.0, 0.0])
        assert result.collided
        assert result.fell_back
        np.testing.assert_allclose(result.position, [20.0, 0.0, 0.0])
        np.testing.assert_allclose(result.velocity, np.zeros(3))

    def test_without_fallback_reports_collision(self, registry):
        resolver = CollisionResolver(registry, envelope=(np.full(3, -5.0), np.full(3, 5.0)))
        result = resolver.resolve([1.0, 2.0, 3.0], np.zeros(3))
        assert result.collided
        assert not result.fell_back
