"""Tests for the repulsive potential force model and landing funnel."""

import numpy as np
import pytest

from geofence_nav.environment import ObstacleRegistry
from geofence_nav.planning import PotentialForceModel, smoothstep


@pytest.fixture
def landing_model(config, landing_box, sampler):
    # landing_box has the same volume as `box`, so the shared field applies
    return PotentialForceModel(config, ObstacleRegistry([landing_box]), sampler)


class TestSmoothstep:

    def test_edges_and_midpoint(self):
        assert smoothstep(0.0, 4.0, -1.0) == 0.0
        assert smoothstep(0.0, 4.0, 0.0) == 0.0
        assert smoothstep(0.0, 4.0, 2.0) == pytest.approx(0.5)
        assert smoothstep(0.0, 4.0, 4.0) == 1.0
        assert smoothstep(0.0, 4.0, 9.0) == 1.0

    def test_degenerate_edges(self):
        assert smoothstep(1.0, 1.0, 0.5) == 0.0
        assert smoothstep(1.0, 1.0, 1.5) == 1.0


class TestMagnitude:

    def test_zero_at_and_beyond_r0(self, force_model, config):
        r0 = config.influence_radius
        assert force_model.magnitude(r0) == 0.0
        assert force_model.magnitude(r0 + 5.0) == 0.0

    def test_saturates_at_fmax(self, force_model, config):
        assert force_model.magnitude(0.0) == config.max_force
        assert force_model.magnitude(0.2) == config.max_force

    def test_formula(self, force_model, config):
        d = 5.0 + config.distance_epsilon
        expected = config.gain * (1.0 / d - 1.0 / config.influence_radius) / d ** 2
        assert force_model.magnitude(5.0) == pytest.approx(expected)

    def test_monotonically_non_increasing(self, force_model, config):
        distances = np.linspace(0.0, config.influence_radius * 1.2, 400)
        mags = np.array([force_model.magnitude(d) for d in distances])
        assert np.all(np.diff(mags) <= 1e-12)
        assert np.all(mags <= config.max_force)
        assert np.all(mags >= 0.0)


class TestForce:

    def test_repulsion_points_away_from_obstacle(self, force_model, sampler, config):
        point = np.array([10.0, 0.0, 0.0])  # 5 m from the +X face
        force = force_model.force(point)
        mag = np.linalg.norm(force)
        assert 0.0 < mag <= config.max_force
        assert force[0] > 0.0
        np.testing.assert_allclose(force / mag, [1.0, 0.0, 0.0], atol=1e-6)
        assert mag == pytest.approx(force_model.magnitude(sampler.sample_distance(point)))

    def test_point_beyond_influence_radius(self, force_model):
        # 25 m from the +X face at the top edge: outside r0 = 20
        assert not force_model.force([30.0, 10.0, 0.0]).any()

    def test_zero_when_field_not_ready(self, config, registry):
        model = PotentialForceModel(config, registry)
        assert not model.ready
        assert not model.force([10.0, 0.0, 0.0]).any()

    def test_zero_at_degenerate_gradient(self, force_model):
        assert not force_model.force([0.0, 0.0, 0.0]).any()

    def test_bounded_everywhere(self, force_model, sampler, config, rng):
        points = rng.uniform([-40, -20, -40], [40, 40, 40], size=(300, 3))
        for p in points:
            force = force_model.force(p)
            assert np.linalg.norm(force) <= config.max_force + 1e-9
            if sampler.sample_distance(p) >= config.influence_radius:
                assert not force.any()


class TestLandingFunnel:

    def test_force_zero_just_above_pad(self, landing_model, force_model):
        point = [0.0, 22.0, 0.0]  # 2 m above the pad, inside the footprint
        assert not landing_model.force(point).any()
        # the same point over a non-landable roof is repelled upwards
        force = force_model.force(point)
        assert force[1] > 0.0

    @pytest.mark.parametrize("dy", [-0.5, 0.0, 4.0, 8.0])
    def test_funnel_window(self, landing_model, dy):
        assert landing_model.in_landing_funnel([1.0, 20.0 + dy, -2.0])

    @pytest.mark.parametrize("dy", [-0.6, 8.1])
    def test_outside_funnel_window(self, landing_model, dy):
        assert not landing_model.in_landing_funnel([1.0, 20.0 + dy, -2.0])

    def test_footprint_edge(self, landing_model):
        assert landing_model.in_landing_funnel([5.0, 22.0, 0.0])
        assert not landing_model.in_landing_funnel([5.5, 22.0, 0.0])
        assert landing_model.force([5.5, 22.0, 0.0]).any()

    def test_below_funnel_floor_is_repelled(self, landing_model):
        force = landing_model.force([0.0, 19.0, 0.0])
        assert force[1] > 0.0

    def test_gate_values(self, landing_model):
        # pad radius = 0.8 * 5 = 4
        assert landing_model.gate([0.0, 30.0, 0.0]) == pytest.approx(0.0)
        assert landing_model.gate([2.0, 30.0, 0.0]) == pytest.approx(0.5)
        assert landing_model.gate([4.5, 30.0, 0.0]) == pytest.approx(1.0)
        assert landing_model.gate([0.0, 19.0, 0.0]) == pytest.approx(1.0)
        assert landing_model.gate([20.0, 30.0, 0.0]) == 1.0

    def test_gate_scales_force(self, landing_model, sampler):
        point = np.array([2.0, 29.0, 0.0])
        expected = landing_model.magnitude(sampler.sample_distance(point)) * 0.5
        assert np.linalg.norm(landing_model.force(point)) == pytest.approx(expected)
