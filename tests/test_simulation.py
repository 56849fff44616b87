import numpy as np
import pytest

from particle import ParticleSystem
from simulation import (
    Simulation,
    _accumulate_pairwise_forces_numba,
    _pointer_repulsion_numba,
    _pointer_strength_numba,
    pointer_ray_direction,
)

THRESHOLD = 7.0
MULTIPLIER = 100.0

# Camera and pointer placed so the pointer ray runs far from the origin.
FAR_CAMERA = (100.0, 100.0, 100.0)
FAR_POINTER = (100.0, 100.0, 0.0)


def make_params(**overrides):
    params = {
        "seed": 11,
        "particle_count": 60,
        "field_radius": 10.0,
        "field_depth": -5.0,
        "swirl_base_offset": 1.0,
        "swirl_pointer_gain": 0.3,
        "spring_factor": 2.0,
        "damping": 0.95,
        "pointer_threshold": THRESHOLD,
        "pointer_force_multiplier": MULTIPLIER,
        "min_separation": 0.2,
        "repulsion_factor": 2.0,
    }
    params.update(overrides)
    return params


def make_simulation(particles=None, camera=(20.0, 20.0, 10.0), **overrides):
    params = make_params(**overrides)
    if particles is None:
        particles = ParticleSystem(params)
    return Simulation(particles, params, camera)


def run_steps(sim, deltas, start=0.0):
    elapsed = start
    for dt in deltas:
        elapsed += dt
        sim.step(elapsed, dt)


# --- Pointer repulsion ---

def test_pointer_strength_is_multiplier_on_the_ray():
    assert _pointer_strength_numba(0.0, THRESHOLD, MULTIPLIER) == MULTIPLIER


def test_pointer_strength_vanishes_at_and_beyond_threshold():
    assert _pointer_strength_numba(THRESHOLD, THRESHOLD, MULTIPLIER) == 0.0
    assert _pointer_strength_numba(THRESHOLD + 1.0, THRESHOLD, MULTIPLIER) == 0.0


def test_pointer_strength_has_quadratic_falloff():
    assert _pointer_strength_numba(3.5, THRESHOLD, MULTIPLIER) == pytest.approx(25.0)
    for distance in np.linspace(0.0, THRESHOLD, 50, endpoint=False):
        assert _pointer_strength_numba(distance, THRESHOLD, MULTIPLIER) > 0.0


def test_pointer_repulsion_at_threshold_distance_is_zero():
    camera = np.array([7.0, 0.0, 10.0])
    direction = np.array([0.0, 0.0, -1.0])
    out = np.full(3, np.nan)

    distance = _pointer_repulsion_numba(np.zeros(3), camera, direction, THRESHOLD, MULTIPLIER, out)

    assert distance == THRESHOLD
    np.testing.assert_array_equal(out, [0.0, 0.0, 0.0])


def test_pointer_repulsion_on_the_ray_stays_finite():
    camera = np.array([0.0, 0.0, 10.0])
    direction = np.array([0.0, 0.0, -1.0])
    out = np.full(3, np.nan)

    distance = _pointer_repulsion_numba(np.array([0.0, 0.0, -5.0]), camera, direction, THRESHOLD, MULTIPLIER, out)

    assert distance == 0.0
    assert _pointer_strength_numba(distance, THRESHOLD, MULTIPLIER) == MULTIPLIER
    assert np.all(np.isfinite(out))


def test_pointer_repulsion_pushes_away_from_the_ray():
    camera = np.array([0.0, 0.0, 10.0])
    direction = np.array([0.0, 0.0, -1.0])
    out = np.zeros(3)

    distance = _pointer_repulsion_numba(np.array([1.0, 0.0, 0.0]), camera, direction, THRESHOLD, MULTIPLIER, out)

    assert distance == pytest.approx(1.0)
    expected = MULTIPLIER * (1.0 - 1.0 / THRESHOLD) ** 2
    np.testing.assert_allclose(out, [expected, 0.0, 0.0])


def test_ray_direction_is_unit_length():
    direction = pointer_ray_direction(np.array([20.0, 20.0, 10.0]), np.array([1.0, -2.0, 3.0]))
    assert np.linalg.norm(direction) == pytest.approx(1.0)


def test_ray_direction_degenerates_to_zero():
    point = np.array([1.0, 2.0, 3.0])
    np.testing.assert_array_equal(pointer_ray_direction(point, point.copy()), np.zeros(3))


# --- Pairwise repulsion ---

def test_pairwise_forces_are_equal_and_opposite():
    positions = np.array([[0.0, 0.0, 0.0], [0.05, 0.08, -0.03]])
    forces = np.zeros_like(positions)

    _accumulate_pairwise_forces_numba(positions, 0.2, forces)

    assert np.any(forces[0])
    np.testing.assert_array_equal(forces[0], -forces[1])


def test_pairwise_forces_conserve_momentum_in_a_cluster():
    rng = np.random.default_rng(0)
    positions = rng.uniform(-0.3, 0.3, size=(40, 3))
    forces = np.zeros_like(positions)

    _accumulate_pairwise_forces_numba(positions, 0.2, forces)

    assert np.any(forces)
    np.testing.assert_allclose(forces.sum(axis=0), np.zeros(3), atol=1e-9)


def test_pairwise_forces_ignore_distant_and_coincident_pairs():
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 0.0, 0.0], [0.2, 0.0, 0.0], [5.0, 0.0, 0.0]])
    forces = np.full_like(positions, 123.0)

    _accumulate_pairwise_forces_numba(positions, 0.2, forces)

    np.testing.assert_array_equal(forces, np.zeros_like(positions))


def test_pairwise_forces_drop_pairs_that_would_overflow():
    positions = np.array([[0.0, 0.0, 0.0], [0.0, 1e-160, 0.0]])
    forces = np.zeros_like(positions)

    _accumulate_pairwise_forces_numba(positions, 0.2, forces)

    assert np.all(np.isfinite(forces))
    np.testing.assert_array_equal(forces, np.zeros_like(positions))


def test_two_close_particles_are_pushed_apart_along_x():
    particles = ParticleSystem.from_layout([[0.0, 0.0, 0.0], [0.1, 0.0, 0.0]], [0.3, 0.6])
    sim = make_simulation(particles, camera=FAR_CAMERA, spring_factor=0.0)
    sim.set_pointer_target(FAR_POINTER)

    assert sim.step(0.0, 0.016)

    v0, v1 = particles.velocities
    assert v0[0] < 0.0 < v1[0]
    assert v0[0] == -v1[0]
    assert v0[0] == pytest.approx(-0.1 * 1.0 * 2.0 * 0.016)
    np.testing.assert_array_equal(v0[1:], [0.0, 0.0])
    np.testing.assert_array_equal(v1[1:], [0.0, 0.0])
    assert particles.positions[0, 0] < 0.0
    assert particles.positions[1, 0] > 0.1


# --- Swirl spring ---

def test_spring_pulls_toward_swirl_target():
    particles = ParticleSystem.from_layout([[20.0, 0.0, 0.0]], [0.5])
    sim = make_simulation(particles, camera=(0.0, 0.0, 10.0))

    sim.step(0.0, 0.1)

    # Pointer at the origin: offset 1.0, phase 0, target (21, 0, 0).
    np.testing.assert_allclose(particles.velocities[0], [2.0 * 1.0 * 0.1 * 0.95, 0.0, 0.0])


def test_swirl_orbit_grows_with_pointer_distance_from_origin():
    particles = ParticleSystem.from_layout([[20.0, 0.0, 0.0]], [0.5])
    sim = make_simulation(particles, camera=(0.0, 0.0, 10.0))
    sim.set_pointer_target((3.0, 4.0, 0.0))

    sim.step(0.0, 0.1)

    # |target| = 5 inflates the offset to 1.0 * (1 + 0.3 * 5) = 2.5.
    np.testing.assert_allclose(particles.velocities[0], [2.0 * 2.5 * 0.1 * 0.95, 0.0, 0.0])


# --- Pointer repulsion through a full step ---
# Camera above the origin, pointer at the origin: the ray is the z axis.

def pointer_only_simulation(home):
    particles = ParticleSystem.from_layout([home], [0.5])
    return make_simulation(particles, camera=(0.0, 0.0, 10.0), spring_factor=0.0)


def test_step_applies_pointer_repulsion_near_the_ray():
    sim = pointer_only_simulation([1.0, 0.0, -5.0])

    assert sim.step(0.0, 0.1)

    expected = MULTIPLIER * (1.0 - 1.0 / THRESHOLD) ** 2 * 0.1 * 0.95
    np.testing.assert_allclose(sim.particles.velocities[0], [expected, 0.0, 0.0])


def test_step_applies_no_pointer_repulsion_at_threshold():
    sim = pointer_only_simulation([THRESHOLD, 0.0, -5.0])

    assert sim.step(0.0, 0.1)

    np.testing.assert_array_equal(sim.particles.velocities[0], [0.0, 0.0, 0.0])


def test_step_on_the_ray_leaves_velocity_zero_and_finite():
    sim = pointer_only_simulation([0.0, 0.0, -5.0])

    assert sim.step(0.0, 0.1)

    assert np.all(np.isfinite(sim.particles.velocities))
    np.testing.assert_array_equal(sim.particles.velocities[0], [0.0, 0.0, 0.0])


def test_camera_position_is_copied_at_construction():
    camera = np.array([0.0, 0.0, 10.0])
    sim = make_simulation(ParticleSystem.from_layout([[1.0, 0.0, -5.0]], [0.5]), camera=camera)

    camera[:] = [50.0, 50.0, 50.0]

    np.testing.assert_array_equal(sim.camera_position, [0.0, 0.0, 10.0])
    assert not hasattr(sim, "set_camera_position")


# --- Integration and gating ---

def test_zero_delta_keeps_positions_and_damps_velocities():
    sim = make_simulation()
    run_steps(sim, [0.016] * 20)
    positions = sim.particles.positions.copy()
    velocities = sim.particles.velocities.copy()
    assert np.any(velocities)

    assert sim.step(1.0, 0.0)

    np.testing.assert_array_equal(sim.particles.positions, positions)
    np.testing.assert_allclose(sim.particles.velocities, velocities * 0.95, rtol=1e-12, atol=0.0)


def test_hidden_simulation_is_frozen():
    sim = make_simulation()
    run_steps(sim, [0.016] * 5)
    sim.particles.take_position_buffer()
    positions = sim.particles.positions.copy()
    velocities = sim.particles.velocities.copy()

    sim.set_visible(False)
    for dt in (0.016, 0.5, 0.0):
        assert not sim.step(2.0, dt)

    np.testing.assert_array_equal(sim.particles.positions, positions)
    np.testing.assert_array_equal(sim.particles.velocities, velocities)
    assert not sim.particles.needs_update

    sim.set_visible(True)
    assert sim.step(2.0, 0.016)
    assert sim.particles.needs_update


def test_identical_runs_are_deterministic():
    deltas = [0.016, 0.017, 0.015, 0.033, 0.0, 0.016] * 5
    first = make_simulation()
    second = make_simulation()
    for sim in (first, second):
        sim.set_pointer_target((1.5, -2.0, 3.0))
        run_steps(sim, deltas, start=10.0)

    np.testing.assert_array_equal(first.particles.positions, second.particles.positions)
    np.testing.assert_array_equal(first.particles.velocities, second.particles.velocities)


def test_step_keeps_state_finite_with_coincident_particles():
    particles = ParticleSystem.from_layout([[0.0, 0.0, -5.0]] * 3 + [[0.05, 0.0, -5.0]], [0.1, 0.2, 0.3, 0.4])
    sim = make_simulation(particles, camera=(0.0, 0.0, 10.0))

    run_steps(sim, [0.016] * 10)

    assert np.all(np.isfinite(particles.positions))
    assert np.all(np.isfinite(particles.velocities))


def test_step_with_no_particles():
    sim = make_simulation(particle_count=0)

    assert sim.step(0.0, 0.016)
    assert sim.average_speed() == 0.0


def test_homes_survive_many_steps():
    sim = make_simulation()
    homes = sim.particles.homes.copy()

    run_steps(sim, [0.016] * 10)

    np.testing.assert_array_equal(sim.particles.homes, homes)


@pytest.mark.parametrize("overrides", [
    {"damping": 1.0},
    {"damping": 0.0},
    {"pointer_threshold": 0.0},
    {"min_separation": -0.1},
])
def test_invalid_configuration_is_rejected(overrides):
    with pytest.raises(ValueError):
        make_simulation(**overrides)


def test_invalid_camera_position_is_rejected():
    with pytest.raises(ValueError):
        make_simulation(camera=(1.0, 2.0))
