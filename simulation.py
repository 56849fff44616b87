# simulation.py
"""
Handles the core simulation logic and physics calculations.

This module defines the Simulation class, which is responsible for
advancing the state of the particle system by one time step. Each step
runs in two passes over the same, not yet advanced, positions:

1. Single-particle forces: a spring toward each particle's swirl target
   plus repulsion away from the pointer ray. Velocities are integrated and
   damped here.
2. Pairwise separation forces between particles closer than the minimum
   separation, accumulated in a scratch buffer and folded into velocities.

Positions are then advanced with the updated velocities (semi-implicit
Euler) and the particle system is marked dirty for the renderer.
"""
import logging
import math
import numpy as np
from typing import Dict, Any, Sequence
from numba import jit
from particle import ParticleSystem
from utils import as_vector3

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, particles: ParticleSystem, params: Dict[str, Any],
#              camera_position: Sequence[float]):
#     - Inputs:
#       - particles: An initialized ParticleSystem object.
#       - params: Dictionary of simulation parameters from config.json.
#         - "swirl_base_offset": float
#         - "swirl_pointer_gain": float
#         - "spring_factor": float
#         - "damping": float in (0, 1)
#         - "pointer_threshold": float > 0
#         - "pointer_force_multiplier": float
#         - "min_separation": float >= 0
#         - "repulsion_factor": float
#       - camera_position: world-space origin of the pointer ray.
#     - Outputs: None
#     - Side Effects: Allocates the reusable pairwise force buffer.
#
#   - step(self, elapsed_time: float, delta_time: float) -> bool:
#     - Inputs: seconds since an arbitrary epoch, seconds since last tick.
#     - Outputs: True if the step ran, False if the visibility gate is closed.
#     - Side Effects: Modifies positions and velocities of the
#       ParticleSystem in place and marks it dirty.
#     - Invariants: Particle count remains constant. No non-finite value
#       is ever written by the force kernels.
#
#   - set_pointer_target(self, target) / set_visible(self, visible):
#     - Last-write-wins overwrites of the shared input state. The camera
#       position is copied at construction and stays fixed.


@jit(nopython=True)
def _pointer_strength_numba(distance, threshold, force_multiplier):
    """
    Quadratic falloff of the pointer repulsion: force_multiplier at the ray,
    exactly zero at and beyond the threshold.

    This scalar is the repulsion magnitude. On the ray itself (distance 0)
    it equals force_multiplier, but the push direction is undefined there,
    so _pointer_repulsion_numba applies a zero vector.
    """
    if distance < threshold:
        falloff = 1.0 - distance / threshold
        return force_multiplier * falloff * falloff
    return 0.0


@jit(nopython=True)
def _pointer_repulsion_numba(position, camera_position, ray_direction, threshold, force_multiplier, out):
    """
    Writes the pointer repulsion force on a particle into `out` and returns
    the particle's perpendicular distance to the pointer ray.
    """
    ax = position[0] - camera_position[0]
    ay = position[1] - camera_position[1]
    az = position[2] - camera_position[2]
    proj = ax * ray_direction[0] + ay * ray_direction[1] + az * ray_direction[2]

    # Offset from the closest point on the ray to the particle
    dx = position[0] - (camera_position[0] + ray_direction[0] * proj)
    dy = position[1] - (camera_position[1] + ray_direction[1] * proj)
    dz = position[2] - (camera_position[2] + ray_direction[2] * proj)
    distance = math.sqrt(dx * dx + dy * dy + dz * dz)

    strength = _pointer_strength_numba(distance, threshold, force_multiplier)
    # On the ray itself the push direction is undefined; contribute nothing.
    if strength != 0.0 and distance > 0.0:
        scale = strength / distance
        out[0] = dx * scale
        out[1] = dy * scale
        out[2] = dz * scale
    else:
        out[0] = 0.0
        out[1] = 0.0
        out[2] = 0.0
    return distance


@jit(nopython=True)
def _apply_particle_forces_numba(
    positions, velocities, homes, phase_seeds,
    elapsed_time, delta_time, pointer_target, camera_position, ray_direction,
    base_offset, pointer_gain, spring_factor, damping,
    threshold, force_multiplier, repulsion
):
    """
    Numba-jitted first pass: spring toward the swirl target plus pointer
    repulsion, integrated into damped velocities.

    `repulsion` is a length-3 scratch vector reused for every particle.
    """
    pointer_distance = math.sqrt(
        pointer_target[0] * pointer_target[0]
        + pointer_target[1] * pointer_target[1]
        + pointer_target[2] * pointer_target[2]
    )
    # Every orbit grows with the pointer's distance from the world origin.
    dynamic_offset = base_offset * (1.0 + pointer_gain * pointer_distance)

    particle_count = positions.shape[0]
    for i in range(particle_count):
        seed = phase_seeds[i]
        offset = dynamic_offset * (0.5 + seed)
        phase = elapsed_time + i * (1.0 + seed)

        target_x = homes[i, 0] + math.cos(phase) * offset
        target_y = homes[i, 1] + math.sin(phase) * offset
        target_z = homes[i, 2]

        _pointer_repulsion_numba(
            positions[i], camera_position, ray_direction,
            threshold, force_multiplier, repulsion
        )

        ax = spring_factor * (target_x - positions[i, 0]) + repulsion[0]
        ay = spring_factor * (target_y - positions[i, 1]) + repulsion[1]
        az = spring_factor * (target_z - positions[i, 2]) + repulsion[2]

        velocities[i, 0] = (velocities[i, 0] + ax * delta_time) * damping
        velocities[i, 1] = (velocities[i, 1] + ay * delta_time) * damping
        velocities[i, 2] = (velocities[i, 2] + az * delta_time) * damping


@jit(nopython=True)
def _accumulate_pairwise_forces_numba(positions, min_distance, forces):
    """
    Numba-jitted second pass: brute-force O(N^2) separation forces.

    Each overlapping pair receives an equal and opposite force along its
    separation vector, accumulated into `forces` (overwritten). Coincident
    pairs and pairs whose force would overflow contribute nothing.
    """
    forces[:] = 0.0
    min_distance_sq = min_distance * min_distance
    particle_count = positions.shape[0]

    for i in range(particle_count):
        for j in range(i + 1, particle_count):
            dx = positions[j, 0] - positions[i, 0]
            dy = positions[j, 1] - positions[i, 1]
            dz = positions[j, 2] - positions[i, 2]
            distance_sq = dx * dx + dy * dy + dz * dz

            if 0.0 < distance_sq < min_distance_sq:
                distance = math.sqrt(distance_sq)
                strength = (min_distance - distance) / distance
                strength = strength * strength
                fx = dx * strength
                fy = dy * strength
                fz = dz * strength
                if not (math.isfinite(fx) and math.isfinite(fy) and math.isfinite(fz)):
                    continue

                # Push i away from j and j away from i
                forces[i, 0] -= fx
                forces[i, 1] -= fy
                forces[i, 2] -= fz
                forces[j, 0] += fx
                forces[j, 1] += fy
                forces[j, 2] += fz
    return forces


def pointer_ray_direction(camera_position: np.ndarray, pointer_target: np.ndarray) -> np.ndarray:
    """
    Unit direction of the ray from the camera through the pointer target.
    Returns the zero vector when the two points coincide.
    """
    direction = pointer_target - camera_position
    length = np.linalg.norm(direction)
    if length == 0.0:
        return np.zeros(3, dtype=np.float64)
    return direction / length


class Simulation:
    """
    Advances the swirl one tick at a time, gated by host visibility.
    """
    def __init__(self, particles: ParticleSystem, params: Dict[str, Any], camera_position: Sequence[float]):
        """
        Initializes the simulation environment.

        Args:
            particles (ParticleSystem): The particle system to simulate.
            params (Dict[str, Any]): Simulation parameters from config.
            camera_position (Sequence[float]): Origin of the pointer ray.
        """
        self.particles = particles
        self.swirl_base_offset = np.float64(params.get('swirl_base_offset', 1.0))
        self.swirl_pointer_gain = np.float64(params.get('swirl_pointer_gain', 0.3))
        self.spring_factor = np.float64(params.get('spring_factor', 2.0))
        self.damping = np.float64(params.get('damping', 0.95))
        self.pointer_threshold = np.float64(params.get('pointer_threshold', 7.0))
        self.pointer_force_multiplier = np.float64(params.get('pointer_force_multiplier', 100.0))
        self.min_separation = np.float64(params.get('min_separation', 0.2))
        self.repulsion_factor = np.float64(params.get('repulsion_factor', 2.0))

        # Enforce data contracts. Validate config on initialization.
        problems = []
        if not 0.0 < self.damping < 1.0:
            problems.append(f"damping must lie in (0, 1), got {self.damping}")
        if not self.pointer_threshold > 0.0:
            problems.append(f"pointer_threshold must be positive, got {self.pointer_threshold}")
        if not self.min_separation >= 0.0:
            problems.append(f"min_separation must be non-negative, got {self.min_separation}")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

        self.camera_position = as_vector3(camera_position, "camera_position")
        # Pointer state: world origin until the first pointer event arrives.
        self.pointer_target = np.zeros(3, dtype=np.float64)
        self.visible = True

        # Scratch storage reserved once and reused across ticks.
        self._pair_forces = np.zeros_like(self.particles.positions)
        self._repulsion = np.zeros(3, dtype=np.float64)

        logging.info("Simulation logic initialized and configuration validated.")
        logging.info(
            f"Pairwise separation is brute force over {self.particles.particle_count} particles "
            f"(min separation {self.min_separation:.3f})."
        )

    def set_pointer_target(self, target: Sequence[float]) -> None:
        """Overwrites the world-space pointer position."""
        self.pointer_target[:] = target

    def set_visible(self, visible: bool) -> None:
        """Opens or closes the visibility gate."""
        visible = bool(visible)
        if visible != self.visible:
            logging.info(f"Visibility changed: simulation {'resumed' if visible else 'frozen'}.")
        self.visible = visible

    def step(self, elapsed_time: float, delta_time: float) -> bool:
        """
        Executes one time step of the simulation.

        Returns:
            bool: False if the step was skipped because the host is hidden.
        """
        if not self.visible:
            return False

        positions = self.particles.positions
        velocities = self.particles.velocities
        ray_direction = pointer_ray_direction(self.camera_position, self.pointer_target)

        # 1. Spring and pointer forces, damped into velocities (using Numba)
        _apply_particle_forces_numba(
            positions, velocities, self.particles.homes, self.particles.phase_seeds,
            float(elapsed_time), float(delta_time),
            self.pointer_target, self.camera_position, ray_direction,
            self.swirl_base_offset, self.swirl_pointer_gain, self.spring_factor, self.damping,
            self.pointer_threshold, self.pointer_force_multiplier, self._repulsion
        )

        # 2. Pairwise separation on the same, not yet advanced, positions
        _accumulate_pairwise_forces_numba(positions, self.min_separation, self._pair_forces)
        velocities += self._pair_forces * (self.repulsion_factor * delta_time)

        # 3. Advance positions with this tick's velocities
        positions += velocities * delta_time

        # 4. Publish the buffer to the renderer
        self.particles.mark_dirty()
        return True

    def average_speed(self) -> float:
        """Mean particle speed, for throttled diagnostics."""
        if self.particles.particle_count == 0:
            return 0.0
        return float(np.mean(np.linalg.norm(self.particles.velocities, axis=1)))
