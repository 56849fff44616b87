# particle.py
"""
Manages the state of all particles in the swirl.

This module defines the ParticleSystem class, which is responsible for
initializing and storing particle data (position, velocity, home position
and phase seed) in NumPy arrays, and for handing the position buffer to
the renderer whenever a simulation step has changed it.
"""
import logging
import numpy as np
from typing import Dict, Any, Optional

# --- Data Contracts ---
#
# class ParticleSystem:
#   - __init__(self, params: Dict[str, Any]):
#     - Inputs:
#       - params: Dictionary of simulation parameters from config.json.
#         - "seed": int
#         - "particle_count": int (>= 0)
#         - "field_radius": float, base radius of the annulus layout.
#         - "field_depth": float, z coordinate shared by all particles.
#     - Outputs: None
#     - Side Effects: Initializes internal NumPy arrays for particle state.
#     - Invariants:
#       - positions, velocities and homes are C-contiguous (N, 3) float64.
#       - phase_seeds is (N,) float64 in [0, 1) and is never written again.
#       - homes is never written again.
#       - position_buffer is a flat (3N,) view sharing memory with positions.
#
#   - take_position_buffer(self) -> Optional[np.ndarray]:
#     - Outputs: The flat position buffer if a step has run since the last
#       call, otherwise None.
#     - Side Effects: Clears the dirty flag.

class ParticleSystem:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self, params: Dict[str, Any]):
        """
        Initializes the particle field on an annulus around the origin.

        Args:
            params (Dict[str, Any]): Simulation parameters from config.
        """
        count = params['particle_count']
        if isinstance(count, bool) or not isinstance(count, (int, np.integer)) or count < 0:
            msg = f"Configuration error: particle_count must be a non-negative integer, got {count!r}."
            logging.critical(msg)
            raise ValueError(msg)

        self.seed = params['seed']
        radius = float(params.get('field_radius', 10.0))
        depth = float(params.get('field_depth', -5.0))

        # All randomness is controlled by a single master seed.
        self.rng = np.random.default_rng(self.seed)

        index = np.arange(count, dtype=np.float64)
        angle_scale = self.rng.uniform(0.5, 1.5, size=count)
        radius_scale = self.rng.uniform(0.8, 1.2, size=count)
        phase_seeds = self.rng.random(size=count)

        homes = np.empty((count, 3), dtype=np.float64)
        if count > 0:
            angles = index / count * 2.0 * np.pi * angle_scale
            radii = radius * radius_scale
            homes[:, 0] = np.cos(angles) * radii
            homes[:, 1] = np.sin(angles) * radii
            homes[:, 2] = depth

        self._set_state(homes, phase_seeds)

        logging.info(
            f"ParticleSystem initialized with {self.particle_count} particles "
            f"on an annulus of radius {radius:.2f} at depth {depth:.2f}."
        )
        logging.debug(
            f"Particle data arrays created. "
            f"Positions shape: {self.positions.shape}, "
            f"Velocities shape: {self.velocities.shape}, "
            f"Phase seeds shape: {self.phase_seeds.shape}"
        )

    @classmethod
    def from_layout(cls, homes, phase_seeds) -> "ParticleSystem":
        """
        Builds a particle system from explicit home positions and phase seeds,
        bypassing the random annulus layout.
        """
        homes = np.array(homes, dtype=np.float64).reshape(-1, 3)
        phase_seeds = np.array(phase_seeds, dtype=np.float64).reshape(-1)
        if phase_seeds.shape[0] != homes.shape[0]:
            raise ValueError(
                f"Layout has {homes.shape[0]} homes but {phase_seeds.shape[0]} phase seeds."
            )
        if np.any((phase_seeds < 0.0) | (phase_seeds >= 1.0)):
            raise ValueError("Phase seeds must lie in [0, 1).")

        system = cls.__new__(cls)
        system.seed = None
        system.rng = None
        system._set_state(homes, phase_seeds)
        logging.debug(f"ParticleSystem built from explicit layout of {system.particle_count} particles.")
        return system

    def _set_state(self, homes: np.ndarray, phase_seeds: np.ndarray) -> None:
        self.particle_count = homes.shape[0]
        self.homes = np.ascontiguousarray(homes)
        self.homes.setflags(write=False)
        self.phase_seeds = np.ascontiguousarray(phase_seeds)
        self.phase_seeds.setflags(write=False)
        self.positions = self.homes.copy()
        self.velocities = np.zeros((self.particle_count, 3), dtype=np.float64)
        # Flat view over positions; stays valid because positions are only
        # ever updated in place.
        self.position_buffer = self.positions.reshape(-1)
        self.needs_update = True

    def mark_dirty(self) -> None:
        """Flags the position buffer for re-upload by the renderer."""
        self.needs_update = True

    def take_position_buffer(self) -> Optional[np.ndarray]:
        """Returns the flat position buffer if it changed, clearing the dirty flag."""
        if not self.needs_update:
            return None
        self.needs_update = False
        return self.position_buffer
