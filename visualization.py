# visualization.py
"""
Handles the visualization of the particle swirl using Pygame.
"""
import logging
import pygame
import numpy as np
from particle import ParticleSystem
from events import HostSignals
from constants import (
    BACKGROUND_COLOR, DEFAULT_PARTICLE_RADIUS, DEFAULT_PARTICLE_COLOR, FULLSCREEN,
    WINDOW_WIDTH, WINDOW_HEIGHT, UI_PANEL_WIDTH, MOTION_BLUR_ALPHA,
    PARTICLE_HALO_RATIO, UI_BACKGROUND_ALPHA, VELOCITY_GLOW_MIN_ALPHA,
    VELOCITY_GLOW_MAX_ALPHA, GLOW_REFERENCE_SPEED
)
from typing import Optional

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from camera import PerspectiveCamera
    from simulation import Simulation


# --- Data Contracts ---
#
# class Visualizer:
#   - __init__(self, color: Optional[list] = None, sim_params: Optional[dict] = None):
#     - Inputs:
#       - color: Optional RGB list for the particles from the configuration.
#       - sim_params: Simulation parameters shown in the UI panel.
#     - Outputs: None
#     - Side Effects: Initializes Pygame and creates a display surface.
#
#   - draw(self, particles: ParticleSystem, simulation: "Simulation",
#          camera: "PerspectiveCamera") -> bool:
#     - Outputs:
#       - bool: False if the user has quit, True otherwise.
#     - Side Effects: Renders particles and UI to the screen. Pulls the
#       position buffer only when the particle system marked it dirty.
#       Forwards all other events to self.signals.

class Visualizer:
    """
    Renders the swirl as glowing points and shows the parameters in a side panel.
    """
    def __init__(self, color: Optional[list] = None, sim_params: Optional[dict] = None):
        """
        Initializes Pygame and the display window.
        """
        pygame.init()
        pygame.font.init()

        if FULLSCREEN:
            display_info = pygame.display.Info()
            width, height = display_info.current_w, display_info.current_h
            self.screen = pygame.display.set_mode((width, height), pygame.FULLSCREEN)
        else:
            width, height = WINDOW_WIDTH, WINDOW_HEIGHT
            self.screen = pygame.display.set_mode((width, height))

        # The simulation area is the total width minus the UI panel
        self.sim_width = width - UI_PANEL_WIDTH
        self.sim_height = height

        self.sim_surface = pygame.Surface((self.sim_width, self.sim_height))
        # Blitted over the simulation area each frame to fade previous frames
        # into trails.
        self.blur_surface = pygame.Surface((self.sim_width, self.sim_height), pygame.SRCALPHA)
        self.blur_surface.fill((BACKGROUND_COLOR[0], BACKGROUND_COLOR[1], BACKGROUND_COLOR[2], MOTION_BLUR_ALPHA))

        self.ui_panel_surface = pygame.Surface((UI_PANEL_WIDTH, self.sim_height), pygame.SRCALPHA)
        self.ui_panel_surface.fill((40, 40, 40, UI_BACKGROUND_ALPHA))

        pygame.display.set_caption("Floaty Swirl")
        self.clock = pygame.time.Clock()

        self.color = self._initialize_color(color)
        self.halo_surface = self._pre_render_halo()
        self.signals = HostSignals()

        # Projected screen positions, refreshed whenever the buffer is dirty.
        self._screen_points = np.empty((0, 2))
        self._on_screen = np.empty(0, dtype=bool)

        try:
            self.font_main = pygame.font.SysFont("Segoe UI", 14)
            self.font_main_bold = pygame.font.SysFont("Segoe UI", 14, bold=True)
        except pygame.error:
            logging.warning("Segoe UI font not found, falling back to default sans-serif.")
            self.font_main = pygame.font.SysFont(None, 18)
            self.font_main_bold = pygame.font.SysFont(None, 18, bold=True)

        self.panel_pos = (self.sim_width + 20, 20)
        self.panel_width = UI_PANEL_WIDTH - 40
        self.text_color_key = (200, 200, 200)
        self.text_color_value = (255, 255, 255)
        self.param_box_color = (60, 60, 60, 160)
        self.param_box_spacing = 4

        self.sim_params = sim_params if sim_params is not None else {}

        logging.info(f"Visualizer initialized with Pygame display ({width}x{height}).")

    def _initialize_color(self, config_color: Optional[list]) -> pygame.Color:
        """Reads the particle color from config, falling back to white."""
        if not config_color:
            logging.info("No particle color found in config. Using default.")
            return pygame.Color(DEFAULT_PARTICLE_COLOR)
        try:
            return pygame.Color(*config_color)
        except (ValueError, TypeError) as e:
            logging.error(f"Could not parse particle color from config due to invalid format: {e}. Using default.")
            return pygame.Color(DEFAULT_PARTICLE_COLOR)

    def _pre_render_halo(self) -> pygame.Surface:
        """Pre-renders the halo surface once; its alpha is set per particle."""
        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        diameter = halo_radius * 2
        halo_surf = pygame.Surface((diameter, diameter), pygame.SRCALPHA)
        pygame.draw.circle(halo_surf, self.color, (halo_radius, halo_radius), halo_radius)
        return halo_surf

    def _refresh_projection(self, particles: ParticleSystem, camera: "PerspectiveCamera") -> None:
        buffer = particles.take_position_buffer()
        if buffer is None:
            return
        ndc, in_front = camera.project(buffer.reshape(-1, 3))
        self._screen_points = camera.ndc_to_screen(ndc, self.sim_width, self.sim_height)
        # Clip to the frustum so far-off points are not drawn.
        self._on_screen = in_front & np.all(np.abs(ndc) <= 1.0, axis=1)

    def _draw_parameters(self, simulation: "Simulation"):
        """Renders parameters and live state in a list of individual, transparent boxes."""
        entries = [(key.replace('_', ' ').title(), value) for key, value in self.sim_params.items()]
        entries.append(("State", "Running" if simulation.visible else "Frozen"))
        target = simulation.pointer_target
        entries.append(("Pointer", f"{target[0]:.1f}, {target[1]:.1f}, {target[2]:.1f}"))
        entries.append(("Avg Speed", simulation.average_speed()))
        entries.append(("FPS", self.clock.get_fps()))

        box_v_padding = 8
        line_height = self.font_main.get_linesize()
        key_value_gap = 20

        panel_x, current_y = self.panel_pos
        key_max_width = (self.panel_width - key_value_gap) / 2 - box_v_padding
        key_column_right_x = panel_x + box_v_padding + key_max_width
        value_column_left_x = key_column_right_x + key_value_gap

        for display_key, value in entries:
            display_value = f"{value:.2f}" if isinstance(value, float) else str(value)

            key_surfs = self._render_text_wrapped(display_key, self.font_main_bold, key_max_width, self.text_color_key)
            value_surfs = self._render_text_wrapped(display_value, self.font_main, key_max_width, self.text_color_value)

            num_lines = max(len(key_surfs), len(value_surfs))
            box_height = num_lines * line_height + (box_v_padding * 2)

            box_rect = pygame.Rect(panel_x, current_y, self.panel_width, box_height)
            pygame.draw.rect(self.screen, self.param_box_color, box_rect, border_radius=6)

            text_start_y = current_y + box_v_padding
            line_y = text_start_y
            for surf in key_surfs:
                self.screen.blit(surf, surf.get_rect(topright=(key_column_right_x, line_y)))
                line_y += line_height

            line_y = text_start_y
            for surf in value_surfs:
                self.screen.blit(surf, surf.get_rect(topleft=(value_column_left_x, line_y)))
                line_y += line_height

            current_y += box_height + self.param_box_spacing

    def _render_text_wrapped(
        self, text: str, font: pygame.font.Font, max_width: float, color: tuple
    ) -> list:
        """
        Renders text, wrapping it to a new line if it exceeds max_width.
        Returns a list of rendered surfaces, one for each line.
        """
        lines = []
        current_line = ""
        for word in text.split(' '):
            test_line = f"{current_line} {word}".strip()
            if font.size(test_line)[0] <= max_width:
                current_line = test_line
            else:
                lines.append(current_line)
                current_line = word
        lines.append(current_line)
        return [font.render(line, True, color) for line in lines if line]

    def draw(self, particles: ParticleSystem, simulation: "Simulation", camera: "PerspectiveCamera") -> bool:
        """
        Draws all particles and UI, and handles events.

        Returns:
            bool: False if the simulation should exit, True otherwise.
        """
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                logging.info("Quit event received. Shutting down visualizer.")
                return False
            if event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                logging.info("ESC key pressed. Shutting down visualizer.")
                return False
            self.signals.dispatch(event)

        self._refresh_projection(particles, camera)

        # 1. Fade the previous frame to leave trails.
        self.sim_surface.blit(self.blur_surface, (0, 0))

        # 2. Draw particles with speed-based halos
        halo_radius = int(DEFAULT_PARTICLE_RADIUS * PARTICLE_HALO_RATIO)
        speeds = np.linalg.norm(particles.velocities, axis=1)
        normalized_speeds = np.minimum(speeds / GLOW_REFERENCE_SPEED, 1.0)
        alphas = VELOCITY_GLOW_MIN_ALPHA + normalized_speeds * (VELOCITY_GLOW_MAX_ALPHA - VELOCITY_GLOW_MIN_ALPHA)

        for i in np.flatnonzero(self._on_screen):
            x, y = int(self._screen_points[i, 0]), int(self._screen_points[i, 1])
            self.halo_surface.set_alpha(int(alphas[i]))
            self.sim_surface.blit(self.halo_surface, (x - halo_radius, y - halo_radius))
            pygame.draw.circle(self.sim_surface, self.color, (x, y), DEFAULT_PARTICLE_RADIUS)

        # 3. Blit the simulation surface onto the main screen at (0, 0)
        self.screen.blit(self.sim_surface, (0, 0))

        # 4. Draw the UI panel background and then the parameter boxes
        self.screen.blit(self.ui_panel_surface, (self.sim_width, 0))
        self._draw_parameters(simulation)

        pygame.display.flip()
        return True

    def close(self):
        """Shuts down Pygame."""
        pygame.font.quit()
        pygame.quit()
