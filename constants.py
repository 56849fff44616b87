# constants.py
"""
Application-level constants.

These values are static and do not change between simulation runs.
They are fundamental to the application's framework, such as rendering
properties, default window sizes, or camera conventions that are not
part of the experimental configuration.
"""

# Visualization settings
# Set to True to run in borderless fullscreen mode.
# Set to False to run in a fixed-size window (WINDOW_WIDTH x WINDOW_HEIGHT).
FULLSCREEN = False
WINDOW_WIDTH = 1500
WINDOW_HEIGHT = 800
UI_PANEL_WIDTH = 300
FPS = 60
BACKGROUND_COLOR = (8, 8, 12) # Near black
DEFAULT_PARTICLE_RADIUS = 2
DEFAULT_PARTICLE_COLOR = (255, 255, 255)

# --- Visual Appeal Enhancements ---
# Alpha value for the motion blur effect (0-255). Lower is a longer trail.
MOTION_BLUR_ALPHA = 60
# Ratio of the halo size to the particle radius. e.g., 3 means halo is 3x bigger.
PARTICLE_HALO_RATIO = 3
# Alpha for the UI panel background
UI_BACKGROUND_ALPHA = 100

# --- Velocity Glow Effect ---
# The minimum alpha for a halo (for stationary particles).
VELOCITY_GLOW_MIN_ALPHA = 10
# The maximum alpha for a halo (for particles at GLOW_REFERENCE_SPEED or faster).
VELOCITY_GLOW_MAX_ALPHA = 110
# World units per second at which the halo reaches full glow.
GLOW_REFERENCE_SPEED = 8.0

# --- Camera Conventions ---
# World up axis used to build the camera basis.
CAMERA_UP = (0.0, 1.0, 0.0)
# Depth in normalized device coordinates at which pointer positions are
# unprojected into world space (-1 is the near plane, 1 the far plane).
POINTER_NDC_DEPTH = 0.8
