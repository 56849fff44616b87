# camera.py
"""
A minimal perspective camera for projecting the swirl onto the screen and
for turning pointer positions back into world space.

Conventions follow the usual right-handed OpenGL setup: the camera looks
down its local -Z axis, normalized device coordinates span [-1, 1] on all
three axes, and NDC z = -1 / +1 map to the near / far planes.
"""
import logging
import math
import numpy as np
from typing import Sequence, Tuple
from constants import CAMERA_UP
from utils import as_vector3

# --- Data Contracts ---
#
# class PerspectiveCamera:
#   - __init__(self, position, look_at, fov, aspect, near, far):
#     - Inputs: eye position, target point, vertical field of view in
#       degrees, viewport width/height ratio, clip plane distances.
#     - Raises: ValueError for degenerate or inconsistent parameters.
#
#   - project(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
#     - Inputs: (N, 3) world points.
#     - Outputs: (N, 3) NDC coordinates and an (N,) mask that is False for
#       points at or behind the camera plane.
#
#   - unproject(self, ndc: Sequence[float]) -> np.ndarray:
#     - Inputs: a single NDC point (x, y, z).
#     - Outputs: the (3,) world-space point.

class PerspectiveCamera:
    """
    Fixed-orientation perspective camera with cached view/projection matrices.
    """
    def __init__(
        self,
        position: Sequence[float],
        look_at: Sequence[float] = (0.0, 0.0, 0.0),
        fov: float = 50.0,
        aspect: float = 1.0,
        near: float = 0.1,
        far: float = 1000.0,
    ):
        self.position = as_vector3(position, "camera position")
        self.look_at = as_vector3(look_at, "camera look_at")
        self.fov = float(fov)
        self.near = float(near)
        self.far = float(far)

        if not 0.0 < self.fov < 180.0:
            raise ValueError(f"Camera fov must lie in (0, 180) degrees, got {self.fov}.")
        if not 0.0 < self.near < self.far:
            raise ValueError(f"Camera clip planes must satisfy 0 < near < far, got {self.near}, {self.far}.")

        forward = self.look_at - self.position
        distance = np.linalg.norm(forward)
        if distance == 0.0:
            raise ValueError("Camera position and look_at must differ.")
        forward /= distance

        right = np.cross(forward, np.array(CAMERA_UP))
        right_length = np.linalg.norm(right)
        if right_length < 1e-12:
            raise ValueError("Camera view direction is parallel to the up axis.")
        right /= right_length
        up = np.cross(right, forward)

        # Columns are the camera's local axes expressed in world space.
        self.world_matrix = np.identity(4)
        self.world_matrix[:3, 0] = right
        self.world_matrix[:3, 1] = up
        self.world_matrix[:3, 2] = -forward
        self.world_matrix[:3, 3] = self.position
        self.view_matrix = np.linalg.inv(self.world_matrix)

        self.set_aspect(aspect)

        logging.info(
            f"Camera at {np.round(self.position, 2).tolist()} looking at "
            f"{np.round(self.look_at, 2).tolist()} (fov {self.fov:.1f})."
        )

    def set_aspect(self, aspect: float) -> None:
        """Rebuilds the projection for a new viewport width/height ratio."""
        aspect = float(aspect)
        if not aspect > 0.0:
            raise ValueError(f"Camera aspect must be positive, got {aspect}.")
        self.aspect = aspect

        f = 1.0 / math.tan(math.radians(self.fov) / 2.0)
        near, far = self.near, self.far
        self.projection_matrix = np.array([
            [f / aspect, 0.0, 0.0, 0.0],
            [0.0, f, 0.0, 0.0],
            [0.0, 0.0, -(far + near) / (far - near), -2.0 * far * near / (far - near)],
            [0.0, 0.0, -1.0, 0.0],
        ])
        self.view_projection = self.projection_matrix @ self.view_matrix
        self.inverse_view_projection = np.linalg.inv(self.view_projection)

    def project(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Maps (N, 3) world points to NDC, with a mask of points in front of the camera."""
        points = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        homogeneous = np.empty((points.shape[0], 4))
        homogeneous[:, :3] = points
        homogeneous[:, 3] = 1.0

        clip = homogeneous @ self.view_projection.T
        w = clip[:, 3]
        in_front = w > 1e-9
        ndc = np.zeros((points.shape[0], 3))
        ndc[in_front] = clip[in_front, :3] / w[in_front, np.newaxis]
        return ndc, in_front

    def unproject(self, ndc: Sequence[float]) -> np.ndarray:
        """Maps one NDC point back to world space."""
        x, y, z = ndc
        world = self.inverse_view_projection @ np.array([x, y, z, 1.0])
        return world[:3] / world[3]

    def ndc_to_screen(self, ndc: np.ndarray, width: int, height: int) -> np.ndarray:
        """Maps NDC x/y to pixel coordinates with the origin at the top left."""
        screen = np.empty((ndc.shape[0], 2))
        screen[:, 0] = (ndc[:, 0] + 1.0) * 0.5 * width
        screen[:, 1] = (1.0 - ndc[:, 1]) * 0.5 * height
        return screen
