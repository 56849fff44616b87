# events.py
"""
Bridges host window events to the simulation's input state.

Two host signals drive the swirl besides the clock: pointer movement,
which moves the pointer target along which particles are repelled, and
window visibility, which freezes the simulation while the window is
hidden or minimized. Listeners are registered for the lifetime of an
`attached` block and removed when it exits.
"""
import logging
import pygame
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Tuple
from constants import POINTER_NDC_DEPTH

# Forward reference for type hinting to avoid circular import
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from camera import PerspectiveCamera
    from simulation import Simulation

# --- Data Contracts ---
#
# class HostSignals:
#   - connect(event_type: int, handler: Callable[[pygame.event.Event], None])
#   - disconnect(event_type: int, handler) -> None  (no-op if absent)
#   - dispatch(event: pygame.event.Event) -> None
#     - Side Effects: calls every handler connected to event.type, in
#       registration order.
#   - attached(simulation, camera, viewport) -> context manager
#     - Side Effects: pointer and visibility listeners are connected on
#       entry and disconnected on exit, also when the block raises.

HIDDEN_EVENTS = (pygame.WINDOWHIDDEN, pygame.WINDOWMINIMIZED)
SHOWN_EVENTS = (pygame.WINDOWSHOWN, pygame.WINDOWRESTORED, pygame.WINDOWMAXIMIZED)

Handler = Callable[[pygame.event.Event], None]


def pointer_to_ndc(pos: Tuple[float, float], viewport: Tuple[int, int], depth: float = POINTER_NDC_DEPTH) -> Tuple[float, float, float]:
    """Converts a pixel position inside the viewport to normalized device coordinates."""
    width, height = viewport
    x = (pos[0] / width) * 2.0 - 1.0
    y = -(pos[1] / height) * 2.0 + 1.0
    return x, y, depth


class HostSignals:
    """
    A small listener registry keyed by pygame event type.
    """
    def __init__(self):
        self._listeners: Dict[int, List[Handler]] = {}

    def connect(self, event_type: int, handler: Handler) -> None:
        """Registers a handler for one pygame event type."""
        self._listeners.setdefault(event_type, []).append(handler)

    def disconnect(self, event_type: int, handler: Handler) -> None:
        """Removes a handler; does nothing if it is not connected."""
        handlers = self._listeners.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
        if not handlers:
            self._listeners.pop(event_type, None)

    def listener_count(self) -> int:
        """Total number of connected handlers across all event types."""
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, event: pygame.event.Event) -> None:
        """Calls every handler connected to the event's type, in registration order."""
        for handler in list(self._listeners.get(event.type, ())):
            handler(event)

    @contextmanager
    def attached(
        self,
        simulation: "Simulation",
        camera: "PerspectiveCamera",
        viewport: Tuple[int, int],
    ) -> Iterator[None]:
        """
        Wires pointer movement and window visibility into `simulation` for
        the duration of the block.
        """
        def on_pointer_move(event: pygame.event.Event) -> None:
            # Pointer input is ignored while the window is hidden.
            if not simulation.visible:
                return
            target = camera.unproject(pointer_to_ndc(event.pos, viewport))
            simulation.set_pointer_target(target)

        def on_hidden(event: pygame.event.Event) -> None:
            simulation.set_visible(False)

        def on_shown(event: pygame.event.Event) -> None:
            simulation.set_visible(True)

        bindings = [(pygame.MOUSEMOTION, on_pointer_move)]
        bindings += [(event_type, on_hidden) for event_type in HIDDEN_EVENTS]
        bindings += [(event_type, on_shown) for event_type in SHOWN_EVENTS]

        for event_type, handler in bindings:
            self.connect(event_type, handler)
        logging.debug(f"Attached {len(bindings)} host listeners.")
        try:
            yield
        finally:
            for event_type, handler in bindings:
                self.disconnect(event_type, handler)
            logging.debug("Detached host listeners.")
