"""
Shared game utilities for the grid arcade.

This module provides the pieces every game engine builds on, so the three
engines only have to implement their own simulation step.

Components:
- Direction / state / input constants shared by all games
- Input event helpers (direction, action, release)
- Tick helpers used by the lifecycle clock
- BaseGame: lifecycle state machine with a timed stepping loop
"""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


# ---------- Directions ----------
class Direction:
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"

    ALL = (UP, DOWN, LEFT, RIGHT)


OPPOSITE = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
}

DIRECTION_OFFSETS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
}


def step_position(pos, direction):
    """Return ``pos`` moved one cell in ``direction`` (no wrapping)."""
    dx, dy = DIRECTION_OFFSETS[direction]
    return (pos[0] + dx, pos[1] + dy)


def is_opposite(a, b) -> bool:
    return OPPOSITE.get(a) == b


# ---------- Game state / type ----------
class GameState:
    READY = "READY"
    PLAYING = "PLAYING"
    PAUSED = "PAUSED"
    GAME_OVER = "GAME_OVER"


class GameType:
    SNAKE = "snake"
    TANKS = "tanks"
    BREAKOUT = "breakout"

    ALL = (SNAKE, TANKS, BREAKOUT)


# ---------- Input events ----------
INPUT_DIRECTION = "direction"
INPUT_ACTION = "action"
INPUT_RELEASE = "release"

ACTION_LAUNCH = "launch"
ACTION_SHOOT = "shoot"


def direction_input(direction):
    """Build a steer event: ``{"type": "direction", "direction": ...}``."""
    return {"type": INPUT_DIRECTION, "direction": direction}


def action_input(action):
    """Build an action event (``launch`` or ``shoot``)."""
    return {"type": INPUT_ACTION, "action": action}


def release_input():
    """Build a release event that stops continuous movement."""
    return {"type": INPUT_RELEASE}


def input_direction(event):
    """
    Return the direction carried by a steer event, or ``None``.

    Anything that is not a well-formed direction event (wrong type, missing
    or unknown direction, not a mapping at all) yields ``None`` so engines
    can ignore it.
    """
    if not isinstance(event, dict) or event.get("type") != INPUT_DIRECTION:
        return None
    direction = event.get("direction")
    return direction if direction in OPPOSITE else None


def input_action(event):
    """Return the action name carried by an action event, or ``None``."""
    if not isinstance(event, dict) or event.get("type") != INPUT_ACTION:
        return None
    return event.get("action")


def is_release(event) -> bool:
    return isinstance(event, dict) and event.get("type") == INPUT_RELEASE


# ---------- Timing ----------
def ticks_ms():
    """Return a monotonic time in milliseconds."""
    return time.perf_counter() * 1000.0


def ticks_diff(a, b):
    """Return the difference between two tick values (a - b)."""
    return a - b


def sleep_ms(ms):
    time.sleep(ms / 1000)


class BaseGame:
    """
    Base class for arcade games providing the shared lifecycle.

    The lifecycle is a small state machine::

        READY --start--> PLAYING --pause--> PAUSED --resume--> PLAYING
        PLAYING --end_game--> GAME_OVER --start--> PLAYING

    While the game is PLAYING the host calls :meth:`tick` once per frame.
    ``tick`` reads the lifecycle clock, works out how many milliseconds have
    passed since the previous tick and hands that to :meth:`update`. Engines
    never read a clock themselves; pausing simply stops ``tick`` from
    calling ``update`` and resuming re-baselines the clock so the first
    frame after a pause does not see a huge delta.

    Subclasses should override:
    - reset(): reinitialize entities and score for a new session
    - update(delta_time): advance the simulation by ``delta_time`` ms
    - handle_input(event): react to input events (default ignores them)
    """

    game_type = None

    def __init__(self, grid, clock=None):
        """
        Initialize base game state.

        Args:
            grid (grid.Grid): Board owned by this game for its lifetime.
            clock (callable, optional): Returns the current time in ms.
                Defaults to :func:`ticks_ms`.
        """
        self.grid = grid
        self.state = GameState.READY
        self.score = 0
        self.frame = 0
        self.frame_ms = 16  # ~60 FPS default
        self._clock = clock or ticks_ms
        self._last_update_time = 0
        self._stepping = False

        self._on_score_change = None
        self._on_game_over = None
        self._on_state_change = None

    # --- engine hooks ---
    def update(self, delta_time):
        """Advance the simulation by ``delta_time`` milliseconds."""
        raise NotImplementedError

    def reset(self):
        """Reinitialize all entities and the score."""
        raise NotImplementedError

    def handle_input(self, event):
        """React to an input event. The default ignores every event."""

    # --- lifecycle ---
    @property
    def is_running(self) -> bool:
        """True while the stepping loop is active."""
        return self._stepping

    def start(self):
        if self.state in (GameState.READY, GameState.GAME_OVER):
            self.reset()
        self._set_state(GameState.PLAYING)
        logger.info("%s started", self.game_type or type(self).__name__)
        self._last_update_time = self._clock()
        self._stepping = True
        self.tick()

    def pause(self):
        if self.state != GameState.PLAYING:
            return
        self._set_state(GameState.PAUSED)
        self._stepping = False

    def resume(self):
        if self.state != GameState.PAUSED:
            return
        self._set_state(GameState.PLAYING)
        self._last_update_time = self._clock()
        self._stepping = True
        self.tick()

    def toggle_pause(self):
        if self.state == GameState.PLAYING:
            self.pause()
        elif self.state == GameState.PAUSED:
            self.resume()

    def destroy(self):
        """Halt stepping unconditionally (used when leaving the game)."""
        self._stepping = False

    def tick(self):
        """
        Run one frame of the stepping loop.

        Returns:
            float: The delta handed to ``update``, or 0 when stepping is
            halted.
        """
        if not self._stepping:
            return 0
        now = self._clock()
        delta = max(0, ticks_diff(now, self._last_update_time))
        self._last_update_time = now
        self.frame += 1
        self.update(delta)
        return delta

    def main_loop(self, on_frame=None, max_frames=None):
        """
        Standard synchronous game loop.

        Ticks the game at ``frame_ms`` cadence until stepping halts (game
        over, pause, destroy) or ``max_frames`` frames have run.

        Args:
            on_frame (callable, optional): Called with the game after each
                tick; hosts use it to poll input and draw.
            max_frames (int, optional): Stop after this many frames.
        """
        frames = 0
        last_frame_time = self._clock() - self.frame_ms
        while self._stepping:
            if max_frames is not None and frames >= max_frames:
                return
            now = self._clock()
            if ticks_diff(now, last_frame_time) < self.frame_ms:
                sleep_ms(1)
                continue
            last_frame_time = now
            frames += 1
            self.tick()
            if on_frame is not None:
                on_frame(self)

    async def main_loop_async(self, on_frame=None, max_frames=None):
        """
        Async version of main loop for browser compatibility.

        This mirrors main_loop() but yields to the event loop between
        frames to keep the browser responsive.
        """
        frames = 0
        last_frame_time = self._clock() - self.frame_ms
        while self._stepping:
            if max_frames is not None and frames >= max_frames:
                return
            now = self._clock()
            if ticks_diff(now, last_frame_time) < self.frame_ms:
                await asyncio.sleep(0.001)
                continue
            last_frame_time = now
            frames += 1
            self.tick()
            if on_frame is not None:
                on_frame(self)
            await asyncio.sleep(0)

    # --- score / termination helpers for engines ---
    def update_score(self, new_score):
        self.score = new_score
        if self._on_score_change is not None:
            self._on_score_change(self.score)

    def end_game(self):
        """End the session: halt stepping and notify observers."""
        self._stepping = False
        self._set_state(GameState.GAME_OVER)
        logger.info(
            "%s over with score %d", self.game_type or type(self).__name__, self.score
        )
        if self._on_game_over is not None:
            self._on_game_over(self.score)

    def _set_state(self, state):
        self.state = state
        if self._on_state_change is not None:
            self._on_state_change(state)

    # --- observers ---
    def set_on_score_change(self, callback):
        self._on_score_change = callback

    def set_on_game_over(self, callback):
        self._on_game_over = callback

    def set_on_state_change(self, callback):
        self._on_state_change = callback
