"""
Snake on a contribution-graph style board.

The snake moves one cell per speed interval, wraps around every edge and
eats food placed on PLAYABLE cells. Each food makes the snake one segment
longer and a little faster. Running into its own body ends the game.
"""

import logging
import random

from game_utils import (
    BaseGame,
    Direction,
    GameType,
    DIRECTION_OFFSETS,
    input_direction,
    is_opposite,
)
from grid import Cell, CellType, Grid, GridConfig

logger = logging.getLogger(__name__)

# ---------- Board ----------
SNAKE_GRID_WIDTH = 52
SNAKE_GRID_HEIGHT = 7
SNAKE_CELL_SIZE = 16
SNAKE_CELL_GAP = 3

# ---------- Tuning ----------
INITIAL_SPEED = 100  # ms per cell
MIN_SPEED = 40
SPEED_INCREMENT = 3

SCORE_PER_FOOD = 10
INITIAL_FOOD_COUNT = 5
MAX_FOOD_ON_BOARD = 8

INITIAL_SNAKE_LENGTH = 3
MAX_DIRECTION_QUEUE_SIZE = 2


def generate_snake_grid(rng=None):
    """
    Build the snake board.

    Every cell gets a random contribution level; level 0 cells are EMPTY
    (no food ever spawns there), the rest are PLAYABLE.

    Args:
        rng (random.Random, optional): Source of randomness.

    Returns:
        grid.Grid: A fresh 52x7 board.
    """
    rng = rng or random.Random()
    config = GridConfig(SNAKE_GRID_WIDTH, SNAKE_GRID_HEIGHT, SNAKE_CELL_SIZE, SNAKE_CELL_GAP)
    cells = []
    for y in range(config.height):
        row = []
        for x in range(config.width):
            level = _contribution_level(rng)
            cell_type = CellType.PLAYABLE if level > 0 else CellType.EMPTY
            row.append(Cell((x, y), cell_type, level))
        cells.append(row)
    return Grid(config, cells)


def _contribution_level(rng):
    r = rng.random()
    if r < 0.1:
        return 0
    if r < 0.25:
        return 1
    if r < 0.5:
        return 2
    if r < 0.75:
        return 3
    return 4


class SnakeEntity:
    """
    The snake body and its steering buffer.

    ``direction`` is the heading used by the last move, ``next_direction``
    is the heading the next move will use and ``direction_queue`` holds up
    to two further turns so quick double-taps are honored in order.
    """

    def __init__(self, grid_width, grid_height):
        self.grid_width = grid_width
        self.grid_height = grid_height
        self.reset()

    def reset(self):
        self.body = self._initial_body()
        self.direction = Direction.RIGHT
        self.next_direction = Direction.RIGHT
        self.direction_queue = []
        self.growing = False

    def _initial_body(self):
        start_x = self.grid_width // 4
        start_y = self.grid_height // 2
        return [
            ((start_x - i) % self.grid_width, start_y)
            for i in range(INITIAL_SNAKE_LENGTH)
        ]

    @property
    def head(self):
        return self.body[0]

    def get_body(self):
        return list(self.body)

    def set_direction(self, new_direction):
        """
        Queue a turn.

        The turn is checked against whichever heading is about to apply
        (the queue tail, or the pending direction when the queue is empty)
        and dropped if it would reverse the snake onto itself. With no turn
        pending it replaces the pending direction and takes effect on the
        next move. A second turn before that move does not replace the
        pending one: it waits in the queue behind it, so up-then-left is
        played in order and can never reverse the snake. Turns are dropped
        once the queue is full.
        """
        if self.direction_queue:
            check = self.direction_queue[-1]
        else:
            check = self.next_direction
        if is_opposite(check, new_direction) or check == new_direction:
            return

        if not self.direction_queue and self.next_direction == self.direction:
            self.next_direction = new_direction
        elif len(self.direction_queue) < MAX_DIRECTION_QUEUE_SIZE:
            self.direction_queue.append(new_direction)

    def move(self):
        self.direction = self.next_direction
        if self.direction_queue:
            self.next_direction = self.direction_queue.pop(0)

        self.body.insert(0, self._new_head(self.head))
        if self.growing:
            self.growing = False
        else:
            self.body.pop()

    def _new_head(self, head):
        dx, dy = DIRECTION_OFFSETS[self.direction]
        x = _wrap(head[0] + dx, self.grid_width)
        y = _wrap(head[1] + dy, self.grid_height)
        return (x, y)

    def grow(self):
        self.growing = True

    def check_self_collision(self) -> bool:
        head = self.body[0]
        return head in self.body[1:]


def _wrap(value, limit):
    if value < 0:
        return limit - 1
    if value >= limit:
        return 0
    return value


class SnakeGame(BaseGame):
    """
    Snake engine.

    Food spawns uniformly at random on PLAYABLE cells not covered by the
    snake or other food. Speed is the number of milliseconds per step and
    shrinks by ``SPEED_INCREMENT`` per food, never below ``MIN_SPEED``.
    """

    game_type = GameType.SNAKE

    def __init__(self, grid, speed_multiplier=1, rng=None, clock=None):
        super().__init__(grid, clock=clock)
        self.speed_multiplier = speed_multiplier
        self.rng = rng or random.Random()
        self.snake = SnakeEntity(grid.width, grid.height)
        self.available_positions = [
            cell.position
            for cell in grid.get_available_cells(lambda c: c.type == CellType.PLAYABLE)
        ]
        self.food_squares = set()
        self.speed = INITIAL_SPEED * speed_multiplier
        self.accumulated_time = 0
        self.food_eaten = 0
        self._on_speed_change = None
        self._spawn_initial_food()

    def _spawn_initial_food(self):
        for _ in range(INITIAL_FOOD_COUNT):
            self.spawn_food()

    def spawn_food(self):
        """Place one food item; silently does nothing when the board is full."""
        if not self.available_positions:
            return
        occupied = set(self.snake.body)
        candidates = [
            pos
            for pos in self.available_positions
            if pos not in occupied and pos not in self.food_squares
        ]
        if not candidates:
            logger.debug("no free cell left for food")
            return
        self.food_squares.add(self.rng.choice(candidates))

    def update(self, delta_time):
        self.accumulated_time += delta_time
        if self.accumulated_time < self.speed:
            return
        self.accumulated_time -= self.speed

        self.snake.move()
        if self.snake.check_self_collision():
            self.end_game()
            return
        self._check_food_collision()

    def _check_food_collision(self):
        head = self.snake.head
        if head not in self.food_squares:
            return
        self.food_squares.discard(head)
        self.snake.grow()
        self.food_eaten += 1
        self.update_score(self.score + SCORE_PER_FOOD)
        self._increase_speed()
        if len(self.food_squares) < MAX_FOOD_ON_BOARD:
            self.spawn_food()

    def _increase_speed(self):
        self.speed = max(MIN_SPEED, self.speed - SPEED_INCREMENT)
        if self._on_speed_change is not None:
            self._on_speed_change(self.speed)

    def reset(self):
        self.snake.reset()
        self.food_squares.clear()
        self._spawn_initial_food()
        self.food_eaten = 0
        self.update_score(0)
        self.speed = INITIAL_SPEED * self.speed_multiplier
        self.accumulated_time = 0
        if self._on_speed_change is not None:
            self._on_speed_change(self.speed)

    def handle_input(self, event):
        direction = input_direction(event)
        if direction is not None:
            self.snake.set_direction(direction)

    def set_on_speed_change(self, callback):
        self._on_speed_change = callback

    def snapshot(self):
        """Return the renderer-facing view of the board."""
        return {
            "body": self.snake.get_body(),
            "food": set(self.food_squares),
            "speed": self.speed,
        }
