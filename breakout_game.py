"""
Breakout: a paddle, one ball and rows of multi-hit blocks.

The ball keeps a continuous position and a unit-length velocity. It moves
one velocity step per ``BALL_SPEED`` milliseconds, and collisions are
resolved on the rounded cell it lands in after every step: paddle first,
then blocks. Blocks need as many hits as their level; the grid cell under
a block mirrors the hits it has left and turns PLAYABLE when it breaks.
"""

import logging
import math
import random

from game_utils import (
    ACTION_LAUNCH,
    BaseGame,
    Direction,
    GameType,
    input_action,
    input_direction,
    is_release,
)
from grid import Cell, CellType, Grid, GridConfig

logger = logging.getLogger(__name__)

# ---------- Board ----------
BREAKOUT_GRID_WIDTH = 52
BREAKOUT_GRID_HEIGHT = 12
BREAKOUT_CELL_SIZE = 16
BREAKOUT_CELL_GAP = 3

BLOCK_ROWS = 4
BLOCK_START_ROW = 1

# ---------- Paddle / ball ----------
PADDLE_WIDTH = 5
PADDLE_MOVE_SPEED = 80  # ms per cell

BALL_SPEED = 100  # ms per velocity step
BALL_INITIAL_ANGLE = -math.pi / 4
MAX_BOUNCE_ANGLE = math.pi / 3

INITIAL_LIVES = 3

SCORE_PER_LEVEL = {
    1: 10,
    2: 20,
    3: 40,
    4: 80,
}
DEFAULT_BLOCK_SCORE = 10


def _round_half_up(value):
    return int(math.floor(value + 0.5))


# ---------- Entities ----------
class Paddle:
    """Horizontal paddle fixed to the row two above the bottom edge."""

    def __init__(self, grid_width, grid_height, width=PADDLE_WIDTH):
        self.grid_width = grid_width
        self.width = width
        self.y = grid_height - 2
        self.x = self._center_x()
        self.move_accumulator = 0
        self.move_direction = None

    def _center_x(self):
        return (self.grid_width - self.width) // 2

    def set_move_direction(self, direction):
        self.move_direction = direction

    def update(self, delta_time):
        if self.move_direction is None:
            return
        self.move_accumulator += delta_time
        while self.move_accumulator >= PADDLE_MOVE_SPEED:
            self.move_accumulator -= PADDLE_MOVE_SPEED
            if self.move_direction == Direction.LEFT:
                self.x = max(1, self.x - 1)
            elif self.move_direction == Direction.RIGHT:
                self.x = min(self.grid_width - self.width - 1, self.x + 1)

    def contains_x(self, x) -> bool:
        return self.x <= x < self.x + self.width

    def relative_hit_position(self, x) -> float:
        """Return the hit offset from the paddle center, -1 (left) .. 1 (right)."""
        half = self.width / 2
        return (x - (self.x + half)) / half

    def reset(self):
        self.x = self._center_x()
        self.move_accumulator = 0
        self.move_direction = None


class Ball:
    """
    Ball with a continuous position and unit velocity.

    Walls reflect the ball by clamping it one cell inside the playfield and
    flipping the matching velocity component. Crossing the bottom edge
    loses the ball.
    """

    def __init__(self, x, y, bounds_width, bounds_height, speed_multiplier=1):
        self.x = float(x)
        self.y = float(y)
        self.bounds_width = bounds_width
        self.bounds_height = bounds_height
        self.speed = BALL_SPEED * speed_multiplier
        self.velocity_x = math.cos(BALL_INITIAL_ANGLE)
        self.velocity_y = math.sin(BALL_INITIAL_ANGLE)
        self.launched = False
        self.move_accumulator = 0

    def get_position(self):
        """Rounded cell the ball currently occupies."""
        return (_round_half_up(self.x), _round_half_up(self.y))

    def get_raw_position(self):
        return (self.x, self.y)

    def launch(self):
        self.launched = True

    def set_position(self, x, y):
        self.x = float(x)
        self.y = float(y)

    def set_velocity(self, vx, vy):
        magnitude = math.hypot(vx, vy)
        if magnitude == 0:
            return
        self.velocity_x = vx / magnitude
        self.velocity_y = vy / magnitude

    def accumulate(self, delta_time):
        if self.launched:
            self.move_accumulator += delta_time

    def consume_step(self) -> bool:
        """Take one step's worth of accumulated time, if available."""
        if self.move_accumulator < self.speed:
            return False
        self.move_accumulator -= self.speed
        return True

    def step(self) -> bool:
        """
        Move one velocity step and reflect off the walls.

        Returns:
            bool: False once the ball has fallen past the bottom edge.
        """
        self.x += self.velocity_x
        self.y += self.velocity_y

        if self.x <= 0:
            self.x = 1.0
            self.velocity_x = abs(self.velocity_x)
        elif self.x >= self.bounds_width - 1:
            self.x = float(self.bounds_width - 2)
            self.velocity_x = -abs(self.velocity_x)

        if self.y <= 0:
            self.y = 1.0
            self.velocity_y = abs(self.velocity_y)

        return self.y < self.bounds_height

    def bounce_vertical(self):
        self.velocity_y = -self.velocity_y

    def bounce_horizontal(self):
        self.velocity_x = -self.velocity_x

    def bounce_from_paddle(self, relative_hit_position):
        angle = relative_hit_position * MAX_BOUNCE_ANGLE
        self.set_velocity(math.sin(angle), -abs(math.cos(angle)))


class Block:
    """A breakable block; ``level`` is both its hit count and its score tier."""

    def __init__(self, position, level):
        self.position = (int(position[0]), int(position[1]))
        self.max_level = level
        self.hits_remaining = level
        self.destroyed = False

    @property
    def level(self):
        return self.hits_remaining

    def hit(self) -> int:
        """
        Register one hit.

        Returns:
            int: Points awarded; non-zero only on the destroying hit.
        """
        if self.destroyed:
            return 0
        self.hits_remaining = max(0, self.hits_remaining - 1)
        if self.hits_remaining == 0:
            self.destroyed = True
            return SCORE_PER_LEVEL.get(self.max_level, DEFAULT_BLOCK_SCORE)
        return 0

    def contains_position(self, x, y) -> bool:
        # a unit-sized ball overlaps the block cell
        return abs(x - self.position[0]) < 1 and abs(y - self.position[1]) < 1


# ---------- Board generation ----------
def generate_breakout_grid(rng=None):
    """
    Build the breakout board and its blocks.

    Side columns are indestructible walls (OBSTACLE, level 4). Rows
    ``BLOCK_START_ROW`` .. ``BLOCK_START_ROW + BLOCK_ROWS - 1`` hold blocks,
    strongest at the top, with a few random gaps.

    Returns:
        tuple[grid.Grid, list[Block]]
    """
    rng = rng or random.Random()
    config = GridConfig(
        BREAKOUT_GRID_WIDTH, BREAKOUT_GRID_HEIGHT, BREAKOUT_CELL_SIZE, BREAKOUT_CELL_GAP
    )
    cells = []
    blocks = []
    for y in range(config.height):
        row = []
        for x in range(config.width):
            row.append(_create_cell((x, y), config, blocks, rng))
        cells.append(row)
    return Grid(config, cells), blocks


def _create_cell(pos, config, blocks, rng):
    x, y = pos
    if x == 0 or x == config.width - 1:
        return Cell(pos, CellType.OBSTACLE, 4)

    if BLOCK_START_ROW <= y < BLOCK_START_ROW + BLOCK_ROWS:
        level = max(1, BLOCK_ROWS - (y - BLOCK_START_ROW))
        if _should_place_block(pos, config.width, rng):
            blocks.append(Block(pos, level))
            return Cell(pos, CellType.OBSTACLE, level)

    return Cell(pos, CellType.PLAYABLE, 0)


def _should_place_block(pos, width, rng):
    x, y = pos
    if x <= 1 or x >= width - 2:
        return False
    if (x + y) % 7 == 0 and rng.random() < 0.3:
        return False
    return rng.random() < 0.85


# ---------- Engine ----------
class BreakoutGame(BaseGame):
    """Breakout engine: keeps the ball in play until the blocks or lives run out."""

    game_type = GameType.BREAKOUT

    def __init__(self, grid, blocks, speed_multiplier=1, clock=None):
        super().__init__(grid, clock=clock)
        self.speed_multiplier = speed_multiplier
        self.paddle = Paddle(grid.width, grid.height)
        self.ball = self._create_ball()
        self.blocks = list(blocks)
        self.lives = INITIAL_LIVES
        self.blocks_destroyed = 0
        self.move_direction = None

    def _create_ball(self):
        return Ball(
            self.paddle.x + self.paddle.width // 2,
            self.paddle.y - 1,
            self.grid.width,
            self.grid.height,
            self.speed_multiplier,
        )

    def update(self, delta_time):
        self.paddle.set_move_direction(self.move_direction)
        self.paddle.update(delta_time)

        if not self.ball.launched:
            self.ball.set_position(
                self.paddle.x + self.paddle.width // 2, self.paddle.y - 1
            )
            return

        self.ball.accumulate(delta_time)
        while self.ball.consume_step():
            if not self.ball.step():
                self._lose_life()
                return
            self._check_paddle_collision()
            self._check_block_collisions()
            if all(block.destroyed for block in self.blocks):
                self.end_game()
                return

    def _check_paddle_collision(self):
        bx, by = self.ball.get_position()
        if by not in (self.paddle.y - 1, self.paddle.y):
            return
        if self.paddle.contains_x(bx):
            self.ball.bounce_from_paddle(self.paddle.relative_hit_position(bx))

    def _find_block_hit(self):
        """
        Return ``(block, exact)`` for the block the ball hits this step.

        An exact match on the ball's rounded cell always wins over a raw
        sub-cell overlap; within a pass the first block in layout order wins.
        A raw overlap only counts while the ball is still heading into the
        block, so one contact never registers twice.
        """
        live = [block for block in self.blocks if not block.destroyed]
        ball_pos = self.ball.get_position()
        for block in live:
            if block.position == ball_pos:
                return block, True
        rx, ry = self.ball.get_raw_position()
        for block in live:
            if block.contains_position(rx, ry) and self._approaching(block):
                return block, False
        return None, False

    def _approaching(self, block):
        bx, by = block.position
        rx, ry = self.ball.get_raw_position()
        return (bx - rx) * self.ball.velocity_x + (by - ry) * self.ball.velocity_y > 0

    def _check_block_collisions(self):
        block, exact = self._find_block_hit()
        if block is None:
            return

        points = block.hit()
        if points > 0:
            self.blocks_destroyed += 1
            self.update_score(self.score + points)
            self.grid.update_cell_type(block.position, CellType.PLAYABLE)
            self.grid.update_cell_level(block.position, 0)
        else:
            self.grid.update_cell_level(block.position, block.level)

        if exact:
            self.ball.bounce_vertical()
            return

        rx, ry = self.ball.get_raw_position()
        dx = abs(rx - block.position[0])
        dy = abs(ry - block.position[1])
        if dx > dy:
            self.ball.bounce_horizontal()
        else:
            self.ball.bounce_vertical()

    def _lose_life(self):
        self.lives -= 1
        logger.debug("ball lost, %d lives left", self.lives)
        if self.lives <= 0:
            self.end_game()
            return
        self.paddle.reset()
        self.ball = self._create_ball()

    def reset(self):
        self.paddle.reset()
        self.ball = self._create_ball()
        self.lives = INITIAL_LIVES
        self.blocks_destroyed = 0
        self.move_direction = None
        self.update_score(0)

        for block in self.blocks:
            self.grid.update_cell_type(block.position, CellType.OBSTACLE)
            self.grid.update_cell_level(block.position, block.max_level)
        self.blocks = [Block(block.position, block.max_level) for block in self.blocks]

    def handle_input(self, event):
        direction = input_direction(event)
        if direction is not None:
            if direction in (Direction.LEFT, Direction.RIGHT):
                self.move_direction = direction
        elif input_action(event) == ACTION_LAUNCH:
            if not self.ball.launched:
                self.ball.launch()
        elif is_release(event):
            self.move_direction = None

    def snapshot(self):
        return {
            "paddle": (self.paddle.x, self.paddle.y, self.paddle.width),
            "ball": self.ball.get_position(),
            "ball_launched": self.ball.launched,
            "blocks": [
                (block.position, block.level) for block in self.blocks if not block.destroyed
            ],
            "lives": self.lives,
        }
