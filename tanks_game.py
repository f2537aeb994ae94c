"""
Tanks arena: one player tank against waves of chasing enemy tanks.

Everything moves on the grid one cell at a time. Walls are OBSTACLE cells
whose level is their remaining durability; bullets chip them away. The
engine keeps its own game clock, advanced only by the elapsed time handed
to ``update``, so shoot cooldowns, the AI cadence and the spawn timer all
freeze while the game is paused.
"""

import logging
import math
import random

from game_utils import (
    ACTION_SHOOT,
    BaseGame,
    Direction,
    GameType,
    input_action,
    input_direction,
    is_release,
    step_position,
)
from grid import Cell, CellType, Grid, GridConfig

logger = logging.getLogger(__name__)

# Grid configuration
TANKS_GRID_WIDTH = 40
TANKS_GRID_HEIGHT = 20
TANKS_CELL_SIZE = 16
TANKS_CELL_GAP = 2

# Tank properties
PLAYER_TANK_HP = 3
ENEMY_TANK_HP = 1
TANK_MOVE_SPEED = 150  # ms per cell
ENEMY_SPEED_FACTOR = 1.5  # enemies move this much faster than the player
TANK_SHOOT_COOLDOWN = 500  # ms between shots

# Bullet properties
BULLET_SPEED = 80  # ms per cell
BULLET_DAMAGE = 1

# Game settings
INITIAL_ENEMY_COUNT = 3
MAX_ENEMIES_ON_FIELD = 5
ENEMY_SPAWN_INTERVAL = 5000  # ms
ENEMY_AI_UPDATE_INTERVAL = 300  # ms
ENEMY_RANDOM_TURN_CHANCE = 0.2
SPAWN_CLEARANCE = 2

SCORE_PER_ENEMY = 100


# ---------- Entities ----------
class Tank:
    """A one-cell tank. ``move_speed`` is milliseconds per cell."""

    def __init__(self, position, direction, hp, is_player, move_speed):
        self.position = tuple(position)
        self.direction = direction
        self.hp = hp
        self.max_hp = hp
        self.is_player = is_player
        self.move_speed = move_speed
        self.last_shoot_time = None
        self.move_accumulator = 0

    def is_alive(self) -> bool:
        return self.hp > 0

    def can_move(self, delta_time) -> bool:
        """
        Charge the move accumulator and consume one move if it is full.

        At most one cell's worth of time is carried over so a long frame
        does not turn into a burst of moves afterwards.
        """
        self.move_accumulator += delta_time
        if self.move_accumulator < self.move_speed:
            return False
        # one cell per update; collision checks assume no cell is skipped
        self.move_accumulator = min(self.move_accumulator - self.move_speed, self.move_speed)
        return True

    def next_position(self):
        return step_position(self.position, self.direction)

    def move(self):
        self.position = self.next_position()

    def can_shoot(self, now) -> bool:
        if self.last_shoot_time is None:
            return True
        return now - self.last_shoot_time >= TANK_SHOOT_COOLDOWN

    def shoot(self, now):
        """Record the shot and return the cell the bullet starts in."""
        self.last_shoot_time = now
        return self.next_position()

    def take_damage(self, damage):
        self.hp = max(0, min(self.max_hp, self.hp - damage))

    def reset(self, position):
        self.position = tuple(position)
        self.direction = Direction.UP
        self.hp = self.max_hp
        self.last_shoot_time = None
        self.move_accumulator = 0


class Bullet:
    """A bullet flying in a fixed direction, one cell per ``BULLET_SPEED`` ms."""

    def __init__(self, position, direction, is_player_bullet):
        self.position = tuple(position)
        self.direction = direction
        self.is_player_bullet = is_player_bullet
        self.damage = BULLET_DAMAGE
        self.active = True
        self.move_accumulator = 0

    def deactivate(self):
        self.active = False

    def update(self, delta_time) -> bool:
        """Advance at most one cell; returns True if the bullet moved."""
        if not self.active:
            return False
        self.move_accumulator += delta_time
        if self.move_accumulator < BULLET_SPEED:
            return False
        # one cell per update so a bullet never tunnels past a tank or wall
        self.move_accumulator = min(self.move_accumulator - BULLET_SPEED, BULLET_SPEED)
        self.position = step_position(self.position, self.direction)
        return True


# ---------- Board generation ----------
def generate_tanks_grid(width=TANKS_GRID_WIDTH, height=TANKS_GRID_HEIGHT):
    """
    Build the arena.

    The border is an indestructible-looking level 4 wall, spawn corners
    and the top-center spawn stay clear, and the rest gets clustered
    obstacles from a fixed pattern so every session plays the same map.
    """
    config = GridConfig(width, height, TANKS_CELL_SIZE, TANKS_CELL_GAP)
    cells = [
        [_create_cell((x, y), config) for x in range(config.width)]
        for y in range(config.height)
    ]
    return Grid(config, cells)


def _create_cell(pos, config):
    if _is_border(pos, config):
        return Cell(pos, CellType.OBSTACLE, 4)
    if _is_spawn_zone(pos, config):
        return Cell(pos, CellType.PLAYABLE, 0)
    if _should_place_obstacle(pos):
        return Cell(pos, CellType.OBSTACLE, _obstacle_level(pos))
    return Cell(pos, CellType.PLAYABLE, _background_level(pos))


def _is_border(pos, config):
    x, y = pos
    return x == 0 or y == 0 or x == config.width - 1 or y == config.height - 1


def _is_spawn_zone(pos, config, spawn_size=3):
    x, y = pos
    if x <= spawn_size and y >= config.height - spawn_size - 1:
        return True
    if x <= spawn_size and y <= spawn_size:
        return True
    if x >= config.width - spawn_size - 1 and y <= spawn_size:
        return True
    return config.width / 2 - 2 <= x <= config.width / 2 + 2 and y <= spawn_size


def _should_place_obstacle(pos, spacing=3):
    x, y = pos
    cluster_seed = ((x // spacing) * 17 + (y // spacing) * 31) % 100
    if cluster_seed < 40:
        local_seed = ((x % spacing) * 3 + (y % spacing) * 5 + cluster_seed) % 10
        return local_seed < 6
    return (x * 11 + y * 23) % 100 < 15


def _obstacle_level(pos):
    pattern = (pos[0] * 7 + pos[1] * 13) % 10
    if pattern < 2:
        return 4
    if pattern < 5:
        return 3
    if pattern < 8:
        return 2
    return 1


def _background_level(pos):
    noise = math.sin(pos[0] * 0.5) * math.cos(pos[1] * 0.7)
    return 1 if noise > 0.7 else 0


def get_player_spawn_position(width=TANKS_GRID_WIDTH, height=TANKS_GRID_HEIGHT):
    return (2, height - 3)


def get_enemy_spawn_positions(width=TANKS_GRID_WIDTH, height=TANKS_GRID_HEIGHT):
    return [(2, 2), (width - 3, 2), (width // 2, 2)]


# ---------- Engine ----------
class TanksGame(BaseGame):
    """
    Tanks engine.

    Per update: the player moves/shoots, bullets advance, the enemy AI
    runs when its interval has passed, enemies spawn, then collisions are
    resolved in a fixed order (bullet vs bullet, bullet vs wall, player
    bullets vs enemies, enemy bullets vs player).
    """

    game_type = GameType.TANKS

    def __init__(self, grid, speed_multiplier=1, rng=None, clock=None):
        super().__init__(grid, clock=clock)
        self.speed_multiplier = speed_multiplier
        self.rng = rng or random.Random()

        self.player = Tank(
            get_player_spawn_position(grid.width, grid.height),
            Direction.UP,
            PLAYER_TANK_HP,
            True,
            TANK_MOVE_SPEED * speed_multiplier,
        )
        self.enemy_spawn_positions = get_enemy_spawn_positions(grid.width, grid.height)
        self.enemies = []
        self.bullets = []
        self.now = 0
        self.last_enemy_spawn_time = 0
        self.last_ai_update_time = 0
        self.initial_wave_spawned = False
        self.enemies_destroyed = 0
        self.shots_fired = 0
        self.want_to_shoot = False
        self.want_to_move = False
        self.move_direction = Direction.UP

    def update(self, delta_time):
        self.now += delta_time
        self._update_player(delta_time)
        self._update_bullets(delta_time)
        self._update_enemies()
        self._spawn_enemies()
        self._check_collisions()

        if not self.player.is_alive():
            self.end_game()

    # --- player ---
    def _update_player(self, delta_time):
        if not self.player.is_alive():
            return

        if self.want_to_move and self.player.can_move(delta_time):
            self.player.direction = self.move_direction
            if self._is_valid_move(self.player.next_position(), self.player):
                self.player.move()

        if self.want_to_shoot and self.player.can_shoot(self.now):
            self._shoot_bullet(self.player)
            self.want_to_shoot = False

    # --- bullets ---
    def _update_bullets(self, delta_time):
        for bullet in self.bullets:
            if not bullet.active:
                continue
            bullet.update(delta_time)
            if not self.grid.is_valid_position(bullet.position):
                bullet.deactivate()
        self.bullets = [bullet for bullet in self.bullets if bullet.active]

    def _shoot_bullet(self, tank):
        start = tank.shoot(self.now)
        self.bullets.append(Bullet(start, tank.direction, tank.is_player))
        if tank.is_player:
            self.shots_fired += 1

    # --- enemies ---
    def _update_enemies(self):
        elapsed = self.now - self.last_ai_update_time
        if elapsed < ENEMY_AI_UPDATE_INTERVAL:
            return
        self.last_ai_update_time = self.now

        for enemy in self.enemies:
            if enemy.is_alive():
                self._update_enemy_ai(enemy, elapsed)
        self.enemies = [enemy for enemy in self.enemies if enemy.is_alive()]

    def _update_enemy_ai(self, enemy, elapsed):
        px, py = self.player.position
        ex, ey = enemy.position
        dx = px - ex
        dy = py - ey

        # chase along the longer axis, ties go vertical
        if abs(dx) > abs(dy):
            heading = Direction.RIGHT if dx > 0 else Direction.LEFT
        else:
            heading = Direction.DOWN if dy > 0 else Direction.UP

        if self.rng.random() < ENEMY_RANDOM_TURN_CHANCE:
            heading = self.rng.choice(Direction.ALL)

        enemy.direction = heading
        if enemy.can_move(elapsed) and self._is_valid_move(enemy.next_position(), enemy):
            enemy.move()

        ex, ey = enemy.position
        if (ex == px or ey == py) and enemy.can_shoot(self.now):
            if ex == px:
                enemy.direction = Direction.UP if py < ey else Direction.DOWN
            else:
                enemy.direction = Direction.LEFT if px < ex else Direction.RIGHT
            self._shoot_bullet(enemy)

    def _spawn_enemies(self):
        if len(self.enemies) >= MAX_ENEMIES_ON_FIELD:
            return

        if not self.initial_wave_spawned:
            for i in range(INITIAL_ENEMY_COUNT):
                self._spawn_enemy(i % len(self.enemy_spawn_positions))
            self.initial_wave_spawned = True
            self.last_enemy_spawn_time = self.now
            return

        if self.now - self.last_enemy_spawn_time < ENEMY_SPAWN_INTERVAL:
            return
        self._spawn_enemy(self.rng.randrange(len(self.enemy_spawn_positions)))
        self.last_enemy_spawn_time = self.now

    def _spawn_enemy(self, spawn_index):
        spawn = self.enemy_spawn_positions[spawn_index]
        if len(self.enemies) >= MAX_ENEMIES_ON_FIELD or not self._is_position_clear(spawn):
            logger.debug("enemy spawn at %s skipped", spawn)
            return
        self.enemies.append(
            Tank(
                spawn,
                Direction.DOWN,
                ENEMY_TANK_HP,
                False,
                TANK_MOVE_SPEED / ENEMY_SPEED_FACTOR * self.speed_multiplier,
            )
        )

    # --- collisions ---
    def _check_collisions(self):
        self._check_bullet_vs_bullet()

        for bullet in self.bullets:
            if not bullet.active:
                continue

            cell = self.grid.get_cell_at(bullet.position)
            if cell is not None and cell.type == CellType.OBSTACLE:
                bullet.deactivate()
                self._damage_wall(bullet.position, cell.level)
                continue

            if bullet.is_player_bullet:
                self._hit_enemy(bullet)
            elif bullet.position == self.player.position:
                self.player.take_damage(bullet.damage)
                bullet.deactivate()

        self.bullets = [bullet for bullet in self.bullets if bullet.active]

    def _check_bullet_vs_bullet(self):
        for i, first in enumerate(self.bullets):
            if not first.active:
                continue
            for second in self.bullets[i + 1:]:
                if not second.active or first.is_player_bullet == second.is_player_bullet:
                    continue
                if first.position == second.position:
                    first.deactivate()
                    second.deactivate()

    def _damage_wall(self, pos, level):
        new_level = level - 1
        if new_level <= 0:
            self.grid.update_cell_type(pos, CellType.PLAYABLE)
            self.grid.update_cell_level(pos, 0)
        else:
            self.grid.update_cell_level(pos, new_level)

    def _hit_enemy(self, bullet):
        for enemy in self.enemies:
            if not enemy.is_alive() or enemy.position != bullet.position:
                continue
            enemy.take_damage(bullet.damage)
            bullet.deactivate()
            if not enemy.is_alive():
                self.enemies_destroyed += 1
                self.update_score(self.score + SCORE_PER_ENEMY)
            return

    # --- helpers ---
    def _is_valid_move(self, pos, mover):
        cell = self.grid.get_cell_at(pos)
        if cell is None or cell.type == CellType.OBSTACLE:
            return False
        if not mover.is_player and pos == self.player.position:
            return False
        return not any(
            enemy is not mover and enemy.is_alive() and enemy.position == pos
            for enemy in self.enemies
        )

    def _is_position_clear(self, pos):
        cell = self.grid.get_cell_at(pos)
        if cell is None or cell.type == CellType.OBSTACLE:
            return False
        px, py = self.player.position
        if abs(pos[0] - px) < SPAWN_CLEARANCE and abs(pos[1] - py) < SPAWN_CLEARANCE:
            return False
        return not any(enemy.position == pos for enemy in self.enemies)

    def reset(self):
        self.player.reset(get_player_spawn_position(self.grid.width, self.grid.height))
        self.enemies = []
        self.bullets = []
        self.now = 0
        self.enemies_destroyed = 0
        self.shots_fired = 0
        self.last_enemy_spawn_time = 0
        self.last_ai_update_time = 0
        self.initial_wave_spawned = False
        self.want_to_shoot = False
        self.want_to_move = False
        self.update_score(0)

    def handle_input(self, event):
        direction = input_direction(event)
        if direction is not None:
            self.want_to_move = True
            self.move_direction = direction
        elif input_action(event) == ACTION_SHOOT:
            self.want_to_shoot = True
        elif is_release(event):
            self.want_to_move = False

    def snapshot(self):
        return {
            "player": (self.player.position, self.player.direction, self.player.hp),
            "enemies": [
                (enemy.position, enemy.direction) for enemy in self.enemies if enemy.is_alive()
            ],
            "bullets": [(bullet.position, bullet.is_player_bullet) for bullet in self.bullets],
            "enemies_destroyed": self.enemies_destroyed,
        }
