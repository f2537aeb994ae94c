"""
Desktop/browser host for the grid arcade.

This file wires the three game engines to the outside world: it builds the
board and engine for a chosen game, maps keyboard events to game input
events, draws the grid with pygame and keeps per-game high scores in a JSON
file. The engines never import this module.
"""

import asyncio
import datetime
import json
import logging
import random
import time

import env
from breakout_game import BreakoutGame, generate_breakout_grid
from game_utils import (
    ACTION_LAUNCH,
    ACTION_SHOOT,
    Direction,
    GameState,
    GameType,
    action_input,
    direction_input,
    release_input,
)
from grid import MAX_LEVEL, CellType
from snake_game import SnakeGame, generate_snake_grid
from tanks_game import TanksGame, generate_tanks_grid

logger = logging.getLogger(__name__)

FPS = 60
MAX_HIGH_SCORES = 10
DEFAULT_PLAYER_NAME = "PLAYER"


def _boot_log(tag):
    """Log a startup marker; useful when diagnosing browser builds."""
    logger.debug("BOOT: %s (%s)", tag, env.get_platform_name())


# ---------- Colors ----------
def _hex_to_rgb(hex_str):
    hex_str = hex_str.lstrip("#")
    return tuple(int(hex_str[i:i + 2], 16) for i in (0, 2, 4))


COLOR_LEVELS = tuple(
    _hex_to_rgb(c) for c in ("#161b22", "#0e4429", "#006d32", "#26a641", "#39d353")
)
COLOR_GRID_BG = _hex_to_rgb("#0d1117")

COLOR_SNAKE_HEAD = _hex_to_rgb("#58a6ff")
COLOR_SNAKE_BODY = _hex_to_rgb("#388bfd")
COLOR_FOOD = _hex_to_rgb("#f78166")

COLOR_PADDLE = _hex_to_rgb("#58a6ff")
COLOR_BALL = (255, 255, 255)

COLOR_PLAYER_TANK = _hex_to_rgb("#58a6ff")
COLOR_ENEMY_TANK = _hex_to_rgb("#f85149")
COLOR_BULLET = _hex_to_rgb("#ffd700")
COLOR_WALL = _hex_to_rgb("#484f58")


# ---------- Game factory ----------
def create_game(game_type, speed_multiplier=None, rng=None):
    """
    Build a fresh board and engine for ``game_type``.

    Args:
        game_type (str): One of ``GameType.ALL``.
        speed_multiplier (float, optional): Defaults to the platform value.
        rng (random.Random, optional): Shared by board generation and engine.

    Returns:
        game_utils.BaseGame: An engine in the READY state.
    """
    if speed_multiplier is None:
        speed_multiplier = env.default_speed_multiplier()
    rng = rng or random.Random()

    if game_type == GameType.SNAKE:
        return SnakeGame(generate_snake_grid(rng), speed_multiplier, rng=rng)
    if game_type == GameType.BREAKOUT:
        grid, blocks = generate_breakout_grid(rng)
        return BreakoutGame(grid, blocks, speed_multiplier)
    if game_type == GameType.TANKS:
        return TanksGame(generate_tanks_grid(), speed_multiplier, rng=rng)
    raise ValueError("unknown game type: %r" % (game_type,))


def game_metadata(game):
    """Return the per-game stats stored next to a high score."""
    if game.game_type == GameType.SNAKE:
        return {
            "food_eaten": game.food_eaten,
            "final_speed": game.speed,
            "final_length": len(game.snake.body),
        }
    if game.game_type == GameType.TANKS:
        accuracy = game.enemies_destroyed / game.shots_fired if game.shots_fired else 0.0
        return {
            "tanks_destroyed": game.enemies_destroyed,
            "accuracy": round(accuracy, 3),
        }
    if game.game_type == GameType.BREAKOUT:
        return {
            "blocks_destroyed": game.blocks_destroyed,
            "lives_remaining": game.lives,
        }
    return {}


# ---------- High scores ----------
class HighScores:
    """
    Manage persistent high scores stored in a JSON file.

    Scores are kept per game type as a list sorted best-first and trimmed
    to ``MAX_HIGH_SCORES`` entries.
    """

    FILE = "highscores.json"

    def __init__(self, path=None):
        """Initialize high score storage and load existing scores from disk."""
        self.path = path or self.FILE
        self.scores = {}
        self.load()

    def load(self):
        """Load high scores; a missing or unreadable file means no scores."""
        try:
            with open(self.path, "r") as f:
                data = json.load(f)
        except FileNotFoundError:
            self.scores = {}
            return
        except (OSError, ValueError) as e:
            logger.warning("could not read %s: %s", self.path, e)
            self.scores = {}
            return
        self.scores = data if isinstance(data, dict) else {}

    def save(self):
        """Persist the current high scores to disk as JSON."""
        try:
            with open(self.path, "w") as f:
                json.dump(self.scores, f)
        except OSError as e:
            logger.warning("could not write %s: %s", self.path, e)

    def get_high_scores(self, game):
        """Return the stored entries for ``game``, skipping malformed ones."""
        entries = self.scores.get(game, [])
        if not isinstance(entries, list):
            return []
        return [
            e for e in entries
            if isinstance(e, dict)
            and isinstance(e.get("score"), (int, float))
            and not isinstance(e.get("score"), bool)
        ]

    def best(self, game):
        entries = self.get_high_scores(game)
        return int(entries[0].get("score", 0)) if entries else 0

    def best_name(self, game):
        entries = self.get_high_scores(game)
        return entries[0].get("name", "---") if entries else "---"

    def is_high_score(self, score, game):
        entries = self.get_high_scores(game)
        if len(entries) < MAX_HIGH_SCORES:
            return True
        return score > entries[-1].get("score", 0)

    def save_score(self, game, score, name=DEFAULT_PLAYER_NAME, metadata=None):
        """
        Record a finished game.

        Returns:
            bool: True when the score made it into the stored top list.
        """
        now = time.time()
        entry = {
            "score": int(score),
            "name": name,
            "date": datetime.date.fromtimestamp(now).isoformat(),
            "timestamp": int(now * 1000),
            "game_type": game,
        }
        if metadata:
            entry["metadata"] = metadata

        entries = self.get_high_scores(game) + [entry]
        entries.sort(key=lambda e: e.get("score", 0), reverse=True)
        self.scores[game] = entries[:MAX_HIGH_SCORES]
        self.save()
        return entry in self.scores[game]

    def clear(self, game):
        if self.scores.pop(game, None) is not None:
            self.save()


# ---------- Rendering ----------
def cell_colors(game):
    """
    Compute the color of every cell for the current frame.

    Grid levels give the background; game entities are painted on top.

    Returns:
        dict[tuple[int, int], tuple[int, int, int]]
    """
    colors = {}
    for row in game.grid.all_cells():
        for cell in row:
            if cell.type == CellType.OBSTACLE and game.game_type == GameType.TANKS:
                color = COLOR_WALL if cell.level >= MAX_LEVEL else COLOR_LEVELS[cell.level]
            elif cell.type == CellType.EMPTY:
                color = COLOR_GRID_BG
            else:
                color = COLOR_LEVELS[cell.level]
            colors[cell.position] = color

    snap = game.snapshot()
    if game.game_type == GameType.SNAKE:
        for pos in snap["food"]:
            colors[pos] = COLOR_FOOD
        body = snap["body"]
        for pos in body[1:]:
            colors[pos] = COLOR_SNAKE_BODY
        colors[body[0]] = COLOR_SNAKE_HEAD
    elif game.game_type == GameType.BREAKOUT:
        px, py, width = snap["paddle"]
        for x in range(px, px + width):
            colors[(x, py)] = COLOR_PADDLE
        if game.grid.is_valid_position(snap["ball"]):
            colors[snap["ball"]] = COLOR_BALL
    elif game.game_type == GameType.TANKS:
        for pos, _ in snap["bullets"]:
            if game.grid.is_valid_position(pos):
                colors[pos] = COLOR_BULLET
        for pos, _ in snap["enemies"]:
            colors[pos] = COLOR_ENEMY_TANK
        colors[snap["player"][0]] = COLOR_PLAYER_TANK
    return colors


class CellShadow:
    """
    Tracks the color last drawn in each cell so only changed cells are
    pushed to the display.
    """

    def __init__(self):
        self.shadow = {}

    def changed(self, colors):
        """Return the subset of ``colors`` that differs from the last frame."""
        diff = {}
        for pos, color in colors.items():
            if self.shadow.get(pos) != color:
                self.shadow[pos] = color
                diff[pos] = color
        return diff

    def clear(self):
        self.shadow = {}


class PyGameDisplay:
    """Cell-based pygame window sized to a grid config."""

    def __init__(self):
        self._pg = None
        self._screen = None
        self._clock = None
        self._config = None
        self.shadow = CellShadow()

    def start(self):
        """Initialize pygame. Idempotent."""
        if self._pg is not None:
            return
        try:
            import pygame
        except ImportError as e:
            raise RuntimeError(
                "PyGame not installed. Install with: pip install pygame"
            ) from e
        self._pg = pygame
        pygame.init()
        if env.is_browser and hasattr(pygame, "mixer"):
            # audio init can block on a missing user gesture in WASM
            pygame.mixer.quit()
        self._clock = pygame.time.Clock()
        self._screen = pygame.display.set_mode((640, 200))
        _boot_log("display started")

    @property
    def pygame(self):
        return self._pg

    def configure(self, config):
        """Resize the window for a grid config and force a full redraw."""
        self._config = config
        step = config.cell_size + config.gap
        self._screen = self._pg.display.set_mode(
            (config.width * step + config.gap, config.height * step + config.gap)
        )
        self.clear()

    def clear(self):
        if self._screen is not None:
            self._screen.fill(COLOR_GRID_BG)
        self.shadow.clear()

    def draw_cells(self, colors):
        step = self._config.cell_size + self._config.gap
        for (x, y), color in self.shadow.changed(colors).items():
            rect = (
                self._config.gap + x * step,
                self._config.gap + y * step,
                self._config.cell_size,
                self._config.cell_size,
            )
            self._pg.draw.rect(self._screen, color, rect)

    def set_caption(self, text):
        self._pg.display.set_caption(text)

    def show(self):
        self._pg.display.flip()

    def wait_frame(self):
        self._clock.tick(FPS)


# ---------- Input ----------
def build_key_bindings(pg):
    """Map pygame key codes to directions (arrow keys and WASD)."""
    return {
        pg.K_UP: Direction.UP,
        pg.K_w: Direction.UP,
        pg.K_DOWN: Direction.DOWN,
        pg.K_s: Direction.DOWN,
        pg.K_LEFT: Direction.LEFT,
        pg.K_a: Direction.LEFT,
        pg.K_RIGHT: Direction.RIGHT,
        pg.K_d: Direction.RIGHT,
    }


ACTION_FOR_GAME = {
    GameType.BREAKOUT: ACTION_LAUNCH,
    GameType.TANKS: ACTION_SHOOT,
}

MENU_ORDER = (GameType.SNAKE, GameType.TANKS, GameType.BREAKOUT)


class ArcadeHost:
    """
    Menu plus one active game.

    Keys: 1/2/3 pick a game, ENTER starts or restarts, P pauses, SPACE
    launches (breakout) or shoots (tanks), ESC goes back to the menu or
    quits from the menu.
    """

    def __init__(self, display=None, highscores=None, speed_multiplier=None, rng=None):
        self.display = display or PyGameDisplay()
        self.highscores = highscores or HighScores()
        self.speed_multiplier = speed_multiplier
        self.rng = rng
        self.game = None
        self.quit = False
        self._bindings = None
        self._held = []

    # --- navigation ---
    def open_game(self, game_type):
        self.close_game()
        self.game = create_game(game_type, self.speed_multiplier, self.rng)
        self.game.set_on_game_over(self._record_score)
        if self.display.pygame is not None:
            self.display.configure(self.game.grid.config)
        logger.info("opened %s", game_type)
        return self.game

    def close_game(self):
        if self.game is not None:
            self.game.destroy()
            self.game = None
            if self.display.pygame is not None:
                self.display.clear()
        self._held = []

    def _record_score(self, score):
        game_type = self.game.game_type
        if self.highscores.save_score(game_type, score, metadata=game_metadata(self.game)):
            logger.info("new %s high score list entry: %d", game_type, score)

    # --- input ---
    def handle_key(self, key, pressed, bindings):
        """
        Route one key event.

        Args:
            key (int): pygame key code.
            pressed (bool): True for key down, False for key up.
            bindings (dict): Direction bindings from :func:`build_key_bindings`.
        """
        pg = self.display.pygame
        if self.game is None:
            if not pressed:
                return
            if key == pg.K_ESCAPE:
                self.quit = True
            elif key in (pg.K_1, pg.K_2, pg.K_3):
                self.open_game(MENU_ORDER[(pg.K_1, pg.K_2, pg.K_3).index(key)])
            return

        direction = bindings.get(key)
        if direction is not None:
            if pressed:
                self._held.append(direction)
                self.game.handle_input(direction_input(direction))
            else:
                self._held = [d for d in self._held if d != direction]
                if self._held:
                    self.game.handle_input(direction_input(self._held[-1]))
                else:
                    self.game.handle_input(release_input())
            return

        if not pressed:
            return
        if key == pg.K_ESCAPE:
            self.close_game()
        elif key == pg.K_RETURN:
            if self.game.state in (GameState.READY, GameState.GAME_OVER):
                self.game.start()
        elif key == pg.K_p:
            self.game.toggle_pause()
        elif key == pg.K_SPACE:
            action = ACTION_FOR_GAME.get(self.game.game_type)
            if action is not None:
                self.game.handle_input(action_input(action))

    def poll_events(self):
        pg = self.display.pygame
        if self._bindings is None:
            self._bindings = build_key_bindings(pg)
        for event in pg.event.get():
            if event.type == pg.QUIT:
                self.quit = True
            elif event.type == pg.KEYDOWN:
                self.handle_key(event.key, True, self._bindings)
            elif event.type == pg.KEYUP:
                self.handle_key(event.key, False, self._bindings)

    # --- frame ---
    def caption(self):
        if self.game is None:
            bests = "  ".join(
                "%d %s (%d)" % (i + 1, name.upper(), self.highscores.best(name))
                for i, name in enumerate(MENU_ORDER)
            )
            return "GRID ARCADE  " + bests
        parts = [self.game.game_type.upper(), "SCORE %d" % self.game.score]
        if self.game.game_type == GameType.BREAKOUT:
            parts.append("LIVES %d" % self.game.lives)
        elif self.game.game_type == GameType.TANKS:
            parts.append("HP %d" % self.game.player.hp)
        parts.append("BEST %d" % self.highscores.best(self.game.game_type))
        if self.game.state != GameState.PLAYING:
            parts.append(self.game.state)
        return "  ".join(parts)

    def draw(self):
        if self.game is not None:
            self.display.draw_cells(cell_colors(self.game))
        self.display.set_caption(self.caption())
        self.display.show()

    def frame(self):
        """Idle frame (menu, paused, game over): input and drawing only."""
        self.poll_events()
        self.draw()

    def game_frame(self, game):
        """Per-tick callback while a game's own loop is stepping it."""
        self.poll_events()
        if self.quit:
            self.close_game()
        self.draw()

    def run(self):
        """
        Synchronous host loop for desktop.

        While a game is running its ``main_loop`` paces the frames; the
        loop returns on pause, game over or leaving the game, and the host
        falls back to idle frames until the game runs again.
        """
        self.display.start()
        while not self.quit:
            if self.game is not None and self.game.is_running:
                self.game.main_loop(on_frame=self.game_frame)
                continue
            self.frame()
            self.display.wait_frame()
        self.close_game()

    async def run_async(self):
        """Async host loop for pygbag/browser; yields every frame."""
        self.display.start()
        while not self.quit:
            if self.game is not None and self.game.is_running:
                await self.game.main_loop_async(on_frame=self.game_frame)
                continue
            self.frame()
            await asyncio.sleep(1 / FPS)
        self.close_game()


# ---------- Main ----------
def main(game_type=None, speed_multiplier=None):
    """Desktop entry point: open the menu (or ``game_type``) and run."""
    _boot_log("main")
    host = ArcadeHost(speed_multiplier=speed_multiplier)
    host.display.start()
    if game_type is not None:
        host.open_game(game_type)
    host.run()


async def async_main(game_type=None, speed_multiplier=None):
    """Async entrypoint for pygbag/web."""
    _boot_log("async_main")
    host = ArcadeHost(speed_multiplier=speed_multiplier)
    host.display.start()
    if game_type is not None:
        host.open_game(game_type)
    await host.run_async()
