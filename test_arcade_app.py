import asyncio
import json
import random
from types import SimpleNamespace

import pytest

import arcade_app
from arcade_app import (
    COLOR_BALL,
    COLOR_FOOD,
    COLOR_GRID_BG,
    COLOR_LEVELS,
    COLOR_PADDLE,
    COLOR_PLAYER_TANK,
    COLOR_SNAKE_HEAD,
    COLOR_WALL,
    ArcadeHost,
    CellShadow,
    HighScores,
    build_key_bindings,
    cell_colors,
    create_game,
    game_metadata,
)
from breakout_game import BreakoutGame
from game_utils import Direction, GameState, GameType
from snake_game import SnakeGame
from tanks_game import TanksGame

FAKE_PG = SimpleNamespace(
    K_UP=1, K_w=2, K_DOWN=3, K_s=4, K_LEFT=5, K_a=6, K_RIGHT=7, K_d=8,
    K_ESCAPE=9, K_RETURN=10, K_p=11, K_SPACE=12, K_1=13, K_2=14, K_3=15,
)


class FakeDisplay:
    pygame = FAKE_PG

    def __init__(self):
        self.configured = []
        self.clears = 0

    def configure(self, config):
        self.configured.append((config.width, config.height))

    def clear(self):
        self.clears += 1


@pytest.fixture
def scores(tmp_path):
    return HighScores(str(tmp_path / "scores.json"))


@pytest.fixture
def host(scores):
    return ArcadeHost(display=FakeDisplay(), highscores=scores, speed_multiplier=1,
                      rng=random.Random(2))


def test_create_game_builds_each_engine():
    rng = random.Random(0)
    assert isinstance(create_game(GameType.SNAKE, 1, rng), SnakeGame)
    assert isinstance(create_game(GameType.BREAKOUT, 1, rng), BreakoutGame)
    tanks = create_game(GameType.TANKS, 2, rng)
    assert isinstance(tanks, TanksGame)
    assert tanks.player.move_speed == 300
    with pytest.raises(ValueError):
        create_game("pong")


def test_create_game_uses_platform_speed_by_default(monkeypatch):
    monkeypatch.setattr(arcade_app.env, "default_speed_multiplier", lambda: 1.5)
    game = create_game(GameType.SNAKE, rng=random.Random(0))
    assert game.speed == 150


def test_highscores_missing_file_is_empty(scores):
    assert scores.get_high_scores(GameType.SNAKE) == []
    assert scores.best(GameType.SNAKE) == 0
    assert scores.best_name(GameType.SNAKE) == "---"
    assert scores.is_high_score(1, GameType.SNAKE)


def test_highscores_keep_top_ten_sorted(scores, tmp_path):
    for value in range(12):
        scores.save_score(GameType.TANKS, value * 100, "P%d" % value)
    entries = scores.get_high_scores(GameType.TANKS)
    assert [e["score"] for e in entries] == [1100 - 100 * i for i in range(10)]
    assert scores.best_name(GameType.TANKS) == "P11"
    assert not scores.is_high_score(100, GameType.TANKS)
    assert scores.is_high_score(250, GameType.TANKS)
    assert not scores.save_score(GameType.TANKS, 50)

    reloaded = HighScores(str(tmp_path / "scores.json"))
    assert reloaded.best(GameType.TANKS) == 1100
    assert reloaded.get_high_scores(GameType.SNAKE) == []


def test_highscore_entry_fields(scores):
    scores.save_score(GameType.SNAKE, 40, "ANA", {"food_eaten": 4})
    entry = scores.get_high_scores(GameType.SNAKE)[0]
    assert entry["score"] == 40
    assert entry["name"] == "ANA"
    assert entry["game_type"] == GameType.SNAKE
    assert entry["metadata"] == {"food_eaten": 4}
    assert len(entry["date"]) == 10
    assert isinstance(entry["timestamp"], int)


def test_highscores_corrupt_file_starts_empty(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text("{not json")
    scores = HighScores(str(path))
    assert scores.scores == {}


def test_highscores_clear(scores, tmp_path):
    scores.save_score(GameType.BREAKOUT, 30)
    scores.clear(GameType.BREAKOUT)
    assert scores.best(GameType.BREAKOUT) == 0
    data = json.loads((tmp_path / "scores.json").read_text())
    assert GameType.BREAKOUT not in data


def test_game_metadata_per_game():
    rng = random.Random(0)
    snake = create_game(GameType.SNAKE, 1, rng)
    assert game_metadata(snake) == {"food_eaten": 0, "final_speed": 100, "final_length": 3}

    tanks = create_game(GameType.TANKS, 1, rng)
    tanks.shots_fired = 4
    tanks.enemies_destroyed = 1
    assert game_metadata(tanks) == {"tanks_destroyed": 1, "accuracy": 0.25}

    breakout = create_game(GameType.BREAKOUT, 1, rng)
    assert game_metadata(breakout) == {"blocks_destroyed": 0, "lives_remaining": 3}


def test_cell_colors_snake():
    game = create_game(GameType.SNAKE, 1, random.Random(4))
    colors = cell_colors(game)
    assert len(colors) == 52 * 7
    assert colors[game.snake.head] == COLOR_SNAKE_HEAD
    for pos in game.food_squares:
        assert colors[pos] == COLOR_FOOD
    for cell in game.grid.get_available_cells():
        if cell.position in game.food_squares or cell.position in game.snake.body:
            continue
        expected = COLOR_GRID_BG if cell.level == 0 else COLOR_LEVELS[cell.level]
        assert colors[cell.position] == expected


def test_cell_colors_breakout_and_tanks():
    breakout = create_game(GameType.BREAKOUT, 1, random.Random(4))
    colors = cell_colors(breakout)
    assert colors[(23, 10)] == COLOR_PADDLE
    assert colors[(27, 10)] == COLOR_PADDLE
    assert colors[(25, 9)] == COLOR_BALL

    tanks = create_game(GameType.TANKS, 1, random.Random(4))
    colors = cell_colors(tanks)
    assert colors[(2, 17)] == COLOR_PLAYER_TANK
    assert colors[(0, 0)] == COLOR_WALL


def test_cell_shadow_reports_only_changes():
    shadow = CellShadow()
    assert shadow.changed({(0, 0): (1, 2, 3), (1, 0): (0, 0, 0)}) == {
        (0, 0): (1, 2, 3),
        (1, 0): (0, 0, 0),
    }
    assert shadow.changed({(0, 0): (1, 2, 3), (1, 0): (9, 9, 9)}) == {(1, 0): (9, 9, 9)}
    shadow.clear()
    assert shadow.changed({(0, 0): (1, 2, 3)}) == {(0, 0): (1, 2, 3)}


def test_key_bindings_cover_arrows_and_wasd():
    bindings = build_key_bindings(FAKE_PG)
    assert bindings[FAKE_PG.K_UP] == bindings[FAKE_PG.K_w] == Direction.UP
    assert bindings[FAKE_PG.K_d] == Direction.RIGHT
    assert len(bindings) == 8


def test_host_menu_opens_games_and_escape_quits(host):
    bindings = build_key_bindings(FAKE_PG)
    host.handle_key(FAKE_PG.K_2, True, bindings)
    assert isinstance(host.game, TanksGame)
    assert host.display.configured == [(40, 20)]

    host.handle_key(FAKE_PG.K_ESCAPE, True, bindings)
    assert host.game is None
    assert not host.quit
    host.handle_key(FAKE_PG.K_ESCAPE, True, bindings)
    assert host.quit


def test_host_controls_lifecycle_and_input(host):
    bindings = build_key_bindings(FAKE_PG)
    host.open_game(GameType.BREAKOUT)
    game = host.game

    host.handle_key(FAKE_PG.K_RETURN, True, bindings)
    assert game.state == GameState.PLAYING
    host.handle_key(FAKE_PG.K_p, True, bindings)
    assert game.state == GameState.PAUSED
    host.handle_key(FAKE_PG.K_p, True, bindings)
    assert game.state == GameState.PLAYING

    host.handle_key(FAKE_PG.K_LEFT, True, bindings)
    assert game.move_direction == Direction.LEFT
    host.handle_key(FAKE_PG.K_RIGHT, True, bindings)
    host.handle_key(FAKE_PG.K_RIGHT, False, bindings)
    assert game.move_direction == Direction.LEFT
    host.handle_key(FAKE_PG.K_LEFT, False, bindings)
    assert game.move_direction is None

    host.handle_key(FAKE_PG.K_SPACE, True, bindings)
    assert game.ball.launched


def test_game_over_records_high_score(host, scores):
    game = host.open_game(GameType.SNAKE)
    game.start()
    game.update_score(30)
    game.end_game()
    entry = scores.get_high_scores(GameType.SNAKE)[0]
    assert entry["score"] == 30
    assert entry["metadata"]["final_length"] == 3


def test_caption_shows_game_status(host):
    assert host.caption().startswith("GRID ARCADE")
    host.open_game(GameType.BREAKOUT)
    caption = host.caption()
    assert "BREAKOUT" in caption and "LIVES 3" in caption and "READY" in caption


def test_highscores_skip_malformed_entries(tmp_path):
    path = tmp_path / "scores.json"
    path.write_text(json.dumps({
        "snake": [1, "x", None, {"score": "bad"}, {"score": 50, "name": "ANA"}],
        "tanks": {"score": 10},
    }))
    scores = HighScores(str(path))
    assert [e["score"] for e in scores.get_high_scores(GameType.SNAKE)] == [50]
    assert scores.best(GameType.SNAKE) == 50
    assert scores.best_name(GameType.SNAKE) == "ANA"
    assert scores.is_high_score(1, GameType.SNAKE)
    assert scores.get_high_scores(GameType.TANKS) == []

    host = ArcadeHost(display=FakeDisplay(), highscores=scores, speed_multiplier=1)
    assert "1 SNAKE (50)" in host.caption()

    assert scores.save_score(GameType.SNAKE, 70, "BO")
    assert [e["score"] for e in scores.get_high_scores(GameType.SNAKE)] == [70, 50]


QUIT = 100
KEYDOWN = 101


class ScriptedEvents:
    """Hands out one batch of events per ``get()`` call, then QUIT."""

    def __init__(self, batches):
        self.batches = list(batches)

    def get(self):
        if self.batches:
            return self.batches.pop(0)
        return [SimpleNamespace(type=QUIT)]


class LoopDisplay(FakeDisplay):
    def __init__(self, batches):
        super().__init__()
        self.pygame = SimpleNamespace(
            QUIT=QUIT, KEYDOWN=KEYDOWN, KEYUP=102, event=ScriptedEvents(batches), **vars(FAKE_PG)
        )
        self.frames = []
        self.captions = []

    def start(self):
        pass

    def draw_cells(self, colors):
        self.frames.append(len(colors))

    def set_caption(self, text):
        self.captions.append(text)

    def show(self):
        pass

    def wait_frame(self):
        pass


def _key(key):
    return SimpleNamespace(type=KEYDOWN, key=key)


def _run_scripted(scores, run):
    # idle frame, ESC leaves the game, ESC quits the menu
    display = LoopDisplay([[], [_key(FAKE_PG.K_ESCAPE)], [_key(FAKE_PG.K_ESCAPE)]])
    host = ArcadeHost(display=display, highscores=scores, speed_multiplier=1,
                      rng=random.Random(1))
    game = host.open_game(GameType.SNAKE)
    game.start()
    run(host)
    return host, game, display


def test_run_steps_game_through_its_main_loop(scores):
    host, game, display = _run_scripted(scores, lambda h: h.run())
    assert host.quit
    assert host.game is None
    assert game.frame == 2
    assert display.frames == [52 * 7]
    assert display.clears == 1
    assert display.captions[0].startswith("SNAKE")
    assert display.captions[-1].startswith("GRID ARCADE")


def test_run_async_steps_game_through_its_main_loop(scores):
    host, game, display = _run_scripted(scores, lambda h: asyncio.run(h.run_async()))
    assert host.quit
    assert host.game is None
    assert game.frame == 2
    assert display.captions[-1].startswith("GRID ARCADE")
