"""Lifecycle tests for BaseGame driven by a fake clock."""

import asyncio

from game_utils import (
    ACTION_SHOOT,
    Direction,
    GameState,
    BaseGame,
    action_input,
    direction_input,
    input_action,
    input_direction,
    is_opposite,
    is_release,
    release_input,
    step_position,
)
from grid import Grid


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class RecordingGame(BaseGame):
    """Records every delta and ends itself after ``end_after`` ms of play."""

    def __init__(self, clock, end_after=None):
        super().__init__(Grid.filled(3, 3), clock=clock)
        self.deltas = []
        self.resets = 0
        self.end_after = end_after

    def update(self, delta_time):
        self.deltas.append(delta_time)
        if self.end_after is not None and sum(self.deltas) >= self.end_after:
            self.end_game()

    def reset(self):
        self.resets += 1
        self.deltas = []
        self.update_score(0)


def test_direction_helpers():
    assert step_position((2, 2), Direction.UP) == (2, 1)
    assert step_position((0, 0), Direction.LEFT) == (-1, 0)
    assert is_opposite(Direction.LEFT, Direction.RIGHT)
    assert not is_opposite(Direction.LEFT, Direction.UP)


def test_input_parsing_ignores_malformed_events():
    assert input_direction(direction_input(Direction.DOWN)) == Direction.DOWN
    assert input_direction({"type": "direction", "direction": "SIDEWAYS"}) is None
    assert input_direction({"type": "direction"}) is None
    assert input_direction("UP") is None
    assert input_action(action_input(ACTION_SHOOT)) == ACTION_SHOOT
    assert input_action(release_input()) is None
    assert is_release(release_input())
    assert not is_release(None)


def test_start_resets_and_runs_first_step_with_zero_delta():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    assert game.state == GameState.PLAYING
    assert game.resets == 1
    assert game.deltas == [0]
    assert game.is_running


def test_tick_hands_elapsed_time_to_update():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    clock.advance(16)
    assert game.tick() == 16
    clock.advance(40)
    game.tick()
    assert game.deltas == [0, 16, 40]


def test_pause_freezes_and_resume_rebaselines():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    clock.advance(10)
    game.tick()

    game.pause()
    assert game.state == GameState.PAUSED
    clock.advance(5000)
    assert game.tick() == 0
    assert game.deltas == [0, 10]

    game.resume()
    assert game.state == GameState.PLAYING
    assert game.deltas == [0, 10, 0]
    clock.advance(16)
    game.tick()
    assert game.deltas[-1] == 16


def test_toggle_pause_and_illegal_transitions_are_noops():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.pause()
    game.resume()
    assert game.state == GameState.READY

    game.start()
    game.toggle_pause()
    assert game.state == GameState.PAUSED
    game.toggle_pause()
    assert game.state == GameState.PLAYING


def test_end_game_fires_callbacks_and_restart_resets():
    clock = FakeClock()
    game = RecordingGame(clock, end_after=30)
    overs = []
    states = []
    game.set_on_game_over(overs.append)
    game.set_on_state_change(states.append)

    game.start()
    game.update_score(70)
    clock.advance(30)
    game.tick()
    assert game.state == GameState.GAME_OVER
    assert overs == [70]
    assert not game.is_running
    assert game.tick() == 0

    game.start()
    assert game.resets == 2
    assert game.score == 0
    assert states == [GameState.PLAYING, GameState.GAME_OVER, GameState.PLAYING]


def test_start_from_paused_does_not_reset():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    game.update_score(20)
    game.pause()
    game.start()
    assert game.resets == 1
    assert game.score == 20
    assert game.state == GameState.PLAYING


def test_destroy_halts_without_state_change():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    game.destroy()
    assert game.state == GameState.PLAYING
    clock.advance(100)
    assert game.tick() == 0


def test_backwards_clock_gives_zero_delta():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    clock.advance(-50)
    game.tick()
    assert game.deltas[-1] == 0


def test_main_loop_respects_max_frames():
    clock = FakeClock()
    game = RecordingGame(clock)
    game.start()
    frames = []

    def on_frame(g):
        frames.append(g.frame)
        clock.advance(g.frame_ms)

    game.main_loop(on_frame=on_frame, max_frames=5)
    assert len(frames) == 5


def test_main_loop_async_stops_at_game_over():
    clock = FakeClock()
    game = RecordingGame(clock, end_after=64)
    game.start()

    def on_frame(g):
        clock.advance(g.frame_ms)

    asyncio.run(game.main_loop_async(on_frame=on_frame, max_frames=100))
    assert game.state == GameState.GAME_OVER
