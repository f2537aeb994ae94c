"""
Entry point for the grid arcade.

Desktop::

    python main.py              # game menu
    python main.py snake        # jump straight into a game
    python main.py tanks --speed 1.5 -v

Browser builds (pygbag) load this file as ``main.py`` and need the async
entry point so the page's event loop keeps running.
"""

import argparse
import asyncio
import logging

import arcade_app
import env
from game_utils import GameType


def build_parser():
    parser = argparse.ArgumentParser(description="Grid arcade: snake, tanks and breakout.")
    parser.add_argument(
        "game",
        nargs="?",
        choices=GameType.ALL,
        help="open this game instead of the menu",
    )
    parser.add_argument(
        "--speed",
        type=float,
        default=None,
        help="speed multiplier, larger is slower (default: platform default)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def _configure_logging(verbose):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main(argv=None):
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    arcade_app.main(args.game, args.speed)


async def async_main():
    _configure_logging(False)
    await arcade_app.async_main()


if __name__ == "__main__":
    if env.is_browser:
        asyncio.run(async_main())
    else:
        main()
