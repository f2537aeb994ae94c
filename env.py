"""Platform detection for the grid arcade host.

The simulation core runs anywhere; only the host cares where it is running.
Two runtimes are supported:

1. **Desktop (CPython + PyGame)**:
   - Development and normal play
   - Synchronous frame loop driven by ``pygame.time.Clock``

2. **Browser (Pygbag/Emscripten/WASM)**:
   - Detected via ``sys.platform == "emscripten"``
   - Requires async/await so the browser event loop keeps running
   - Touch-first devices, so games run at ``BROWSER_SPEED_MULTIPLIER``

Module Variables
----------------
is_browser : bool
    True when running in the browser via pygbag.
is_desktop : bool
    True when running on desktop CPython.

Example Usage
-------------
::

    from env import is_browser

    if is_browser:
        asyncio.run(arcade_app.async_main())
    else:
        arcade_app.main()
"""

import sys

# IMPORTANT: Use sys.platform (not platform.system()) for browser detection.
# Pygbag patches sys.platform to "emscripten"; the platform module may not
# be reliable in WASM environments.
is_browser = sys.platform == "emscripten"
is_desktop = not is_browser

# Games step slower (larger ms per cell) on touch-first browser builds.
BROWSER_SPEED_MULTIPLIER = 1.5


def get_platform_name():
    """Return ``"browser"`` or ``"desktop"``."""
    return "browser" if is_browser else "desktop"


def default_speed_multiplier():
    """Return the speed multiplier games should use on this platform.

    Returns
    -------
    float
        ``BROWSER_SPEED_MULTIPLIER`` in the browser, ``1.0`` on desktop.
    """
    return BROWSER_SPEED_MULTIPLIER if is_browser else 1.0
