"""
gitfiles.debug - Process-wide debug level

Three levels, cycled by the Debug command:

    off      warnings only
    minimal  trace name resolution, stat calls, window reuse (INFO)
    chatty   also every acme event (DEBUG)

The level is the level of the "gitfiles" logger; it is set once at
startup and afterwards changed only by cycle().
"""

import logging
from enum import IntEnum


class DebugLevel(IntEnum):
    OFF = 0
    MINIMAL = 1
    CHATTY = 2

    @property
    def label(self) -> str:
        return self.name.lower()


_LOG_LEVELS = {
    DebugLevel.OFF: logging.WARNING,
    DebugLevel.MINIMAL: logging.INFO,
    DebugLevel.CHATTY: logging.DEBUG,
}

_level = DebugLevel.OFF


def get_level() -> DebugLevel:
    return _level


def set_level(level: DebugLevel):
    global _level
    _level = DebugLevel(level)
    logging.getLogger("gitfiles").setLevel(_LOG_LEVELS[_level])


def cycle() -> DebugLevel:
    """Advance off -> minimal -> chatty -> off."""
    set_level(DebugLevel((_level + 1) % len(DebugLevel)))
    return _level
