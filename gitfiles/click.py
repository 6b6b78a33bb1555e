"""
gitfiles.click - Right-click navigation

The clicked text names the target relative to the window clicked in:

    /abs/repo@rev/file      absolute name
    :42                     address in the clicked window's own file
    util.c  util.c:42       name in the clicked window's directory

A name that exists is shown in its window, which is created if need be;
anything else is left to acme's default look.
"""

import logging
from typing import TYPE_CHECKING, NamedTuple, Optional, Tuple

from ninep import P9Error, Hangup

from . import names
from .registry import Window
from .typecache import exists

if TYPE_CHECKING:
    from .workspace import Workspace

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    window: Window
    created: bool


def target(current: str, text: str) -> Tuple[str, Optional[str]]:
    """
    Name and address (None if absent) that text refers to when clicked
    in a window named current. The name is cleaned.
    """
    if text.startswith("/"):
        name = text
    elif text.startswith(":"):
        name = current + text
    else:
        name = current[:current.rfind("/") + 1] + text
    name, sep, addr = name.partition(":")
    return names.cleanname(name), (addr if sep else None)


class ClickResolver:
    """Turns clicked text into a window showing it."""

    def __init__(self, workspace: 'Workspace'):
        self.workspace = workspace

    async def resolve(self, window: Window, text: str) -> Optional[Resolution]:
        """
        Show what text refers to; None if it refers to nothing, in which
        case the caller hands the click back to acme.
        """
        ws = self.workspace
        current = await window.win.get_name()
        name, addr = target(current, text)
        logger.info("button3 %s %s => %s addr %s", current, text, name, addr)

        if ws.failures.matches(name):
            logger.info("b3 %s => nonexistent (cached)", name)
            return None
        try:
            parsed = names.parse(name)
        except names.NameParseError as e:
            logger.info("b3 %s", e)
            return None

        kind = await ws.types.lookup(parsed.root, parsed.treeish, parsed.path)
        if not exists(kind):
            # Only the first click on a word that names nothing is slow
            logger.info("b3 caching %s => type %r", name, kind)
            ws.failures.remember(name)
            return None

        try:
            found, created = await ws.open(name, addr)
        except (P9Error, Hangup) as e:
            logger.warning("b3 %s: cannot open window: %s", name, e)
            return None
        logger.info("b3 %s => %s window %d", name,
                    "new" if created else "reusing", found.id)
        return Resolution(found, created)
