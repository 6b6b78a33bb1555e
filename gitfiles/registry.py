"""
gitfiles.registry - Live windows

Every window session is listed here from the moment its first load has
finished until the session ends. Lookups scan the list; it holds as
many entries as there are windows on screen.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterator, Optional, Tuple

from acme import Win

logger = logging.getLogger(__name__)


@dataclass
class OpenRequest:
    """A request for a new window, answered once its first load is done."""
    file: str
    address: Optional[str] = None
    reply: Optional[asyncio.Future] = None


@dataclass
class Window:
    """A window session's shared record."""
    id: int
    name: str
    win: Win
    pending: Optional[OpenRequest] = field(default=None, repr=False)


class WindowRegistry:
    """
    The set of live windows.

    find_or_create() is the only way a new window should come into
    existence: it makes lookup and creation one step, and concurrent
    requests for the same name wait for the one creation in progress.
    """

    def __init__(self):
        self._windows: Dict[int, Window] = {}
        self._creating: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()

    def __len__(self):
        return len(self._windows)

    def __iter__(self) -> Iterator[Window]:
        return iter(list(self._windows.values()))

    def add(self, window: Window):
        self._windows[window.id] = window

    def remove(self, window: Window):
        if self._windows.get(window.id) is window:
            del self._windows[window.id]

    def by_id(self, wid: int) -> Optional[Window]:
        return self._windows.get(wid)

    def by_name(self, name: str) -> Optional[Window]:
        """
        Window displayed as name, or as name/ (directory windows carry a
        trailing slash). name must already be cleaned.
        """
        for window in self._windows.values():
            if window.name == name or window.name == name + "/":
                return window
        return None

    async def find_or_create(
        self,
        name: str,
        create: Callable[[], Awaitable[Window]],
    ) -> Tuple[Window, bool]:
        """
        Return (window, created): the live window for name, or the one
        create() makes. create is awaited at most once per name at a time.
        """
        key = name.rstrip("/") or name
        async with self._lock:
            window = self.by_name(key)
            if window is not None:
                return window, False
            fut = self._creating.get(key)
            owner = fut is None
            if owner:
                fut = asyncio.get_running_loop().create_future()
                self._creating[key] = fut

        if not owner:
            logger.info("waiting for window %s under construction", key)
            return await asyncio.shield(fut), False

        try:
            window = await create()
        except asyncio.CancelledError:
            fut.cancel()
            raise
        except Exception as e:
            fut.set_exception(e)
            # Mark retrieved; nobody else may be waiting
            fut.exception()
            raise
        finally:
            async with self._lock:
                self._creating.pop(key, None)
        fut.set_result(window)
        return window, True
