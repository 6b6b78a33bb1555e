"""
gitfiles.typecache - What kind of object a name refers to

Asking the stat helper means running a process, and a right-click that
misses (the user clicked an ordinary word) asks again every time the
same word is clicked. Two caches keep that cheap:

  TypeCache      (root, treeish, path) -> "file" | "directory"
  NegativeCache  the last cleaned name that resolved to nothing

"" covers both "no such object" and "the helper failed"; the two are
not told apart. Only "file" and "directory" are kept; a name that named
nothing is looked up again, and the NegativeCache alone remembers it.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Awaitable, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

FILE = "file"
DIRECTORY = "directory"

Key = Tuple[str, str, str]
StatFunc = Callable[[str, str, str], Awaitable[str]]


def exists(kind: str) -> bool:
    """True for the kinds a window can show."""
    return kind in (FILE, DIRECTORY)


class TypeCache:
    """
    Bounded LRU of stat results.

    Concurrent misses on one key share a single helper run; a miss on
    another key does not wait for it.
    """

    def __init__(self, stat: StatFunc, max_entries: int = 64):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self._stat = stat
        self._max_entries = max_entries
        self._entries: "OrderedDict[Key, str]" = OrderedDict()
        self._inflight: Dict[Key, asyncio.Future] = {}
        self._lock = asyncio.Lock()

    def __len__(self):
        return len(self._entries)

    async def lookup(self, root: str, treeish: str, path: str) -> str:
        key = (root, treeish, path)
        async with self._lock:
            kind = self._entries.get(key)
            if kind is not None:
                self._entries.move_to_end(key)
                logger.info("stat %s %s %s => %s (cached)", root, treeish, path, kind)
                return kind
            fut = self._inflight.get(key)
            owner = fut is None
            if owner:
                fut = asyncio.get_running_loop().create_future()
                self._inflight[key] = fut

        if not owner:
            return await asyncio.shield(fut)

        try:
            kind = await self._stat(root, treeish, path) or ""
        except BaseException:
            async with self._lock:
                self._inflight.pop(key, None)
            # Waiters see a failed stat
            fut.set_result("")
            raise

        async with self._lock:
            self._inflight.pop(key, None)
            if exists(kind):
                self._entries[key] = kind
                self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)
        fut.set_result(kind)
        logger.info("stat %s %s %s => %s", root, treeish, path, kind or '""')
        return kind


class NegativeCache:
    """
    The single most recent name that resolved to nothing.

    Touched only between awaits on the event loop, so each call is
    atomic with respect to every other task.
    """

    def __init__(self):
        self._last: Optional[str] = None

    @property
    def last(self) -> Optional[str]:
        return self._last

    def matches(self, name: str) -> bool:
        return self._last is not None and self._last == name

    def remember(self, name: str):
        self._last = name
