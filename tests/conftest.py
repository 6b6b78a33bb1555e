"""Shared fakes: an in-memory acme and helper commands."""

import asyncio
import re
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio

from acme import Event
from ninep import Hangup, P9Error
from gitfiles import debug
from gitfiles.config import Settings
from gitfiles.names import Name, parse
from gitfiles.workspace import Workspace

_EXPAND_RE = re.compile(r"^#(\d+)\+#1-/.*/,#(\d+)-#1\+/.*/$")
_RANGE_RE = re.compile(r"^#(\d+),#(\d+)$")


class FakeWin:
    """Models the parts of an acme window the sessions use."""

    def __init__(self, wid: int):
        self.id = wid
        self.name = ""
        self.tag = ""
        self.body = ""
        self.addr: Tuple[int, int] = (0, 0)
        self.dot: Tuple[int, int] = (0, 0)
        self.dirty = False
        self.shown = 0
        self.ctl_log: List[str] = []
        self.returned: List[Event] = []
        self.closed = False
        self.deleted = False
        self._events: asyncio.Queue = asyncio.Queue()

    # ctl, name, tag

    async def ctl(self, message: str):
        if self.closed:
            raise Hangup(f"window {self.id}: closed")
        self.ctl_log.append(message)
        if message.startswith("name "):
            self.name = message[len("name "):]
        elif message == "clean":
            self.dirty = False
        elif message == "show":
            self.shown += 1
        elif message == "dot=addr":
            self.dot = self.addr
        elif message == "addr=dot":
            self.addr = self.dot
        elif message in ("del", "delete"):
            if message == "del" and self.dirty:
                raise P9Error("file is dirty")
            self.deleted = True
            self._events.put_nowait(None)

    async def set_name(self, name: str):
        await self.ctl(f"name {name}")

    async def get_name(self) -> str:
        return self.name

    async def write_tag(self, text: str):
        self.tag += text

    # addresses and text

    def _line(self, n: int) -> Tuple[int, int]:
        start = 0
        for _ in range(n - 1):
            nl = self.body.find("\n", start)
            if nl < 0:
                raise P9Error("address out of range")
            start = nl + 1
        nl = self.body.find("\n", start)
        return start, (len(self.body) if nl < 0 else nl + 1)

    async def set_addr(self, addr: str):
        if addr == ",":
            self.addr = (0, len(self.body))
        elif re.fullmatch(r"#\d+", addr):
            q = int(addr[1:])
            self.addr = (q, q)
        elif re.fullmatch(r"\d+", addr):
            self.addr = self._line(int(addr))
        elif _RANGE_RE.match(addr):
            m = _RANGE_RE.match(addr)
            self.addr = (int(m.group(1)), int(m.group(2)))
        elif _EXPAND_RE.match(addr):
            m = _EXPAND_RE.match(addr)
            q0, q1 = int(m.group(1)), int(m.group(2))
            while q0 > 0 and self.body[q0 - 1] not in " \t\n":
                q0 -= 1
            while q1 < len(self.body) and self.body[q1] not in " \t\n":
                q1 += 1
            self.addr = (q0, q1)
        else:
            raise P9Error("bad address syntax")

    async def read_addr(self) -> Tuple[int, int]:
        return self.addr

    async def write_data(self, data: bytes):
        text = data.decode("utf-8")
        q0, q1 = self.addr
        self.body = self.body[:q0] + text + self.body[q1:]
        self.addr = (q0 + len(text), q0 + len(text))
        self.dirty = True

    async def read_xdata(self) -> str:
        q0, q1 = self.addr
        return self.body[q0:q1]

    # events

    def send(self, event: Optional[Event]):
        self._events.put_nowait(event)

    async def events(self):
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    async def write_event(self, event: Event):
        self.returned.append(event)

    async def close(self):
        self.closed = True


class FakeAcme:
    def __init__(self):
        self.windows: Dict[int, FakeWin] = {}
        self._next = 1

    async def new_window(self) -> FakeWin:
        win = FakeWin(self._next)
        self._next += 1
        self.windows[win.id] = win
        return win


class FakeHelpers:
    """Helper commands backed by dicts, counting every stat."""

    def __init__(self):
        self.kinds: Dict[Tuple[str, str, str], str] = {}
        self.content: Dict[Name, bytes] = {}
        self.stat_calls: List[Tuple[str, str, str]] = []
        self.listing_winids: List[int] = []
        self.gates: Dict[str, asyncio.Event] = {}

    def add_file(self, name: str, content: str):
        parsed = parse(name)
        self.kinds[(parsed.root, parsed.treeish, parsed.path)] = "file"
        self.content[parsed] = content.encode("utf-8")

    def add_directory(self, name: str, listing: str):
        parsed = parse(name)
        self.kinds[(parsed.root, parsed.treeish, parsed.path)] = "directory"
        self.content[parsed] = listing.encode("utf-8")

    def hold(self, name: str) -> asyncio.Event:
        """Make reads of name wait until the returned event is set."""
        gate = self.gates[str(parse(name))] = asyncio.Event()
        return gate

    async def _wait(self, name: Name):
        gate = self.gates.get(str(name))
        if gate is not None:
            await gate.wait()

    async def stat(self, root: str, treeish: str, path: str) -> str:
        self.stat_calls.append((root, treeish, path))
        return self.kinds.get((root, treeish, path), "")

    async def read_file(self, name: Name, sink):
        await self._wait(name)
        await sink(self.content[name])

    async def read_directory(self, name: Name, sink, winid: int):
        self.listing_winids.append(winid)
        await self._wait(name)
        await sink(self.content[name])


def look(q0: int, q1: int, text: str = "", oq=None, c2: str = "L") -> Event:
    """A button-3 event; oq is the range before acme's expansion."""
    oq0, oq1 = oq if oq is not None else (q0, q1)
    return Event("M", c2, q0, q1, 0, text, oq0=oq0, oq1=oq1)


def execute(text: str, c2: str = "X") -> Event:
    return Event("M", c2, 0, len(text), 0, text)


async def settle(rounds: int = 50):
    """Let every runnable task get as far as it can."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def reset_debug_level():
    debug.set_level(debug.DebugLevel.OFF)
    yield
    debug.set_level(debug.DebugLevel.OFF)


@pytest.fixture
def acme():
    return FakeAcme()


@pytest.fixture
def helpers():
    return FakeHelpers()


@pytest.fixture
def settings():
    return Settings()


@pytest_asyncio.fixture
async def workspace(acme, helpers, settings):
    ws = Workspace(acme, helpers, settings)
    yield ws
    await ws.close()
