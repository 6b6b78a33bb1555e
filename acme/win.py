"""
acme.win - Acme windows over 9P

Acme serves one directory per window:

  new/ctl      opening it creates a window; reading returns its ctl line
  <id>/addr    address register (reset when opened; keep it open)
  <id>/ctl     control messages: name, clean, show, dot=addr, del, ...
  <id>/data    writes replace the text at addr, then addr follows them
  <id>/xdata   like data, but reads stop at the end of addr
  <id>/tag     tag line text
  <id>/event   event stream; while open, acme leaves actions to us

Usage:
    acme = await Acme.mount()
    win = await acme.new_window()
    await win.set_name("/tmp/x")
    await win.set_addr(",")
    await win.write_data(b"hello\\n")
    async for event in win.events():
        ...
"""

import asyncio
import logging
import re
from typing import AsyncIterator, Dict, Optional, Tuple

from ninep import P9Client, Fid, OpenMode, P9Error, Hangup, service_address

from .event import Event, EventParser

logger = logging.getLogger("acme.win")

_ADDR_RE = re.compile(r"\s*(\d+)\s+(\d+)")


class Acme:
    """Connection to a running acme."""

    def __init__(self, client: P9Client):
        self.client = client

    @classmethod
    async def mount(cls, address: Optional[str] = None) -> 'Acme':
        """Dial acme's 9P service, by default the one in the namespace."""
        client = await P9Client.dial(address or service_address("acme"))
        return cls(client)

    async def new_window(self) -> 'Win':
        """Create an empty window."""
        ctl = await self.client.open("new/ctl", OpenMode.ORDWR)
        try:
            line = await self.client.read(ctl, 0)
            wid = int(line.split()[0])
        except (P9Error, Hangup, ValueError, IndexError):
            await self.client.clunk(ctl)
            raise
        logger.debug("new window %d", wid)
        return Win(self.client, wid, ctl)

    async def close(self):
        await self.client.disconnect()


class Win:
    """
    One acme window.

    The ctl fid from new/ctl keeps the window ours; addr, data and event
    are opened on first use and held until close().
    """

    def __init__(self, client: P9Client, wid: int, ctl: Fid):
        self.client = client
        self.id = wid
        self._fids: Dict[str, Fid] = {"ctl": ctl}
        self._lock = asyncio.Lock()
        self.closed = False

    def __repr__(self):
        return f"Win({self.id})"

    def _check_open(self):
        if self.closed:
            raise Hangup(f"window {self.id}: closed")

    async def _fid(self, name: str) -> Fid:
        async with self._lock:
            self._check_open()
            fid = self._fids.get(name)
            if fid is None:
                fid = await self.client.open(f"{self.id}/{name}", OpenMode.ORDWR)
                self._fids[name] = fid
            return fid

    # -------------------------------------------------------------------------
    # Control
    # -------------------------------------------------------------------------

    async def ctl(self, message: str):
        """Write a control message, e.g. "clean", "show", "dot=addr"."""
        self._check_open()
        fid = self._fids["ctl"]
        await self.client.write(fid, 0, (message + "\n").encode("utf-8"))

    async def set_name(self, name: str):
        await self.ctl(f"name {name}")

    async def get_name(self) -> str:
        """The window name: the tag text up to the first blank."""
        tag = await self._read_file("tag")
        return re.split(r"[ \t]", tag, maxsplit=1)[0]

    async def write_tag(self, text: str):
        """Append text to the tag."""
        self._check_open()
        fid = await self.client.open(f"{self.id}/tag", OpenMode.OWRITE)
        try:
            await self.client.write_all(fid, 0, text.encode("utf-8"))
        finally:
            await self.client.clunk(fid)

    # -------------------------------------------------------------------------
    # Addresses and text
    # -------------------------------------------------------------------------

    async def set_addr(self, addr: str):
        """Set the address register; acme rejects bad addresses with P9Error."""
        fid = await self._fid("addr")
        await self.client.write(fid, 0, addr.encode("utf-8"))

    async def read_addr(self) -> Tuple[int, int]:
        """Current address register as character offsets."""
        fid = await self._fid("addr")
        data = (await self.client.read(fid, 0)).decode("utf-8")
        m = _ADDR_RE.match(data)
        if m is None:
            raise P9Error(f"bad addr reply {data!r}")
        return int(m.group(1)), int(m.group(2))

    async def write_data(self, data: bytes):
        """Replace the text at addr with data."""
        fid = await self._fid("data")
        await self.client.write_all(fid, 0, data)

    async def read_xdata(self) -> str:
        """Text selected by addr."""
        return await self._read_file("xdata")

    async def _read_file(self, name: str) -> str:
        self._check_open()
        fid = await self.client.open(f"{self.id}/{name}", OpenMode.OREAD)
        try:
            data = await self.client.read_all(fid)
        finally:
            await self.client.clunk(fid)
        return data.decode("utf-8", errors="replace")

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def events(self) -> AsyncIterator[Event]:
        """
        Yield window events until the window goes away.

        Acme answers reads on a deleted window's event file with an
        error or EOF; both end the stream.
        """
        fid = await self._fid("event")
        parser = EventParser()
        while True:
            try:
                data = await self.client.read(fid, 0)
            except P9Error as e:
                logger.debug("window %d: event read: %s", self.id, e)
                return
            if not data:
                return
            for event in parser.feed(data):
                yield event

    async def write_event(self, event: Event):
        """Hand an event back to acme for default handling."""
        fid = await self._fid("event")
        await self.client.write(fid, 0, event.pack())

    async def close(self):
        """
        Release the window's fids; the window itself stays on screen.
        Later calls on this Win raise Hangup.
        """
        self.closed = True
        fids = list(self._fids.values())
        self._fids.clear()
        for fid in fids:
            try:
                await self.client.clunk(fid)
            except (P9Error, Hangup):
                pass
