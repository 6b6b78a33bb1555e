"""
plumb.port - Receiving from a plumber port

The plumber serves one file per port; each read on an open port
returns the next message routed there, blocking until one arrives.
A message longer than a single read arrives in several pieces.

Usage:
    plumber = await P9Client.dial(service_address("plumb"))
    port = await PlumbPort.open(plumber, "gitfileedit")
    async for message in port:
        ...
"""

import logging
from typing import AsyncIterator

from ninep import P9Client, Fid, OpenMode

from .message import PlumbMessage, unpack

logger = logging.getLogger("plumb.port")


class PlumbPort:
    """An open plumber port."""

    def __init__(self, client: P9Client, name: str, fid: Fid):
        self.client = client
        self.name = name
        self._fid = fid

    @classmethod
    async def open(cls, client: P9Client, name: str) -> 'PlumbPort':
        """Open port name for reading; P9Error if the plumber has no such port."""
        fid = await client.open(name, OpenMode.OREAD)
        return cls(client, name, fid)

    async def __aiter__(self) -> AsyncIterator[PlumbMessage]:
        buf = b""
        while True:
            data = await self.client.read(self._fid, 0)
            if not data:
                logger.info("plumb/%s: eof", self.name)
                return
            buf += data
            while True:
                unpacked = unpack(buf)
                if unpacked is None:
                    break
                message, used = unpacked
                buf = buf[used:]
                yield message

    async def close(self):
        await self.client.clunk(self._fid)
