"""
ninep.client - Async 9P2000 client for plan9port services

Talks to the file servers a plan9port session posts in its namespace
directory (acme, plumber, ...) over a direct unix-socket or TCP
connection. No mount is involved.

Usage:
    client = await P9Client.dial(service_address("acme"))
    fid = await client.open("new/ctl", OpenMode.ORDWR)
    data = await client.read(fid, 0)
    await client.clunk(fid)

Dial strings follow Plan 9 conventions:
    unix!/tmp/ns.glenda.:0/acme
    tcp!localhost!5640
    /tmp/ns.glenda.:0/plumb          (bare path = unix socket)

Setting the "ninep.client" logger to DEBUG traces every message,
the equivalent of chatty9pclient.
"""

import asyncio
import getpass
import logging
import os
import struct
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from enum import IntEnum

logger = logging.getLogger("ninep.client")


# =============================================================================
# 9P2000 Protocol Constants
# =============================================================================

class MessageType(IntEnum):
    """9P message types"""
    Tversion = 100
    Rversion = 101
    Tauth = 102
    Rauth = 103
    Tattach = 104
    Rattach = 105
    Rerror = 107
    Tflush = 108
    Rflush = 109
    Twalk = 110
    Rwalk = 111
    Topen = 112
    Ropen = 113
    Tcreate = 114
    Rcreate = 115
    Tread = 116
    Rread = 117
    Twrite = 118
    Rwrite = 119
    Tclunk = 120
    Rclunk = 121
    Tremove = 122
    Rremove = 123
    Tstat = 124
    Rstat = 125
    Twstat = 126
    Rwstat = 127


class OpenMode(IntEnum):
    """9P open modes"""
    OREAD = 0
    OWRITE = 1
    ORDWR = 2
    OEXEC = 3
    OTRUNC = 0x10


NOTAG = 0xFFFF
NOFID = 0xFFFFFFFF

# size[4] type[1] tag[2] fid[4] offset[8] count[4]
IOHDRSZ = 24


# =============================================================================
# Exceptions
# =============================================================================

class P9Error(Exception):
    """Error from 9P server (Rerror message)"""
    pass


class Hangup(Exception):
    """Connection to 9P server lost"""
    pass


# =============================================================================
# Namespace
# =============================================================================

def namespace() -> str:
    """
    Return the plan9port namespace directory.

    $NAMESPACE wins; otherwise /tmp/ns.$USER.$DISPLAY with a trailing
    ".0" screen number dropped from DISPLAY.
    """
    ns = os.environ.get("NAMESPACE")
    if ns:
        return ns
    display = os.environ.get("DISPLAY") or ":0"
    if display.endswith(".0"):
        display = display[:-2]
    return f"/tmp/ns.{getpass.getuser()}.{display}"


def service_address(service: str, ns: Optional[str] = None) -> str:
    """Dial string for a service posted in the namespace directory."""
    return f"unix!{os.path.join(ns or namespace(), service)}"


def parse_dial(address: str) -> Tuple[str, str, int]:
    """
    Split a dial string into (network, host-or-path, port).

    Port is 0 for unix sockets.
    """
    parts = address.split("!")
    if len(parts) == 1:
        return "unix", parts[0], 0
    if parts[0] == "unix" and len(parts) == 2:
        return "unix", parts[1], 0
    if parts[0] == "tcp" and len(parts) == 3:
        return "tcp", parts[1], int(parts[2])
    raise ValueError(f"bad dial string '{address}'")


# =============================================================================
# Low-Level 9P Client
# =============================================================================

@dataclass
class Fid:
    """File identifier"""
    fid: int
    path: str = ""
    qid: Optional[bytes] = None


class P9Client:
    """
    Low-level async 9P2000 client.

    Responses are demultiplexed by tag in a background reader task, so
    any number of requests can be in flight at once: acme keeps one
    blocking Tread outstanding on every window's event file while other
    windows keep writing.

    Every open() allocates a fresh fid. Acme gives per-fid meaning to
    several of its files (addr, event), so fids are never shared.
    """

    def __init__(self, address: str, uname: Optional[str] = None):
        self.address = address
        self.uname = uname or getpass.getuser()
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.msize = 8192 + IOHDRSZ
        self._tag = 0
        self._next_fid_num = 1
        self._root_fid = 0
        self._write_lock = asyncio.Lock()   # Serializes sends on the socket
        self._pending: Dict[int, asyncio.Future] = {}  # tag -> Future for response
        self._reader_task: Optional[asyncio.Task] = None

    @classmethod
    async def dial(cls, address: str, uname: Optional[str] = None) -> 'P9Client':
        """Connect, negotiate the version and attach."""
        client = cls(address, uname)
        await client.connect()
        return client

    # -------------------------------------------------------------------------
    # Connection Management
    # -------------------------------------------------------------------------

    async def connect(self):
        """Connect to 9P server and perform handshake"""
        network, host, port = parse_dial(self.address)
        if network == "unix":
            self.reader, self.writer = await asyncio.open_unix_connection(host)
        else:
            self.reader, self.writer = await asyncio.open_connection(host, port)

        # Protocol version negotiation (before reader task starts)
        await self._version()

        self._reader_task = asyncio.ensure_future(self._reader_loop())

        await self._attach()
        logger.info("attached to %s as %s", self.address, self.uname)

    async def disconnect(self):
        """Close the connection; outstanding requests fail with Hangup."""
        if self.writer is None:
            return

        if self._reader_task and not self._reader_task.done():
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        self._fail_pending(Hangup(f"{self.address}: disconnected"))

        try:
            self.writer.close()
            await self.writer.wait_closed()
        except OSError:
            pass

        self.reader = None
        self.writer = None

    @property
    def connected(self) -> bool:
        """Check if connected"""
        return self.writer is not None and not self.writer.is_closing()

    # -------------------------------------------------------------------------
    # High-Level Operations
    # -------------------------------------------------------------------------

    async def open(self, path: str, mode: int = OpenMode.OREAD) -> Fid:
        """
        Walk to path from the root and open it with a new fid.

        Args:
            path: Path relative to root (e.g., "new/ctl", "12/event")
            mode: Open mode (OREAD, OWRITE, ORDWR)
        """
        fid = self._alloc_fid(path)
        elements = [e for e in path.split("/") if e]

        qids = await self._walk(self._root_fid, fid.fid, elements)
        if len(qids) != len(elements):
            # A short walk leaves newfid unassigned
            raise P9Error(f"{path}: file does not exist")
        if qids:
            fid.qid = qids[-1]

        try:
            await self._open(fid.fid, mode)
        except P9Error:
            await self.clunk(fid)
            raise
        return fid

    async def read(self, fid: Fid, offset: int, count: int = 0) -> bytes:
        """
        Read from an open file.

        Returns data read (may be shorter than count, empty on EOF).
        """
        if count <= 0:
            count = self.msize - IOHDRSZ

        payload = struct.pack("<IQI", fid.fid, offset, count)
        response = await self._rpc(MessageType.Tread, payload)

        # Rread: type[1] tag[2] count[4] data[count]
        data_count = struct.unpack_from("<I", response, 3)[0]
        return response[7 : 7 + data_count]

    async def read_all(self, fid: Fid) -> bytes:
        """Read until EOF."""
        data = []
        offset = 0
        while True:
            chunk = await self.read(fid, offset)
            if not chunk:
                break
            data.append(chunk)
            offset += len(chunk)
        return b"".join(data)

    async def write(self, fid: Fid, offset: int, data: bytes) -> int:
        """
        Write to an open file.

        Data must fit in a single 9P message; use write_all otherwise.
        """
        payload = struct.pack("<IQI", fid.fid, offset, len(data))
        payload += data

        response = await self._rpc(MessageType.Twrite, payload)

        # Rwrite: type[1] tag[2] count[4]
        return struct.unpack_from("<I", response, 3)[0]

    async def write_all(self, fid: Fid, offset: int, data: bytes) -> int:
        """
        Write all data, chunking if necessary to fit within msize.

        Returns:
            Total number of bytes written
        """
        max_chunk = self.msize - IOHDRSZ
        total = 0
        while data:
            chunk = data[:max_chunk]
            data = data[max_chunk:]
            written = await self.write(fid, offset + total, chunk)
            total += written
        return total

    async def clunk(self, fid: Fid):
        """Release a fid."""
        payload = struct.pack("<I", fid.fid)
        await self._rpc(MessageType.Tclunk, payload)

    # -------------------------------------------------------------------------
    # 9P Protocol Primitives
    # -------------------------------------------------------------------------

    async def _version(self):
        """Negotiate protocol version (called before reader loop starts)"""
        version = b"9P2000"
        payload = struct.pack("<I", self.msize)
        payload += struct.pack("<H", len(version)) + version

        response = await self._rpc_inline(MessageType.Tversion, payload, tag=NOTAG)

        # Rversion: type[1] tag[2] msize[4] version[s]
        server_msize = struct.unpack_from("<I", response, 3)[0]
        self.msize = min(self.msize, server_msize)

    async def _attach(self):
        """Attach to filesystem root"""
        uname = self.uname.encode("utf-8")
        aname = b""

        payload = struct.pack("<II", self._root_fid, NOFID)
        payload += struct.pack("<H", len(uname)) + uname
        payload += struct.pack("<H", len(aname)) + aname

        await self._rpc(MessageType.Tattach, payload)

    async def _walk(self, fid: int, newfid: int, wnames: List[str]) -> List[bytes]:
        """Walk from fid to newfid following wnames"""
        payload = struct.pack("<II", fid, newfid)
        payload += struct.pack("<H", len(wnames))

        for name in wnames:
            name_bytes = name.encode("utf-8")
            payload += struct.pack("<H", len(name_bytes)) + name_bytes

        response = await self._rpc(MessageType.Twalk, payload)

        # Rwalk: type[1] tag[2] nwqid[2] qids...
        nwqid = struct.unpack_from("<H", response, 3)[0]
        return [response[5 + 13 * i : 5 + 13 * (i + 1)] for i in range(nwqid)]

    async def _open(self, fid: int, mode: int):
        """Open a file"""
        payload = struct.pack("<IB", fid, mode)
        await self._rpc(MessageType.Topen, payload)

    # -------------------------------------------------------------------------
    # Wire Protocol
    # -------------------------------------------------------------------------

    def _alloc_fid(self, path: str) -> Fid:
        """Allocate a new fid"""
        fid_num = self._next_fid_num
        self._next_fid_num += 1
        return Fid(fid_num, path)

    def _next_tag(self) -> int:
        """Get next tag not currently in flight"""
        while True:
            self._tag = (self._tag + 1) & 0x7FFF
            if self._tag not in self._pending:
                return self._tag

    async def _rpc(self, msg_type: int, payload: bytes, tag: int = None) -> bytes:
        """Send T-message and receive R-message.

        The _write_lock serializes sends; the background _reader_loop
        dispatches each response to the Future registered for its tag.
        Rerror is raised as P9Error.
        """
        if not self.connected:
            raise Hangup(f"{self.address}: not connected")

        if tag is None:
            tag = self._next_tag()

        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        self._pending[tag] = fut

        try:
            size = 4 + 1 + 2 + len(payload)
            header = struct.pack("<IBH", size, msg_type, tag)
            self._trace("->", msg_type, tag, payload)

            async with self._write_lock:
                self.writer.write(header + payload)
                await self.writer.drain()

            body = await fut
        finally:
            self._pending.pop(tag, None)

        self._check(body)
        return body

    async def _rpc_inline(self, msg_type: int, payload: bytes, tag: int) -> bytes:
        """Send T-message and read R-message inline (before reader loop starts).

        Used only during version negotiation when no reader task is running.
        """
        size = 4 + 1 + 2 + len(payload)
        header = struct.pack("<IBH", size, msg_type, tag)
        self._trace("->", msg_type, tag, payload)

        self.writer.write(header + payload)
        await self.writer.drain()

        size_bytes = await self.reader.readexactly(4)
        resp_size = struct.unpack("<I", size_bytes)[0]
        body = await self.reader.readexactly(resp_size - 4)
        self._trace("<-", body[0], tag, body[3:])
        self._check(body)
        return body

    async def _reader_loop(self):
        """Background task: read responses and dispatch by tag."""
        try:
            while self.connected:
                size_bytes = await self.reader.readexactly(4)
                size = struct.unpack("<I", size_bytes)[0]
                body = await self.reader.readexactly(size - 4)

                # body[0]=type, body[1:3]=tag
                if len(body) < 3:
                    continue
                resp_tag = struct.unpack_from("<H", body, 1)[0]
                self._trace("<-", body[0], resp_tag, body[3:])

                fut = self._pending.get(resp_tag)
                if fut and not fut.done():
                    fut.set_result(body)
                else:
                    logger.debug("unsolicited response tag %d", resp_tag)
        except (asyncio.IncompleteReadError, OSError) as e:
            logger.debug("%s: reader stopped: %s", self.address, e)
        finally:
            self._fail_pending(Hangup(f"{self.address}: connection closed"))

    def _fail_pending(self, error: Exception):
        for fut in self._pending.values():
            if not fut.done():
                fut.set_exception(error)
        self._pending.clear()

    def _check(self, response: bytes):
        """Raise P9Error for an Rerror response"""
        if response[0] != MessageType.Rerror:
            return
        # Rerror: type[1] tag[2] ename[s]
        ename_len = struct.unpack_from("<H", response, 3)[0]
        ename = response[5 : 5 + ename_len].decode("utf-8", errors="replace")
        raise P9Error(ename)

    def _trace(self, direction: str, msg_type: int, tag: int, payload: bytes):
        if not logger.isEnabledFor(logging.DEBUG):
            return
        try:
            name = MessageType(msg_type).name
        except ValueError:
            name = f"Unknown({msg_type})"
        logger.debug("%s %s %s tag %d %d bytes", self.address, direction, name,
                     tag, len(payload))
