"""
plumb.message - Plumb message wire format

    src '\\n' dst '\\n' wdir '\\n' type '\\n' attr '\\n' ndata '\\n' data[ndata]

attr is a blank-separated list of name=value pairs; a value holding
blanks or quotes is wrapped in single quotes, with '' standing for a
literal quote.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

HEADER_LINES = 6


class PlumbFormatError(ValueError):
    """Malformed plumb message"""
    pass


@dataclass
class PlumbMessage:
    """A message delivered by the plumber."""
    src: str = ""
    dst: str = ""
    wdir: str = ""
    type: str = "text"
    attrs: Dict[str, str] = field(default_factory=dict)
    data: bytes = b""

    def lookup(self, name: str) -> Optional[str]:
        """Value of attribute name, or None."""
        return self.attrs.get(name)

    @property
    def text(self) -> str:
        return self.data.decode("utf-8", errors="replace")


def unpack_attrs(text: str) -> Dict[str, str]:
    """Parse an attribute line into a dict."""
    attrs: Dict[str, str] = {}
    i, n = 0, len(text)
    while i < n:
        while i < n and text[i] in " \t":
            i += 1
        if i >= n:
            break
        eq = text.find("=", i)
        if eq < 0:
            raise PlumbFormatError(f"attribute without value: {text[i:]!r}")
        name = text[i:eq]
        i = eq + 1
        value = []
        if i < n and text[i] == "'":
            i += 1
            while i < n:
                if text[i] == "'":
                    if i + 1 < n and text[i + 1] == "'":
                        value.append("'")
                        i += 2
                        continue
                    i += 1
                    break
                value.append(text[i])
                i += 1
        else:
            while i < n and text[i] not in " \t":
                value.append(text[i])
                i += 1
        attrs[name] = "".join(value)
    return attrs


def unpack(buf: bytes) -> Optional[Tuple[PlumbMessage, int]]:
    """
    Decode one message from the front of buf.

    Returns (message, bytes consumed), or None if buf does not yet hold
    a whole message.
    """
    pos = 0
    lines = []
    for _ in range(HEADER_LINES):
        nl = buf.find(b"\n", pos)
        if nl < 0:
            return None
        lines.append(buf[pos:nl].decode("utf-8", errors="replace"))
        pos = nl + 1

    src, dst, wdir, mtype, attr, ndata = lines
    try:
        size = int(ndata)
    except ValueError:
        raise PlumbFormatError(f"bad ndata field {ndata!r}") from None
    if size < 0:
        raise PlumbFormatError(f"bad ndata field {ndata!r}")
    if len(buf) < pos + size:
        return None

    message = PlumbMessage(
        src=src,
        dst=dst,
        wdir=wdir,
        type=mtype,
        attrs=unpack_attrs(attr),
        data=bytes(buf[pos:pos + size]),
    )
    return message, pos + size
