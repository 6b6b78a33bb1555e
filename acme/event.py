"""
acme.event - Window event messages

Each message read from a window's event file is

    c1 c2 q0 ' ' q1 ' ' flag ' ' nr ' ' text '\\n'

where c1 is the origin (E body/tag file write, F other file, K keyboard,
M mouse), c2 the action (x/X execute in tag/body, l/L look in tag/body,
i/I insert, d/D delete), q0 q1 the character range, and text holds nr
runes (empty when the range is too long to send).

Execute and look messages may be followed by more messages:
  flag & 2  a null click was expanded; the next message holds the expansion
  flag & 8  a chorded argument; two messages follow, the argument and its
            location
EventParser folds those into the event they belong to.
"""

import codecs
from dataclasses import dataclass
from typing import List, Optional, Tuple

EXPANDED = 2
CHORDED = 8


class EventFormatError(ValueError):
    """Garbage on a window's event file"""
    pass


@dataclass
class Event:
    """A single acme window event, expansion already applied."""
    c1: str
    c2: str
    q0: int
    q1: int
    flag: int = 0
    text: str = ""
    oq0: Optional[int] = None
    oq1: Optional[int] = None
    arg: str = ""
    loc: str = ""

    def __post_init__(self):
        # Range as originally clicked, before any expansion
        if self.oq0 is None:
            self.oq0 = self.q0
        if self.oq1 is None:
            self.oq1 = self.q1

    def pack(self) -> bytes:
        """Encoding used to hand the event back to acme."""
        return f"{self.c1}{self.c2}{self.q0} {self.q1} \n".encode("utf-8")

    def __str__(self):
        s = f"{self.c1}{self.c2} {self.oq0}-{self.oq1}"
        if (self.q0, self.q1) != (self.oq0, self.oq1):
            s += f" ({self.q0}-{self.q1})"
        s += f" flag {self.flag:#x} {self.text!r}"
        if self.arg:
            s += f" arg {self.arg!r} loc {self.loc!r}"
        return s


class EventParser:
    """
    Incremental parser for the event file.

    Reads may split a message (or a multi-byte character) anywhere;
    feed() buffers the remainder until the rest arrives.
    """

    def __init__(self):
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buf = ""
        self._raw: List[Event] = []

    def feed(self, data: bytes) -> List[Event]:
        """Add bytes read from the event file, return completed events."""
        self._buf += self._decoder.decode(data)
        while True:
            parsed = self._parse_one()
            if parsed is None:
                break
            event, used = parsed
            self._raw.append(event)
            self._buf = self._buf[used:]
        return self._assemble()

    def _parse_one(self) -> Optional[Tuple[Event, int]]:
        buf = self._buf
        if len(buf) < 2:
            return None
        pos = 2
        nums = []
        for _ in range(4):
            sp = buf.find(" ", pos)
            if sp < 0:
                return None
            try:
                nums.append(int(buf[pos:sp]))
            except ValueError:
                raise EventFormatError(f"bad event message {buf[:40]!r}") from None
            pos = sp + 1
        q0, q1, flag, nr = nums
        end = pos + nr
        if len(buf) <= end:
            return None
        if buf[end] != "\n":
            raise EventFormatError(f"event message not newline-terminated {buf[:40]!r}")
        return Event(buf[0], buf[1], q0, q1, flag, buf[pos:end]), end + 1

    def _assemble(self) -> List[Event]:
        events = []
        while self._raw:
            event = self._raw[0]
            extra = 0
            if event.c2 in "xXlL":
                if event.flag & EXPANDED:
                    extra += 1
                if event.flag & CHORDED and event.c2 in "xX":
                    extra += 2
            if len(self._raw) < 1 + extra:
                break
            group = self._raw[:1 + extra]
            del self._raw[:1 + extra]

            rest = group[1:]
            if event.flag & EXPANDED and event.c2 in "xXlL":
                expansion = rest.pop(0)
                if event.q0 == event.q1:
                    event.q0, event.q1 = expansion.q0, expansion.q1
                    event.text = expansion.text
            if rest:
                event.arg = rest[0].text
                event.loc = rest[1].text
            events.append(event)
        return events
