"""
gitfiles.names - Revision-qualified names

A name addresses a path inside one revision of a repository:

    /home/glenda/src/proj@main/lib/util.c
    └──── root ────────┘ └┬─┘ └── path ──┘
                       treeish

The path may be omitted ("/src/proj@v1.2", "/src/proj@v1.2/"), in which
case it is ".". The treeish cannot contain a slash.
"""

import posixpath
from dataclasses import dataclass

NO_SEPARATOR = "no-separator"
EMPTY_ROOT = "empty-root"
EMPTY_OR_ABSOLUTE_TREEISH = "empty-or-absolute-treeish"


class NameParseError(ValueError):
    """A string that is not root@treeish[/path]"""

    def __init__(self, name: str, reason: str):
        super().__init__(f"bad name {name!r}: {reason}")
        self.name = name
        self.reason = reason


@dataclass(frozen=True)
class Name:
    root: str
    treeish: str
    path: str = "."

    def __str__(self):
        if self.path == ".":
            return f"{self.root}@{self.treeish}"
        return f"{self.root}@{self.treeish}/{self.path}"


def cleanname(name: str) -> str:
    """
    Lexically clean a slash-separated name, like Plan 9's cleanname:
    collapse repeated slashes, drop "." elements and trailing slashes,
    resolve ".." against the preceding element. "" becomes ".".
    """
    if not name:
        return "."
    cleaned = posixpath.normpath(name)
    # POSIX keeps a leading "//"; Plan 9 does not
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def parse(name: str) -> Name:
    """Parse root@treeish[/path], raising NameParseError."""
    cleaned = cleanname(name)
    root, sep, rest = cleaned.partition("@")
    if not sep:
        raise NameParseError(name, NO_SEPARATOR)
    if not root:
        raise NameParseError(name, EMPTY_ROOT)
    if not rest or rest.startswith("/"):
        raise NameParseError(name, EMPTY_OR_ABSOLUTE_TREEISH)

    treeish, _, path = rest.partition("/")
    return Name(root=root, treeish=treeish, path=path or ".")
