"""
gitfiles - browse revisions of a repository in acme

Windows are named root@treeish/path; helper commands fill them with
the file or directory listing that path has in that revision.
"""

from .config import Settings
from .names import Name, NameParseError, parse, cleanname
from .registry import OpenRequest, Window, WindowRegistry
from .typecache import TypeCache, NegativeCache
from .workspace import Workspace

__all__ = [
    'Settings',
    'Name',
    'NameParseError',
    'parse',
    'cleanname',
    'OpenRequest',
    'Window',
    'WindowRegistry',
    'TypeCache',
    'NegativeCache',
    'Workspace',
]
