# Plumber messages and ports
from .message import PlumbMessage, PlumbFormatError, unpack, unpack_attrs
from .port import PlumbPort

__all__ = [
    'PlumbMessage',
    'PlumbFormatError',
    'PlumbPort',
    'unpack',
    'unpack_attrs',
]
