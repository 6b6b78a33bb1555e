# 9P2000 client for plan9port services
from .client import (
    P9Client,
    Fid,
    MessageType,
    OpenMode,
    P9Error,
    Hangup,
    namespace,
    service_address,
    parse_dial,
)

__all__ = [
    'P9Client',
    'Fid',
    'MessageType',
    'OpenMode',
    'P9Error',
    'Hangup',
    'namespace',
    'service_address',
    'parse_dial',
]
