# Acme window protocol over 9P
from .event import Event, EventParser, EventFormatError
from .win import Acme, Win

__all__ = [
    'Acme',
    'Win',
    'Event',
    'EventParser',
    'EventFormatError',
]
