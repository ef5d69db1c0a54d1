"""Change events for querycache.

Local writes and external change-data-capture notifications are both
expressed as ChangeEvent and submitted to ChangeNotificationIngester, which
invalidates the affected cache entries.
"""

from querycache.events.ingester import ChangeNotificationIngester, LocalChangeNotifier
from querycache.events.payload import parse_change_payload
from querycache.events.schemas import ChangeEvent, ChangeKind, ChangeOrigin

__all__ = [
    "ChangeEvent",
    "ChangeKind",
    "ChangeOrigin",
    "ChangeNotificationIngester",
    "LocalChangeNotifier",
    "parse_change_payload",
]
