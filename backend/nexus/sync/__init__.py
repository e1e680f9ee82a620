from nexus.sync.activity import ActivityLogger, history_query
from nexus.sync.read_markers import JsonFileReadMarkers, MemoryReadMarkers, ReadMarkerStore, marker_key
from nexus.sync.session_tracker import Session, SessionState, SessionTracker
from nexus.sync.unread import StreamSpec, UnreadTracker, badge_label, chat_stream, notification_stream

__all__ = [
    "ActivityLogger",
    "JsonFileReadMarkers",
    "MemoryReadMarkers",
    "ReadMarkerStore",
    "Session",
    "SessionState",
    "SessionTracker",
    "StreamSpec",
    "UnreadTracker",
    "badge_label",
    "chat_stream",
    "history_query",
    "marker_key",
    "notification_stream",
]
