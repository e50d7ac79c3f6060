"""Exceptions raised by the cliprep core."""


class CliprepError(Exception):
    """Base class for all cliprep errors."""


class SessionNotFoundError(CliprepError, LookupError):
    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class VideoNotFoundError(CliprepError, LookupError):
    def __init__(self, video_id: str):
        super().__init__(f"Video not found: {video_id}")
        self.video_id = video_id


class CollectionNotFoundError(CliprepError, LookupError):
    def __init__(self, collection_id: str):
        super().__init__(f"Collection not found: {collection_id}")
        self.collection_id = collection_id


class NothingScheduledError(CliprepError):
    """Raised when a session is requested but the scheduler has no items for it."""

    def __init__(self, playlist_type: str, extra: bool):
        kind = "extra new" if extra else playlist_type
        super().__init__(f"Nothing scheduled for a {kind} session today")
        self.playlist_type = playlist_type
        self.extra = extra


class ExtraNotOfferedError(CliprepError):
    """Raised when an extra session is requested before today's new quota is used up."""

    def __init__(self):
        super().__init__("No extra session is available until today's new videos are played")
