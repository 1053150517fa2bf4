"""Lesson playback.

Provides:
- Watch-progress tracking with anti-skip, resume and threshold completion
- YouTube player polling and the IFrame API loader
- Lesson content dispatch
- HTTP gateway to the enrollment progress endpoints
"""

from .content import LessonContent, UnavailableContent, resolve_lesson_content
from .gateway import (
    GatewayError,
    HttpEnrollmentGateway,
    ProgressGateway,
    ProgressReport,
    WatchRecord,
)
from .tracker import (
    CompletionState,
    LessonContext,
    MediaPlayer,
    WatchProgressTracker,
    WatchState,
)
from .youtube import (
    PlayerState,
    YouTubeApiLoader,
    YouTubePoller,
    extract_youtube_video_id,
)


__all__ = [
    "CompletionState",
    "GatewayError",
    "HttpEnrollmentGateway",
    "LessonContent",
    "LessonContext",
    "MediaPlayer",
    "PlayerState",
    "ProgressGateway",
    "ProgressReport",
    "UnavailableContent",
    "WatchProgressTracker",
    "WatchRecord",
    "WatchState",
    "YouTubeApiLoader",
    "YouTubePoller",
    "extract_youtube_video_id",
    "resolve_lesson_content",
]
