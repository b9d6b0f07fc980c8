"""
옵저버에게 전달되는 세션 이벤트.
상태 변경이 적용된 순서대로 발행됩니다.
"""

from dataclasses import dataclass
from typing import Optional, Union

from lyricsync.core.models import CatalogCandidate, LyricDocument, LyricLine, PlaybackState


@dataclass(frozen=True)
class TrackChanged:
    track_key: str
    state: PlaybackState


@dataclass(frozen=True)
class PlaybackUpdated:
    state: PlaybackState


@dataclass(frozen=True)
class MatchResolved:
    track_key: str
    candidate: Optional[CatalogCandidate]    # None이면 매칭 실패


@dataclass(frozen=True)
class LyricsLoaded:
    track_key: str
    document: LyricDocument


@dataclass(frozen=True)
class ActiveLineChanged:
    index: int
    line: Optional[LyricLine]


@dataclass(frozen=True)
class MonitoringStopped:
    reason: str


SessionEvent = Union[
    TrackChanged, PlaybackUpdated, MatchResolved, LyricsLoaded, ActiveLineChanged, MonitoringStopped
]
