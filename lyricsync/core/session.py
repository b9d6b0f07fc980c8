"""
현재 추적 중인 곡의 세션 상태.
쓰기는 LyricSyncViewModel 하나만 하고, 옵저버는 snapshot()으로 읽기만 합니다.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from lyricsync.core.models import CatalogCandidate, LyricDocument, LyricPayload, PlaybackState


class SessionPhase(Enum):
    IDLE = "idle"
    TRACKING = "tracking"


class SearchStatus(Enum):
    NOT_SEARCHED = "not_searched"
    SEARCHING = "searching"
    MATCHED = "matched"
    UNMATCHED = "unmatched"


@dataclass
class TrackSession:
    """재생 상태 + 매칭 결과 + 가사 문서 + 현재 라인 인덱스"""
    phase: SessionPhase = SessionPhase.IDLE
    state: Optional[PlaybackState] = None
    track_key: Optional[str] = None
    match: Optional[CatalogCandidate] = None
    search_status: SearchStatus = SearchStatus.NOT_SEARCHED
    document: LyricDocument = field(default_factory=LyricDocument.empty)
    payload: Optional[LyricPayload] = None
    active_line_index: int = -1
    protected_duration_ms: int = 0
    search_epoch: int = 0           # 곡 변경마다 증가, 늦게 온 검색 결과 구분용

    # ── 수명 주기 ─────────────────────────────────────────────────────────────

    def reset(self, new_key: Optional[str] = None) -> None:
        """새 곡 감지 시 초기화 (이전 곡의 상태/매칭/가사/인덱스 모두 비움)"""
        self.state = None
        self.track_key = new_key
        self.match = None
        self.search_status = SearchStatus.NOT_SEARCHED
        self.document = LyricDocument.empty()
        self.payload = None
        self.active_line_index = -1
        self.protected_duration_ms = 0
        self.search_epoch += 1

    def to_idle(self) -> None:
        """모니터링 종료 또는 스트림 종료 시 Idle로 복귀"""
        self.reset()
        self.phase = SessionPhase.IDLE

    # ── 갱신 ──────────────────────────────────────────────────────────────────

    def apply_state(self, new_state: PlaybackState) -> PlaybackState:
        """
        같은 곡의 새 재생 상태를 반영.
        이미 알고 있는 길이는 0/빈 값으로 덮어쓰지 않습니다.

        Returns:
            세션에 저장된 (보호 필드가 반영된) 재생 상태
        """
        duration = new_state.duration_ms
        if self.protected_duration_ms > 0:
            duration = self.protected_duration_ms
        elif duration <= 0 and self.state is not None and self.state.duration_ms > 0:
            duration = self.state.duration_ms

        merged = replace(new_state, duration_ms=duration) if duration != new_state.duration_ms else new_state
        self.state = merged
        if merged.has_title:
            self.phase = SessionPhase.TRACKING
        return merged

    def apply_transport(self, position_ms: int, is_playing: bool) -> Optional[PlaybackState]:
        """제목 없는 상태 보고: 위치와 재생 여부만 반영"""
        if self.state is None:
            return None
        self.state = replace(self.state, position_ms=position_ms, is_playing=is_playing)
        return self.state

    def apply_match(self, candidate: CatalogCandidate) -> None:
        self.match = candidate
        self.search_status = SearchStatus.MATCHED
        if candidate.duration_ms > 0:
            self.protected_duration_ms = candidate.duration_ms
            if self.state is not None:
                self.state = replace(self.state, duration_ms=candidate.duration_ms)

    def advance(self, delta_ms: int) -> None:
        if self.state is not None:
            self.state = replace(self.state, position_ms=self.state.position_ms + delta_ms)

    # ── 읽기 ──────────────────────────────────────────────────────────────────

    @property
    def is_tracking(self) -> bool:
        return self.phase is SessionPhase.TRACKING

    @property
    def is_playing(self) -> bool:
        return self.state is not None and self.state.is_playing

    def snapshot(self) -> "TrackSession":
        """옵저버용 얕은 복사본 (내부 필드는 모두 불변 객체)"""
        return replace(self)
