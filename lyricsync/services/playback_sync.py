"""
재생 경과 시간을 현재 가사 라인 인덱스로 변환합니다.
인덱스가 바뀔 때만 콜백을 호출합니다.
"""

import bisect
import logging
from typing import Callable, Optional

from lyricsync.core.models import LyricDocument

logger = logging.getLogger(__name__)


class PlaybackSynchronizer:
    """경과 시간 → 활성 가사 라인 인덱스"""

    def __init__(
        self,
        on_active_line_changed: Optional[Callable[[int], None]] = None,
        offset_ms: int = 0,
    ) -> None:
        """
        Args:
            on_active_line_changed: 활성 라인이 바뀌었을 때 호출 (새 인덱스 전달)
            offset_ms: 싱크 오프셋 (양수 = 가사 지연)
        """
        self._on_active_line_changed = on_active_line_changed
        self._document = LyricDocument.empty()
        self._times: list[float] = []
        self._elapsed_ms = 0
        self._offset_ms = offset_ms
        self._last_emitted_index = -1

    @property
    def elapsed_ms(self) -> int:
        return self._elapsed_ms

    @property
    def document(self) -> LyricDocument:
        return self._document

    @property
    def last_emitted_index(self) -> int:
        return self._last_emitted_index

    @property
    def offset_ms(self) -> int:
        return self._offset_ms

    # ── 입력 ──────────────────────────────────────────────────────────────────

    def on_tick(self, delta_ms: int) -> int:
        """시계 틱: 경과 시간 증가 후 재계산"""
        self._elapsed_ms += delta_ms
        return self._update()

    def sync_position(self, position_ms: int) -> int:
        """기기에서 받은 재생 위치로 경과 시간을 교체"""
        self._elapsed_ms = max(0, position_ms)
        return self._update()

    def set_document(self, document: LyricDocument) -> int:
        """새 가사 문서 지정. 다음 틱을 기다리지 않고 즉시 재계산"""
        self._document = document
        self._times = document.times
        self._last_emitted_index = -1
        return self._update()

    def set_offset(self, offset_ms: int) -> int:
        """싱크 오프셋 변경 (절대값)"""
        self._offset_ms = offset_ms
        return self._update()

    def reset(self) -> None:
        """새 곡: 빈 문서, 경과 시간 0"""
        self._document = LyricDocument.empty()
        self._times = []
        self._elapsed_ms = 0
        self._last_emitted_index = -1

    # ── 계산 ──────────────────────────────────────────────────────────────────

    def compute_active_index(self) -> int:
        """time_seconds <= 경과 시간인 가장 큰 인덱스, 없으면 -1"""
        effective_seconds = (self._elapsed_ms - self._offset_ms) / 1000.0
        return bisect.bisect_right(self._times, effective_seconds) - 1

    def _update(self) -> int:
        new_index = self.compute_active_index()
        if new_index != self._last_emitted_index:
            self._last_emitted_index = new_index
            logger.debug("[동기화] 활성 라인 %d (경과 %dms)", new_index, self._elapsed_ms)
            if self._on_active_line_changed:
                self._on_active_line_changed(new_index)
        return new_index
