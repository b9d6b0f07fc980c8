"""
기기 로그 라인에서 재생 상태를 추출합니다.
로그 라인 예: D/USB_MUSIC( 1234): {"title": "...", "artist": "...", "position": 0, "state": true}
"""

import json
import logging
from typing import Any, Iterable, Iterator, Optional

from lyricsync.core.constants import LOG_PREVIEW_CHARS
from lyricsync.core.errors import MalformedInputLine
from lyricsync.core.models import PlaybackState

logger = logging.getLogger(__name__)


class LogLineIngester:
    """로그 라인 → PlaybackState 변환기"""

    _decoder = json.JSONDecoder()

    def ingest(self, line: Optional[str]) -> Optional[PlaybackState]:
        """
        로그 한 줄 처리. 상태 보고가 아니거나 해석에 실패하면 None.
        해석 실패는 로그로 남기고 해당 줄만 버립니다.
        """
        if not line or not line.strip():
            return None

        json_start = line.find("{")
        if json_start < 0:
            return None

        try:
            return self.parse_state(line[json_start:])
        except MalformedInputLine as e:
            logger.warning("[수집] 재생 상태 해석 실패: %s", e)
            return None

    def parse_state(self, data: str) -> PlaybackState:
        """JSON 객체 하나를 PlaybackState로 변환 (뒤따르는 텍스트는 무시)"""
        try:
            obj, _ = self._decoder.raw_decode(data)
        except json.JSONDecodeError as e:
            raise MalformedInputLine(data, f"JSON 오류 ({e.msg})") from e

        if not isinstance(obj, dict):
            raise MalformedInputLine(data, "JSON 객체가 아님")

        logger.debug("[수집] 원본 데이터: %s", data[:LOG_PREVIEW_CHARS])
        return PlaybackState(
            title=_as_str(obj, "title", data),
            artist=_as_str(obj, "artist", data),
            album=_as_str(obj, "album", data),
            position_ms=_as_int(obj, "position", data),
            is_playing=_as_bool(obj, "state", data),
            duration_ms=_as_int(obj, "duration", data),
        )

    def iter_states(self, lines: Iterable[str]) -> Iterator[PlaybackState]:
        """여러 줄에서 재생 상태만 골라 순서대로 반환"""
        for line in lines:
            state = self.ingest(line)
            if state is not None:
                yield state


def _as_str(obj: dict, key: str, data: str) -> str:
    value: Any = obj.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise MalformedInputLine(data, f"'{key}' 필드가 문자열이 아님")
    return value


def _as_int(obj: dict, key: str, data: str) -> int:
    value: Any = obj.get(key)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedInputLine(data, f"'{key}' 필드가 숫자가 아님")
    return int(value)


def _as_bool(obj: dict, key: str, data: str) -> bool:
    value: Any = obj.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise MalformedInputLine(data, f"'{key}' 필드가 불리언이 아님")
    return value
