"""
LRC 형식의 가사를 파싱하는 모듈.
타임스탬프 추출과 원문/번역 가사 병합을 담당합니다.
"""

import logging
import re
from dataclasses import replace
from typing import Optional

from lyricsync.core.constants import TRANSLATION_TOLERANCE_SEC
from lyricsync.core.errors import LineParseMalformed
from lyricsync.core.models import LyricDocument, LyricLine, LyricPayload

logger = logging.getLogger(__name__)


class LyricsParser:
    """LRC 가사 파서"""

    # [mm:ss], [mm:ss.cc], [mm:ss.ccc] 형식의 타임스탬프
    _TIMESTAMP_PATTERN = re.compile(r"\[(\d{2}):(\d{2})(?:\.(\d{2,3}))?\]")

    def __init__(self, translation_tolerance_sec: float = TRANSLATION_TOLERANCE_SEC) -> None:
        """
        Args:
            translation_tolerance_sec: 번역 라인을 원문 라인에 붙일 때 허용하는 시간 차이 (초)
        """
        self.translation_tolerance_sec = translation_tolerance_sec

    def parse(self, lyrics_text: Optional[str]) -> LyricDocument:
        """
        가사 텍스트를 파싱하여 LyricDocument 반환

        Args:
            lyrics_text: LRC 형식 가사 텍스트

        Returns:
            타임스탬프 기준으로 안정 정렬된 LyricDocument
        """
        if not lyrics_text or not lyrics_text.strip():
            return LyricDocument.empty()

        lines: list[LyricLine] = []
        for line_no, raw_line in enumerate(lyrics_text.replace("\r", "").split("\n"), start=1):
            try:
                lines.extend(self._parse_line(raw_line))
            except LineParseMalformed as e:
                logger.warning("[가사] %d번째 줄 건너뜀: %s", line_no, e)

        # sort()는 안정 정렬이므로 같은 시각의 라인은 원래 순서를 유지
        lines.sort(key=lambda x: x.time_seconds)
        return LyricDocument(tuple(lines))

    def _parse_line(self, line: str) -> list[LyricLine]:
        """단일 라인 파싱. 태그가 여러 개면 태그마다 한 라인씩 생성"""
        line = line.strip()
        if not line:
            return []

        matches = list(self._TIMESTAMP_PATTERN.finditer(line))
        if not matches:
            return []   # [ti:...] 같은 메타데이터 또는 일반 텍스트

        text = self._TIMESTAMP_PATTERN.sub("", line).strip()
        if not text:
            return []   # 타임스탬프만 있는 줄

        return [LyricLine(time_seconds=self._to_seconds(m), text=text) for m in matches]

    @staticmethod
    def _to_seconds(match: "re.Match[str]") -> float:
        minutes = int(match.group(1))
        seconds = int(match.group(2))
        raw_sub = match.group(3) or ""
        if seconds >= 60:
            raise LineParseMalformed(f"초 범위 초과 {match.group(0)!r}")

        # 3자리면 밀리초, 2자리면 센티초
        if len(raw_sub) == 3:
            milliseconds = int(raw_sub)
        elif len(raw_sub) == 2:
            milliseconds = int(raw_sub) * 10
        else:
            milliseconds = 0

        return minutes * 60 + seconds + milliseconds / 1000.0

    # ── 번역 병합 ─────────────────────────────────────────────────────────────

    def merge_with_translation(
        self,
        original: LyricDocument,
        translation_text: Optional[str],
        tolerance_sec: Optional[float] = None,
    ) -> LyricDocument:
        """
        번역 가사를 원문 가사에 병합.
        원문 라인마다 시간 차이가 허용 오차 미만인 첫 번째 번역 라인을 붙입니다.
        결과의 라인 수와 순서는 원문과 동일합니다.
        """
        if not translation_text or not translation_text.strip():
            return original

        tolerance = self.translation_tolerance_sec if tolerance_sec is None else tolerance_sec
        translation = self.parse(translation_text)

        merged: list[LyricLine] = []
        attached = 0
        for line in original:
            match = next(
                (t for t in translation if abs(t.time_seconds - line.time_seconds) < tolerance),
                None,
            )
            if match is not None:
                merged.append(replace(line, translation=match.text))
                attached += 1
            else:
                merged.append(replace(line))

        logger.debug("[가사] 번역 병합: %d/%d 라인", attached, len(original))
        return LyricDocument(tuple(merged))

    def parse_payload(self, payload: Optional[LyricPayload]) -> LyricDocument:
        """카탈로그 가사 응답(원문 + 번역)을 하나의 문서로 변환"""
        if payload is None:
            return LyricDocument.empty()
        return self.merge_with_translation(self.parse(payload.lrc), payload.tlyric)
