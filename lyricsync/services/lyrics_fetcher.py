"""
매칭된 곡의 가사를 가져오는 모듈.
1순위: 파일 캐시
2순위: 카탈로그 /lyric
3순위 (선택): syncedlyrics 대체 검색 (곡 길이로 유효성 검증)
"""

import json
import logging
import os
import re
import threading
from typing import Optional, Protocol

import syncedlyrics

from lyricsync.core.constants import (
    LYRICS_CACHE_FILE,
    LYRICS_DURATION_TOLERANCE_MS,
    LYRICS_FALLBACK_PROVIDERS,
)
from lyricsync.core.errors import LyricUnavailable
from lyricsync.core.models import CatalogCandidate, LyricPayload

logger = logging.getLogger(__name__)


class CatalogLyrics(Protocol):
    def lyric(self, song_id: int) -> LyricPayload: ...


class LyricsFetcher:
    """가사 가져오기 (파일 캐싱 지원)"""

    def __init__(
        self,
        catalog: CatalogLyrics,
        cache_file: Optional[str] = LYRICS_CACHE_FILE,
        fallback_search: bool = False,
        fallback_providers: Optional[list[str]] = None,
    ) -> None:
        """
        Args:
            catalog: 카탈로그 가사 조회 객체
            cache_file: 캐시 파일 경로, None이면 캐시 사용 안 함
            fallback_search: 카탈로그에 가사가 없을 때 syncedlyrics로 재검색할지 여부
            fallback_providers: syncedlyrics 프로바이더 목록
        """
        self._catalog = catalog
        self._cache_file = cache_file
        self._cache: dict[str, dict[str, str]] = {}
        self._cache_lock = threading.Lock()
        self._fallback_search = fallback_search
        self._fallback_providers = list(fallback_providers or LYRICS_FALLBACK_PROVIDERS)
        self._load_cache()

    # ── 캐시 관리 ─────────────────────────────────────────────────────────────

    def _load_cache(self) -> None:
        """캐시 파일 로드"""
        if not self._cache_file or not os.path.exists(self._cache_file):
            return
        try:
            with open(self._cache_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
            if isinstance(loaded, dict):
                self._cache = loaded
            logger.info("[가사] 캐시 로드 완료 (%d곡)", len(self._cache))
        except (OSError, ValueError) as e:
            logger.warning("[가사] 캐시 로드 실패: %s", e)
            self._cache = {}

    def _save_cache(self) -> None:
        """캐시 파일 저장"""
        if not self._cache_file:
            return
        try:
            with open(self._cache_file, "w", encoding="utf-8") as f:
                json.dump(self._cache, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning("[가사] 캐시 저장 실패: %s", e)

    @staticmethod
    def _get_cache_key(candidate: CatalogCandidate) -> str:
        return str(candidate.id)

    def _load_from_cache(self, cache_key: str) -> Optional[LyricPayload]:
        with self._cache_lock:
            entry = self._cache.get(cache_key)
        if not isinstance(entry, dict) or not entry.get("lrc"):
            return None
        return LyricPayload(
            lrc=entry["lrc"], tlyric=entry.get("tlyric", ""), romalrc=entry.get("romalrc", ""), source="cache"
        )

    def _save_to_cache(self, cache_key: str, payload: LyricPayload) -> None:
        """가사를 캐시에 저장하고 파일에 덤프"""
        with self._cache_lock:
            self._cache[cache_key] = {"lrc": payload.lrc, "tlyric": payload.tlyric, "romalrc": payload.romalrc}
            self._save_cache()

    # ── 공개 API ──────────────────────────────────────────────────────────────

    def fetch(self, candidate: CatalogCandidate, title: str = "", artist: str = "") -> LyricPayload:
        """
        매칭된 곡의 가사 반환

        Args:
            candidate: 매칭된 카탈로그 곡
            title, artist: 대체 검색에 사용할 기기 쪽 곡 정보

        Raises:
            LyricUnavailable: 어떤 소스에서도 가사를 찾지 못함
        """
        cache_key = self._get_cache_key(candidate)
        cached = self._load_from_cache(cache_key)
        if cached:
            logger.info("[가사] 캐시 적중: %s", candidate.name)
            return cached

        try:
            payload = self._catalog.lyric(candidate.id)
        except LyricUnavailable as e:
            if not self._fallback_search:
                raise
            logger.info("[가사] 카탈로그 가사 없음, 대체 검색 시도: %s", e)
            payload = self._search_fallback(candidate, title, artist)

        self._save_to_cache(cache_key, payload)
        return payload

    # ── 대체 검색 ─────────────────────────────────────────────────────────────

    def _search_fallback(self, candidate: CatalogCandidate, title: str, artist: str) -> LyricPayload:
        for query in self._generate_search_queries(candidate, title, artist):
            for provider in self._fallback_providers:
                try:
                    lrc = syncedlyrics.search(query, providers=[provider])
                except Exception as e:  # 프로바이더별 예외 종류가 제각각
                    logger.debug("[가사] 대체 검색 오류 (%s): %s", provider, e)
                    continue
                if lrc and self._validate_lyrics(lrc, candidate.duration_ms):
                    logger.info("[가사] 대체 검색 성공 (쿼리: '%s', 소스: %s)", query, provider)
                    return LyricPayload(lrc=lrc, source=f"syncedlyrics:{provider}")

        raise LyricUnavailable(f"대체 검색에서도 가사 없음: {candidate.name}")

    @staticmethod
    def _generate_search_queries(candidate: CatalogCandidate, title: str, artist: str) -> list[str]:
        """검색어 리스트 생성 (우선순위 순, 중복 제거)"""
        queries = [
            f"{candidate.artist_line} {candidate.name}",
            f"{artist} {title}",
            candidate.name,
        ]
        seen: set[str] = set()
        unique_queries: list[str] = []
        for q in queries:
            q_clean = q.lower().strip()
            if q_clean and len(q_clean) > 1 and q_clean not in seen:
                seen.add(q_clean)
                unique_queries.append(q.strip())
        return unique_queries

    @staticmethod
    def _validate_lyrics(lrc_text: str, target_duration_ms: Optional[int]) -> bool:
        """가사 유효성 검증 (마지막 타임스탬프와 곡 길이 비교)"""
        if not target_duration_ms:
            return True

        matches = re.findall(r"\[(\d+):(\d+(?:\.\d+)?)\]", lrc_text)
        if not matches:
            return True

        last_min, last_sec = matches[-1]
        lrc_duration_ms = int((int(last_min) * 60 + float(last_sec)) * 1000)
        diff = abs(lrc_duration_ms - target_duration_ms)

        if diff > LYRICS_DURATION_TOLERANCE_MS:
            logger.debug(
                "[가사] 길이 차이 과다: LRC=%dms, Track=%dms (Diff: %dms)",
                lrc_duration_ms, target_duration_ms, diff,
            )
            return False
        return True
