"""
NetEase Cloud Music API 서버 클라이언트.
곡 검색(/search)과 가사 조회(/lyric)만 사용합니다.
"""

import logging
from typing import Any, Optional

import requests

from lyricsync.core.constants import (
    CATALOG_BASE_URL,
    CATALOG_SEARCH_LIMIT,
    CATALOG_SEARCH_TYPE_SONG,
    CATALOG_TIMEOUT_SEC,
    LOG_PREVIEW_CHARS,
)
from lyricsync.core.errors import LyricUnavailable, SearchUnavailable
from lyricsync.core.models import CatalogAlbum, CatalogArtist, CatalogCandidate, LyricPayload

logger = logging.getLogger(__name__)


class CatalogClient:
    def __init__(
        self,
        base_url: str = CATALOG_BASE_URL,
        timeout_sec: float = CATALOG_TIMEOUT_SEC,
        user_agent: str = "lyricsync/0.1",
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def close(self) -> None:
        self.session.close()

    def _get_json(self, path: str, params: dict[str, Any]) -> dict:
        url = f"{self.base_url}{path}"
        r = self.session.get(url, params=params, timeout=self.timeout_sec)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, dict):
            raise ValueError(f"예상치 못한 응답 형식: {str(data)[:LOG_PREVIEW_CHARS]}")
        return data

    # ── 검색 ──────────────────────────────────────────────────────────────────

    def search(self, keyword: str, limit: int = CATALOG_SEARCH_LIMIT) -> list[CatalogCandidate]:
        """
        키워드로 곡 검색. 서버가 정렬한 순서를 그대로 반환합니다.

        Raises:
            SearchUnavailable: 연결 실패, 오류 상태 코드, 해석할 수 없는 응답
        """
        # GET /search?keywords=...&type=1&limit=20&offset=0
        params = {"keywords": keyword, "type": CATALOG_SEARCH_TYPE_SONG, "limit": int(limit), "offset": 0}
        try:
            data = self._get_json("/search", params)
        except (requests.RequestException, ValueError) as e:
            raise SearchUnavailable(f"검색 요청 실패 ('{keyword}'): {e}") from e

        code = data.get("code", 200)
        if code != 200:
            raise SearchUnavailable(f"검색 API 오류 코드: {code}")

        result = data.get("result") or {}
        if not isinstance(result, dict):
            raise SearchUnavailable(f"검색 응답 형식 오류: 'result'가 객체가 아님 ({type(result).__name__})")
        songs = result.get("songs") or []
        if not isinstance(songs, list):
            raise SearchUnavailable(f"검색 응답 형식 오류: 'songs'가 배열이 아님 ({type(songs).__name__})")

        candidates = [c for c in (_parse_song(s) for s in songs) if c is not None]
        logger.info("[검색] '%s' 검색 결과 %d곡", keyword, len(candidates))
        return candidates

    def test_connection(self) -> bool:
        """API 서버 연결 확인 (한 곡만 검색)"""
        try:
            self.search("test", limit=1)
            return True
        except SearchUnavailable as e:
            logger.warning("[검색] 카탈로그 서버 연결 실패 (%s): %s", self.base_url, e)
            return False

    # ── 가사 ──────────────────────────────────────────────────────────────────

    def lyric(self, song_id: int) -> LyricPayload:
        """
        곡 ID로 가사 조회

        Raises:
            LyricUnavailable: 요청 실패, 오류 코드, 원문 가사 없음
        """
        try:
            data = self._get_json("/lyric", {"id": song_id})
        except (requests.RequestException, ValueError) as e:
            raise LyricUnavailable(f"가사 요청 실패 (ID: {song_id}): {e}") from e

        code = data.get("code", 200)
        if code != 200:
            raise LyricUnavailable(f"가사 API 오류 코드: {code} (ID: {song_id})")

        lrc = _lyric_text(data, "lrc", song_id)
        tlyric = _lyric_text(data, "tlyric", song_id)
        romalrc = _lyric_text(data, "romalrc", song_id)
        if not lrc.strip():
            raise LyricUnavailable(f"가사 없음 (ID: {song_id})")

        logger.info(
            "[가사] 가사 수신 (ID: %s, 번역: %s, 발음: %s)",
            song_id,
            "있음" if tlyric.strip() else "없음",
            "있음" if romalrc.strip() else "없음",
        )
        return LyricPayload(lrc=lrc, tlyric=tlyric, romalrc=romalrc, source="catalog")


def _lyric_text(data: dict, field: str, song_id: int) -> str:
    """{"lrc": {"lyric": "..."}} 형태에서 가사 텍스트 추출. 형식이 다르면 LyricUnavailable"""
    block = data.get(field) or {}
    if not isinstance(block, dict):
        raise LyricUnavailable(f"가사 응답 형식 오류: '{field}'가 객체가 아님 (ID: {song_id})")
    text = block.get("lyric") or ""
    if not isinstance(text, str):
        raise LyricUnavailable(f"가사 응답 형식 오류: '{field}.lyric'이 문자열이 아님 (ID: {song_id})")
    return text


def _parse_song(song: Any) -> Optional[CatalogCandidate]:
    """검색 결과 한 곡 변환 (/search와 /cloudsearch 필드명 모두 지원)"""
    if not isinstance(song, dict) or song.get("id") is None:
        return None

    artists = song.get("artists") or song.get("ar") or []
    album = song.get("album") or song.get("al") or {}
    duration = song.get("duration") or song.get("dt") or song.get("duration_ms") or 0

    try:
        return CatalogCandidate(
            id=int(song["id"]),
            name=str(song.get("name") or ""),
            artists=tuple(
                CatalogArtist(name=str(a.get("name") or "")) for a in artists if isinstance(a, dict)
            ),
            album=CatalogAlbum(name=str(album.get("name") or "") if isinstance(album, dict) else ""),
            duration_ms=int(duration),
        )
    except (TypeError, ValueError):
        logger.debug("[검색] 해석할 수 없는 곡 항목 건너뜀: %s", str(song)[:LOG_PREVIEW_CHARS])
        return None
