"""
카탈로그 검색 결과에서 현재 곡에 가장 잘 맞는 후보를 고르는 모듈.

선택 규칙 (앞에서부터 처음 맞는 후보 사용):
1. 제목 일치 + 아티스트 일치 (대소문자 무시)
2. 제목 일치 + 아티스트 부분 일치 (양방향 포함 관계)
3. 제목 일치
4. 제목 부분 일치 (양방향 포함 관계)
5. 첫 번째 검색 결과
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from lyricsync.core.constants import CATALOG_SEARCH_LIMIT
from lyricsync.core.errors import NoMatchFound, SearchUnavailable
from lyricsync.core.models import CatalogCandidate, clean_title, format_time

logger = logging.getLogger(__name__)


class CatalogSearch(Protocol):
    def search(self, keyword: str, limit: int = ...) -> list[CatalogCandidate]: ...


class MatchRule(Enum):
    EXACT_BOTH = "exact_both"
    EXACT_NAME_PARTIAL_ARTIST = "exact_name_partial_artist"
    EXACT_NAME = "exact_name"
    SUBSTRING = "substring"
    FALLBACK = "fallback"


# 평가 순서
MATCH_RULES: tuple[MatchRule, ...] = (
    MatchRule.EXACT_BOTH,
    MatchRule.EXACT_NAME_PARTIAL_ARTIST,
    MatchRule.EXACT_NAME,
    MatchRule.SUBSTRING,
    MatchRule.FALLBACK,
)

_RULE_LABELS = {
    MatchRule.EXACT_BOTH: "제목/아티스트 완전 일치",
    MatchRule.EXACT_NAME_PARTIAL_ARTIST: "제목 일치, 아티스트 부분 일치",
    MatchRule.EXACT_NAME: "제목 일치",
    MatchRule.SUBSTRING: "제목 부분 일치",
    MatchRule.FALLBACK: "정확한 일치 없음, 첫 번째 결과",
}


@dataclass(frozen=True)
class MatchOutcome:
    candidate: CatalogCandidate
    rule: MatchRule
    keyword: str


def build_keyword(title: Optional[str]) -> str:
    """검색어 생성: 제목에서 괄호 이후(번역 제목 등)를 제거. 아티스트/앨범은 넣지 않음"""
    return clean_title(title)


def rule_applies(rule: MatchRule, candidate: CatalogCandidate, title: str, artist: str) -> bool:
    """후보 하나가 규칙을 만족하는지 판정"""
    name = candidate.name or ""
    name_equal = name.casefold() == title.casefold()

    if rule is MatchRule.EXACT_BOTH:
        return name_equal and any(a.casefold() == artist.casefold() for a in candidate.artist_names)
    if rule is MatchRule.EXACT_NAME_PARTIAL_ARTIST:
        return name_equal and any(
            artist in a or a in artist for a in candidate.artist_names
        )
    if rule is MatchRule.EXACT_NAME:
        return name_equal
    if rule is MatchRule.SUBSTRING:
        return bool(name) and (title in name or name in title)
    if rule is MatchRule.FALLBACK:
        return True
    raise ValueError(f"알 수 없는 규칙: {rule}")


def select_best(
    candidates: list[CatalogCandidate], title: str, artist: str = ""
) -> Optional[tuple[CatalogCandidate, MatchRule]]:
    """규칙을 순서대로 평가하여 최적 후보 선택. 후보가 없으면 None"""
    if not candidates:
        return None

    artist = (artist or "").strip()
    for rule in MATCH_RULES:
        for candidate in candidates:
            if rule_applies(rule, candidate, title, artist):
                return candidate, rule
    return None


class MetadataMatcher:
    """카탈로그 검색 + 후보 선택. 실패해도 아무 상태도 바꾸지 않습니다."""

    def __init__(self, catalog: CatalogSearch, search_limit: int = CATALOG_SEARCH_LIMIT) -> None:
        self._catalog = catalog
        self._search_limit = search_limit

    def resolve(self, title: str, artist: str = "") -> MatchOutcome:
        """
        최적 후보 검색

        Raises:
            NoMatchFound: 검색어가 비었거나 검색 결과가 없음
            SearchUnavailable: 카탈로그 서버 오류
        """
        keyword = build_keyword(title)
        if not keyword:
            logger.info("[검색] 검색어가 비어 있어 검색하지 않음")
            raise NoMatchFound(keyword)

        logger.info("[검색] 카탈로그 검색: '%s' (아티스트: '%s')", keyword, artist)
        candidates = self._catalog.search(keyword, limit=self._search_limit)

        best = select_best(candidates, keyword, artist)
        if best is None:
            raise NoMatchFound(keyword)

        candidate, rule = best
        logger.info(
            "[검색] 매칭 (%s): %s, 길이 %s", _RULE_LABELS[rule], candidate, format_time(candidate.duration_ms)
        )
        for i, song in enumerate(candidates[:3], start=1):
            logger.debug("[검색]   %d. %s", i, song)
        return MatchOutcome(candidate=candidate, rule=rule, keyword=keyword)

    def search(self, title: str, artist: str = "") -> tuple[Optional[CatalogCandidate], bool]:
        """최적 후보와 발견 여부 반환. 실패는 (None, False)"""
        try:
            outcome = self.resolve(title, artist)
        except NoMatchFound as e:
            logger.info("[검색] %s", e)
            return None, False
        except SearchUnavailable as e:
            logger.warning("[검색] 카탈로그 검색 실패: %s", e)
            return None, False
        return outcome.candidate, True
