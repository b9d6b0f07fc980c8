"""
기본 설정값 상수.
SettingsManager 클래스 내부에서 분리하여 독립적으로 관리합니다.
"""

from typing import Any

from lyricsync.core import constants

DEFAULT_SETTINGS: dict[str, Any] = {
    "catalog_base_url": constants.CATALOG_BASE_URL,
    "catalog_timeout_sec": constants.CATALOG_TIMEOUT_SEC,
    "search_limit": constants.CATALOG_SEARCH_LIMIT,
    "clock_interval_sec": constants.CLOCK_INTERVAL_SEC,
    "translation_tolerance_sec": constants.TRANSLATION_TOLERANCE_SEC,
    "lyric_offset_ms": 0,
    "fallback_lyrics_search": False,
    "fallback_providers": list(constants.LYRICS_FALLBACK_PROVIDERS),
    "lyrics_cache_file": constants.LYRICS_CACHE_FILE,
    "log_level": "INFO",
}
