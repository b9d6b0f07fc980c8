"""
전역 상수.
설정으로 덮어쓸 수 있는 값은 settings/defaults.py의 기본값과 맞춰 둡니다.
"""

# 카탈로그 (NetEase Cloud Music API 서버)
CATALOG_BASE_URL = "http://localhost:3000"
CATALOG_TIMEOUT_SEC = 10
CATALOG_SEARCH_LIMIT = 20
CATALOG_SEARCH_TYPE_SONG = 1

# 재생 시계
CLOCK_INTERVAL_SEC = 1.0

# 번역 가사 병합 허용 오차 (초)
TRANSLATION_TOLERANCE_SEC = 0.5

# 가사 캐시 / 대체 검색
LYRICS_CACHE_FILE = "lyrics_cache.json"
LYRICS_DURATION_TOLERANCE_MS = 30_000
LYRICS_FALLBACK_PROVIDERS = ["Lrclib", "NetEase", "Musixmatch"]

# 로그 미리보기 길이
LOG_PREVIEW_CHARS = 100

# 내보내기 파일 헤더
EXPORT_CREATOR = "LyricSync"

# 내보내기 블록 표시 줄 (NetEase 클라이언트 호환)
EXPORT_TRANSLATION_MARKER = "[翻译歌词]"
EXPORT_ROMANIZATION_MARKER = "[罗马音歌词]"
