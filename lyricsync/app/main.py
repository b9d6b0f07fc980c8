"""
앱 조립 및 실행 진입점.
모든 레이어를 조립하고 로그 스트림(표준 입력 또는 파일)으로 파이프라인을 구동합니다.
이 파일은 앱의 의존성 주입(DI) 역할을 담당합니다.

예:
    adb logcat -s USB_MUSIC:D | lyricsync
    lyricsync captured_logcat.txt
"""

import logging
import sys
from typing import Iterable, Optional, TextIO

from lyricsync.core.events import ActiveLineChanged, MatchResolved, SessionEvent, TrackChanged
from lyricsync.services.catalog_client import CatalogClient
from lyricsync.services.lyrics_fetcher import LyricsFetcher
from lyricsync.services.lyrics_parser import LyricsParser
from lyricsync.services.metadata_matcher import MetadataMatcher
from lyricsync.settings.settings_manager import SettingsManager
from lyricsync.viewmodels.lyric_sync_viewmodel import LyricSyncViewModel


def create_viewmodel(settings: SettingsManager) -> tuple[LyricSyncViewModel, CatalogClient]:
    """서비스 레이어 생성 후 ViewModel 조립"""
    catalog = CatalogClient(
        base_url=settings.get("catalog_base_url"),
        timeout_sec=float(settings.get("catalog_timeout_sec")),
    )
    matcher = MetadataMatcher(catalog, search_limit=int(settings.get("search_limit")))
    lyrics_fetcher = LyricsFetcher(
        catalog,
        cache_file=settings.get("lyrics_cache_file") or None,
        fallback_search=bool(settings.get("fallback_lyrics_search", False)),
        fallback_providers=settings.get("fallback_providers"),
    )
    lyrics_parser = LyricsParser(float(settings.get("translation_tolerance_sec")))

    viewmodel = LyricSyncViewModel(
        settings=settings,
        matcher=matcher,
        lyrics_fetcher=lyrics_fetcher,
        lyrics_parser=lyrics_parser,
    )
    return viewmodel, catalog


def _print_event(event: SessionEvent) -> None:
    """콘솔 View: 곡/매칭/현재 가사만 출력"""
    if isinstance(event, TrackChanged):
        print(f"♪ {event.track_key}", flush=True)
    elif isinstance(event, MatchResolved):
        if event.candidate is not None:
            print(f"  ↳ {event.candidate}", flush=True)
        else:
            print("  ↳ 매칭 실패", flush=True)
    elif isinstance(event, ActiveLineChanged) and event.line is not None:
        print(f"[{event.line.timestamp_str}] {event.line.display_text}", flush=True)


def create_and_run(lines: Iterable[str], settings: Optional[SettingsManager] = None) -> None:
    """앱 생성 및 실행 (스트림이 끝날 때까지 블록)"""
    settings = settings or SettingsManager()
    logging.basicConfig(
        level=str(settings.get("log_level", "INFO")).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    viewmodel, catalog = create_viewmodel(settings)
    viewmodel.add_observer(_print_event)

    if not catalog.test_connection():
        logging.getLogger(__name__).warning(
            "[앱] 카탈로그 서버(%s)에 연결할 수 없습니다. 곡 감지만 계속합니다.", catalog.base_url
        )

    viewmodel.start()
    try:
        viewmodel.consume(line.rstrip("\n") for line in lines)
        viewmodel.wait_until_processed()
    except KeyboardInterrupt:
        pass
    finally:
        viewmodel.close()
        catalog.close()


def main(argv: Optional[list[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    source: TextIO
    if argv and argv[0] != "-":
        with open(argv[0], "r", encoding="utf-8", errors="replace") as source:
            create_and_run(source)
    else:
        create_and_run(sys.stdin)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
