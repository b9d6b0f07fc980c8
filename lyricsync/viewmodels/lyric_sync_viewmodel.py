"""
가사 동기화 ViewModel.
로그 수집 → 곡 변경 감지 → 카탈로그 매칭 → 가사 파싱 → 라인 동기화를 조립합니다.

책임:
- TrackSession의 유일한 쓰기 주체 (모든 변경은 작업 큐를 거쳐 하나의 소유 스레드에서 실행)
- 곡당 한 번의 백그라운드 검색/가사 조회
- 재생 시계 제어
- 옵저버에 이벤트 알림 (상태가 적용된 순서 그대로)
"""

import logging
import queue
import threading
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Any, Callable, Optional

from lyricsync.core.constants import CLOCK_INTERVAL_SEC
from lyricsync.core.errors import LyricUnavailable, NoMatchFound, SearchUnavailable
from lyricsync.core.events import (
    ActiveLineChanged,
    LyricsLoaded,
    MatchResolved,
    MonitoringStopped,
    PlaybackUpdated,
    SessionEvent,
    TrackChanged,
)
from lyricsync.core.models import (
    CatalogCandidate,
    LyricDocument,
    LyricLine,
    LyricPayload,
    PlaybackState,
    format_time,
    same_track_key,
)
from lyricsync.core.session import SearchStatus, TrackSession
from lyricsync.services.log_ingester import LogLineIngester
from lyricsync.services.lrc_exporter import export_lrc
from lyricsync.services.lyrics_fetcher import LyricsFetcher
from lyricsync.services.lyrics_parser import LyricsParser
from lyricsync.services.metadata_matcher import MetadataMatcher
from lyricsync.services.playback_clock import PlaybackClock
from lyricsync.services.playback_sync import PlaybackSynchronizer
from lyricsync.services.track_detector import TrackChangeDetector
from lyricsync.settings.settings_manager import SettingsManager

logger = logging.getLogger(__name__)

_SHUTDOWN = object()


class LyricSyncViewModel:
    """
    가사 동기화 ViewModel.
    View는 add_observer()로 이벤트를 받고 snapshot()으로 현재 세션을 읽습니다.
    """

    def __init__(
        self,
        settings: SettingsManager,
        matcher: MetadataMatcher,
        lyrics_fetcher: LyricsFetcher,
        lyrics_parser: LyricsParser,
        ingester: Optional[LogLineIngester] = None,
        detector: Optional[TrackChangeDetector] = None,
        executor: Optional[Executor] = None,
    ) -> None:
        self._settings = settings
        self._matcher = matcher
        self._lyrics_fetcher = lyrics_fetcher
        self._lyrics_parser = lyrics_parser
        self._ingester = ingester or LogLineIngester()
        self._detector = detector or TrackChangeDetector()

        # ── 상태 ──────────────────────────────────────────────────────────────
        self._session = TrackSession()
        self._lock = threading.RLock()
        self._generation = 0
        self._pending_events: list[SessionEvent] = []

        # ── 작업 큐 / 소유 스레드 ──────────────────────────────────────────────
        self._inbox: "queue.Queue[Any]" = queue.Queue()
        self._owner_thread: Optional[threading.Thread] = None

        # ── 백그라운드 검색 ────────────────────────────────────────────────────
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="lyricsync-search")

        # ── 동기화 / 시계 ─────────────────────────────────────────────────────
        self._synchronizer = PlaybackSynchronizer(
            self._on_active_line_changed,
            offset_ms=int(settings.get("lyric_offset_ms", 0)),
        )
        self._clock = PlaybackClock(
            self._on_clock_tick,
            interval_sec=float(settings.get("clock_interval_sec", CLOCK_INTERVAL_SEC)),
        )

        # ── 옵저버 ────────────────────────────────────────────────────────────
        self._observers: list[Callable[[SessionEvent], None]] = []
        self._settings.add_observer(self._on_settings_changed)

    # ── 옵저버 관리 ───────────────────────────────────────────────────────────

    def add_observer(self, callback: Callable[[SessionEvent], None]) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: Callable[[SessionEvent], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def _emit(self, event: SessionEvent) -> None:
        """작업 처리가 끝난 뒤 한꺼번에 전달되도록 보관"""
        self._pending_events.append(event)

    def _dispatch(self, events: list[SessionEvent]) -> None:
        for event in events:
            for callback in list(self._observers):
                try:
                    callback(event)
                except Exception:
                    logger.exception("[동기화] 옵저버 알림 실패: %s", type(event).__name__)

    # ── 작업 큐 ───────────────────────────────────────────────────────────────

    def _post(self, fn: Callable[..., None], *args: Any) -> None:
        self._post_as(self._generation, fn, *args)

    def _post_as(self, generation: int, fn: Callable[..., None], *args: Any) -> None:
        self._inbox.put((generation, fn, args))

    def _process(self, item: tuple) -> None:
        generation, fn, args = item
        with self._lock:
            if generation != self._generation:
                logger.debug("[동기화] 모니터링 중지 이전 작업 폐기: %s", getattr(fn, "__name__", fn))
                return
            try:
                fn(*args)
            except Exception:
                logger.exception("[동기화] 작업 처리 중 오류")
            events, self._pending_events = self._pending_events, []
        self._dispatch(events)

    def drain(self) -> int:
        """
        대기 중인 작업을 호출한 스레드에서 모두 처리.
        소유 스레드를 띄우지 않는 호스트(및 테스트)용입니다.

        Returns:
            처리한 작업 수
        """
        processed = 0
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return processed
            try:
                if item is not _SHUTDOWN:
                    self._process(item)
                    processed += 1
            finally:
                self._inbox.task_done()

    def start(self) -> None:
        """소유 스레드 시작 (이미 실행 중이면 무시)"""
        if self._owner_thread is not None and self._owner_thread.is_alive():
            return
        self._owner_thread = threading.Thread(target=self._run_loop, name="lyricsync-owner", daemon=True)
        self._owner_thread.start()

    def _run_loop(self) -> None:
        while True:
            item = self._inbox.get()
            try:
                if item is _SHUTDOWN:
                    return
                self._process(item)
            finally:
                self._inbox.task_done()

    def wait_until_processed(self) -> None:
        """지금까지 들어온 작업이 모두 처리될 때까지 대기 (소유 스레드 실행 중일 때)"""
        self._inbox.join()

    # ── 입력 ──────────────────────────────────────────────────────────────────

    def feed_line(self, line: str) -> bool:
        """
        로그 한 줄 입력. 해석은 호출 스레드에서, 상태 반영은 소유 스레드에서 처리합니다.

        Returns:
            재생 상태 보고였는지 여부
        """
        state = self._ingester.ingest(line)
        if state is None:
            return False
        self._post(self._handle_state, state)
        return True

    def feed_state(self, state: PlaybackState) -> None:
        self._post(self._handle_state, state)

    def consume(self, lines) -> None:
        """스트림이 끝날 때까지 줄 단위로 입력한 뒤 Idle로 복귀"""
        for line in lines:
            self.feed_line(line)
        self.end_of_stream()

    def end_of_stream(self) -> None:
        self._post(self._apply_stream_end)

    def adjust_sync(self, offset_ms: int) -> None:
        """싱크 오프셋 조절 (절대값, 양수 = 가사 지연)"""
        self._post(self._apply_offset, offset_ms)

    def tick(self, delta_ms: Optional[int] = None) -> None:
        """시계 틱을 직접 주입 (재생 중이 아니면 무시됨)"""
        if delta_ms is None:
            delta_ms = self._clock.interval_ms
        self._post(self._apply_tick, delta_ms, self._clock.token)

    # ── 재생 상태 처리 (소유 스레드) ───────────────────────────────────────────

    def _handle_state(self, state: PlaybackState) -> None:
        session = self._session
        evaluation = self._detector.evaluate(state, session)

        if evaluation.is_no_track:
            if not session.is_tracking:
                return
            updated = session.apply_transport(state.position_ms, state.is_playing)
            if updated is not None:
                self._after_state(updated)
            return

        if evaluation.is_new_track:
            session.reset(evaluation.track_key)
            self._synchronizer.reset()

        merged = session.apply_state(state)
        if evaluation.is_new_track:
            logger.info("[감지] 새 곡: %s (길이 %s)", evaluation.track_key, format_time(merged.duration_ms))
            self._emit(TrackChanged(track_key=evaluation.track_key, state=merged))

        self._after_state(merged)

        if evaluation.is_new_track:
            self._start_search(evaluation.track_key, merged)

    def _after_state(self, state: PlaybackState) -> None:
        self._emit(PlaybackUpdated(state=state))
        self._synchronizer.sync_position(state.position_ms)
        if state.is_playing:
            self._clock.start()
        else:
            self._clock.stop()

    def _apply_tick(self, delta_ms: int, token: int) -> None:
        if not self._clock.is_current(token) or not self._session.is_playing:
            return
        self._session.advance(delta_ms)
        self._synchronizer.on_tick(delta_ms)

    def _apply_offset(self, offset_ms: int) -> None:
        if offset_ms != self._synchronizer.offset_ms:
            logger.info("[동기화] 싱크 오프셋: %dms", offset_ms)
            self._synchronizer.set_offset(offset_ms)

    def _apply_stream_end(self) -> None:
        logger.info("[수집] 로그 스트림 종료, Idle로 복귀")
        self._clock.stop()
        self._session.to_idle()
        self._synchronizer.reset()
        self._emit(MonitoringStopped(reason="stream_end"))

    def _on_active_line_changed(self, index: int) -> None:
        self._session.active_line_index = index
        document = self._session.document
        line: Optional[LyricLine] = document[index] if 0 <= index < len(document) else None
        self._emit(ActiveLineChanged(index=index, line=line))

    # ── 검색 (백그라운드) ─────────────────────────────────────────────────────

    def _start_search(self, key: str, state: PlaybackState) -> None:
        """곡 변경당 한 번만 검색 시작"""
        session = self._session
        if session.search_status is not SearchStatus.NOT_SEARCHED:
            return
        session.search_status = SearchStatus.SEARCHING
        try:
            self._executor.submit(
                self._search_worker, self._generation, session.search_epoch, key, state.title, state.artist
            )
        except RuntimeError as e:
            # 종료된 executor
            logger.warning("[검색] 검색 작업을 시작할 수 없음: %s", e)
            session.search_status = SearchStatus.UNMATCHED

    def _is_current_search(self, epoch: int) -> bool:
        with self._lock:
            return epoch == self._session.search_epoch

    def _search_worker(self, generation: int, epoch: int, key: str, title: str, artist: str) -> None:
        # 대기하는 동안 곡이 바뀌었으면 검색하지 않음
        if not self._is_current_search(epoch):
            logger.debug("[검색] 곡이 바뀌어 검색 생략: '%s'", key)
            return

        try:
            outcome = self._matcher.resolve(title, artist)
        except SearchUnavailable as e:
            logger.warning("[검색] 카탈로그 검색 실패, 다음 곡 변경 시 재시도: %s", e)
            self._post_as(generation, self._apply_search_failure, key, epoch)
            return
        except NoMatchFound as e:
            logger.info("[검색] %s", e)
            self._post_as(generation, self._apply_no_match, key, epoch)
            return
        except Exception:
            logger.exception("[검색] 검색 중 예상치 못한 오류: '%s'", key)
            self._post_as(generation, self._apply_search_failure, key, epoch)
            return

        self._post_as(generation, self._apply_match, key, epoch, outcome.candidate)

        if not self._is_current_search(epoch):
            return

        payload: Optional[LyricPayload] = None
        try:
            payload = self._lyrics_fetcher.fetch(outcome.candidate, title, artist)
            document = self._lyrics_parser.parse_payload(payload)
        except LyricUnavailable as e:
            logger.info("[가사] 가사 없음, 빈 문서로 진행: %s", e)
            payload = None
            document = LyricDocument.empty()
        except Exception:
            logger.exception("[가사] 가사 처리 중 예상치 못한 오류: %s", outcome.candidate)
            payload = None
            document = LyricDocument.empty()
        self._post_as(generation, self._apply_lyrics, key, epoch, payload, document)

    def _accepts(self, key: str, epoch: int) -> bool:
        if epoch == self._session.search_epoch and same_track_key(key, self._session.track_key):
            return True
        logger.info("[검색] 곡이 바뀌어 늦게 도착한 결과 폐기: '%s'", key)
        return False

    def _apply_search_failure(self, key: str, epoch: int) -> None:
        if not self._accepts(key, epoch):
            return
        # 기존 매칭은 유지
        self._session.search_status = SearchStatus.UNMATCHED

    def _apply_no_match(self, key: str, epoch: int) -> None:
        if not self._accepts(key, epoch):
            return
        self._session.match = None
        self._session.search_status = SearchStatus.UNMATCHED
        self._emit(MatchResolved(track_key=key, candidate=None))

    def _apply_match(self, key: str, epoch: int, candidate: CatalogCandidate) -> None:
        if not self._accepts(key, epoch):
            return
        self._session.apply_match(candidate)
        logger.info("[검색] 매칭 저장: %s, 길이 %s", candidate, format_time(candidate.duration_ms))
        self._emit(MatchResolved(track_key=key, candidate=candidate))
        if self._session.state is not None:
            self._emit(PlaybackUpdated(state=self._session.state))

    def _apply_lyrics(
        self, key: str, epoch: int, payload: Optional[LyricPayload], document: LyricDocument
    ) -> None:
        if not self._accepts(key, epoch):
            return
        self._session.payload = payload
        self._session.document = document
        logger.info(
            "[가사] 가사 적용: %d줄%s", len(document), " (번역 포함)" if document.has_translation else ""
        )
        self._emit(LyricsLoaded(track_key=key, document=document))
        self._synchronizer.set_document(document)

    # ── 시계 / 설정 콜백 (다른 스레드) ─────────────────────────────────────────

    def _on_clock_tick(self, delta_ms: int, token: int) -> None:
        self._post(self._apply_tick, delta_ms, token)

    def _on_settings_changed(self, settings: dict) -> None:
        self._lyrics_parser.translation_tolerance_sec = float(
            settings.get("translation_tolerance_sec", self._lyrics_parser.translation_tolerance_sec)
        )
        self._post(self._apply_offset, int(settings.get("lyric_offset_ms", 0)))

    # ── 읽기 ──────────────────────────────────────────────────────────────────

    def snapshot(self) -> TrackSession:
        """현재 세션 복사본"""
        with self._lock:
            return self._session.snapshot()

    def current_line(self) -> Optional[LyricLine]:
        with self._lock:
            index = self._session.active_line_index
            document = self._session.document
            return document[index] if 0 <= index < len(document) else None

    @property
    def is_clock_running(self) -> bool:
        return self._clock.is_running

    # ── 내보내기 ──────────────────────────────────────────────────────────────

    def export_lyrics(
        self, directory: str, include_translation: bool = True, include_romanization: bool = False
    ) -> Optional[str]:
        """
        현재 매칭된 곡의 가사를 LRC 파일로 저장 (호출 스레드에서 실행).

        Returns:
            저장된 파일 경로, 매칭이 없거나 실패하면 None
        """
        with self._lock:
            candidate = self._session.match
            payload = self._session.payload

        if candidate is None:
            logger.warning("[내보내기] 매칭된 곡이 없어 가사를 내보낼 수 없음")
            return None

        if payload is None:
            try:
                payload = self._lyrics_fetcher.fetch(candidate)
            except LyricUnavailable as e:
                logger.warning("[내보내기] 가사를 가져오지 못함: %s", e)
                return None

        try:
            return export_lrc(
                candidate,
                payload,
                directory,
                include_translation=include_translation,
                include_romanization=include_romanization,
            )
        except OSError as e:
            logger.warning("[내보내기] 파일 저장 실패: %s", e)
            return None

    # ── 종료 ──────────────────────────────────────────────────────────────────

    def stop_monitoring(self, reason: str = "stopped") -> None:
        """
        모니터링 중지: 시계를 즉시 멈추고, 대기 중인 작업과 진행 중인 검색 결과를 폐기하며,
        세션을 Idle로 되돌립니다. 검색 완료를 기다리지 않습니다.
        """
        with self._lock:
            self._generation += 1
            self._clock.stop()
            self._session.to_idle()
            self._synchronizer.reset()
        logger.info("[동기화] 모니터링 중지 (%s)", reason)
        self._post(self._emit, MonitoringStopped(reason=reason))

    def close(self) -> None:
        """ViewModel 종료 처리"""
        self.stop_monitoring("closed")
        self._settings.remove_observer(self._on_settings_changed)
        if self._owner_thread is not None and self._owner_thread.is_alive():
            self._inbox.put(_SHUTDOWN)
            self._owner_thread.join(timeout=1.0)
        self._owner_thread = None
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
