"""
재생 중일 때만 도는 1초 주기 타이머.
매 실행마다 토큰을 발급하므로, 받는 쪽은 is_current()로 정지 이후의 늦은 틱을 걸러낼 수 있습니다.
"""

import logging
import threading
from typing import Callable, Optional

from lyricsync.core.constants import CLOCK_INTERVAL_SEC

logger = logging.getLogger(__name__)


class PlaybackClock:
    def __init__(
        self,
        on_tick: Callable[[int, int], None],
        interval_sec: float = CLOCK_INTERVAL_SEC,
    ) -> None:
        """
        Args:
            on_tick: (경과 밀리초, 실행 토큰)을 받는 콜백. 타이머 스레드에서 호출됩니다.
            interval_sec: 틱 주기 (초)
        """
        self._on_tick = on_tick
        self._interval_sec = interval_sec
        self._lock = threading.Lock()
        self._token = 0
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._stop_event is not None

    @property
    def interval_ms(self) -> int:
        return int(self._interval_sec * 1000)

    @property
    def token(self) -> int:
        with self._lock:
            return self._token

    def is_current(self, token: int) -> bool:
        """실행 중이고 토큰이 현재 실행의 것인지"""
        with self._lock:
            return self._stop_event is not None and token == self._token

    def start(self) -> None:
        """이미 실행 중이면 아무것도 하지 않음"""
        with self._lock:
            if self._stop_event is not None:
                return
            self._token += 1
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._token, self._stop_event),
                name="playback-clock",
                daemon=True,
            )
            self._thread.start()
        logger.debug("[동기화] 재생 시계 시작")

    def stop(self) -> None:
        """이미 멈춰 있으면 아무것도 하지 않음"""
        with self._lock:
            if self._stop_event is None:
                return
            self._stop_event.set()
            self._stop_event = None
            self._thread = None
            self._token += 1
        logger.debug("[동기화] 재생 시계 정지")

    def _run(self, token: int, stop_event: threading.Event) -> None:
        while not stop_event.wait(self._interval_sec):
            if not self.is_current(token):
                return
            self._on_tick(self.interval_ms, token)
