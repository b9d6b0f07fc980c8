"""
JSON 파일 기반 설정 저장소.
값이 실제로 바뀐 경우에만 파일에 쓰고 등록된 옵저버에 알립니다.
기본값은 settings/defaults.py에서 가져옵니다.
"""

import copy
import json
import logging
import os
from typing import Any, Callable, Dict, List

from lyricsync.settings.defaults import DEFAULT_SETTINGS

logger = logging.getLogger(__name__)

SettingsObserver = Callable[[Dict[str, Any]], None]


class SettingsManager:
    """설정 저장소 (옵저버 알림 지원)"""

    def __init__(self, filepath: str = "lyricsync_settings.json") -> None:
        # 상대 경로는 현재 작업 디렉터리 기준
        self.filepath = os.path.abspath(filepath)
        self._settings: Dict[str, Any] = copy.deepcopy(DEFAULT_SETTINGS)
        self._observers: List[SettingsObserver] = []
        self._settings.update(self._read_file())

    def _read_file(self) -> Dict[str, Any]:
        """저장된 값 읽기. 파일이 없거나 손상되었으면 빈 dict (기본값 사용)"""
        if not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, "r", encoding="utf-8") as f:
                stored = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("[설정] %s 읽기 실패, 기본값 사용: %s", self.filepath, e)
            return {}
        if not isinstance(stored, dict):
            logger.warning("[설정] %s 형식 오류 (객체가 아님), 기본값 사용", self.filepath)
            return {}
        return stored

    def _write_file(self) -> None:
        try:
            with open(self.filepath, "w", encoding="utf-8") as f:
                json.dump(self._settings, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning("[설정] %s 저장 실패: %s", self.filepath, e)

    def get(self, key: str, default: Any = None) -> Any:
        return self._settings.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.update({key: value})

    def update(self, values: Dict[str, Any]) -> None:
        """
        여러 값을 한 번에 반영. 바뀐 값이 없으면 저장/알림을 생략합니다.
        """
        changed = {k: v for k, v in values.items() if k not in self._settings or self._settings[k] != v}
        if not changed:
            return
        self._settings.update(changed)
        logger.info("[설정] 변경: %s", ", ".join(sorted(changed)))
        self._write_file()

        snapshot = dict(self._settings)
        for observer in list(self._observers):
            try:
                observer(snapshot)
            except Exception:
                logger.exception("[설정] 옵저버 알림 실패")

    def add_observer(self, observer: SettingsObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def remove_observer(self, observer: SettingsObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)
