"""
새로 들어온 재생 상태가 다른 곡인지 판단합니다.
같은 곡이면 기존 매칭 정보가 지워지지 않도록 보호합니다.
이 판단이 카탈로그 검색을 시작하는 유일한 관문입니다.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from lyricsync.core.models import PlaybackState, same_track_key, track_key
from lyricsync.core.session import TrackSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackEvaluation:
    is_new_track: bool
    preserve_match: bool
    track_key: Optional[str]    # 제목이 비어 있으면 None

    @property
    def is_no_track(self) -> bool:
        return self.track_key is None


class TrackChangeDetector:
    """TrackKey 비교로 곡 변경을 감지"""

    def evaluate(self, new_state: PlaybackState, session: TrackSession) -> TrackEvaluation:
        # 제목이 비어 있으면 "곡 없음": 리셋도 검색도 하지 않음
        if not new_state.has_title:
            logger.debug("[감지] 제목 없는 상태 보고, 기존 정보 유지")
            return TrackEvaluation(is_new_track=False, preserve_match=True, track_key=None)

        new_key = track_key(new_state.title, new_state.artist)
        prior_key = session.track_key

        if prior_key is None:
            logger.info("[감지] 첫 곡 감지: '%s'", new_key)
            return TrackEvaluation(is_new_track=True, preserve_match=False, track_key=new_key)

        if not same_track_key(new_key, prior_key):
            logger.info("[감지] 곡 변경: '%s' -> '%s'", prior_key, new_key)
            return TrackEvaluation(is_new_track=True, preserve_match=False, track_key=new_key)

        if session.match is not None:
            logger.debug("[감지] 같은 곡, 매칭 정보 유지: %s", session.match.name)
        return TrackEvaluation(is_new_track=False, preserve_match=True, track_key=prior_key)
