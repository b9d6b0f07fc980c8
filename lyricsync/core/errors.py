"""
파이프라인 예외 정의.
모두 로컬에서 복구되며 파이프라인 전체를 멈추지 않습니다.
"""


class LyricSyncError(Exception):
    """LyricSync 예외의 기반 클래스"""


class MalformedInputLine(LyricSyncError):
    """로그 라인의 JSON을 재생 상태로 해석할 수 없음"""

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason}: {line[:100]}")
        self.line = line
        self.reason = reason


class SearchUnavailable(LyricSyncError):
    """카탈로그 서버에 연결할 수 없거나 오류 응답을 받음"""


class NoMatchFound(LyricSyncError):
    """검색은 성공했지만 후보가 없음"""

    def __init__(self, keyword: str) -> None:
        super().__init__(f"검색 결과 없음: '{keyword}'")
        self.keyword = keyword


class LyricUnavailable(LyricSyncError):
    """매칭된 곡의 가사를 가져올 수 없음"""


class LineParseMalformed(LyricSyncError):
    """가사 한 줄의 타임스탬프 해석 실패"""
