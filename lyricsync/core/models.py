"""
도메인 데이터 클래스 통합 모듈.
재생 상태, 카탈로그 후보, 가사 라인/문서를 한 곳에서 관리합니다.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional


# ── 재생 상태 ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PlaybackState:
    """기기 로그 한 줄에서 추출한 재생 상태 스냅샷"""
    title: str
    artist: str
    album: str = ""
    position_ms: int = 0    # 현재 재생 위치 (밀리초)
    is_playing: bool = False
    duration_ms: int = 0    # 전체 길이 (밀리초), 모르면 0

    @property
    def has_title(self) -> bool:
        return bool(self.title and self.title.strip())


def clean_title(title: Optional[str]) -> str:
    """제목 뒤쪽 괄호 구간(번역 제목 등) 제거. 맨 앞의 괄호는 유지합니다."""
    title = title or ""
    paren = title.find("(")
    if paren > 0:
        title = title[:paren]
    return title.strip()


def track_key(title: Optional[str], artist: Optional[str]) -> str:
    """
    곡 변경 감지용 키 생성 ("제목 - 아티스트").
    비교는 대소문자를 구분하지 않으므로 same_track_key()를 사용하세요.
    """
    return f"{clean_title(title)} - {(artist or '').strip()}"


def same_track_key(a: Optional[str], b: Optional[str]) -> bool:
    if a is None or b is None:
        return False
    return a.casefold() == b.casefold()


def format_time(milliseconds: int) -> str:
    """밀리초를 m:ss 형식으로 변환 (0 이하는 0:00)"""
    if milliseconds <= 0:
        return "0:00"
    total_seconds = milliseconds // 1000
    return f"{total_seconds // 60}:{total_seconds % 60:02d}"


# ── 카탈로그 ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class CatalogArtist:
    name: str


@dataclass(frozen=True)
class CatalogAlbum:
    name: str


@dataclass(frozen=True)
class CatalogCandidate:
    """카탈로그 검색 결과의 곡 후보 (읽기 전용)"""
    id: int
    name: str
    artists: tuple[CatalogArtist, ...] = ()
    album: CatalogAlbum = CatalogAlbum(name="")
    duration_ms: int = 0

    @property
    def artist_names(self) -> list[str]:
        return [a.name for a in self.artists]

    @property
    def artist_line(self) -> str:
        """아티스트 이름을 ', '로 연결"""
        return ", ".join(self.artist_names)

    def __str__(self) -> str:
        return f"{self.name} - {self.artist_line} (ID: {self.id})"


@dataclass(frozen=True)
class LyricPayload:
    """카탈로그(또는 대체 소스)에서 받은 원본 가사 텍스트"""
    lrc: str
    tlyric: str = ""
    source: str = "catalog"
    romalrc: str = ""       # 로마자 발음 가사

    @property
    def has_translation(self) -> bool:
        return bool(self.tlyric and self.tlyric.strip())

    @property
    def has_romanization(self) -> bool:
        return bool(self.romalrc and self.romalrc.strip())


# ── 가사 ──────────────────────────────────────────────────────────────────────

@dataclass
class LyricLine:
    """파싱된 가사 한 줄"""
    time_seconds: float             # 초 단위 타임스탬프
    text: str                       # 가사 텍스트
    translation: Optional[str] = None

    @property
    def has_translation(self) -> bool:
        return bool(self.translation)

    @property
    def display_text(self) -> str:
        """번역이 있으면 원문과 번역을 두 줄로 표시"""
        if not self.translation:
            return self.text
        return f"{self.text}\n{self.translation}"

    @property
    def timestamp_str(self) -> str:
        """타임스탬프를 mm:ss.cc 형식으로 반환"""
        centis = int(round(self.time_seconds * 100))
        minutes, rest = divmod(centis, 6000)
        seconds, centis = divmod(rest, 100)
        return f"{minutes:02d}:{seconds:02d}.{centis:02d}"


@dataclass(frozen=True)
class LyricDocument:
    """
    시간순으로 정렬된 가사 라인 시퀀스.
    LyricsParser가 안정 정렬을 보장하므로 직접 생성 시에도 정렬된 라인을 넘겨야 합니다.
    """
    lines: tuple[LyricLine, ...] = field(default_factory=tuple)

    @classmethod
    def empty(cls) -> "LyricDocument":
        return cls(())

    def __len__(self) -> int:
        return len(self.lines)

    def __iter__(self) -> Iterator[LyricLine]:
        return iter(self.lines)

    def __getitem__(self, index: int) -> LyricLine:
        return self.lines[index]

    def __bool__(self) -> bool:
        return bool(self.lines)

    @property
    def has_translation(self) -> bool:
        return any(line.has_translation for line in self.lines)

    @property
    def times(self) -> list[float]:
        return [line.time_seconds for line in self.lines]

    def to_lrc(self) -> str:
        """[mm:ss.cc]text 형식으로 직렬화"""
        return "\n".join(f"[{line.timestamp_str}]{line.text}" for line in self.lines)
