"""
매칭된 곡의 가사를 LRC 파일로 내보냅니다.
원문 뒤에 번역([翻译歌词])과 로마자 발음([罗马音歌词]) 블록을 선택적으로 붙입니다.
"""

import logging
import os
import re
from typing import Optional

from lyricsync.core.constants import EXPORT_CREATOR, EXPORT_ROMANIZATION_MARKER, EXPORT_TRANSLATION_MARKER
from lyricsync.core.models import CatalogCandidate, LyricPayload
from lyricsync.services.lyrics_parser import LyricsParser

logger = logging.getLogger(__name__)

# Windows 파일명 금지 문자 + 제어 문자
_INVALID_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def build_file_name(candidate: CatalogCandidate) -> str:
    """'곡명 - 아티스트.lrc' (파일명에 쓸 수 없는 문자는 '_'로 치환)"""
    file_name = f"{candidate.name} - {candidate.artist_line}.lrc"
    return _INVALID_FILENAME_CHARS.sub("_", file_name)


def _extra_block(parser: LyricsParser, marker: str, raw_text: str) -> Optional[str]:
    """표시 줄 + 타임스탬프 가사. 유효한 줄이 없으면 None"""
    document = parser.parse(raw_text)
    if not document:
        return None
    return f"{marker}\n{document.to_lrc()}"


def render_lrc(
    candidate: CatalogCandidate,
    payload: LyricPayload,
    parser: Optional[LyricsParser] = None,
    include_translation: bool = True,
    include_romanization: bool = False,
) -> str:
    """헤더 + 원문 가사 + (선택) 번역 블록 + (선택) 로마자 발음 블록"""
    parser = parser or LyricsParser()
    header = [
        f"[ti:{candidate.name}]",
        f"[ar:{candidate.artist_line}]",
        f"[al:{candidate.album.name}]",
        f"[by:{EXPORT_CREATOR}]",
        "",
    ]
    blocks = ["\n".join(header), parser.parse(payload.lrc).to_lrc()]

    extras = []
    if include_translation and payload.has_translation:
        extras.append(_extra_block(parser, EXPORT_TRANSLATION_MARKER, payload.tlyric))
    if include_romanization and payload.has_romanization:
        extras.append(_extra_block(parser, EXPORT_ROMANIZATION_MARKER, payload.romalrc))

    for block in extras:
        if block:
            blocks.append("")
            blocks.append(block)

    return "\n".join(blocks) + "\n"


def export_lrc(
    candidate: CatalogCandidate,
    payload: LyricPayload,
    directory: str,
    include_translation: bool = True,
    include_romanization: bool = False,
) -> str:
    """
    LRC 파일 저장

    Returns:
        저장된 파일 경로

    Raises:
        OSError: 파일 쓰기 실패
    """
    content = render_lrc(
        candidate,
        payload,
        include_translation=include_translation,
        include_romanization=include_romanization,
    )
    os.makedirs(directory, exist_ok=True)
    file_path = os.path.join(directory, build_file_name(candidate))

    with open(file_path, "w", encoding="utf-8") as f:
        f.write(content)

    logger.info("[내보내기] LRC 저장 완료: %s (%d 바이트)", file_path, os.path.getsize(file_path))
    return file_path
