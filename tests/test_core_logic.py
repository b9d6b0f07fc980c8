"""
LyricSync 핵심 로직 테스트.
데이터 모델, 로그 수집, 곡 변경 감지, LRC 파싱을 검증합니다.
"""

import os
import sys
import unittest

# 프로젝트 루트를 sys.path에 추가
TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from lyricsync.core.models import (
    CatalogArtist,
    CatalogCandidate,
    LyricDocument,
    LyricLine,
    LyricPayload,
    PlaybackState,
    clean_title,
    format_time,
    same_track_key,
    track_key,
)
from lyricsync.core.session import SearchStatus, SessionPhase, TrackSession
from lyricsync.services.log_ingester import LogLineIngester
from lyricsync.services.lyrics_parser import LyricsParser
from lyricsync.services.track_detector import TrackChangeDetector


class TestModels(unittest.TestCase):
    def test_track_key_strips_parenthetical(self):
        """괄호 속 번역 제목은 키에서 제거"""
        self.assertEqual(track_key("Song (English)", "Artist"), track_key("Song", "Artist"))
        self.assertEqual(track_key("Song (Eng)", "A"), "Song - A")

    def test_track_key_case_insensitive(self):
        self.assertTrue(same_track_key(track_key("song", "ARTIST"), track_key("Song", "artist")))
        self.assertFalse(same_track_key(track_key("Song", "A"), track_key("Song", "B")))
        self.assertFalse(same_track_key(None, "Song - A"))

    def test_clean_title_keeps_leading_paren(self):
        self.assertEqual(clean_title("(Intro) Dawn"), "(Intro) Dawn")
        self.assertEqual(clean_title("  晴天 (Sunny Day) "), "晴天")
        self.assertEqual(clean_title(None), "")

    def test_format_time(self):
        self.assertEqual(format_time(0), "0:00")
        self.assertEqual(format_time(-5), "0:00")
        self.assertEqual(format_time(180000), "3:00")
        self.assertEqual(format_time(62500), "1:02")

    def test_lyric_line_display(self):
        line = LyricLine(62.5, "hello", "안녕")
        self.assertEqual(line.timestamp_str, "01:02.50")
        self.assertEqual(line.display_text, "hello\n안녕")
        self.assertTrue(line.has_translation)
        self.assertEqual(LyricLine(1.0, "x").display_text, "x")

    def test_candidate_artist_line(self):
        c = CatalogCandidate(id=1, name="Song", artists=(CatalogArtist("A"), CatalogArtist("B")))
        self.assertEqual(c.artist_line, "A, B")
        self.assertEqual(str(c), "Song - A, B (ID: 1)")


class TestLogLineIngester(unittest.TestCase):
    def setUp(self):
        self.ingester = LogLineIngester()

    def test_extracts_state_after_prefix(self):
        line = (
            'D/USB_MUSIC( 1234): {"title":"Song (Eng)","artist":"A","album":"Alb",'
            '"position":1500,"state":true,"duration":200000}'
        )
        state = self.ingester.ingest(line)
        self.assertEqual(
            state,
            PlaybackState("Song (Eng)", "A", "Alb", position_ms=1500, is_playing=True, duration_ms=200000),
        )

    def test_duration_defaults_to_zero(self):
        state = self.ingester.ingest('{"title":"T","artist":"A","album":"","position":0,"state":false}')
        self.assertEqual(state.duration_ms, 0)
        self.assertFalse(state.is_playing)

    def test_line_without_object_is_ignored(self):
        self.assertIsNone(self.ingester.ingest("I/ActivityManager: Start proc"))
        self.assertIsNone(self.ingester.ingest(""))

    def test_malformed_json_is_dropped(self):
        """해석 실패는 예외 없이 None"""
        self.assertIsNone(self.ingester.ingest('USB_MUSIC: {"title": "T", "artist": '))
        self.assertIsNone(self.ingester.ingest('{"title": 5, "artist": "A"}'))
        self.assertIsNone(self.ingester.ingest('{"title": "T", "position": "soon"}'))
        self.assertIsNone(self.ingester.ingest("[1, 2] {not json"))

    def test_iter_states_skips_noise(self):
        lines = [
            "noise",
            '{"title":"A","artist":"x","position":0,"state":true}',
            "{broken",
            '{"title":"B","artist":"y","position":0,"state":true}',
        ]
        titles = [s.title for s in self.ingester.iter_states(lines)]
        self.assertEqual(titles, ["A", "B"])


class TestTrackChangeDetector(unittest.TestCase):
    def setUp(self):
        self.detector = TrackChangeDetector()
        self.session = TrackSession()

    def _state(self, title, artist="A", **kwargs):
        return PlaybackState(title=title, artist=artist, **kwargs)

    def test_first_track_is_new(self):
        ev = self.detector.evaluate(self._state("Song (Eng)"), self.session)
        self.assertTrue(ev.is_new_track)
        self.assertFalse(ev.preserve_match)
        self.assertEqual(ev.track_key, "Song - A")

    def test_same_key_preserves_match(self):
        self.session.reset("Song - A")
        ev = self.detector.evaluate(self._state("SONG (English)", "a"), self.session)
        self.assertFalse(ev.is_new_track)
        self.assertTrue(ev.preserve_match)

    def test_different_key_is_new(self):
        self.session.reset("Song - A")
        ev = self.detector.evaluate(self._state("Other"), self.session)
        self.assertTrue(ev.is_new_track)

    def test_empty_title_is_no_track(self):
        self.session.reset("Song - A")
        ev = self.detector.evaluate(self._state("", "A"), self.session)
        self.assertTrue(ev.is_no_track)
        self.assertFalse(ev.is_new_track)
        self.assertTrue(ev.preserve_match)


class TestTrackSession(unittest.TestCase):
    def test_match_survives_same_track_updates(self):
        """같은 곡의 연속 업데이트에서 매칭 정보와 길이 유지"""
        session = TrackSession()
        detector = TrackChangeDetector()
        candidate = CatalogCandidate(id=7, name="Song", duration_ms=180000)

        first = PlaybackState("Song", "Artist", position_ms=0, is_playing=True)
        ev = detector.evaluate(first, session)
        session.reset(ev.track_key)
        session.apply_state(first)
        session.apply_match(candidate)

        for i, title in enumerate(["song", "SONG (Live)", "Song"], start=1):
            update = PlaybackState(title, "artist", position_ms=i * 1000, is_playing=True, duration_ms=0)
            ev = detector.evaluate(update, session)
            self.assertFalse(ev.is_new_track)
            session.apply_state(update)
            self.assertIs(session.match, candidate)
            self.assertEqual(session.state.duration_ms, 180000)

        self.assertEqual(session.search_status, SearchStatus.MATCHED)
        self.assertEqual(session.phase, SessionPhase.TRACKING)

    def test_device_duration_carried_over_zero(self):
        session = TrackSession()
        session.reset("T - A")
        session.apply_state(PlaybackState("T", "A", duration_ms=200000))
        merged = session.apply_state(PlaybackState("T", "A", duration_ms=0))
        self.assertEqual(merged.duration_ms, 200000)

    def test_reset_clears_everything(self):
        session = TrackSession()
        session.reset("T - A")
        session.apply_state(PlaybackState("T", "A", is_playing=True))
        session.apply_match(CatalogCandidate(id=1, name="T", duration_ms=1000))
        session.active_line_index = 3
        session.reset("U - B")
        self.assertIsNone(session.match)
        self.assertIsNone(session.state)
        self.assertEqual(session.active_line_index, -1)
        self.assertEqual(session.protected_duration_ms, 0)
        self.assertEqual(len(session.document), 0)

    def test_apply_transport_keeps_identity(self):
        session = TrackSession()
        session.reset("T - A")
        session.apply_state(PlaybackState("T", "A", position_ms=0, is_playing=True))
        updated = session.apply_transport(5000, False)
        self.assertEqual((updated.title, updated.position_ms, updated.is_playing), ("T", 5000, False))

    def test_to_idle(self):
        session = TrackSession()
        session.reset("T - A")
        session.apply_state(PlaybackState("T", "A"))
        session.to_idle()
        self.assertEqual(session.phase, SessionPhase.IDLE)
        self.assertIsNone(session.track_key)


class TestLyricsParser(unittest.TestCase):
    def setUp(self):
        self.parser = LyricsParser()

    def test_single_line(self):
        doc = self.parser.parse("[01:02.50]hello")
        self.assertEqual(len(doc), 1)
        self.assertAlmostEqual(doc[0].time_seconds, 62.5)
        self.assertEqual(doc[0].text, "hello")

    def test_timestamp_only_line_is_ignored(self):
        self.assertEqual(len(self.parser.parse("[00:00]")), 0)
        self.assertEqual(len(self.parser.parse("[00:00.00]   ")), 0)

    def test_empty_input(self):
        self.assertEqual(len(self.parser.parse("")), 0)
        self.assertEqual(len(self.parser.parse(None)), 0)

    def test_fraction_precision(self):
        doc = self.parser.parse("[00:01]a\n[00:02.05]b\n[00:03.250]c")
        self.assertEqual([round(l.time_seconds, 3) for l in doc], [1.0, 2.05, 3.25])

    def test_out_of_range_seconds_skip_only_that_line(self):
        """초가 60 이상인 줄은 건너뛰고 나머지는 유지"""
        with self.assertLogs("lyricsync.services.lyrics_parser", level="WARNING") as logs:
            doc = self.parser.parse("[00:01.00]a\n[00:75.00]bad\n[00:59.99]b")
        self.assertEqual([l.text for l in doc], ["a", "b"])
        self.assertIn("2번째 줄", logs.output[0])

    def test_metadata_and_untimed_lines_ignored(self):
        lrc = "[ti:Title]\n[ar:Artist]\nplain text\n[00:01.00]real\r\n"
        doc = self.parser.parse(lrc)
        self.assertEqual([l.text for l in doc], ["real"])

    def test_multiple_tags_emit_one_line_each_sorted(self):
        doc = self.parser.parse("[00:10.00][00:01.00]chorus\n[00:05.00]verse")
        self.assertEqual([(l.time_seconds, l.text) for l in doc], [(1.0, "chorus"), (5.0, "verse"), (10.0, "chorus")])

    def test_stable_sort_for_equal_times(self):
        doc = self.parser.parse("[00:05.00]first\n[00:01.00]zero\n[00:05.00]second")
        self.assertEqual([l.text for l in doc], ["zero", "first", "second"])

    def test_reparse_serialized_document_preserves_order(self):
        doc = self.parser.parse("[00:03.20]c\n[00:01.10]a\n[00:02.00]b\n[00:02.00]b2")
        again = self.parser.parse(doc.to_lrc())
        self.assertEqual([(l.time_seconds, l.text) for l in again], [(l.time_seconds, l.text) for l in doc])

    def test_merge_with_translation(self):
        original = self.parser.parse("[00:01.00]one\n[00:05.00]two\n[00:09.00]three")
        merged = self.parser.merge_with_translation(
            original, "[00:01.20]하나\n[00:05.60]둘\n[00:20.00]남는 줄"
        )
        self.assertEqual(len(merged), len(original))
        self.assertEqual([l.translation for l in merged], ["하나", None, None])
        self.assertEqual([l.text for l in merged], ["one", "two", "three"])
        # 원본 문서는 변경되지 않음
        self.assertIsNone(original[0].translation)

    def test_merge_tolerance_override(self):
        original = self.parser.parse("[00:05.00]two")
        merged = self.parser.merge_with_translation(original, "[00:05.60]둘", tolerance_sec=1.0)
        self.assertEqual(merged[0].translation, "둘")

    def test_merge_never_adds_lines(self):
        original = self.parser.parse("[00:01.00]one")
        merged = self.parser.merge_with_translation(original, "[00:01.00]a\n[00:01.10]b\n[00:01.20]c")
        self.assertEqual(len(merged), 1)
        self.assertEqual(merged[0].translation, "a")
        self.assertEqual(len(self.parser.merge_with_translation(LyricDocument.empty(), "[00:01.00]a")), 0)

    def test_parse_payload(self):
        doc = self.parser.parse_payload(LyricPayload(lrc="[00:01.00]one", tlyric="[00:01.00]하나"))
        self.assertEqual(doc[0].display_text, "one\n하나")
        self.assertTrue(doc.has_translation)
        self.assertEqual(len(self.parser.parse_payload(None)), 0)


if __name__ == "__main__":
    unittest.main(verbosity=2)
