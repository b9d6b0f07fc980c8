"""
설정 관리, 가사 가져오기(캐시/대체 검색), LRC 내보내기 테스트.
"""

import os
import shutil
import sys
import tempfile
import unittest
from unittest import mock

TEST_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(TEST_DIR)
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from lyricsync.core.errors import LyricUnavailable
from lyricsync.core.models import CatalogAlbum, CatalogArtist, CatalogCandidate, LyricPayload
from lyricsync.services.lrc_exporter import build_file_name, export_lrc, render_lrc
from lyricsync.services.lyrics_fetcher import LyricsFetcher
from lyricsync.services.lyrics_parser import LyricsParser
from lyricsync.settings.settings_manager import SettingsManager

CANDIDATE = CatalogCandidate(
    id=42,
    name="Song",
    artists=(CatalogArtist("A"), CatalogArtist("B")),
    album=CatalogAlbum("Album"),
    duration_ms=180000,
)


class FakeLyricsCatalog:
    def __init__(self, payload=None):
        self.payload = payload
        self.calls = 0

    def lyric(self, song_id):
        self.calls += 1
        if self.payload is None:
            raise LyricUnavailable(f"가사 없음 (ID: {song_id})")
        return self.payload


class TestSettings(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.filename = os.path.join(self.tmpdir, "settings.json")
        self.sm = SettingsManager(self.filename)

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_defaults(self):
        """기본값 로드 검증"""
        self.assertEqual(self.sm.get("catalog_base_url"), "http://localhost:3000")
        self.assertEqual(self.sm.get("clock_interval_sec"), 1.0)
        self.assertEqual(self.sm.get("translation_tolerance_sec"), 0.5)
        self.assertEqual(self.sm.get("lyric_offset_ms"), 0)

    def test_save_load(self):
        """설정 저장 및 로드 검증"""
        self.sm.set("lyric_offset_ms", 300)
        sm2 = SettingsManager(self.filename)
        self.assertEqual(sm2.get("lyric_offset_ms"), 300)
        self.assertEqual(sm2.get("search_limit"), 20)

    def test_observers(self):
        seen = []
        self.sm.add_observer(seen.append)
        self.sm.add_observer(seen.append)
        self.sm.update({"lyric_offset_ms": 100, "log_level": "DEBUG"})
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0]["lyric_offset_ms"], 100)
        self.sm.remove_observer(seen.append)
        self.sm.set("lyric_offset_ms", 0)
        self.assertEqual(len(seen), 1)

    def test_failing_observer_does_not_block_others(self):
        seen = []

        def broken(_settings):
            raise RuntimeError("boom")

        self.sm.add_observer(broken)
        self.sm.add_observer(seen.append)
        self.sm.set("log_level", "WARNING")
        self.assertEqual(len(seen), 1)

    def test_corrupt_file_falls_back_to_defaults(self):
        with open(self.filename, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertEqual(SettingsManager(self.filename).get("search_limit"), 20)

    def test_unchanged_value_does_not_notify(self):
        """같은 값을 다시 설정하면 저장/알림 생략"""
        seen = []
        self.sm.add_observer(seen.append)
        self.sm.set("lyric_offset_ms", 0)
        self.sm.update({"search_limit": 20, "log_level": "INFO"})
        self.assertEqual(seen, [])
        self.assertFalse(os.path.exists(self.filename))

        self.sm.update({"search_limit": 20, "lyric_offset_ms": 250})
        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0]["lyric_offset_ms"], 250)


class TestLyricsFetcher(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()
        self.cache_file = os.path.join(self.tmpdir, "cache.json")

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_catalog_then_cache(self):
        catalog = FakeLyricsCatalog(LyricPayload(lrc="[00:01.00]a", tlyric="[00:01.00]가"))
        fetcher = LyricsFetcher(catalog, cache_file=self.cache_file)
        first = fetcher.fetch(CANDIDATE)
        self.assertEqual(first.source, "catalog")

        # 새 인스턴스도 파일 캐시를 사용
        fetcher2 = LyricsFetcher(catalog, cache_file=self.cache_file)
        second = fetcher2.fetch(CANDIDATE)
        self.assertEqual(second.source, "cache")
        self.assertEqual(second.tlyric, "[00:01.00]가")
        self.assertEqual(catalog.calls, 1)

    def test_cache_keeps_romanization(self):
        catalog = FakeLyricsCatalog(LyricPayload(lrc="[00:01.00]君", romalrc="[00:01.00]kimi"))
        LyricsFetcher(catalog, cache_file=self.cache_file).fetch(CANDIDATE)
        cached = LyricsFetcher(catalog, cache_file=self.cache_file).fetch(CANDIDATE)
        self.assertEqual(cached.source, "cache")
        self.assertEqual(cached.romalrc, "[00:01.00]kimi")

    def test_invalid_cache_entry_is_refetched(self):
        with open(self.cache_file, "w", encoding="utf-8") as f:
            f.write('{"42": "not an entry"}')
        catalog = FakeLyricsCatalog(LyricPayload(lrc="[00:01.00]a"))
        payload = LyricsFetcher(catalog, cache_file=self.cache_file).fetch(CANDIDATE)
        self.assertEqual(payload.source, "catalog")
        self.assertEqual(catalog.calls, 1)

    def test_unavailable_without_fallback(self):
        fetcher = LyricsFetcher(FakeLyricsCatalog(None), cache_file=None)
        with mock.patch("lyricsync.services.lyrics_fetcher.syncedlyrics.search") as search:
            with self.assertRaises(LyricUnavailable):
                fetcher.fetch(CANDIDATE)
        search.assert_not_called()

    def test_fallback_search_validates_duration(self):
        too_short = "[00:10.00]wrong song"
        good = "[00:10.00]a\n[02:50.00]end"

        def fake_search(query, providers):
            return too_short if providers == ["Lrclib"] else good

        fetcher = LyricsFetcher(
            FakeLyricsCatalog(None), cache_file=None, fallback_search=True, fallback_providers=["Lrclib", "NetEase"]
        )
        with mock.patch("lyricsync.services.lyrics_fetcher.syncedlyrics.search", side_effect=fake_search) as search:
            payload = fetcher.fetch(CANDIDATE, "Song (Eng)", "A")

        self.assertEqual(payload.lrc, good)
        self.assertEqual(payload.source, "syncedlyrics:NetEase")
        self.assertEqual(search.call_args_list[0][0][0], "A, B Song")

    def test_fallback_provider_errors_are_skipped(self):
        fetcher = LyricsFetcher(
            FakeLyricsCatalog(None), cache_file=None, fallback_search=True, fallback_providers=["Lrclib"]
        )
        with mock.patch(
            "lyricsync.services.lyrics_fetcher.syncedlyrics.search", side_effect=ConnectionError("offline")
        ):
            with self.assertRaises(LyricUnavailable):
                fetcher.fetch(CANDIDATE, "Song", "A")


class TestLrcExporter(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.tmpdir, ignore_errors=True)

    def test_render_with_translation(self):
        payload = LyricPayload(lrc="[ti:x]\n[00:01.5]bad\n[00:01.00]one\n[00:00.50]zero", tlyric="[00:01.00]하나")
        content = render_lrc(CANDIDATE, payload)
        self.assertEqual(
            content,
            "[ti:Song]\n[ar:A, B]\n[al:Album]\n[by:LyricSync]\n\n"
            "[00:00.50]zero\n[00:01.00]one\n\n[翻译歌词]\n[00:01.00]하나\n",
        )

    def test_render_without_translation(self):
        payload = LyricPayload(lrc="[00:01.00]one", tlyric="[00:01.00]하나")
        content = render_lrc(CANDIDATE, payload, include_translation=False)
        self.assertNotIn("하나", content)
        self.assertNotIn("[翻译歌词]", content)
        self.assertEqual(len(LyricsParser().parse(content)), 1)

    def test_render_with_romanization(self):
        payload = LyricPayload(lrc="[00:01.00]君", tlyric="[00:01.00]너", romalrc="[00:01.00]kimi")
        self.assertNotIn("kimi", render_lrc(CANDIDATE, payload))

        content = render_lrc(CANDIDATE, payload, include_romanization=True)
        self.assertTrue(
            content.endswith("[00:01.00]君\n\n[翻译歌词]\n[00:01.00]너\n\n[罗马音歌词]\n[00:01.00]kimi\n")
        )

    def test_block_without_timed_lines_is_omitted(self):
        payload = LyricPayload(lrc="[00:01.00]one", tlyric="번역 없음")
        self.assertNotIn("[翻译歌词]", render_lrc(CANDIDATE, payload))

    def test_file_name_sanitized(self):
        candidate = CatalogCandidate(id=1, name='What? / Why: "Now"', artists=(CatalogArtist("A|B"),))
        self.assertEqual(build_file_name(candidate), "What_ _ Why_ _Now_ - A_B.lrc")

    def test_export_writes_utf8(self):
        path = export_lrc(CANDIDATE, LyricPayload(lrc="[00:01.00]가사"), self.tmpdir)
        self.assertEqual(os.path.basename(path), "Song - A, B.lrc")
        with open(path, "r", encoding="utf-8") as f:
            self.assertIn("[00:01.00]가사", f.read())


if __name__ == "__main__":
    unittest.main(verbosity=2)
