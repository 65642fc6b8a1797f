import tempfile
import threading
import unittest
from pathlib import Path

import requests

from termdeck.lrc import LrcParseError, parse_lrc
from termdeck.providers import (
    LocalLrcProvider,
    LrclibProvider,
    LyricsChain,
    LyricsNotFound,
    LyricsProvider,
)
from termdeck.state import Track

TRACK = Track(name="Song", artist="Band", album="Record", duration_ms=201_400)


class ScriptedProvider(LyricsProvider):
    def __init__(self, name, priority, outcome, calls):
        self.name = name
        self.priority = priority
        self.outcome = outcome
        self.calls = calls

    def attempt(self, track):
        self.calls.append(self.name)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


class TestLyricsChain(unittest.TestCase):
    def setUp(self):
        self.calls = []
        self.doc = parse_lrc("[00:01.00]found it")

    def provider(self, name, priority, outcome):
        return ScriptedProvider(name, priority, outcome, self.calls)

    def test_priority_order_and_short_circuit(self):
        chain = LyricsChain(
            [
                self.provider("five", 5, LyricsNotFound()),
                self.provider("one", 1, self.doc),
                self.provider("ten", 10, LyricsNotFound()),
            ]
        )
        self.assertIs(chain.lookup(TRACK), self.doc)
        self.assertEqual(self.calls, ["one"])

    def test_registration_order_ignored(self):
        chain = LyricsChain()
        chain.register(self.provider("ten", 10, None))
        chain.register(self.provider("one", 1, None))
        chain.register(self.provider("five", 5, None))
        self.assertEqual([p.name for p in chain.providers], ["one", "five", "ten"])
        self.assertIsNone(chain.lookup(TRACK))
        self.assertEqual(self.calls, ["one", "five", "ten"])

    def test_hard_failure_does_not_abort(self):
        chain = LyricsChain(
            [
                self.provider("boom", 1, RuntimeError("bug")),
                self.provider("bad-lrc", 2, LrcParseError("[0a:00.00]")),
                self.provider("good", 3, self.doc),
            ]
        )
        with self.assertLogs("termdeck.providers", level="ERROR"):
            self.assertIs(chain.lookup(TRACK), self.doc)
        self.assertEqual(self.calls, ["boom", "bad-lrc", "good"])

    def test_empty_document_is_not_success(self):
        chain = LyricsChain(
            [
                self.provider("empty", 1, parse_lrc("just text")),
                self.provider("good", 2, self.doc),
            ]
        )
        self.assertIs(chain.lookup(TRACK), self.doc)

    def test_nothing_found_is_none(self):
        chain = LyricsChain([self.provider("miss", 1, LyricsNotFound())])
        self.assertIsNone(chain.lookup(TRACK))

    def test_found_documents_are_memoized(self):
        chain = LyricsChain([self.provider("one", 1, self.doc)])
        chain.lookup(TRACK)
        chain.lookup(Track(name="Song", artist="Band", position_ms=5000))
        self.assertEqual(self.calls, ["one"])

    def test_misses_are_not_memoized(self):
        chain = LyricsChain([self.provider("miss", 1, None)])
        chain.lookup(TRACK)
        chain.lookup(TRACK)
        self.assertEqual(self.calls, ["miss", "miss"])

    def test_cancel_stops_before_next_provider(self):
        cancelled = threading.Event()

        class CancellingProvider(ScriptedProvider):
            def attempt(self, track):
                cancelled.set()
                return super().attempt(track)

        chain = LyricsChain(
            [
                CancellingProvider("local", 1, LyricsNotFound(), self.calls),
                self.provider("remote", 2, self.doc),
            ]
        )
        self.assertIsNone(chain.lookup(TRACK, cancelled))
        self.assertEqual(self.calls, ["local"])

    def test_cancelled_result_is_not_memoized(self):
        cancelled = threading.Event()

        class CancellingProvider(ScriptedProvider):
            def attempt(self, track):
                cancelled.set()
                return super().attempt(track)

        chain = LyricsChain([CancellingProvider("local", 1, self.doc, self.calls)])
        self.assertIsNone(chain.lookup(TRACK, cancelled))
        self.assertIs(chain.lookup(TRACK), self.doc)
        self.assertEqual(self.calls, ["local", "local"])


class TestLocalLrcProvider(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.dir = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def test_artist_title_file(self):
        (self.dir / "Band - Song.lrc").write_text("[00:02.00]local line", encoding="utf-8")
        doc = LocalLrcProvider(self.dir).attempt(TRACK)
        self.assertEqual(doc.lines[0].text, "local line")

    def test_title_only_file(self):
        (self.dir / "Song.lrc").write_text("\ufeff[00:02.00]bom is fine", encoding="utf-8")
        doc = LocalLrcProvider(self.dir).attempt(TRACK)
        self.assertEqual(doc.lines[0].text, "bom is fine")

    def test_unsafe_characters_are_replaced(self):
        track = Track(name="A/B", artist="AC:DC")
        paths = LocalLrcProvider(self.dir).candidates(track)
        self.assertEqual(paths[0].name, "AC_DC - A_B.lrc")

    def test_missing_file_is_not_found(self):
        with self.assertRaises(LyricsNotFound):
            LocalLrcProvider(self.dir).attempt(TRACK)


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code}")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, routes):
        self.routes = routes
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        result = self.routes[url.rsplit("/", 1)[-1]]
        if isinstance(result, Exception):
            raise result
        return result


class TestLrclibProvider(unittest.TestCase):
    def make(self, routes):
        session = FakeSession(routes)
        return LrclibProvider(base_url="https://lrclib.test/", session=session), session

    def test_get_hit(self):
        provider, session = self.make({"get": FakeResponse(payload={"syncedLyrics": "[00:01.00]hi"})})
        doc = provider.attempt(TRACK)
        self.assertEqual(doc.lines[0].text, "hi")
        url, params, _ = session.requests[0]
        self.assertEqual(url, "https://lrclib.test/api/get")
        self.assertEqual(params["track_name"], "Song")
        self.assertEqual(params["album_name"], "Record")
        self.assertEqual(params["duration"], 201)

    def test_falls_back_to_search(self):
        provider, session = self.make(
            {
                "get": FakeResponse(status_code=404),
                "search": FakeResponse(
                    payload=[
                        {"instrumental": True, "syncedLyrics": None},
                        {"syncedLyrics": "[00:03.00]from search"},
                    ]
                ),
            }
        )
        doc = provider.attempt(TRACK)
        self.assertEqual(doc.lines[0].text, "from search")
        self.assertEqual(len(session.requests), 2)

    def test_plain_only_is_not_found(self):
        provider, _ = self.make(
            {
                "get": FakeResponse(payload={"plainLyrics": "words", "syncedLyrics": ""}),
                "search": FakeResponse(payload=[]),
            }
        )
        with self.assertRaises(LyricsNotFound):
            provider.attempt(TRACK)

    def test_network_error_is_not_found(self):
        provider, _ = self.make({"get": requests.ConnectionError("offline")})
        with self.assertRaises(LyricsNotFound):
            provider.attempt(TRACK)

    def test_http_error_is_not_found(self):
        provider, _ = self.make({"get": FakeResponse(status_code=503)})
        with self.assertRaises(LyricsNotFound):
            provider.attempt(TRACK)


if __name__ == "__main__":
    unittest.main(verbosity=2)
