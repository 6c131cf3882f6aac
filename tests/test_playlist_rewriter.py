from urllib.parse import quote

import pytest

from hlsproxy.utils.playlist_rewriter import (
    LineKind,
    base_directory,
    build_proxy_url,
    classify_line,
    encode_uri_component,
    resolve_reference,
    rewrite_playlist,
)

MEDIA_URL = "https://cdn.example.com/vod/abc/index.m3u8"

MEDIA_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:3
#EXT-X-TARGETDURATION:10
#EXT-X-KEY:METHOD=AES-128,URI="x"
#EXTINF:10.0,
segment1.ts
#EXTINF:10.0,
segment2.ts?token=abc
#EXT-X-ENDLIST
"""


def proxied(url, kid=None):
    out = "/proxy?url=" + quote(url, safe="-_.!~*'()")
    if kid:
        out += "&kid=" + quote(kid, safe="-_.!~*'()")
    return out


class TestClassifyLine:
    @pytest.mark.parametrize("line,kind", [
        ('#EXT-X-KEY:METHOD=AES-128,URI="x"', LineKind.KEY_DIRECTIVE),
        ("#EXTINF:10.0,", LineKind.DIRECTIVE),
        ("#EXT-X-SESSION-KEY:METHOD=AES-128", LineKind.DIRECTIVE),
        ("# just a comment", LineKind.DIRECTIVE),
        ("", LineKind.OTHER),
        ("   ", LineKind.OTHER),
        ("segment1.ts", LineKind.SEGMENT),
        ("segment1.ts?token=a", LineKind.SEGMENT),
        ("https://h/x/SEG.TS", LineKind.SEGMENT),
        ("sub/index.m3u8", LineKind.PLAYLIST),
        ("sub/index.m3u8?token=a", LineKind.PLAYLIST),
        ("video.mp4", LineKind.OTHER),
    ])
    def test_kinds(self, line, kind):
        assert classify_line(line) is kind

    def test_playlist_and_segment_are_exclusive(self):
        # Query strings never decide the kind
        assert classify_line("index.m3u8?next=seg.ts") is LineKind.PLAYLIST
        assert classify_line("seg.ts?variant=index.m3u8") is LineKind.SEGMENT


class TestResolution:
    def test_base_directory(self):
        assert base_directory("https://h/a/b/master.m3u8") == "https://h/a/b/"

    def test_base_directory_ignores_query(self):
        assert base_directory("https://h/a/master.m3u8?sig=x/y") == "https://h/a/"

    def test_relative_sub_playlist(self):
        resolved = resolve_reference("sub/index.m3u8", "https://h/a/b/master.m3u8")
        assert resolved == "https://h/a/b/sub/index.m3u8"

    def test_absolute_reference_unchanged(self):
        ref = "http://other.example.com/seg.ts"
        assert resolve_reference(ref, MEDIA_URL) == ref

    def test_root_relative_reference(self):
        assert resolve_reference("/live/seg.ts", MEDIA_URL) == "https://cdn.example.com/live/seg.ts"


class TestProxyUrl:
    def test_encoding_matches_encode_uri_component(self):
        assert encode_uri_component("https://h/a b?x=1&y=2") == "https%3A%2F%2Fh%2Fa%20b%3Fx%3D1%26y%3D2"

    def test_without_kid(self):
        assert build_proxy_url("https://h/s.ts") == "/proxy?url=https%3A%2F%2Fh%2Fs.ts"

    def test_with_kid_and_custom_path(self):
        url = build_proxy_url("https://h/s.ts", kid="k/1", proxy_path="/p")
        assert url == "/p?url=https%3A%2F%2Fh%2Fs.ts&kid=k%2F1"


class TestRewritePlaylist:
    def test_key_directive_removed_and_segments_rewritten(self):
        out = rewrite_playlist(MEDIA_PLAYLIST, MEDIA_URL, kid="kid-1")
        lines = out.splitlines()

        assert not any(line.startswith("#EXT-X-KEY") for line in lines)
        assert lines == [
            "#EXTM3U",
            "#EXT-X-VERSION:3",
            "#EXT-X-TARGETDURATION:10",
            "#EXTINF:10.0,",
            proxied("https://cdn.example.com/vod/abc/segment1.ts", "kid-1"),
            "#EXTINF:10.0,",
            proxied("https://cdn.example.com/vod/abc/segment2.ts?token=abc", "kid-1"),
            "#EXT-X-ENDLIST",
        ]

    def test_without_kid_no_kid_parameter(self):
        out = rewrite_playlist(MEDIA_PLAYLIST, MEDIA_URL)
        assert "&kid=" not in out
        assert proxied("https://cdn.example.com/vod/abc/segment1.ts") in out.splitlines()

    def test_master_playlist_variants_rewritten_once(self):
        master = (
            "#EXTM3U\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=800000\n"
            "sub/index.m3u8\n"
            "#EXT-X-STREAM-INF:BANDWIDTH=1600000\n"
            "https://other.example.com/hd/index.m3u8\n"
        )
        out = rewrite_playlist(master, "https://h/a/b/master.m3u8", kid="kid-1")
        lines = out.splitlines()

        assert lines[2] == proxied("https://h/a/b/sub/index.m3u8", "kid-1")
        assert lines[4] == proxied("https://other.example.com/hd/index.m3u8", "kid-1")
        assert out.count("/proxy?url=") == 2

    def test_other_lines_and_line_endings_preserved(self):
        text = "#EXTM3U\r\n\r\n#EXT-X-KEY:METHOD=AES-128,URI=\"k\"\r\nclip.mp4\r\nseg.ts\r\n"
        out = rewrite_playlist(text, "https://h/a/index.m3u8")
        assert out == "#EXTM3U\r\n\r\nclip.mp4\r\n" + proxied("https://h/a/seg.ts") + "\r\n"

    def test_no_trailing_newline(self):
        out = rewrite_playlist("#EXTM3U\nseg.ts", "https://h/a/index.m3u8")
        assert out == "#EXTM3U\n" + proxied("https://h/a/seg.ts")


class TestLineBreaks:
    @pytest.mark.parametrize("separator", ["\u2028", "\u2029", "\x85", "\x0b", "\x0c", "\x1c"])
    def test_unicode_separator_in_title_stays_on_its_line(self, separator):
        title_line = f"#EXTINF:10,Title{separator}part2.ts"
        text = f"#EXTM3U\n{title_line}\nseg.ts\n"

        out = rewrite_playlist(text, "https://h/a/index.m3u8")

        assert out == f"#EXTM3U\n{title_line}\n" + proxied("https://h/a/seg.ts") + "\n"

    def test_bare_carriage_returns(self):
        out = rewrite_playlist("#EXTM3U\rseg.ts\r", "https://h/a/index.m3u8")
        assert out == "#EXTM3U\r" + proxied("https://h/a/seg.ts") + "\r"
