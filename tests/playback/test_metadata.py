"""Tests for stream URL and metadata resolution."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from netease_resolver.errors import (
    DecodeError,
    NetworkError,
    NoUrlAvailable,
    ProgramHasNoTrack,
    TrackNotFound,
)
from netease_resolver.playback.metadata import (
    PROGRAM_DETAIL_PATH,
    SONG_DETAIL_PATH,
    SONG_URL_PATH,
    TrackResolver,
    format_duration,
    song_to_metadata,
)
from netease_resolver.playback.types import TrackKind, TrackMetadata, TrackRef

SONG = {
    "name": "晴天",
    "artists": [{"name": "周杰伦"}],
    "duration": 269000,
}

PROGRAM = {
    "program": {
        "id": 2062359528,
        "name": "Episode 12",
        "mainSong": {
            "id": 1809999999,
            "name": "Episode 12 - Talk",
            "artists": [{"name": "Host A"}, {"name": None}, {"name": "Host B"}],
            "duration": 1800000,
        },
    }
}


def _make_api(responses: dict[str, Any]) -> MagicMock:
    """API client mock answering by endpoint path."""
    api = MagicMock()

    async def post(path: str, params: dict[str, str]) -> Any:
        result = responses[path]
        if isinstance(result, BaseException):
            raise result
        return result

    api.post = AsyncMock(side_effect=post)
    return api


def _paths(api: MagicMock) -> list[str]:
    return [c.args[0] for c in api.post.call_args_list]


class TestFormatDuration:
    """Tests for duration formatting."""

    def test_format(self) -> None:
        assert format_duration(269000) == "00:04:29"
        assert format_duration(3723999) == "01:02:03"
        assert format_duration(0) == "00:00:00"


class TestSongToMetadata:
    """Tests for song object conversion."""

    def test_full(self) -> None:
        """Test a complete song entry."""
        metadata = song_to_metadata(SONG)
        assert metadata == TrackMetadata(title="晴天", artists=("周杰伦",), duration_ms=269000)
        assert metadata.sample_rate == 48000
        assert metadata.channels == 2

    def test_artists_joined_and_nameless_skipped(self) -> None:
        """Test display join and skipping null names."""
        metadata = song_to_metadata(PROGRAM["program"]["mainSong"])
        assert metadata.artists == ("Host A", "Host B")
        assert metadata.artist == "Host A, Host B"

    def test_missing_fields(self) -> None:
        """Test that optional fields stay None/empty."""
        metadata = song_to_metadata({})
        assert metadata.title is None
        assert metadata.artists == ()
        assert metadata.duration_ms is None
        assert metadata.duration_s is None

    def test_bad_artists(self) -> None:
        """Test a non-list artists field."""
        with pytest.raises(DecodeError):
            song_to_metadata({"artists": "someone"})

    def test_bad_duration(self) -> None:
        """Test a non-integer duration."""
        with pytest.raises(DecodeError):
            song_to_metadata({"duration": "long"})


class TestGetStreamUrls:
    """Tests for the stream URL lookup."""

    @pytest.mark.asyncio
    async def test_urls_in_order(self) -> None:
        """Test URL list and request parameters."""
        api = _make_api(
            {
                SONG_URL_PATH: {
                    "code": 200,
                    "data": [{"url": "http://m7.music.126.net/a.mp3"}, {"url": "http://m7.music.126.net/b.mp3"}],
                }
            }
        )
        urls = await TrackResolver(api).get_stream_urls([1, 2])

        assert urls == ["http://m7.music.126.net/a.mp3", "http://m7.music.126.net/b.mp3"]
        path, params = api.post.call_args.args
        assert path == "/song/enhance/player/url/"
        assert params == {"ids": "[1,2]", "br": "320000"}

    @pytest.mark.asyncio
    async def test_bitrate_passed(self) -> None:
        """Test a non-default bitrate."""
        api = _make_api({SONG_URL_PATH: {"code": 200, "data": [{"url": "u"}]}})
        await TrackResolver(api, bitrate=128000).get_stream_urls([1])
        assert api.post.call_args.args[1]["br"] == "128000"

    @pytest.mark.asyncio
    async def test_empty_data(self) -> None:
        """Test empty data is NoUrlAvailable."""
        api = _make_api({SONG_URL_PATH: {"code": 200, "data": []}})
        with pytest.raises(NoUrlAvailable):
            await TrackResolver(api).get_stream_urls([1])

    @pytest.mark.asyncio
    async def test_null_urls(self) -> None:
        """Test entries without a URL (region blocked) are NoUrlAvailable."""
        api = _make_api({SONG_URL_PATH: {"code": 200, "data": [{"id": 1, "url": None}]}})
        with pytest.raises(NoUrlAvailable):
            await TrackResolver(api).get_stream_urls([1])

    @pytest.mark.asyncio
    async def test_missing_data(self) -> None:
        """Test response without data is a shape mismatch."""
        api = _make_api({SONG_URL_PATH: {"code": 200}})
        with pytest.raises(DecodeError):
            await TrackResolver(api).get_stream_urls([1])


class TestGetMetadata:
    """Tests for the song detail lookup."""

    @pytest.mark.asyncio
    async def test_first_song(self) -> None:
        """Test metadata and request parameters."""
        api = _make_api({SONG_DETAIL_PATH: {"songs": [SONG, {"name": "other"}], "code": 200}})
        metadata = await TrackResolver(api).get_metadata([26209670])

        assert metadata.title == "晴天"
        path, params = api.post.call_args.args
        assert path == "/song/detail"
        assert json.loads(params["c"]) == [{"id": "26209670"}]
        assert json.loads(params["ids"]) == ["26209670"]
        assert params["c"] == '[{"id":"26209670"}]'

    @pytest.mark.asyncio
    async def test_no_songs(self) -> None:
        """Test empty songs is TrackNotFound."""
        api = _make_api({SONG_DETAIL_PATH: {"songs": [], "code": 200}})
        with pytest.raises(TrackNotFound):
            await TrackResolver(api).get_metadata([1])


class TestUnwrapProgram:
    """Tests for program unwrapping."""

    @pytest.mark.asyncio
    async def test_inner_track(self) -> None:
        """Test inner id and metadata come from mainSong."""
        api = _make_api({PROGRAM_DETAIL_PATH: PROGRAM})
        track_id, metadata = await TrackResolver(api).unwrap_program(2062359528)

        assert track_id == 1809999999
        assert metadata.title == "Episode 12 - Talk"
        assert metadata.duration_ms == 1800000
        assert api.post.call_args.args == ("/dj/program/detail", {"id": "2062359528"})

    @pytest.mark.parametrize(
        "response",
        [
            {},
            {"program": None},
            {"program": {}},
            {"program": {"name": "no song"}},
            {"program": {"mainSong": {}}},
            {"program": {"mainSong": {"name": "no id"}}},
            {"program": {"mainSong": {"id": "12"}}},
            {"program": {"mainSong": {"id": 12, "artists": "bad"}}},
            {"program": []},
        ],
    )
    @pytest.mark.asyncio
    async def test_empty_or_malformed(self, response: dict) -> None:
        """Test all broken containers are ProgramHasNoTrack."""
        api = _make_api({PROGRAM_DETAIL_PATH: response})
        with pytest.raises(ProgramHasNoTrack):
            await TrackResolver(api).unwrap_program(1)


class TestResolve:
    """Tests for the resolution policy."""

    @pytest.mark.asyncio
    async def test_standalone(self) -> None:
        """Test URL and metadata lookups on the given id."""
        api = _make_api(
            {
                SONG_URL_PATH: {"code": 200, "data": [{"url": "http://m7.music.126.net/x.mp3"}]},
                SONG_DETAIL_PATH: {"songs": [SONG]},
            }
        )
        playback = await TrackResolver(api).resolve(TrackRef(TrackKind.STANDALONE, 26209670))

        assert playback.track_id == 26209670
        assert playback.stream_url == "http://m7.music.126.net/x.mp3"
        assert playback.metadata.title == "晴天"
        assert _paths(api) == [SONG_URL_PATH, SONG_DETAIL_PATH]

    @pytest.mark.asyncio
    async def test_program_uses_inner_id_and_container_metadata(self) -> None:
        """Test program rewrite and no second metadata call."""
        api = _make_api(
            {
                PROGRAM_DETAIL_PATH: PROGRAM,
                SONG_URL_PATH: {"code": 200, "data": [{"url": "http://m7.music.126.net/ep.mp3"}]},
            }
        )
        playback = await TrackResolver(api).resolve(TrackRef(TrackKind.PROGRAM, 2062359528))

        assert playback.track_id == 1809999999
        assert playback.stream_url == "http://m7.music.126.net/ep.mp3"
        assert playback.metadata.title == "Episode 12 - Talk"
        assert _paths(api) == [PROGRAM_DETAIL_PATH, SONG_URL_PATH]
        assert api.post.call_args_list[1].args[1]["ids"] == "[1809999999]"

    @pytest.mark.asyncio
    async def test_program_never_requests_url_for_program_id(self) -> None:
        """Test that a failed unwrap stops before any URL request."""
        api = _make_api({PROGRAM_DETAIL_PATH: {"program": {}}})
        with pytest.raises(ProgramHasNoTrack):
            await TrackResolver(api).resolve(TrackRef(TrackKind.PROGRAM, 5))
        assert _paths(api) == [PROGRAM_DETAIL_PATH]

    @pytest.mark.asyncio
    async def test_network_error_propagates(self) -> None:
        """Test that transport errors are not swallowed or retried."""
        api = _make_api({SONG_URL_PATH: NetworkError("down")})
        with pytest.raises(NetworkError):
            await TrackResolver(api).resolve(TrackRef(TrackKind.STANDALONE, 1))
        assert api.post.await_count == 1


class TestProbe:
    """Tests for metadata-only probing."""

    @pytest.mark.asyncio
    async def test_standalone_probe_skips_url(self) -> None:
        api = _make_api({SONG_DETAIL_PATH: {"songs": [SONG]}})
        metadata = await TrackResolver(api).probe(TrackRef(TrackKind.STANDALONE, 1))
        assert metadata.title == "晴天"
        assert _paths(api) == [SONG_DETAIL_PATH]

    @pytest.mark.asyncio
    async def test_program_probe_skips_url(self) -> None:
        api = _make_api({PROGRAM_DETAIL_PATH: PROGRAM})
        metadata = await TrackResolver(api).probe(TrackRef(TrackKind.PROGRAM, 1))
        assert metadata.artist == "Host A, Host B"
        assert _paths(api) == [PROGRAM_DETAIL_PATH]
