"""
Stream URL and metadata resolution.
"""

import json
import logging
from typing import TYPE_CHECKING, Any, Optional, Sequence

from netease_resolver.api.client import unwrap_payload
from netease_resolver.config import DEFAULT_BITRATE
from netease_resolver.errors import DecodeError, NoUrlAvailable, ProgramHasNoTrack, TrackNotFound

from .types import ResolvedPlayback, TrackMetadata, TrackRef

if TYPE_CHECKING:
    from netease_resolver.api.client import NeteaseAPIClient

logger = logging.getLogger(__name__)

SONG_URL_PATH = "/song/enhance/player/url/"
SONG_DETAIL_PATH = "/song/detail"
PROGRAM_DETAIL_PATH = "/dj/program/detail"


def _compact_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def format_duration(duration_ms: int) -> str:
    """Format milliseconds as HH:MM:SS."""
    seconds = duration_ms // 1000
    return f"{seconds // 3600:02}:{(seconds // 60) % 60:02}:{seconds % 60:02}"


def song_to_metadata(song: dict[str, Any]) -> TrackMetadata:
    """
    Convert a song object from the detail or program endpoints.

    Artists without a name are skipped. Duration is in milliseconds.
    """
    name = song.get("name")
    artists = song.get("artists") or []
    if not isinstance(artists, list):
        raise DecodeError(f"Song artists should be a list, got {type(artists).__name__}")

    artist_names = tuple(
        a["name"] for a in artists if isinstance(a, dict) and isinstance(a.get("name"), str)
    )

    duration = song.get("duration")
    if duration is not None and (not isinstance(duration, int) or duration < 0):
        raise DecodeError(f"Invalid song duration: {duration!r}")

    return TrackMetadata(
        title=name if isinstance(name, str) else None,
        artists=artist_names,
        duration_ms=duration,
    )


def log_now_playing(metadata: TrackMetadata) -> None:
    """Log resolved track at INFO level."""
    duration = format_duration(metadata.duration_ms) if metadata.duration_ms is not None else "?"
    logger.info(f"Now playing: {metadata.artist or 'Unknown'} - {metadata.title or 'Unknown'} ({duration})")


class TrackResolver:
    """
    Resolves track references into stream URLs and metadata.

    Every call goes to the API; nothing is cached.
    """

    def __init__(self, api_client: "NeteaseAPIClient", bitrate: int = DEFAULT_BITRATE):
        """
        Initialize resolver.

        Args:
            api_client: Open API client
            bitrate: Preferred stream bitrate in bits per second
        """
        self._api = api_client
        self._bitrate = bitrate

    @property
    def bitrate(self) -> int:
        return self._bitrate

    async def get_stream_urls(self, track_ids: Sequence[int]) -> list[str]:
        """
        Get playable URLs for tracks.

        Args:
            track_ids: Standalone track ids

        Returns:
            URLs in response order

        Raises:
            NoUrlAvailable: Track unavailable at this bitrate/region
        """
        params = {
            "ids": _compact_json(list(track_ids)),
            "br": str(self._bitrate),
        }
        response = await self._api.post(SONG_URL_PATH, params)
        entries = unwrap_payload(response, "data", list, NoUrlAvailable)

        urls = [
            entry["url"]
            for entry in entries
            if isinstance(entry, dict) and isinstance(entry.get("url"), str) and entry["url"]
        ]
        if not urls:
            raise NoUrlAvailable(f"No playable URL for tracks {list(track_ids)}")
        return urls

    async def get_metadata(self, track_ids: Sequence[int]) -> TrackMetadata:
        """
        Get display metadata for the first matching song.

        Raises:
            TrackNotFound: Response contains no songs
        """
        ids = [str(track_id) for track_id in track_ids]
        params = {
            "c": _compact_json([{"id": track_id} for track_id in ids]),
            "ids": _compact_json(ids),
        }
        response = await self._api.post(SONG_DETAIL_PATH, params)
        songs = unwrap_payload(response, "songs", list, TrackNotFound)

        song = songs[0]
        if not isinstance(song, dict):
            raise DecodeError(f"Song entry should be an object, got {type(song).__name__}")
        return song_to_metadata(song)

    async def unwrap_program(self, program_id: int) -> tuple[int, TrackMetadata]:
        """
        Get the song wrapped by a program.

        The program detail already carries the song's name, artists and
        duration, so no second metadata request is needed.

        Returns:
            (inner track id, inner track metadata)

        Raises:
            ProgramHasNoTrack: Program missing, empty or malformed
        """
        response = await self._api.post(PROGRAM_DETAIL_PATH, {"id": str(program_id)})

        program = response.get("program")
        if not isinstance(program, dict) or not program:
            raise ProgramHasNoTrack(f"Program {program_id} not found")

        main_song = program.get("mainSong")
        if not isinstance(main_song, dict) or not main_song:
            raise ProgramHasNoTrack(f"Program {program_id} has no main song")

        inner_id = main_song.get("id")
        if isinstance(inner_id, bool) or not isinstance(inner_id, int) or inner_id < 0:
            raise ProgramHasNoTrack(f"Program {program_id} main song has no valid id")

        try:
            metadata = song_to_metadata(main_song)
        except DecodeError as e:
            raise ProgramHasNoTrack(f"Program {program_id} main song is malformed: {e}") from e

        logger.debug(f"Program {program_id} wraps track {inner_id}")
        return inner_id, metadata

    async def probe(self, ref: TrackRef) -> TrackMetadata:
        """Fetch metadata only; never asks for a stream URL."""
        if ref.is_program:
            _, metadata = await self.unwrap_program(ref.track_id)
        else:
            metadata = await self.get_metadata([ref.track_id])
        return metadata

    async def resolve(self, ref: TrackRef) -> ResolvedPlayback:
        """
        Resolve a reference into a stream URL and metadata.

        Program references are rewritten to their inner track before the
        stream URL is requested.
        """
        metadata: Optional[TrackMetadata] = None
        track_id = ref.track_id
        if ref.is_program:
            track_id, metadata = await self.unwrap_program(ref.track_id)

        urls = await self.get_stream_urls([track_id])
        if metadata is None:
            metadata = await self.get_metadata([track_id])

        logger.info(f"netease music metadata {metadata}")
        return ResolvedPlayback(track_id=track_id, stream_url=urls[0], metadata=metadata)
