"""
Playback types and enumerations.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .decoder import DecodePipeline

SAMPLE_RATE = 48000
CHANNELS = 2


class TrackKind(IntEnum):
    """What a track reference points at."""

    STANDALONE = 1  # Playable song
    PROGRAM = 2  # Radio program/episode wrapping one song


class SourceState(IntEnum):
    """Resumable source state."""

    UNINITIALIZED = 0  # Only the reference is known
    PROBED = 1  # Metadata fetched, nothing spawned


class SampleFormat(Enum):
    """PCM sample format of a decoded stream."""

    FLOAT_PCM = "f32le"  # 32-bit float, little-endian
    PCM = "s16le"  # 16-bit signed, little-endian

    @property
    def sample_width(self) -> int:
        """Bytes per sample per channel."""
        return 4 if self is SampleFormat.FLOAT_PCM else 2


class ContainerKind(Enum):
    """Framing around the PCM payload."""

    RAW = "raw"


@dataclass(frozen=True)
class TrackRef:
    """Typed reference to a track or program."""

    kind: TrackKind
    track_id: int

    @property
    def is_program(self) -> bool:
        return self.kind is TrackKind.PROGRAM

    def __str__(self) -> str:
        return f"{self.kind.name.lower()}:{self.track_id}"


@dataclass(frozen=True)
class TrackMetadata:
    """
    Display metadata for a track.

    For program references this describes the wrapped song, not the program.
    """

    title: Optional[str] = None
    artists: tuple[str, ...] = ()
    duration_ms: Optional[int] = None
    sample_rate: int = SAMPLE_RATE
    channels: int = CHANNELS

    @property
    def artist(self) -> str:
        """Artists joined for display."""
        return ", ".join(self.artists)

    @property
    def duration_s(self) -> Optional[float]:
        """Duration in seconds."""
        if self.duration_ms is None:
            return None
        return self.duration_ms / 1000.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "artists": list(self.artists),
            "artist": self.artist,
            "duration_ms": self.duration_ms,
            "sample_rate": self.sample_rate,
            "channels": self.channels,
        }


@dataclass(frozen=True)
class ResolvedPlayback:
    """Stream URL plus metadata. Recomputed on every start, never stored."""

    track_id: int
    stream_url: str
    metadata: TrackMetadata

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "track_id": self.track_id,
            "stream_url": self.stream_url,
            "metadata": self.metadata.to_dict(),
        }


@dataclass
class AudioInput:
    """
    Audio source handle passed to the playback layer.

    The playback layer reads raw interleaved PCM from ``reader`` and does not
    look at anything else.
    """

    is_stereo: bool
    reader: "DecodePipeline"
    sample_format: SampleFormat = SampleFormat.FLOAT_PCM
    container: ContainerKind = ContainerKind.RAW
    metadata: Optional[TrackMetadata] = field(default=None)

    @property
    def channels(self) -> int:
        return 2 if self.is_stereo else 1

    @property
    def bytes_per_frame(self) -> int:
        return self.channels * self.sample_format.sample_width

    async def close(self) -> None:
        """Stop the underlying decoder."""
        await self.reader.close()
