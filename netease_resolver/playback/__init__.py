"""Track resolution and playback source module."""

from .decoder import DecodePipeline
from .identifier import is_vendor_url, parse_track_id, parse_track_url
from .metadata import TrackResolver, format_duration
from .source import ResumableSource, open_source
from .types import (
    AudioInput,
    ContainerKind,
    ResolvedPlayback,
    SampleFormat,
    SourceState,
    TrackKind,
    TrackMetadata,
    TrackRef,
)

__all__ = [
    # Types
    "AudioInput",
    "ContainerKind",
    "ResolvedPlayback",
    "SampleFormat",
    "SourceState",
    "TrackKind",
    "TrackMetadata",
    "TrackRef",
    # Identifiers
    "is_vendor_url",
    "parse_track_id",
    "parse_track_url",
    # Resolution
    "TrackResolver",
    "format_duration",
    # Sources
    "DecodePipeline",
    "ResumableSource",
    "open_source",
]
