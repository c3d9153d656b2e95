"""
Resumable audio source.

A source starts out knowing only its track reference. probe() fetches display
metadata without touching the stream; materialize() resolves a fresh stream
URL and starts decoding from an offset. Seeking is materialize() again.
"""

import logging
from typing import Any, Callable, Optional

from netease_resolver.api.client import NeteaseAPIClient
from netease_resolver.config import Config

from .decoder import DecodePipeline
from .identifier import parse_track_url
from .metadata import TrackResolver, log_now_playing
from .types import AudioInput, SourceState, TrackMetadata, TrackRef

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], NeteaseAPIClient]
PipelineFactory = Callable[[str, float], DecodePipeline]


class ResumableSource:
    """
    Two-phase audio source for one track reference.

    Only one pipeline is ever attached; callers must not run materialize()
    concurrently on the same instance.
    """

    def __init__(
        self,
        ref: TrackRef,
        config: Optional[Config] = None,
        client_factory: Optional[ClientFactory] = None,
        pipeline_factory: Optional[PipelineFactory] = None,
    ):
        """
        Initialize source.

        Args:
            ref: Track or program reference
            config: Configuration (defaults when omitted)
            client_factory: Builds an unopened API client per operation
            pipeline_factory: Builds an unstarted pipeline from (url, seek)
        """
        self.ref = ref
        self._config = config or Config()
        self._client_factory = client_factory or self._default_client
        self._pipeline_factory = pipeline_factory or self._default_pipeline

        self._state = SourceState.UNINITIALIZED
        self._metadata: Optional[TrackMetadata] = None
        self._pipeline: Optional[DecodePipeline] = None

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> "ResumableSource":
        """
        Build a source from a vendor URL.

        Raises:
            InvalidUrl: URL carries no usable id
        """
        return cls(parse_track_url(url), **kwargs)

    def _default_client(self) -> NeteaseAPIClient:
        return NeteaseAPIClient(self._config.api)

    def _default_pipeline(self, url: str, seek: float) -> DecodePipeline:
        return DecodePipeline(url, seek=seek, ffmpeg_path=self._config.decoder.ffmpeg_path)

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def metadata(self) -> Optional[TrackMetadata]:
        """Metadata from the last probe(), if any."""
        return self._metadata

    @property
    def pipeline(self) -> Optional[DecodePipeline]:
        """Pipeline currently attached to this source."""
        return self._pipeline

    async def probe(self) -> TrackMetadata:
        """
        Fetch metadata only.

        Each call queries the API again; callers that want a single probe
        must keep the result themselves.
        """
        async with self._client_factory() as client:
            resolver = TrackResolver(client, bitrate=self._config.api.bitrate)
            metadata = await resolver.probe(self.ref)

        self._metadata = metadata
        self._state = SourceState.PROBED
        return metadata

    async def materialize(self, seek: float = 0.0) -> AudioInput:
        """
        Resolve a fresh stream URL and start decoding at ``seek`` seconds.

        Any pipeline attached from a previous call is terminated first, also
        when resolution or spawning then fails.

        Args:
            seek: Start offset in seconds

        Returns:
            AudioInput reading from the new pipeline

        Raises:
            ValueError: Negative offset
            NeteaseError: Resolution failed (subclass tells which step)
            SpawnError: ffmpeg could not be started
        """
        if seek < 0:
            raise ValueError(f"Seek offset must be non-negative, got {seek}")

        await self.close()

        async with self._client_factory() as client:
            resolver = TrackResolver(client, bitrate=self._config.api.bitrate)
            playback = await resolver.resolve(self.ref)

        pipeline = self._pipeline_factory(playback.stream_url, seek)
        await pipeline.start()
        self._pipeline = pipeline

        log_now_playing(playback.metadata)
        return AudioInput(
            is_stereo=True,
            reader=pipeline,
            metadata=playback.metadata,
        )

    async def close(self) -> None:
        """Terminate the attached pipeline, if any."""
        pipeline, self._pipeline = self._pipeline, None
        if pipeline is not None:
            await pipeline.close()

    async def __aenter__(self) -> "ResumableSource":
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()

    def __repr__(self) -> str:
        return f"ResumableSource({self.ref}, state={self._state.name})"


async def open_source(
    url: str,
    lazy: bool = True,
    config: Optional[Config] = None,
) -> ResumableSource:
    """
    Create a resumable source for a vendor URL.

    Args:
        url: Song or program URL
        lazy: Probe metadata only; otherwise start playback at offset 0
        config: Configuration (defaults when omitted)

    Returns:
        Probed source when lazy, otherwise a source with a running pipeline
    """
    source = ResumableSource.from_url(url, config=config)
    if lazy:
        await source.probe()
    else:
        await source.materialize(0.0)
    return source
