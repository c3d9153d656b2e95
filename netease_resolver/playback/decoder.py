"""
ffmpeg decode pipeline.

Decodes a remote stream into raw interleaved 32-bit float PCM, stereo,
48 kHz, read from the process's stdout.
"""

import asyncio
import logging
from typing import Any, Optional

import numpy as np

from netease_resolver.errors import SpawnError

from .types import CHANNELS, SAMPLE_RATE, SampleFormat

logger = logging.getLogger(__name__)

SAMPLE_FORMAT = SampleFormat.FLOAT_PCM
BYTES_PER_FRAME = CHANNELS * SAMPLE_FORMAT.sample_width
READ_CHUNK = 64 * 1024
TERMINATE_GRACE_SECONDS = 2.0


class DecodePipeline:
    """
    Owns one ffmpeg process and its stdout pipe.

    The process is started by start() and released by close(); close() is
    safe to call more than once.
    """

    def __init__(self, url: str, seek: float = 0.0, ffmpeg_path: str = "ffmpeg"):
        if seek < 0:
            raise ValueError(f"Seek offset must be non-negative, got {seek}")
        self.url = url
        self.seek = seek
        self.ffmpeg_path = ffmpeg_path
        self._proc: Optional[asyncio.subprocess.Process] = None
        self._pending = bytearray()  # Partial frame held back by read_frames()

    def build_command(self) -> list[str]:
        """Build the ffmpeg argument list (seek before input)."""
        return [
            self.ffmpeg_path,
            "-ss",
            f"{self.seek:.3f}",
            "-i",
            self.url,
            "-acodec",
            "pcm_f32le",
            "-ac",
            str(CHANNELS),
            "-ar",
            str(SAMPLE_RATE),
            "-f",
            "s16le",
            "-",
        ]

    async def start(self) -> "DecodePipeline":
        """
        Spawn the decoder process.

        Raises:
            SpawnError: Executable missing or process could not be created
        """
        if self._proc is not None:
            raise RuntimeError("Decode pipeline already started")

        try:
            self._proc = await asyncio.create_subprocess_exec(
                *self.build_command(),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise SpawnError(f"Failed to start {self.ffmpeg_path}: {e}") from e

        logger.debug(f"ffmpeg started (pid={self._proc.pid}, seek={self.seek:.3f}s)")
        return self

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc else None

    @property
    def is_running(self) -> bool:
        """True while the process is alive and not yet released."""
        return self._proc is not None and self._proc.returncode is None

    async def read(self, n: int = READ_CHUNK) -> bytes:
        """
        Read up to n bytes of PCM.

        Returns:
            PCM bytes; empty at end of stream or after close()
        """
        if self._proc is None or self._proc.stdout is None:
            return b""
        return await self._proc.stdout.read(n)

    async def read_frames(self, frames: int = 1024) -> np.ndarray:
        """
        Read up to ``frames`` whole stereo frames.

        Returns:
            float32 array of shape (N, 2); N is 0 at end of stream
        """
        wanted = frames * BYTES_PER_FRAME
        while len(self._pending) < wanted:
            data = await self.read(wanted - len(self._pending))
            if not data:
                break
            self._pending.extend(data)

        usable = len(self._pending) - len(self._pending) % BYTES_PER_FRAME
        chunk = bytes(self._pending[:usable])
        del self._pending[:usable]
        return np.frombuffer(chunk, dtype="<f4").reshape(-1, CHANNELS)

    async def close(self, grace_period: float = TERMINATE_GRACE_SECONDS) -> None:
        """Terminate the process and release its handle."""
        proc = self._proc
        if proc is None:
            return
        self._proc = None
        self._pending.clear()

        if proc.returncode is None:
            try:
                proc.terminate()
            except ProcessLookupError:
                pass
            try:
                await asyncio.wait_for(proc.wait(), timeout=grace_period)
            except asyncio.TimeoutError:
                logger.warning(f"ffmpeg did not terminate, killing (pid={proc.pid})")
                try:
                    proc.kill()
                except ProcessLookupError:
                    pass
                await proc.wait()

        logger.debug(f"ffmpeg released (pid={proc.pid}, returncode={proc.returncode})")

    async def __aenter__(self) -> "DecodePipeline":
        if self._proc is None:
            await self.start()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        await self.close()
