"""
netease-resolver CLI entry point.

Resolves vendor URLs from the command line: show metadata, show the stream
URL, or decode to raw PCM.
"""

import argparse
import asyncio
import json
import logging
import shutil
import sys
from pathlib import Path
from typing import BinaryIO, Optional, TextIO

from netease_resolver import __version__
from netease_resolver.config import LOG_LEVELS, Config, ConfigError, load_config
from netease_resolver.errors import NetworkError, NeteaseError, SpawnError
from netease_resolver.api.client import NeteaseAPIClient
from netease_resolver.playback.identifier import is_vendor_url, parse_track_url
from netease_resolver.playback.metadata import TrackResolver, format_duration
from netease_resolver.playback.source import ResumableSource
from netease_resolver.playback.types import TrackMetadata

logger = logging.getLogger(__name__)

# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_RESOLVE_ERROR = 2
EXIT_NETWORK_ERROR = 3
EXIT_DECODER_ERROR = 4

WRITE_CHUNK = 64 * 1024


def setup_logging(level: str = "info", stream: Optional[TextIO] = None) -> None:
    """Configure logging to stdout (or the given stream)."""
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=stream or sys.stdout,
        force=True,
    )


def _parse_seek(value: str) -> float:
    """Parse a non-negative offset in seconds."""
    try:
        seek = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid offset: {value}")
    if seek < 0:
        raise argparse.ArgumentTypeError(f"Offset must be non-negative: {value}")
    return seek


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="netease-resolver",
        description="Resolve NetEase Cloud Music songs and programs to playable audio",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  netease-resolver probe "https://music.163.com/#/song?id=26209670"
  netease-resolver resolve --json "https://music.163.com/#/program?id=2062359528"
  netease-resolver decode --seek 30 -o out.pcm "https://music.163.com/#/song?id=26209670"

Environment Variables:
  NETEASE_API_BASE_URL, NETEASE_API_TIMEOUT, NETEASE_USER_AGENT
  NETEASE_BITRATE, NETEASE_FFMPEG_PATH, NETEASE_LOG_LEVEL
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("./config.yaml"),
        metavar="PATH",
        help="YAML config file (default: ./config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        choices=LOG_LEVELS,
        metavar="LEVEL",
        help=f"Log level: {', '.join(LOG_LEVELS)}",
    )
    parser.add_argument(
        "--bitrate",
        type=int,
        metavar="INT",
        help="Preferred stream bitrate in bps (default: 320000)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECONDS",
        help="API request timeout (default: 10)",
    )
    parser.add_argument(
        "--ffmpeg",
        metavar="PATH",
        help="ffmpeg executable (default: ffmpeg)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    probe = commands.add_parser("probe", help="Show track metadata without resolving the stream")
    probe.add_argument("url", help="Song or program URL")
    probe.add_argument("--json", action="store_true", dest="json_output", help="Output as JSON")

    resolve = commands.add_parser("resolve", help="Resolve stream URL and metadata")
    resolve.add_argument("url", help="Song or program URL")
    resolve.add_argument("--json", action="store_true", dest="json_output", help="Output as JSON")

    decode = commands.add_parser("decode", help="Decode to raw f32le stereo 48 kHz PCM")
    decode.add_argument("url", help="Song or program URL")
    decode.add_argument(
        "--seek",
        type=_parse_seek,
        default=0.0,
        metavar="SECONDS",
        help="Start offset in seconds",
    )
    decode.add_argument(
        "--output",
        "-o",
        default="-",
        metavar="PATH",
        help="Output file, '-' for stdout (default)",
    )
    decode.add_argument(
        "--max-bytes",
        type=int,
        metavar="INT",
        help="Stop after writing this many bytes",
    )

    return parser


# Option dest -> (section, key)
OPTION_MAPPINGS = {
    "bitrate": ("api", "bitrate"),
    "timeout": ("api", "timeout"),
    "ffmpeg": ("decoder", "ffmpeg_path"),
    "log_level": ("logging", "level"),
}


def args_to_dict(args: argparse.Namespace) -> dict:
    """Collect the global options that were given into a section dict."""
    result: dict = {}
    for dest, (section, key) in OPTION_MAPPINGS.items():
        value = getattr(args, dest, None)
        if value is not None:
            result.setdefault(section, {})[key] = value
    return result


def format_metadata(metadata: TrackMetadata) -> str:
    """Format metadata as "Now Playing"-style text."""
    lines = []
    if metadata.title:
        lines.append(metadata.title)
    if metadata.artists:
        lines.append(metadata.artist)
    if metadata.duration_ms is not None:
        lines.append(format_duration(metadata.duration_ms))
    return "\n".join(lines) if lines else "(no metadata)"


async def run_probe(config: Config, url: str, json_output: bool) -> int:
    """Print metadata for a URL."""
    ref = parse_track_url(url)
    async with NeteaseAPIClient(config.api) as client:
        metadata = await TrackResolver(client, bitrate=config.api.bitrate).probe(ref)

    if json_output:
        print(json.dumps({"ref": str(ref), "metadata": metadata.to_dict()}, indent=2))
    else:
        print(format_metadata(metadata))
    return EXIT_SUCCESS


async def run_resolve(config: Config, url: str, json_output: bool) -> int:
    """Print stream URL and metadata for a URL."""
    ref = parse_track_url(url)
    async with NeteaseAPIClient(config.api) as client:
        playback = await TrackResolver(client, bitrate=config.api.bitrate).resolve(ref)

    if json_output:
        print(json.dumps({"ref": str(ref), **playback.to_dict()}, indent=2))
    else:
        print(format_metadata(playback.metadata))
        print(playback.stream_url)
    return EXIT_SUCCESS


async def run_decode(
    config: Config,
    url: str,
    seek: float,
    output: BinaryIO,
    max_bytes: Optional[int] = None,
) -> int:
    """Decode a URL to raw PCM and write it to output."""
    written = 0
    async with ResumableSource.from_url(url, config=config) as source:
        audio = await source.materialize(seek)
        while max_bytes is None or written < max_bytes:
            size = WRITE_CHUNK if max_bytes is None else min(WRITE_CHUNK, max_bytes - written)
            data = await audio.reader.read(size)
            if not data:
                break
            output.write(data)
            written += len(data)
        output.flush()

    logger.info(f"Wrote {written} bytes of PCM")
    return EXIT_SUCCESS


def check_ffmpeg(ffmpeg_path: str) -> bool:
    """Check that the decoder executable is available."""
    return shutil.which(ffmpeg_path) is not None


def _open_output(path: str) -> BinaryIO:
    if path == "-":
        return sys.stdout.buffer
    return open(path, "wb")


def run_command(args: argparse.Namespace, config: Config) -> int:
    """
    Run the selected subcommand.

    Returns:
        Exit code
    """
    if not is_vendor_url(args.url):
        logger.error(f"Not a NetEase Cloud Music URL: {args.url}")
        return EXIT_RESOLVE_ERROR

    try:
        if args.command == "probe":
            return asyncio.run(run_probe(config, args.url, args.json_output))
        if args.command == "resolve":
            return asyncio.run(run_resolve(config, args.url, args.json_output))

        if not check_ffmpeg(config.decoder.ffmpeg_path):
            logger.error(f"Can not find {config.decoder.ffmpeg_path} in PATH!")
            return EXIT_DECODER_ERROR

        output = _open_output(args.output)
        try:
            return asyncio.run(run_decode(config, args.url, args.seek, output, args.max_bytes))
        finally:
            if output is not sys.stdout.buffer:
                output.close()

    except NetworkError as e:
        logger.error(f"Network error: {e}")
        return EXIT_NETWORK_ERROR

    except SpawnError as e:
        logger.error(f"Decoder error: {e}")
        return EXIT_DECODER_ERROR

    except NeteaseError as e:
        logger.error(f"Resolution failed: {e}")
        return EXIT_RESOLVE_ERROR

    except KeyboardInterrupt:
        logger.info("Interrupted")
        return EXIT_SUCCESS


def main(argv: Optional[list[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Exit code: 0=success, 1=config error, 2=resolution error,
        3=network error, 4=decoder error
    """
    args = build_parser().parse_args(argv)

    # Keep stdout clean when it carries PCM or JSON
    machine_output = getattr(args, "output", None) == "-" or getattr(args, "json_output", False)
    log_stream = sys.stderr if machine_output else sys.stdout
    setup_logging("info", log_stream)

    try:
        config = load_config(args.config, args_to_dict(args))
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging.level, log_stream)
    logger.debug(f"netease-resolver v{__version__}")

    return run_command(args, config)


if __name__ == "__main__":
    sys.exit(main())
