"""
netease-resolver - NetEase Cloud Music track resolution.

Turns song and program URLs into resumable raw PCM audio sources.
"""

__version__ = "0.1.0"

from .config import Config, ConfigError, load_config
from .errors import NeteaseError
from .playback import ResumableSource, open_source

__all__ = [
    "__version__",
    "Config",
    "ConfigError",
    "load_config",
    "NeteaseError",
    "ResumableSource",
    "open_source",
]
