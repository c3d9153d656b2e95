"""Vendor API access: request signing and transport."""

from .client import NeteaseAPIClient, unwrap_payload
from .crypto import SignedRequest, weapi

__all__ = [
    "NeteaseAPIClient",
    "SignedRequest",
    "unwrap_payload",
    "weapi",
]
