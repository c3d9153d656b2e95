"""
Request signing for the NetEase "weapi" endpoints.

The web API expects every request body to be encrypted twice with AES-128-CBC
(once with a preset key, once with a random per-request key) and the random
key itself to be wrapped with a textbook RSA public key. The server rejects
anything that does not match this scheme byte for byte.
"""

import base64
import json
import logging
import secrets
from dataclasses import dataclass
from typing import Mapping, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from netease_resolver.errors import SigningError

logger = logging.getLogger(__name__)

PRESET_KEY = b"0CoJUm6Qyw8W8jud"
IV = b"0102030405060708"

# 1024-bit vendor public key
RSA_MODULUS = int(
    "00e0b509f6259df8642dbc35662901477df22677ec152b5ff68ace615bb7b725"
    "152b3ab17a876aea8a5aa76d2e417629ec4ee341f56135fccf695280104e0312"
    "ecbda92557c93870114af6c9d05c4f7f0c3685b7a46bee255932575cce10b424"
    "d813cfe4875d3e82047b97ddef52741d546b8e289dc6935b3ece0462db0a22b8e7",
    16,
)
RSA_EXPONENT = 0x010001
RSA_KEY_HEX_WIDTH = 2 * ((RSA_MODULUS.bit_length() + 7) // 8)  # 256

SECRET_KEY_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
SECRET_KEY_LENGTH = 16


@dataclass(frozen=True)
class SignedRequest:
    """
    Transport parameters of one signed request.

    Single-use: built from fresh randomness for each call and never logged.
    """

    params: str
    enc_sec_key: str

    def to_form(self) -> dict[str, str]:
        """Field names expected by the server."""
        return {"params": self.params, "encSecKey": self.enc_sec_key}

    def __repr__(self) -> str:
        return "SignedRequest(<redacted>)"


def create_secret_key(length: int = SECRET_KEY_LENGTH) -> bytes:
    """Generate a random alphanumeric AES key."""
    return "".join(secrets.choice(SECRET_KEY_ALPHABET) for _ in range(length)).encode("ascii")


def aes_encrypt(data: bytes, key: bytes, iv: bytes = IV) -> bytes:
    """
    AES-CBC encrypt with PKCS#7 padding and base64-encode the result.

    Args:
        data: Plaintext bytes
        key: 16-byte AES key
        iv: 16-byte initialization vector

    Returns:
        Base64-encoded ciphertext (ASCII bytes)
    """
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(data) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(encrypted)


def rsa_encrypt(key: bytes, exponent: int = RSA_EXPONENT, modulus: int = RSA_MODULUS) -> str:
    """
    Wrap the secret key with raw RSA.

    The vendor reverses the key before encryption and expects the result as
    zero-padded lowercase hex.
    """
    value = int.from_bytes(key[::-1], "big")
    encrypted = pow(value, exponent, modulus)
    return format(encrypted, "x").zfill(RSA_KEY_HEX_WIDTH)


def serialize_params(params: Mapping[str, str]) -> bytes:
    """Serialize request parameters to compact UTF-8 JSON."""
    try:
        text = json.dumps(dict(params), separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise SigningError(f"Cannot serialize request parameters: {e}") from e
    return text.encode("utf-8")


def weapi(params: Mapping[str, str], secret_key: Optional[bytes] = None) -> SignedRequest:
    """
    Sign a parameter map for a weapi endpoint.

    Args:
        params: Plaintext request parameters
        secret_key: Fixed 16-byte key, only for reproducible tests.
            A fresh random key is generated when omitted.

    Returns:
        SignedRequest with the encrypted body and wrapped key
    """
    body = serialize_params(params)
    if secret_key is None:
        secret_key = create_secret_key()
    elif len(secret_key) != SECRET_KEY_LENGTH:
        raise SigningError(f"Secret key must be {SECRET_KEY_LENGTH} bytes, got {len(secret_key)}")

    first_pass = aes_encrypt(body, PRESET_KEY)
    second_pass = aes_encrypt(first_pass, secret_key)

    return SignedRequest(
        params=second_pass.decode("ascii"),
        enc_sec_key=rsa_encrypt(secret_key),
    )
