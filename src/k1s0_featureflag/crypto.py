"""AES-CBC payload encryption.

Encrypted feature payloads use the cryptography library's AES primitive in
CBC mode with PKCS7 padding. The wire format is::

    base64(iv) "." base64(ciphertext)

where *iv* is 16 random bytes. Keys are raw AES keys (not password derived),
passed either as bytes or as their base64 string form.
"""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

_IV_SIZE = 16
_BLOCK_BITS = 128


def generate_key() -> bytes:
    """Generate a random 128-bit (16-byte) AES key."""
    return os.urandom(16)


def _coerce_key(key: bytes | str) -> bytes:
    if isinstance(key, str):
        return base64.b64decode(key, validate=True)
    return key


def encrypt(key: bytes | str, plaintext: str, iv: bytes | None = None) -> str:
    """Encrypt *plaintext* with AES-CBC and return ``iv.ciphertext`` in base64.

    Parameters
    ----------
    key:
        A 16, 24 or 32-byte AES key, or its base64 encoding.
    plaintext:
        UTF-8 text to encrypt.
    iv:
        Optional 16-byte IV. A random IV is generated when omitted; pass a
        fixed one only for reproducible fixtures.

    Returns
    -------
    str
        ``base64(iv) + "." + base64(ciphertext)``.
    """
    if iv is None:
        iv = os.urandom(_IV_SIZE)
    padder = padding.PKCS7(_BLOCK_BITS).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(_coerce_key(key)), modes.CBC(iv)).encryptor()
    ct = encryptor.update(padded) + encryptor.finalize()
    return (
        base64.b64encode(iv).decode("ascii")
        + "."
        + base64.b64encode(ct).decode("ascii")
    )


def decrypt(key: bytes | str, payload: str) -> str:
    """Decrypt an ``iv.ciphertext`` string produced by :func:`encrypt`.

    Raises
    ------
    binascii.Error
        If the key, IV or ciphertext is not valid base64.
    ValueError
        If the payload has no separator, the key or IV has the wrong size,
        the padding is invalid (usually a wrong key) or the plaintext is not
        valid UTF-8.
    """
    iv_b64, sep, ct_b64 = payload.partition(".")
    if not sep:
        raise ValueError("encrypted payload must be '<iv>.<ciphertext>'")
    iv = base64.b64decode(iv_b64, validate=True)
    ct = base64.b64decode(ct_b64, validate=True)
    decryptor = Cipher(algorithms.AES(_coerce_key(key)), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ct) + decryptor.finalize()
    unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
    data = unpadder.update(padded) + unpadder.finalize()
    return data.decode("utf-8")
