"""Content fingerprints compatible with the remote store's object ids.

The remote store names every file by its git blob id, so hashing locally
with the same framing lets us compare content without a round trip.
"""

import hashlib
from pathlib import PurePosixPath

from .constants import BINARY_EXTENSIONS, TEXT_ENCODING, TEXT_ERRORS, TEXT_EXTENSIONS


def git_blob_hash(data: bytes) -> str:
    """Compute the git blob id of a byte payload.

    The digested message is ``b"blob <len>\\0" + data`` where ``len`` is the
    byte length (not character count) of the payload.

    Args:
        data: Raw bytes to fingerprint

    Returns:
        40-character hex SHA-1 digest

    Example:
        >>> git_blob_hash(b"")
        'e69de29bb2d1d6434b8b29ae775ad8c2e48c5391'
    """
    sha1 = hashlib.sha1()
    sha1.update(b"blob ")
    sha1.update(str(len(data)).encode("ascii"))
    sha1.update(b"\x00")
    sha1.update(data)
    return sha1.hexdigest()


def encode_text(text: str) -> bytes:
    """Encode text exactly as it is sent over the wire."""
    return text.encode(TEXT_ENCODING, TEXT_ERRORS)


def decode_text(data: bytes) -> str:
    """Decode wire bytes into text, preserving undecodable bytes."""
    return data.decode(TEXT_ENCODING, TEXT_ERRORS)


def hash_text(text: str) -> str:
    """Fingerprint a text payload over its UTF-8 bytes."""
    return git_blob_hash(encode_text(text))


def hash_bytes(data: bytes) -> str:
    """Fingerprint a binary payload."""
    return git_blob_hash(bytes(data))


def is_binary_path(path: str) -> bool:
    """Classify a path as binary by its extension.

    Text extensions win over binary ones; unknown extensions are text.
    """
    suffix = PurePosixPath(path).suffix.lower().lstrip(".")
    if not suffix or suffix in TEXT_EXTENSIONS:
        return False
    return suffix in BINARY_EXTENSIONS


__all__ = [
    "git_blob_hash",
    "encode_text",
    "decode_text",
    "hash_text",
    "hash_bytes",
    "is_binary_path",
]
