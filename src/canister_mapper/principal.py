"""Textual principal identifiers, as used for canister ids.

The text form is the lowercase, unpadded base32 encoding of a CRC32 checksum followed by
the raw bytes, split into groups of five characters by dashes, e.g. `aaaaa-aa`.
"""

from __future__ import annotations

import base64
import zlib

MAX_PRINCIPAL_LENGTH = 29
CHECKSUM_LENGTH = 4
GROUP_LENGTH = 5


def encode_principal(raw: bytes) -> str:
    """Encode raw principal bytes in text form."""
    if len(raw) > MAX_PRINCIPAL_LENGTH:
        raise ValueError(f"Principals have at most {MAX_PRINCIPAL_LENGTH} bytes, got {len(raw)}")

    checksum = zlib.crc32(raw).to_bytes(CHECKSUM_LENGTH, "big")
    compact = base64.b32encode(checksum + raw).decode("ascii").rstrip("=").lower()
    return "-".join(compact[i : i + GROUP_LENGTH] for i in range(0, len(compact), GROUP_LENGTH))


def decode_principal(text: str) -> bytes:
    """Decode and verify a principal in text form.

    Args:
        text: The textual principal, e.g. `rrkah-fqaaa-aaaaa-aaaaq-cai`.

    Returns:
        The raw principal bytes.

    Raises:
        ValueError: If the text is not a well-formed principal or its checksum does not match.
    """
    compact = text.replace("-", "")
    if not compact or compact != compact.lower():
        raise ValueError(f"Invalid principal text '{text}'")

    try:
        data = base64.b32decode(compact.upper() + "=" * (-len(compact) % 8))
    except ValueError as e:
        raise ValueError(f"Invalid principal text '{text}': {e}") from e

    if len(data) < CHECKSUM_LENGTH:
        raise ValueError(f"Invalid principal text '{text}': too short")

    checksum, raw = data[:CHECKSUM_LENGTH], data[CHECKSUM_LENGTH:]
    if zlib.crc32(raw).to_bytes(CHECKSUM_LENGTH, "big") != checksum:
        raise ValueError(f"Invalid principal text '{text}': checksum mismatch")

    if encode_principal(raw) != text:
        raise ValueError(f"Invalid principal text '{text}': not in canonical form")

    return raw


def is_valid_principal(text: str) -> bool:
    try:
        decode_principal(text)
    except ValueError:
        return False
    return True
