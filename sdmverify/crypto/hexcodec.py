"""
Hex string <-> bytes conversion for values mirrored into SDM URLs.

Tags mirror UID, counter and MAC as upper-case ASCII hex, but wallets and
browsers sometimes lower-case the whole URL, so decoding is case-insensitive.
"""

from typing import Optional

from sdmverify.errors import InvalidHex


def decode_hex(value: str, length: Optional[int] = None, field: str = "value") -> bytes:
    """
    Decode a hex string into bytes.

    Args:
        value: Hex string, upper or lower case. Surrounding whitespace is ignored.
        length: Expected decoded length in bytes, or None for any length.
        field: Name used in error messages.

    Returns:
        The decoded bytes.

    Raises:
        InvalidHex: The string is not valid hex or has the wrong length.
    """
    if value is None:
        raise InvalidHex(f"{field} is missing")
    clean = value.replace(" ", "").strip()
    if len(clean) % 2 != 0:
        raise InvalidHex(f"{field} has an odd number of hex digits: {clean!r}")
    try:
        data = bytes.fromhex(clean)
    except ValueError as e:
        raise InvalidHex(f"{field} is not valid hex: {clean!r}") from e
    if length is not None and len(data) != length:
        raise InvalidHex(f"{field} must be {length} bytes, got {len(data)}")
    return data


def encode_hex(data: bytes) -> str:
    """Encode bytes as upper-case hex, the form tags mirror."""
    return data.hex().upper()
