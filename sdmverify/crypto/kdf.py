"""
AES-CMAC key diversification for the NTAG 424 DNA SDM MAC key.

Each tag's SDM file-read key (KEY3 on the tags we provision) is derived from
a shared base key and the tag UID with a single-block NIST SP 800-108 style
KDF, so that leaking one tag's key exposes no other tag. The derivation
vector is 32 bytes, zero-padded:

    01 | "SDMMACKey" | system identifier | version | UID (7) | 80

Some key slots are not diversified at all. Those use the base key directly,
and which slot policy applies is a deployment choice (see KeyDerivationMode).
"""

from dataclasses import dataclass
from typing import Union

from .cmac import aes_cmac, check_key
from sdmverify.errors import ConfigurationError, DiversificationVectorOverflow, InvalidUidLength

# Derivation vector layout
VECTOR_LENGTH = 32
LABEL_INDICATOR = 0x01
LABEL = b"SDMMACKey"
# 128-bit output length, as a single byte
OUTPUT_LENGTH = 0x80

UID_LENGTH = 7

# Factory default key, all zeros
FACTORY_KEY = bytes(16)


def build_diversification_vector(uid: bytes, system_identifier: bytes, version: int) -> bytes:
    """
    Assemble the 32-byte derivation vector for a tag.

    Args:
        uid: 7-byte tag UID.
        system_identifier: Deployment-chosen context, e.g. b"testing".
        version: Key version byte (0-255).

    Returns:
        The zero-padded 32-byte vector.

    Raises:
        InvalidUidLength: uid is not 7 bytes.
        DiversificationVectorOverflow: the fields do not fit into 32 bytes.
    """
    if len(uid) != UID_LENGTH:
        raise InvalidUidLength(f"UID must be {UID_LENGTH} bytes, got {len(uid)}")
    if not 0 <= version <= 0xFF:
        raise ConfigurationError(f"Key version must fit in one byte, got {version}")

    content = (
        bytes([LABEL_INDICATOR])
        + LABEL
        + bytes(system_identifier)
        + bytes([version])
        + bytes(uid)
        + bytes([OUTPUT_LENGTH])
    )
    if len(content) > VECTOR_LENGTH:
        raise DiversificationVectorOverflow(
            f"Diversification vector needs {len(content)} bytes, limit is {VECTOR_LENGTH} "
            f"(system identifier is {len(system_identifier)} bytes)"
        )
    return content.ljust(VECTOR_LENGTH, b"\x00")


def diversify_key(base_key: bytes, uid: bytes, system_identifier: bytes, version: int) -> bytes:
    """
    Derive the tag-specific 16-byte key for a UID.

    Args:
        base_key: 16-byte base (master) key for the key slot.
        uid: 7-byte tag UID.
        system_identifier: Deployment-chosen context bytes.
        version: Key version byte.

    Returns:
        The diversified 16-byte key.
    """
    check_key(base_key, "base key")
    sv = build_diversification_vector(uid, system_identifier, version)
    return aes_cmac(base_key, sv)


# ──────────────────────────────────────────────
# Per-slot derivation policy
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Diversified:
    """Key slot provisioned with a diversified key."""
    system_identifier: bytes = b"testing"
    version: int = 1

    def __post_init__(self):
        if isinstance(self.system_identifier, str):
            object.__setattr__(self, "system_identifier", self.system_identifier.encode("utf-8"))
        # Catch an oversized identifier at configuration time, not on the first scan
        build_diversification_vector(bytes(UID_LENGTH), self.system_identifier, self.version)


@dataclass(frozen=True)
class Direct:
    """Key slot holding the base key as-is (no diversification)."""


KeyDerivationMode = Union[Diversified, Direct]


def derive_mac_file_key(mode: KeyDerivationMode, base_key: bytes, uid: bytes) -> bytes:
    """
    Return the SDM MAC file key for a tag under the given slot policy.

    Args:
        mode: Diversified(...) or Direct().
        base_key: 16-byte base key.
        uid: 7-byte tag UID.

    Returns:
        16-byte key used to derive SDM session keys.
    """
    if isinstance(mode, Diversified):
        return diversify_key(base_key, uid, mode.system_identifier, mode.version)
    if isinstance(mode, Direct):
        check_key(base_key, "base key")
        return bytes(base_key)
    raise TypeError(f"Unknown key derivation mode: {mode!r}")
