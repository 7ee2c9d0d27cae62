"""
SDM session vectors and the per-mode cipher suites built on them.

The SDM file-read key is never used directly: the tag first derives session
keys by MACing a 16-byte session vector (SV) holding a static header, the
UID and the read counter. Fields the tag does not mirror (all-zero UID,
counter 0) are left out of the vector entirely, and the counter goes in
little-endian even though URLs carry it big-endian.

AES mode (NT4H2421Gx datasheet, SDM session key generation):
    SV1 (ENC) = C3 3C 00 01 00 80 | UID | ctr(LE) | 00 padding
    SV2 (MAC) = 3C C3 00 01 00 80 | UID | ctr(LE) | 00 padding

LRP mode:
    SV = 00 01 00 80 | UID | ctr(LE) | 00 padding | 1E E1
"""

from abc import ABC, abstractmethod
from typing import Optional

from sdmverify.crypto.cmac import (
    BLOCK_SIZE,
    aes_cbc_decrypt,
    aes_cmac,
    aes_encrypt_block,
)
from sdmverify.errors import InvalidCounter, UnsupportedCipherSuite

SV_LENGTH = 16

AES_MAC_PREFIX = bytes.fromhex("3CC300010080")
AES_ENC_PREFIX = bytes.fromhex("C33C00010080")
LRP_PREFIX = bytes.fromhex("00010080")
LRP_SUFFIX = bytes.fromhex("1EE1")

COUNTER_LENGTH = 3
MAX_COUNTER = (1 << 24) - 1

# UID value meaning "UID not mirrored"
UID_SENTINEL = bytes(7)


def counter_to_le_bytes(read_counter: int) -> bytes:
    """Encode a read counter as the 3 little-endian bytes used inside SVs."""
    if not 0 <= read_counter <= MAX_COUNTER:
        raise InvalidCounter(f"Read counter out of range: {read_counter}")
    return read_counter.to_bytes(COUNTER_LENGTH, "little")


def build_session_vector(prefix: bytes, uid: bytes, read_counter: int,
                         suffix: Optional[bytes] = None) -> bytes:
    """
    Assemble a 16-byte SDM session vector.

    Args:
        prefix: Static header selecting the key being derived.
        uid: 7-byte UID; omitted when it is the all-zero sentinel.
        read_counter: Read counter; omitted when 0.
        suffix: Optional trailer right-aligned at the end of the vector.

    Returns:
        The 16-byte session vector.
    """
    sv = bytearray(SV_LENGTH)
    sv[0:len(prefix)] = prefix
    idx = len(prefix)

    if uid and bytes(uid) != UID_SENTINEL:
        sv[idx:idx + len(uid)] = uid
        idx += len(uid)

    if read_counter > 0:
        sv[idx:idx + COUNTER_LENGTH] = counter_to_le_bytes(read_counter)
        idx += COUNTER_LENGTH

    if suffix:
        sv[SV_LENGTH - len(suffix):] = suffix

    return bytes(sv)


def aes_mac_session_vector(uid: bytes, read_counter: int) -> bytes:
    return build_session_vector(AES_MAC_PREFIX, uid, read_counter)


def aes_enc_session_vector(uid: bytes, read_counter: int) -> bytes:
    return build_session_vector(AES_ENC_PREFIX, uid, read_counter)


def lrp_session_vector(uid: bytes, read_counter: int) -> bytes:
    return build_session_vector(LRP_PREFIX, uid, read_counter, LRP_SUFFIX)


# ──────────────────────────────────────────────
# Cipher suites
# ──────────────────────────────────────────────

class CipherSuite(ABC):
    """
    Primitives one SDM secure-messaging mode provides.

    Both modes share the session-vector shape and the short-MAC truncation;
    they differ in how session keys are derived and how the MAC and the
    decryption are computed.
    """

    name: str = ""
    uses_lrp: bool = False

    @abstractmethod
    def session_vector(self, uid: bytes, read_counter: int) -> bytes:
        """Session vector used for MAC key derivation."""

    @abstractmethod
    def session_mac_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        """Derive the session MAC key from the SDM file-read key."""

    @abstractmethod
    def session_enc_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        """Derive the session encryption key from the SDM file-read key."""

    @abstractmethod
    def mac(self, session_key: bytes, message: bytes) -> bytes:
        """Full 16-byte MAC of message under a session MAC key."""

    @abstractmethod
    def decrypt_picc_data(self, key: bytes, encrypted: bytes) -> bytes:
        """Decrypt an encrypted PICC data record with the SDM meta-read key."""

    @abstractmethod
    def decrypt_file_data(self, file_key: bytes, uid: bytes, read_counter: int,
                          encrypted: bytes) -> bytes:
        """Decrypt mirrored encrypted file data."""

    def __repr__(self):
        return f"{type(self).__name__}()"


class AesCipherSuite(CipherSuite):
    """AES-128 secure messaging (the tag's default mode)."""

    name = "AES"
    uses_lrp = False

    def session_vector(self, uid: bytes, read_counter: int) -> bytes:
        return aes_mac_session_vector(uid, read_counter)

    def session_mac_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        return aes_cmac(file_key, aes_mac_session_vector(uid, read_counter))

    def session_enc_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        return aes_cmac(file_key, aes_enc_session_vector(uid, read_counter))

    def mac(self, session_key: bytes, message: bytes) -> bytes:
        return aes_cmac(session_key, message)

    def decrypt_picc_data(self, key: bytes, encrypted: bytes) -> bytes:
        return aes_cbc_decrypt(key, encrypted)

    def decrypt_file_data(self, file_key: bytes, uid: bytes, read_counter: int,
                          encrypted: bytes) -> bytes:
        session_key = self.session_enc_key(file_key, uid, read_counter)
        iv_input = counter_to_le_bytes(read_counter).ljust(BLOCK_SIZE, b"\x00")
        iv = aes_encrypt_block(session_key, iv_input)
        return aes_cbc_decrypt(session_key, encrypted, iv)


class LrpCipherSuite(CipherSuite):
    """
    Leakage Resilient Primitive mode.

    Only the session vector is provided. The LRP multi-cipher, LRP-CMAC and
    LRP decryption (AN12304) are not implemented, so every primitive raises
    UnsupportedCipherSuite.
    """

    name = "LRP"
    uses_lrp = True

    def session_vector(self, uid: bytes, read_counter: int) -> bytes:
        return lrp_session_vector(uid, read_counter)

    def _unsupported(self, operation: str):
        raise UnsupportedCipherSuite(f"LRP {operation} is not implemented")

    def session_mac_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        self._unsupported("session key generation")

    def session_enc_key(self, file_key: bytes, uid: bytes, read_counter: int) -> bytes:
        self._unsupported("session key generation")

    def mac(self, session_key: bytes, message: bytes) -> bytes:
        self._unsupported("CMAC")

    def decrypt_picc_data(self, key: bytes, encrypted: bytes) -> bytes:
        self._unsupported("PICC data decryption")

    def decrypt_file_data(self, file_key: bytes, uid: bytes, read_counter: int,
                          encrypted: bytes) -> bytes:
        self._unsupported("file data decryption")


AES_SUITE = AesCipherSuite()
LRP_SUITE = LrpCipherSuite()


def cipher_suite(uses_lrp: bool) -> CipherSuite:
    """Return the cipher suite for a tag's secure-messaging mode."""
    return LRP_SUITE if uses_lrp else AES_SUITE
