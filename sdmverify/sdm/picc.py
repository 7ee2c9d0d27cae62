"""
PICC data — the UID and read counter a tag mirrors on each SDM read.

A PiccData holds one scan's UID, counter and the SDM MAC file key for that
tag, and knows how to recompute the tag's MAC. Instances are immutable and
meant to live only for the duration of one verification.

PICC data can arrive in three shapes:
- plain mirroring: separate UID / counter / MAC hex strings in the URL
- encrypted PICC data: a 16-byte AES block holding a tag byte, UID and counter
- an already decrypted PICC record (tag byte + fields)
"""

import hmac
from dataclasses import dataclass, field
from typing import Optional

from sdmverify.crypto.cmac import SHORT_MAC_LENGTH, truncate_mac
from sdmverify.crypto.hexcodec import decode_hex, encode_hex
from sdmverify.errors import DecodingError, InvalidCounter, InvalidHex, InvalidMacLength, InvalidUidLength

from .session import COUNTER_LENGTH, MAX_COUNTER, UID_SENTINEL, CipherSuite, cipher_suite

UID_LENGTH = 7

# PICC data tag byte (decrypted record, byte 0)
UID_MIRRORED_BIT = 0x80
COUNTER_MIRRORED_BIT = 0x40
# Lower nibble holds the UID length; a record with everything mirrored starts with C7
PICC_TAG_FULL = UID_MIRRORED_BIT | COUNTER_MIRRORED_BIT | UID_LENGTH


def decode_uid(uid_hex: str) -> bytes:
    try:
        uid = decode_hex(uid_hex, field="UID")
    except InvalidHex as e:
        raise InvalidUidLength(str(e)) from e
    if len(uid) != UID_LENGTH:
        raise InvalidUidLength(f"UID must be {UID_LENGTH} bytes, got {len(uid)}")
    return uid


def decode_counter(counter_hex: str) -> int:
    """
    Decode the mirrored read counter.

    The URL carries the 3-byte counter most significant byte first ("00009E"
    is 158), the reverse of its order inside session vectors.
    """
    try:
        raw = decode_hex(counter_hex, field="read counter")
    except InvalidHex as e:
        raise InvalidCounter(str(e)) from e
    if len(raw) != COUNTER_LENGTH:
        raise InvalidCounter(f"Read counter must be {COUNTER_LENGTH} bytes, got {len(raw)}")
    return int.from_bytes(raw, "big")


def decode_short_mac(mac_hex: str) -> bytes:
    try:
        mac = decode_hex(mac_hex, field="MAC")
    except InvalidHex as e:
        raise InvalidMacLength(str(e)) from e
    if len(mac) != SHORT_MAC_LENGTH:
        raise InvalidMacLength(f"MAC must be {SHORT_MAC_LENGTH} bytes, got {len(mac)}")
    return mac


@dataclass(frozen=True)
class PiccData:
    """One decoded SDM scan: UID, read counter and the tag's MAC file key."""

    uid: bytes
    read_counter: int
    uses_lrp: bool = False
    mac_file_key: bytes = field(default=b"", repr=False)

    def __post_init__(self):
        if len(self.uid) != UID_LENGTH:
            raise InvalidUidLength(f"UID must be {UID_LENGTH} bytes, got {len(self.uid)}")
        if not 0 <= self.read_counter <= MAX_COUNTER:
            raise InvalidCounter(f"Read counter out of range: {self.read_counter}")
        object.__setattr__(self, "uid", bytes(self.uid))

    @property
    def uid_hex(self) -> str:
        """Normalised upper-case UID."""
        return encode_hex(self.uid)

    @property
    def suite(self) -> CipherSuite:
        return cipher_suite(self.uses_lrp)

    def session_mac_key(self) -> bytes:
        return self.suite.session_mac_key(self.mac_file_key, self.uid, self.read_counter)

    def perform_cmac(self, message: Optional[bytes] = None) -> bytes:
        """
        Compute the full 16-byte SDM MAC.

        Args:
            message: SDM MAC input. Empty when only UID and counter are
                mirrored; the ASCII text from SDMMACInputOffset up to the MAC
                when file data is mirrored too.
        """
        session_key = self.session_mac_key()
        return self.suite.mac(session_key, message or b"")

    def perform_short_cmac(self, message: Optional[bytes] = None) -> bytes:
        """Compute the 8-byte MAC the tag mirrors into the URL."""
        return truncate_mac(self.perform_cmac(message))

    def verify_mac(self, received_mac: bytes, message: Optional[bytes] = None) -> bool:
        """Constant-time comparison of a received short MAC against ours."""
        return hmac.compare_digest(self.perform_short_cmac(message), bytes(received_mac))

    def decrypt_file_data(self, encrypted: bytes) -> bytes:
        """Decrypt mirrored encrypted file data with the session ENC key."""
        return self.suite.decrypt_file_data(
            self.mac_file_key, self.uid, self.read_counter, encrypted
        )

    def with_key(self, mac_file_key: bytes) -> "PiccData":
        """Return a copy bound to a MAC file key (a new record; self is unchanged)."""
        return PiccData(self.uid, self.read_counter, self.uses_lrp, mac_file_key)

    # ──────────────────────────────────────────────
    # Decoding
    # ──────────────────────────────────────────────

    @classmethod
    def decode_from_bytes(cls, picc_record: bytes, uses_lrp: bool = False) -> "PiccData":
        """
        Decode a decrypted PICC data record.

        Byte 0 is a tag byte: bit 7 set means the 7-byte UID follows, bit 6
        set means a 3-byte little-endian read counter follows. Fields that
        are not mirrored decode as the all-zero UID / counter 0.
        """
        if not picc_record:
            raise DecodingError("PICC data record is empty")
        tag = picc_record[0]
        idx = 1
        uid = UID_SENTINEL
        read_counter = 0

        if tag & UID_MIRRORED_BIT:
            uid = bytes(picc_record[idx:idx + UID_LENGTH])
            if len(uid) != UID_LENGTH:
                raise InvalidUidLength("PICC data record is truncated inside the UID")
            idx += UID_LENGTH

        if tag & COUNTER_MIRRORED_BIT:
            raw = bytes(picc_record[idx:idx + COUNTER_LENGTH])
            if len(raw) != COUNTER_LENGTH:
                raise InvalidCounter("PICC data record is truncated inside the read counter")
            read_counter = int.from_bytes(raw, "little")

        return cls(uid=uid, read_counter=read_counter, uses_lrp=uses_lrp)

    @classmethod
    def decode_from_encrypted_bytes(cls, encrypted: bytes, key: bytes,
                                    uses_lrp: bool = False) -> "PiccData":
        """
        Decrypt and decode encrypted PICC data.

        Args:
            encrypted: The encrypted PICC data block from the URL.
            key: SDM meta-read key. Not diversified, since the UID is unknown
                until after decryption.
            uses_lrp: Tag secure-messaging mode.
        """
        plain = cipher_suite(uses_lrp).decrypt_picc_data(key, encrypted)
        return cls.decode_from_bytes(plain, uses_lrp)

    @classmethod
    def decode_and_verify_mac(cls, uid_hex: str, counter_hex: str, mac_hex: str,
                              mac_file_key: bytes, uses_lrp: bool = False,
                              message: Optional[bytes] = None) -> Optional["PiccData"]:
        """
        Decode plain-mirrored SDM parameters and check their MAC.

        Args:
            uid_hex: Mirrored UID (14 hex chars).
            counter_hex: Mirrored read counter (6 hex chars, big-endian).
            mac_hex: Mirrored short MAC (16 hex chars).
            mac_file_key: The tag's SDM MAC file key.
            uses_lrp: Tag secure-messaging mode.
            message: SDM MAC input, empty for UID/counter-only mirroring.

        Returns:
            The decoded PiccData if the MAC matches, otherwise None.

        Raises:
            DecodingError: One of the hex fields is malformed.
        """
        return cls.verify_decoded(decode_uid(uid_hex), decode_counter(counter_hex),
                                  decode_short_mac(mac_hex), mac_file_key, uses_lrp, message)

    @classmethod
    def verify_decoded(cls, uid: bytes, read_counter: int, received_mac: bytes,
                       mac_file_key: bytes, uses_lrp: bool = False,
                       message: Optional[bytes] = None) -> Optional["PiccData"]:
        """Check a short MAC against already decoded UID and counter values."""
        picc = cls(uid=uid, read_counter=read_counter, uses_lrp=uses_lrp,
                   mac_file_key=mac_file_key)
        if picc.verify_mac(received_mac, message):
            return picc
        return None
