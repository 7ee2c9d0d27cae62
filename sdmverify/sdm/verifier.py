"""
SDM scan verification — the boundary callers talk to.

One SdmVerifier is configured per key slot: a base key, a derivation mode
(diversified or direct) and the tag's secure-messaging mode. It turns a
scanned URL, or its separate u/c/m values, into a VerificationResult and
never lets a decoding or counter-store error escape. A MAC mismatch and a
replay are reported as distinct outcomes; so are malformed input and an
unavailable counter store, which fails closed.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sdmverify import config
from sdmverify.crypto.cmac import check_key
from sdmverify.crypto.hexcodec import encode_hex
from sdmverify.crypto.kdf import Direct, Diversified, KeyDerivationMode, derive_mac_file_key
from sdmverify.errors import (
    ConfigurationError, CounterStoreError, DecodingError, UnsupportedCipherSuite,
)

from .picc import PiccData, decode_counter, decode_short_mac, decode_uid
from .replay import MemoryCounterStore, ReplayGuard
from .store import SqlCounterStore
from .url import DEFAULT_PARAM_NAMES, ScanParamNames, extract_scan_params

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    VERIFIED = "verified"
    MAC_MISMATCH = "mac_mismatch"
    REPLAY = "replay"
    MALFORMED = "malformed"
    # Counter store failed; the scan is rejected
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class VerificationResult:
    """Outcome of one scan. Only VERIFIED means the scan may be trusted."""

    status: VerificationStatus
    uid: Optional[str] = None
    read_counter: Optional[int] = None
    reason: str = ""
    gid: Optional[str] = None
    rule: Optional[str] = None
    # Exception class name for MALFORMED and UNAVAILABLE results, e.g. "MissingParameter"
    error: Optional[str] = None

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    def __bool__(self):
        return self.verified

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "verified": self.verified,
            "uid": self.uid,
            "read_counter": self.read_counter,
            "reason": self.reason,
            "gid": self.gid,
            "rule": self.rule,
            "error": self.error,
        }


class SdmVerifier:
    """Verifies SDM scans for tags sharing one key-slot configuration."""

    def __init__(self, base_key: bytes, mode: Optional[KeyDerivationMode] = None,
                 uses_lrp: bool = False, replay_guard: Optional[ReplayGuard] = None,
                 param_names: ScanParamNames = DEFAULT_PARAM_NAMES):
        """
        Args:
            base_key: 16-byte key of the SDM MAC key slot.
            mode: Diversified(system_identifier, version) or Direct().
                Defaults to Direct().
            uses_lrp: Whether the tags run in LRP mode.
            replay_guard: Counter cache to use; a private in-memory one by default.
            param_names: URL parameter names for UID, counter and MAC.

        Raises:
            InvalidKeyLength: base_key is not 16 bytes.
            UnsupportedCipherSuite: uses_lrp is set.
        """
        check_key(base_key, "base key")
        if uses_lrp:
            raise UnsupportedCipherSuite("LRP verification is not implemented")
        self._base_key = bytes(base_key)
        self.mode = mode if mode is not None else Direct()
        self.uses_lrp = uses_lrp
        self.replay_guard = replay_guard if replay_guard is not None else ReplayGuard()
        self.param_names = param_names

    def __repr__(self):
        return f"SdmVerifier(mode={self.mode!r}, uses_lrp={self.uses_lrp})"

    def check_mac(self, uid_hex: str, counter_hex: str, mac_hex: str,
                  message: Optional[bytes] = None) -> Optional[PiccData]:
        """
        Verify only the MAC, without touching the replay cache.

        Returns:
            The decoded PiccData on a match, None on a mismatch.

        Raises:
            DecodingError: An input field is malformed.
        """
        return self._check_decoded(decode_uid(uid_hex), decode_counter(counter_hex),
                                   decode_short_mac(mac_hex), message)

    def _check_decoded(self, uid: bytes, read_counter: int, received_mac: bytes,
                       message: Optional[bytes]) -> Optional[PiccData]:
        mac_file_key = derive_mac_file_key(self.mode, self._base_key, uid)
        return PiccData.verify_decoded(uid, read_counter, received_mac, mac_file_key,
                                       self.uses_lrp, message)

    def verify(self, uid_hex: str, counter_hex: str, mac_hex: str,
               message: Optional[bytes] = None, gid: Optional[str] = None,
               rule: Optional[str] = None) -> VerificationResult:
        """
        Verify a scan's MAC and freshness.

        Args:
            uid_hex: Mirrored UID hex.
            counter_hex: Mirrored read counter hex (big-endian).
            mac_hex: Mirrored short MAC hex.
            message: SDM MAC input when file data is mirrored.
            gid: Informational, copied into the result.
            rule: Informational, copied into the result.

        Returns:
            A VerificationResult; never raises for bad input or a failing
            counter store.
        """
        try:
            uid_bytes = decode_uid(uid_hex)
            read_counter = decode_counter(counter_hex)
            received_mac = decode_short_mac(mac_hex)
        except DecodingError as e:
            logger.warning("Malformed SDM scan: %s", e)
            return VerificationResult(VerificationStatus.MALFORMED, reason=str(e),
                                      gid=gid, rule=rule, error=type(e).__name__)

        uid = encode_hex(uid_bytes)
        picc = self._check_decoded(uid_bytes, read_counter, received_mac, message)
        if picc is None:
            logger.info("SDM MAC mismatch for UID %s counter %d", uid, read_counter)
            return VerificationResult(VerificationStatus.MAC_MISMATCH, uid, read_counter,
                                      "MAC does not match", gid, rule)
        # Only the verdict survives past this point
        del picc

        try:
            fresh = self.replay_guard.check_freshness(uid, read_counter)
        except CounterStoreError as e:
            logger.error("Replay check unavailable for UID %s: %s", uid, e)
            return VerificationResult(VerificationStatus.UNAVAILABLE, uid, read_counter,
                                      "Replay check unavailable", gid, rule,
                                      error=type(e).__name__)

        if not fresh:
            return VerificationResult(VerificationStatus.REPLAY, uid, read_counter,
                                      "Read counter did not increase", gid, rule)

        logger.info("SDM scan verified for UID %s counter %d", uid, read_counter)
        return VerificationResult(VerificationStatus.VERIFIED, uid, read_counter, "", gid, rule)

    def verify_url(self, url: str) -> VerificationResult:
        """Extract u/c/m from a scanned URL and verify them."""
        try:
            params = extract_scan_params(url, self.param_names)
        except DecodingError as e:
            logger.warning("Rejected scan URL: %s", e)
            return VerificationResult(VerificationStatus.MALFORMED, reason=str(e),
                                      error=type(e).__name__)
        return self.verify(params.uid, params.counter, params.mac,
                           gid=params.gid, rule=params.rule)


def verifier_from_config() -> SdmVerifier:
    """Build the verifier described by sdmverify.config (environment)."""
    if config.DERIVE_MODE == "diversified":
        mode = Diversified(config.SYSTEM_IDENTIFIER.encode("utf-8"), config.KEY_VERSION)
    elif config.DERIVE_MODE == "direct":
        mode = Direct()
    else:
        raise ConfigurationError(f"Invalid SDM_DERIVE_MODE: {config.DERIVE_MODE!r}")

    try:
        base_key = bytes.fromhex(config.BASE_KEY_HEX)
    except ValueError as e:
        raise ConfigurationError("SDM_BASE_KEY is not valid hex") from e

    store = SqlCounterStore(config.COUNTER_DB_URL) if config.COUNTER_DB_URL else MemoryCounterStore()
    names = ScanParamNames(uid=config.UID_PARAM, counter=config.CTR_PARAM, mac=config.MAC_PARAM)

    logger.info("SDM verifier: mode=%r, replay store=%s", mode, type(store).__name__)
    return SdmVerifier(base_key, mode, config.USES_LRP, ReplayGuard(store), names)
