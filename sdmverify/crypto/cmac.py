"""
AES-128 CMAC (RFC 4493) and the NXP short-MAC truncation.

SDM uses CMAC three times per scan: to diversify the tag key, to derive the
session MAC key from a session vector, and to MAC the (usually empty) SDM
input. The tag publishes only 8 of the 16 CMAC bytes, picked at odd
indices as mandated by NXP AN12196, not the first 8.

Reference: https://www.nxp.com/docs/en/application-note/AN12196.pdf
"""

try:
    from Cryptodome.Cipher import AES
    from Cryptodome.Hash import CMAC
except ImportError:
    from Crypto.Cipher import AES
    from Crypto.Hash import CMAC

from sdmverify.errors import DecodingError, InvalidKeyLength, InvalidMacLength

KEY_LENGTH = 16
BLOCK_SIZE = AES.block_size
MAC_LENGTH = 16
SHORT_MAC_LENGTH = 8

ZERO_IV = bytes(BLOCK_SIZE)


def check_key(key: bytes, name: str = "key") -> None:
    """Raise InvalidKeyLength unless key is a 16-byte AES-128 key."""
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_LENGTH:
        length = len(key) if isinstance(key, (bytes, bytearray)) else type(key).__name__
        raise InvalidKeyLength(f"{name} must be {KEY_LENGTH} bytes, got {length}")


# ──────────────────────────────────────────────
# CMAC
# ──────────────────────────────────────────────

def aes_cmac(key: bytes, message: bytes = b"") -> bytes:
    """
    Compute the full 16-byte AES-CMAC of a message.

    Args:
        key: 16-byte AES key.
        message: Data to authenticate, any length (empty is valid).

    Returns:
        The 16-byte CMAC tag.

    Raises:
        InvalidKeyLength: key is not 16 bytes.
    """
    check_key(key)
    mac = CMAC.new(bytes(key), ciphermod=AES)
    if message:
        mac.update(bytes(message))
    return mac.digest()


def truncate_mac(full_mac: bytes) -> bytes:
    """
    Shorten a 16-byte CMAC to the 8 bytes a tag mirrors.

    Keeps the bytes at indices 1, 3, 5, ..., 15 in order.
    """
    if len(full_mac) != MAC_LENGTH:
        raise InvalidMacLength(f"CMAC must be {MAC_LENGTH} bytes, got {len(full_mac)}")
    return bytes(full_mac[1::2])


# ──────────────────────────────────────────────
# Raw AES helpers (encrypted PICC data / file data)
# ──────────────────────────────────────────────

def aes_encrypt_block(key: bytes, block: bytes) -> bytes:
    """Encrypt a single 16-byte block with AES-ECB."""
    check_key(key)
    return AES.new(bytes(key), AES.MODE_ECB).encrypt(bytes(block))


def aes_cbc_decrypt(key: bytes, data: bytes, iv: bytes = ZERO_IV) -> bytes:
    """Decrypt whole blocks with AES-CBC. No padding is removed."""
    check_key(key)
    if len(data) == 0 or len(data) % BLOCK_SIZE != 0:
        raise DecodingError(f"Ciphertext must be a non-empty multiple of {BLOCK_SIZE} bytes")
    return AES.new(bytes(key), AES.MODE_CBC, iv=bytes(iv)).decrypt(bytes(data))
