"""
Tests for PiccData decoding and MAC computation.

Vectors from NXP AN12196 (all keys are the factory default, all zeros):
https://www.nxp.com/docs/en/application-note/AN12196.pdf
"""

import pytest
from sdmverify.crypto.kdf import FACTORY_KEY
from sdmverify.sdm.picc import PiccData, decode_counter
from sdmverify.errors import (
    DecodingError, InvalidCounter, InvalidMacLength, InvalidUidLength, UnsupportedCipherSuite,
)

# AN12196 table 5: plain UID/counter mirroring, zero-length MAC input
UID_HEX = "04DE5F1EACC040"
COUNTER_HEX = "00003D"
MAC_HEX = "94EED9EE65337086"


def flip_bit(hex_string: str, bit: int) -> str:
    data = bytearray.fromhex(hex_string)
    data[bit // 8] ^= 1 << (bit % 8)
    return data.hex().upper()


class TestDecodeAndVerifyMac:
    def test_known_vector(self):
        picc = PiccData.decode_and_verify_mac(UID_HEX, COUNTER_HEX, MAC_HEX, FACTORY_KEY)
        assert picc is not None
        assert picc.uid == bytes.fromhex(UID_HEX)
        assert picc.read_counter == 61

    def test_short_mac_value(self):
        picc = PiccData(bytes.fromhex(UID_HEX), 61, mac_file_key=FACTORY_KEY)
        assert picc.perform_short_cmac() == bytes.fromhex(MAC_HEX)

    def test_lower_case_input(self):
        picc = PiccData.decode_and_verify_mac(
            UID_HEX.lower(), COUNTER_HEX.lower(), MAC_HEX.lower(), FACTORY_KEY
        )
        assert picc is not None

    def test_wrong_key_returns_none(self):
        assert PiccData.decode_and_verify_mac(UID_HEX, COUNTER_HEX, MAC_HEX, bytes([1] * 16)) is None

    def test_counter_byte_order_matters(self):
        """The URL counter is big-endian; reading it little-endian breaks the MAC."""
        assert PiccData.decode_and_verify_mac(UID_HEX, "3D0000", MAC_HEX, FACTORY_KEY) is None

    @pytest.mark.parametrize("bit", range(56))
    def test_uid_bit_flip_fails(self, bit):
        uid = flip_bit(UID_HEX, bit)
        assert PiccData.decode_and_verify_mac(uid, COUNTER_HEX, MAC_HEX, FACTORY_KEY) is None

    @pytest.mark.parametrize("bit", range(24))
    def test_counter_bit_flip_fails(self, bit):
        counter = flip_bit(COUNTER_HEX, bit)
        assert PiccData.decode_and_verify_mac(UID_HEX, counter, MAC_HEX, FACTORY_KEY) is None

    @pytest.mark.parametrize("bit", range(64))
    def test_mac_bit_flip_fails(self, bit):
        mac = flip_bit(MAC_HEX, bit)
        assert PiccData.decode_and_verify_mac(UID_HEX, COUNTER_HEX, mac, FACTORY_KEY) is None

    def test_mac_over_file_data_input(self):
        """AN12196 table 6: MAC input covers mirrored encrypted file data."""
        message = b"CEE9A53E3E463EF1F459635736738962&cmac="
        picc = PiccData.decode_and_verify_mac(
            "04958CAA5C5E80", "000008", "ECC1E7F6C6C73BF6", FACTORY_KEY, message=message
        )
        assert picc is not None
        assert PiccData.decode_and_verify_mac(
            "04958CAA5C5E80", "000008", "ECC1E7F6C6C73BF6", FACTORY_KEY
        ) is None


class TestVerifyDecoded:
    def test_known_vector(self):
        picc = PiccData.verify_decoded(bytes.fromhex(UID_HEX), 61, bytes.fromhex(MAC_HEX), FACTORY_KEY)
        assert picc is not None
        assert picc.read_counter == 61

    def test_wrong_mac_returns_none(self):
        assert PiccData.verify_decoded(bytes.fromhex(UID_HEX), 61, bytes(8), FACTORY_KEY) is None


class TestMalformedInput:
    @pytest.mark.parametrize("uid", ["04DE5F1EACC0", "04DE5F1EACC04000", "ZZDE5F1EACC040", ""])
    def test_bad_uid(self, uid):
        with pytest.raises(InvalidUidLength):
            PiccData.decode_and_verify_mac(uid, COUNTER_HEX, MAC_HEX, FACTORY_KEY)

    @pytest.mark.parametrize("counter", ["3D", "0000003D", "00003G", "00003"])
    def test_bad_counter(self, counter):
        with pytest.raises(InvalidCounter):
            PiccData.decode_and_verify_mac(UID_HEX, counter, MAC_HEX, FACTORY_KEY)

    @pytest.mark.parametrize("mac", ["94EED9EE", "94EED9EE6533708600", "XXEED9EE65337086"])
    def test_bad_mac(self, mac):
        with pytest.raises(InvalidMacLength):
            PiccData.decode_and_verify_mac(UID_HEX, COUNTER_HEX, mac, FACTORY_KEY)

    def test_errors_are_decoding_errors(self):
        with pytest.raises(DecodingError):
            PiccData.decode_and_verify_mac("nothex", COUNTER_HEX, MAC_HEX, FACTORY_KEY)

    def test_decode_counter_max(self):
        assert decode_counter("FFFFFF") == (1 << 24) - 1


class TestPiccDataRecord:
    def test_uid_length_enforced(self):
        with pytest.raises(InvalidUidLength):
            PiccData(bytes(4), 1)

    def test_counter_range_enforced(self):
        with pytest.raises(InvalidCounter):
            PiccData(bytes(7), 1 << 24)

    def test_is_immutable(self):
        picc = PiccData(bytes.fromhex(UID_HEX), 61)
        with pytest.raises(AttributeError):
            picc.read_counter = 62

    def test_key_not_in_repr(self):
        picc = PiccData(bytes.fromhex(UID_HEX), 61, mac_file_key=bytes([0xAB] * 16))
        assert "mac_file_key" not in repr(picc)

    def test_uid_hex(self):
        assert PiccData(bytes.fromhex(UID_HEX.lower()), 61).uid_hex == UID_HEX

    def test_lrp_mac_unsupported(self):
        picc = PiccData(bytes.fromhex(UID_HEX), 61, uses_lrp=True, mac_file_key=FACTORY_KEY)
        with pytest.raises(UnsupportedCipherSuite):
            picc.perform_short_cmac()


class TestDecodeFromBytes:
    def test_full_record(self):
        record = bytes.fromhex("C7" + UID_HEX + "3D0000") + bytes(5)
        picc = PiccData.decode_from_bytes(record)
        assert picc.uid == bytes.fromhex(UID_HEX)
        assert picc.read_counter == 61

    def test_counter_only(self):
        picc = PiccData.decode_from_bytes(bytes.fromhex("403D0000"))
        assert picc.uid == bytes(7)
        assert picc.read_counter == 61

    def test_nothing_mirrored(self):
        picc = PiccData.decode_from_bytes(bytes(16))
        assert picc.uid == bytes(7)
        assert picc.read_counter == 0

    def test_truncated_record_raises(self):
        with pytest.raises(DecodingError):
            PiccData.decode_from_bytes(bytes.fromhex("C704DE5F"))

    def test_empty_record_raises(self):
        with pytest.raises(DecodingError):
            PiccData.decode_from_bytes(b"")


class TestEncryptedPiccData:
    def test_decrypt_picc_data(self):
        """AN12196 table 3."""
        encrypted = bytes.fromhex("EF963FF7828658A599F3041510671E88")
        picc = PiccData.decode_from_encrypted_bytes(encrypted, FACTORY_KEY)
        assert picc.uid == bytes.fromhex("04DE5F1EACC040")
        assert picc.read_counter == 61

    def test_decrypted_record_verifies_table5_mac(self):
        encrypted = bytes.fromhex("EF963FF7828658A599F3041510671E88")
        picc = PiccData.decode_from_encrypted_bytes(encrypted, FACTORY_KEY).with_key(FACTORY_KEY)
        assert picc.verify_mac(bytes.fromhex(MAC_HEX))

    def test_decrypt_file_data(self):
        """AN12196 table 4."""
        picc = PiccData.decode_from_encrypted_bytes(
            bytes.fromhex("FDE4AFA99B5C820A2C1BB0F1C792D0EB"), FACTORY_KEY
        )
        assert picc.uid == bytes.fromhex("04958CAA5C5E80")
        assert picc.read_counter == 1

        file_data = picc.with_key(FACTORY_KEY).decrypt_file_data(
            bytes.fromhex("94592FDE69FA06E8E3B6CA686A22842B")
        )
        assert file_data == b"x" * 16

    def test_table6_picc_data(self):
        picc = PiccData.decode_from_encrypted_bytes(
            bytes.fromhex("FD91EC264309878BE6345CBE53BADF40"), FACTORY_KEY
        )
        assert picc.uid == bytes.fromhex("04958CAA5C5E80")
        assert picc.read_counter == 8

    def test_with_key_leaves_original_unchanged(self):
        picc = PiccData(bytes.fromhex(UID_HEX), 61)
        keyed = picc.with_key(FACTORY_KEY)
        assert picc.mac_file_key == b""
        assert keyed.mac_file_key == FACTORY_KEY
