"""Tests for SDM MAC key diversification."""

import pytest
from sdmverify.crypto.cmac import aes_cmac
from sdmverify.crypto.kdf import (
    build_diversification_vector, diversify_key, derive_mac_file_key,
    Diversified, Direct, FACTORY_KEY, VECTOR_LENGTH,
)
from sdmverify.errors import (
    ConfigurationError, DiversificationVectorOverflow, InvalidKeyLength, InvalidUidLength,
)

UID = bytes.fromhex("0464171A282290")


class TestDiversificationVector:
    """Layout of the 32-byte derivation vector."""

    def test_layout(self):
        sv = build_diversification_vector(UID, b"testing", 1)
        assert len(sv) == VECTOR_LENGTH
        assert sv[0] == 0x01
        assert sv[1:10] == b"SDMMACKey"
        assert sv[10:17] == b"testing"
        assert sv[17] == 1
        assert sv[18:25] == UID
        assert sv[25] == 0x80
        assert sv[26:] == bytes(6)

    def test_empty_system_identifier_shifts_fields(self):
        sv = build_diversification_vector(UID, b"", 3)
        assert sv[10] == 3
        assert sv[11:18] == UID
        assert sv[18] == 0x80
        assert sv[19:] == bytes(13)

    def test_longest_identifier_fits(self):
        sv = build_diversification_vector(UID, b"A" * 13, 1)
        assert len(sv) == VECTOR_LENGTH
        assert sv[-1] == 0x80

    def test_overflow_raises(self):
        with pytest.raises(DiversificationVectorOverflow):
            build_diversification_vector(UID, b"A" * 14, 1)

    def test_wrong_uid_length_raises(self):
        with pytest.raises(InvalidUidLength):
            build_diversification_vector(UID[:4], b"testing", 1)

    def test_version_out_of_range_raises(self):
        with pytest.raises(ConfigurationError):
            build_diversification_vector(UID, b"testing", 256)


class TestDiversifyKey:
    def test_returns_16_bytes(self):
        assert len(diversify_key(FACTORY_KEY, UID, b"testing", 1)) == 16

    def test_deterministic_output(self):
        """Same inputs should always produce the same key."""
        key1 = diversify_key(FACTORY_KEY, UID, b"testing", 1)
        key2 = diversify_key(FACTORY_KEY, UID, b"testing", 1)
        assert key1 == key2

    def test_is_cmac_of_vector(self):
        sv = build_diversification_vector(UID, b"testing", 1)
        assert diversify_key(FACTORY_KEY, UID, b"testing", 1) == aes_cmac(FACTORY_KEY, sv)

    def test_different_uids_produce_different_keys(self):
        key1 = diversify_key(FACTORY_KEY, bytes.fromhex("04111111111111"), b"testing", 1)
        key2 = diversify_key(FACTORY_KEY, bytes.fromhex("04222222222222"), b"testing", 1)
        assert key1 != key2

    def test_context_changes_key(self):
        base = diversify_key(FACTORY_KEY, UID, b"testing", 1)
        assert diversify_key(FACTORY_KEY, UID, b"testing", 2) != base
        assert diversify_key(FACTORY_KEY, UID, b"prod", 1) != base

    def test_derived_key_is_not_base_key(self):
        assert diversify_key(FACTORY_KEY, UID, b"testing", 1) != FACTORY_KEY

    def test_bad_base_key_raises(self):
        with pytest.raises(InvalidKeyLength):
            diversify_key(bytes(10), UID, b"testing", 1)


class TestDerivationMode:
    def test_direct_returns_base_key(self):
        key = bytes(range(16))
        assert derive_mac_file_key(Direct(), key, UID) == key

    def test_diversified_matches_diversify_key(self):
        mode = Diversified(b"testing", 1)
        assert derive_mac_file_key(mode, FACTORY_KEY, UID) == \
            diversify_key(FACTORY_KEY, UID, b"testing", 1)

    def test_string_identifier_is_encoded(self):
        assert Diversified("testing", 1) == Diversified(b"testing", 1)

    def test_oversized_identifier_fails_at_configuration(self):
        with pytest.raises(DiversificationVectorOverflow):
            Diversified(b"an-identifier-that-is-too-long", 1)

    def test_direct_rejects_bad_key(self):
        with pytest.raises(InvalidKeyLength):
            derive_mac_file_key(Direct(), bytes(5), UID)

    def test_unknown_mode_raises(self):
        with pytest.raises(TypeError):
            derive_mac_file_key("diversified", FACTORY_KEY, UID)
