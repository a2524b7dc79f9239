"""Unit tests for authenticator data and the signature base string."""

import hashlib

import pytest

from fidophoto.authenticator_data import (
    AUTHENTICATOR_DATA_LENGTH,
    MAX_COUNTER,
    build_authenticator_data,
    build_flags,
    build_signature_base,
    parse_authenticator_data,
)

RP_HASH_HEX = hashlib.sha256(b"www.fidophoto.com").hexdigest()


class TestBuildAuthenticatorData:
    """Test cases for authenticator data construction."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "up, uv, flags",
        [(False, False, 0x00), (True, False, 0x01), (False, True, 0x04), (True, True, 0x05)],
    )
    def test_flags(self, up, uv, flags):
        """Test flag byte for each UP/UV combination."""
        assert build_flags(up, uv) == flags
        data = build_authenticator_data("www.fidophoto.com", up, uv, 0)
        assert data[32] == flags

    @pytest.mark.unit
    def test_layout(self):
        """Test rp id hash, flags and big-endian counter placement."""
        data = build_authenticator_data("www.fidophoto.com", True, False, 0x01020304)

        assert len(data) == AUTHENTICATOR_DATA_LENGTH
        assert data.hex() == RP_HASH_HEX + "01" + "01020304"

    @pytest.mark.unit
    @pytest.mark.parametrize("counter", [-1, MAX_COUNTER + 1, 2**40])
    def test_counter_out_of_range(self, counter):
        """Test that counters outside 0..2^32-1 are rejected."""
        with pytest.raises(ValueError, match="out of range"):
            build_authenticator_data("www.fidophoto.com", False, False, counter)

    @pytest.mark.unit
    @pytest.mark.parametrize("counter", [1.5, "1", True, None])
    def test_counter_wrong_type(self, counter):
        """Test that non-integer counters are rejected."""
        with pytest.raises(ValueError, match="must be an integer"):
            build_authenticator_data("www.fidophoto.com", False, False, counter)

    @pytest.mark.unit
    def test_counter_bounds(self):
        """Test both ends of the counter range."""
        assert build_authenticator_data("a", False, False, 0)[-4:] == b"\x00\x00\x00\x00"
        assert build_authenticator_data("a", False, False, MAX_COUNTER)[-4:] == b"\xff\xff\xff\xff"


class TestBuildSignatureBase:
    """Test cases for the hex signature base string."""

    @pytest.mark.unit
    def test_reference_vector(self):
        """Test the documented example value."""
        base = build_signature_base("www.fidophoto.com", False, False, 1, "ab")

        assert base == RP_HASH_HEX + "00" + "00000001" + "ab"
        assert len(base) == 76

    @pytest.mark.unit
    def test_lowercase_prefix(self):
        """Test that the prefix is lowercase and the hash is appended unchanged."""
        base = build_signature_base("www.fidophoto.com", True, True, 0xABCDEF, "DEADBEEF")

        prefix = base[: AUTHENTICATOR_DATA_LENGTH * 2]
        assert prefix == prefix.lower()
        assert base.endswith("DEADBEEF")

    @pytest.mark.unit
    def test_empty_content_hash(self):
        """Test that an empty hash yields just the authenticator data."""
        assert build_signature_base("x", False, False, 7, "") == build_authenticator_data(
            "x", False, False, 7
        ).hex()

    @pytest.mark.unit
    def test_unicode_rp_id(self):
        """Test that the rp id is hashed as UTF-8."""
        base = build_signature_base("fotó.example", False, False, 0, "")

        assert base[:64] == hashlib.sha256("fotó.example".encode("utf-8")).hexdigest()


class TestParseAuthenticatorData:
    """Test cases for authenticator data parsing."""

    @pytest.mark.unit
    def test_parse(self):
        """Test that parsing recovers every field."""
        data = build_authenticator_data("www.fidophoto.com", True, True, 1700000000)

        parsed = parse_authenticator_data(data)

        assert parsed.rp_id_hash.hex() == RP_HASH_HEX
        assert parsed.flags == 0x05
        assert parsed.user_present
        assert parsed.user_verified
        assert parsed.counter == 1700000000
        assert parsed.matches_rp_id("www.fidophoto.com")
        assert not parsed.matches_rp_id("evil.example")

    @pytest.mark.unit
    def test_trailing_bytes_ignored(self):
        """Test that extension data after 37 bytes is ignored."""
        data = build_authenticator_data("a", False, False, 9) + b"\xa0"

        assert parse_authenticator_data(data).counter == 9

    @pytest.mark.unit
    def test_too_short(self):
        """Test that truncated data raises ValueError."""
        data = build_authenticator_data("a", False, False, 9)

        with pytest.raises(ValueError, match="too short"):
            parse_authenticator_data(data[:-1])
