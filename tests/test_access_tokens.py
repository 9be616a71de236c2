"""Unit tests for the access token codec."""

from datetime import timedelta

import jwt
import pytest

from services.access_tokens import AccessClaims, AccessTokenCodec, SigningKey
from services.errors import TokenFailure
from tests.conftest import ACCESS_TTL, TEST_SECRET


def _tamper_signature(token: str) -> str:
    header, payload, signature = token.split(".")
    # flip the first character; the last one carries padding bits
    first = "A" if signature[0] != "A" else "B"
    return ".".join([header, payload, first + signature[1:]])


class TestSigningKey:
    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            SigningKey.from_secret("")

    def test_blank_secret_rejected(self):
        with pytest.raises(ValueError):
            SigningKey.from_secret("   ")

    def test_asymmetric_algorithm_rejected(self):
        with pytest.raises(ValueError):
            SigningKey.from_secret(TEST_SECRET, "RS256")

    def test_repr_hides_material(self):
        key = SigningKey.from_secret(TEST_SECRET)
        assert TEST_SECRET not in repr(key)


class TestMintAndVerify:
    def test_roundtrip_returns_subject_and_roles(self, codec):
        token = codec.mint("a@x.com", ["user", "admin"])

        claims = codec.parse_and_verify(token)

        assert isinstance(claims, AccessClaims)
        assert claims.subject == "a@x.com"
        assert claims.roles == ("user", "admin")

    def test_expiry_is_issued_at_plus_ttl(self, codec, clock):
        claims = codec.parse_and_verify(codec.mint("a@x.com", ["user"]))

        assert claims.issued_at == clock.now
        assert claims.expires_at - claims.issued_at == ACCESS_TTL

    def test_duplicate_roles_collapse_in_order(self, codec):
        claims = codec.parse_and_verify(codec.mint("a@x.com", ["user", "admin", "user"]))
        assert claims.roles == ("user", "admin")

    def test_same_inputs_same_instant_are_deterministic(self, codec):
        assert codec.mint("a@x.com", ["user"]) == codec.mint("a@x.com", ["user"])

    def test_valid_until_one_second_before_expiry(self, codec, clock):
        token = codec.mint("a@x.com", ["user"])
        clock.advance(seconds=ACCESS_TTL.total_seconds() - 1)

        assert isinstance(codec.parse_and_verify(token), AccessClaims)

    def test_expired_exactly_at_expiry(self, codec, clock):
        token = codec.mint("a@x.com", ["user"])
        clock.advance(seconds=ACCESS_TTL.total_seconds())

        assert codec.parse_and_verify(token) is TokenFailure.EXPIRED

    def test_expired_after_expiry(self, codec, clock):
        token = codec.mint("a@x.com", ["user"])
        clock.advance(hours=2)

        assert codec.parse_and_verify(token) is TokenFailure.EXPIRED


class TestMalformed:
    def test_tampered_signature_is_malformed_not_expired(self, codec, clock):
        token = _tamper_signature(codec.mint("a@x.com", ["user"]))

        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED
        clock.advance(days=1)
        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED

    def test_token_signed_with_other_key_is_malformed(self, codec, clock):
        other = AccessTokenCodec(SigningKey.from_secret("another-secret-another-secret-123"), ACCESS_TTL, clock=clock)
        assert codec.parse_and_verify(other.mint("a@x.com", ["user"])) is TokenFailure.MALFORMED

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "a.b"])
    def test_structurally_invalid(self, codec, token):
        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED

    def test_none_algorithm_rejected(self, codec, clock):
        now = int(clock.now.timestamp())
        token = jwt.encode({"sub": "a@x.com", "iat": now, "exp": now + 60}, None, algorithm="none")
        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED

    def test_missing_expiry_claim_is_malformed(self, codec, clock):
        token = jwt.encode({"sub": "a@x.com", "iat": int(clock.now.timestamp())}, TEST_SECRET, algorithm="HS256")
        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED

    def test_non_list_roles_is_malformed(self, codec, clock):
        now = int(clock.now.timestamp())
        token = jwt.encode(
            {"sub": "a@x.com", "roles": "admin", "iat": now, "exp": now + 60},
            TEST_SECRET,
            algorithm="HS256",
        )
        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED

    @pytest.mark.parametrize("exp", [10**20, -(10**20), 1e308])
    def test_out_of_range_timestamp_is_malformed(self, codec, clock, exp):
        now = int(clock.now.timestamp())
        token = jwt.encode({"sub": "a@x.com", "iat": now, "exp": exp}, TEST_SECRET, algorithm="HS256")

        assert codec.parse_and_verify(token) is TokenFailure.MALFORMED
        assert codec.extract_subject(token) is TokenFailure.MALFORMED


class TestExtractSubject:
    def test_returns_subject(self, codec):
        assert codec.extract_subject(codec.mint("a@x.com", [])) == "a@x.com"

    def test_ignores_expiry(self, codec, clock):
        token = codec.mint("a@x.com", [])
        clock.advance(days=3)
        assert codec.extract_subject(token) == "a@x.com"

    def test_still_checks_signature(self, codec):
        token = _tamper_signature(codec.mint("a@x.com", []))
        assert codec.extract_subject(token) is TokenFailure.MALFORMED


def test_non_positive_ttl_rejected(signing_key):
    with pytest.raises(ValueError):
        AccessTokenCodec(signing_key, timedelta(0))


@pytest.mark.parametrize("ttl", [timedelta(milliseconds=500), timedelta(seconds=1.5), timedelta(seconds=-5)])
def test_fractional_or_sub_second_ttl_rejected(signing_key, ttl):
    with pytest.raises(ValueError):
        AccessTokenCodec(signing_key, ttl)


def test_one_second_ttl_is_usable(signing_key, clock):
    codec = AccessTokenCodec(signing_key, timedelta(seconds=1), clock=clock)
    token = codec.mint("a@x.com", [])

    assert isinstance(codec.parse_and_verify(token), AccessClaims)
    clock.advance(seconds=1)
    assert codec.parse_and_verify(token) is TokenFailure.EXPIRED
