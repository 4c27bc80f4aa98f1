"""
Token Service Tests

Covers issuance and validation of stateless session tokens:
- Round trip returns the subject
- Expiry is a strict comparison against the validation clock
- Forged, tampered, and malformed tokens are rejected
"""

from datetime import timedelta

import pytest
from jose import jwt

from services.token import TokenService

SECRET = "test-secret-key-that-is-at-least-32-chars"


@pytest.fixture
def tokens(clock):
    return TokenService(SECRET, expiration_hours=1, clock=clock.as_datetime)


class TestIssueAndValidate:

    @pytest.mark.unit
    @pytest.mark.parametrize("subject", ["u123", "a", "5f0c2b8e9d4a4b7c8e1f2a3b4c5d6e7f"])
    def test_validate_returns_subject_immediately(self, tokens, subject):
        assert tokens.validate(tokens.issue(subject)) == subject

    @pytest.mark.unit
    def test_issue_is_deterministic_for_same_clock(self, tokens):
        assert tokens.issue("u123") == tokens.issue("u123")

    @pytest.mark.unit
    def test_claims_carry_lifetime_in_hours(self, tokens, clock):
        claims = jwt.get_unverified_claims(tokens.issue("u123"))
        assert claims["sub"] == "u123"
        assert claims["iat"] == int(clock.now)
        assert claims["exp"] - claims["iat"] == 3600

    @pytest.mark.unit
    def test_empty_subject_rejected(self, tokens):
        with pytest.raises(ValueError):
            tokens.issue("")


class TestExpiry:

    @pytest.mark.unit
    def test_invalid_61_minutes_after_issue(self, tokens, clock):
        token = tokens.issue("u123")
        clock.advance(timedelta(minutes=61).total_seconds())
        assert tokens.validate(token) is None

    @pytest.mark.unit
    def test_valid_just_before_expiry(self, tokens, clock):
        token = tokens.issue("u123")
        clock.advance(3599)
        assert tokens.validate(token) == "u123"

    @pytest.mark.unit
    def test_invalid_exactly_at_expiry(self, tokens, clock):
        token = tokens.issue("u123")
        clock.advance(3600)
        assert tokens.validate(token) is None


class TestRejection:

    @pytest.mark.unit
    def test_wrong_secret(self, tokens, clock):
        other = TokenService("another-secret-key-that-is-32-chars!!", 1, clock=clock.as_datetime)
        assert tokens.validate(other.issue("u123")) is None

    @pytest.mark.unit
    def test_tampered_payload(self, tokens):
        header, payload, signature = tokens.issue("u123").split(".")
        forged_payload = jwt.get_unverified_claims(tokens.issue("u999"))
        forged = jwt.encode(forged_payload, "x" * 32, algorithm="HS256").split(".")[1]
        assert tokens.validate(f"{header}.{forged}.{signature}") is None

    @pytest.mark.unit
    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer x"])
    def test_malformed(self, tokens, token):
        assert tokens.validate(token) is None

    @pytest.mark.unit
    def test_missing_subject_claim(self, tokens, clock):
        token = jwt.encode({"exp": int(clock.now) + 60}, SECRET, algorithm="HS256")
        assert tokens.validate(token) is None

    @pytest.mark.unit
    def test_missing_expiry_claim(self, tokens):
        token = jwt.encode({"sub": "u123"}, SECRET, algorithm="HS256")
        assert tokens.validate(token) is None
