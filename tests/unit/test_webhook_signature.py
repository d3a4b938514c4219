"""Tests for GitHub webhook signature verification."""

import hashlib
import hmac

import pytest

from flowspec.api.v1.endpoints.github_webhook import compute_signature, verify_signature
from flowspec.domain.exceptions import SignatureInvalidException

SECRET = "s3cret"
BODY = b'{"action":"closed"}'


def test_compute_signature_matches_github_format() -> None:
    expected = hmac.new(SECRET.encode(), BODY, hashlib.sha256).hexdigest()
    assert compute_signature(SECRET, BODY) == f"sha256={expected}"


def test_valid_signature_passes() -> None:
    verify_signature(SECRET, BODY, compute_signature(SECRET, BODY))


def test_uppercase_hex_is_accepted() -> None:
    header = compute_signature(SECRET, BODY)
    verify_signature(SECRET, BODY, "sha256=" + header[7:].upper())


@pytest.mark.parametrize(
    "header",
    [
        None,
        "",
        "sha1=abcdef",
        "sha256=",
        "sha256=abc123",
        compute_signature(SECRET, b'{"action":"opened"}'),
        compute_signature("other-secret", BODY),
    ],
)
def test_invalid_signatures_are_rejected(header: str | None) -> None:
    with pytest.raises(SignatureInvalidException):
        verify_signature(SECRET, BODY, header)
