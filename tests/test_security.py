"""Tests for webhook signatures and admin tokens."""

import pytest
from fastapi import HTTPException

from storefront.auth.dependencies import _decode_token, require_admin
from storefront.errors import Unauthorized
from storefront.security import (
    build_signature_manifest,
    create_access_token,
    create_admin_token,
    parse_signature_header,
    verify_webhook_signature,
)
from support import WEBHOOK_SECRET, sign_webhook

OLD_SECRET = "previous-webhook-secret-02"


class TestSignatureHeader:
    def test_parse(self):
        signature = parse_signature_header("ts=1760000000, v1=ABCDEF")
        assert signature.ts == "1760000000"
        assert signature.v1 == "abcdef"

    @pytest.mark.parametrize("header", [None, "", "v1=abc", "ts=abc,v1=def", "ts=1", "garbage"])
    def test_malformed(self, header):
        with pytest.raises(Unauthorized):
            parse_signature_header(header)

    def test_manifest(self):
        assert build_signature_manifest("123", "req-1", "99") == "id:123;request-id:req-1;ts:99;"


class TestVerifyWebhookSignature:
    def test_valid(self):
        verify_webhook_signature(sign_webhook("123", "req-1"), "req-1", "123")

    def test_tampered_digest(self):
        header = sign_webhook("123", "req-1")
        tampered = header[:-1] + ("0" if header[-1] != "0" else "1")
        with pytest.raises(Unauthorized):
            verify_webhook_signature(tampered, "req-1", "123")

    def test_signed_for_other_payment(self):
        with pytest.raises(Unauthorized):
            verify_webhook_signature(sign_webhook("123", "req-1"), "req-1", "456")

    def test_missing_request_id(self):
        with pytest.raises(Unauthorized):
            verify_webhook_signature(sign_webhook("123", "req-1"), None, "123")

    def test_rotated_secret(self):
        header = sign_webhook("123", "req-1", secret=OLD_SECRET)
        verify_webhook_signature(header, "req-1", "123", secrets=[WEBHOOK_SECRET, OLD_SECRET])
        with pytest.raises(Unauthorized):
            verify_webhook_signature(header, "req-1", "123", secrets=[WEBHOOK_SECRET])

    def test_no_secret_configured(self):
        with pytest.raises(Unauthorized):
            verify_webhook_signature(sign_webhook("123", "req-1"), "req-1", "123", secrets=[])


class TestAdminToken:
    def test_round_trip(self):
        data = _decode_token(create_admin_token("ops@example.com"))
        assert data.sub == "ops@example.com"
        assert data.role == "admin"

    def test_require_admin_rejects_missing_header(self):
        with pytest.raises(HTTPException) as exc_info:
            require_admin(authorization=None)
        assert exc_info.value.status_code == 401

    def test_require_admin_rejects_other_roles(self):
        token = create_access_token({"sub": "someone", "role": "viewer"})
        with pytest.raises(HTTPException) as exc_info:
            require_admin(authorization=f"Bearer {token}")
        assert exc_info.value.status_code == 403

    def test_bad_token(self):
        with pytest.raises(HTTPException):
            _decode_token("not-a-jwt")
