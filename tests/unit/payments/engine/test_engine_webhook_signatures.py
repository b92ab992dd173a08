import hashlib
import hmac

import pytest

from src.core.payments.signatures import (
    WebhookSignatureError,
    build_signature_manifest,
    parse_signature_header,
    verify_webhook_signature,
)


def _sign(secret: str, manifest: str) -> str:
    return hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256).hexdigest()


def test_parse_signature_header_reads_ts_and_v1():
    assert parse_signature_header("ts=1700000000, v1=abc123") == ("1700000000", "abc123")


@pytest.mark.parametrize("header", [None, "", "ts=1700000000", "v1=abc", "garbage"])
def test_parse_signature_header_rejects_incomplete_values(header):
    with pytest.raises(WebhookSignatureError, match="WEBHOOK_SIGNATURE_MISSING"):
        parse_signature_header(header)


def test_manifest_lowercases_alphanumeric_ids_and_skips_missing_parts():
    assert (
        build_signature_manifest(data_id="PAY123", request_id="req-1", ts="1700000000")
        == "id:pay123;request-id:req-1;ts:1700000000;"
    )
    assert build_signature_manifest(data_id=None, request_id=None, ts="1") == "ts:1;"


def test_verify_accepts_matching_digest_in_any_case():
    digest = _sign("whsec", "id:pay123;request-id:req-1;ts:1700000000;")

    verify_webhook_signature(
        secret="whsec",
        signature_header=f"ts=1700000000,v1={digest.upper()}",
        request_id="req-1",
        data_id="PAY123",
    )


def test_verify_rejects_digest_for_other_payment():
    digest = _sign("whsec", "id:pay999;request-id:req-1;ts:1700000000;")

    with pytest.raises(WebhookSignatureError, match="WEBHOOK_SIGNATURE_MISMATCH"):
        verify_webhook_signature(
            secret="whsec",
            signature_header=f"ts=1700000000,v1={digest}",
            request_id="req-1",
            data_id="PAY123",
        )
