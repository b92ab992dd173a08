import hashlib
import hmac
from typing import Optional


class WebhookSignatureError(Exception):
    pass


def parse_signature_header(header: Optional[str]) -> tuple[str, str]:
    parts: dict[str, str] = {}
    for chunk in (header or "").split(","):
        key, sep, value = chunk.partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    ts = parts.get("ts")
    v1 = parts.get("v1")
    if not ts or not v1:
        raise WebhookSignatureError("WEBHOOK_SIGNATURE_MISSING")
    return ts, v1


def build_signature_manifest(*, data_id: Optional[str], request_id: Optional[str], ts: str) -> str:
    manifest = ""
    if data_id:
        manifest += f"id:{data_id.lower() if data_id.isalnum() else data_id};"
    if request_id:
        manifest += f"request-id:{request_id};"
    return manifest + f"ts:{ts};"


def verify_webhook_signature(
    *,
    secret: str,
    signature_header: Optional[str],
    request_id: Optional[str],
    data_id: Optional[str],
) -> None:
    ts, received = parse_signature_header(signature_header)
    manifest = build_signature_manifest(data_id=data_id, request_id=request_id, ts=ts)
    expected = hmac.new(secret.encode("utf-8"), manifest.encode("utf-8"), hashlib.sha256)
    if not hmac.compare_digest(expected.hexdigest(), received.lower()):
        raise WebhookSignatureError("WEBHOOK_SIGNATURE_MISMATCH")
