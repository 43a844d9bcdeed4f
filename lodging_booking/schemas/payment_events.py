"""
Processor-delivered payment events as a closed set of variants.

Raw webhook bodies are parsed once, at the edge, into PaymentSucceeded,
PaymentFailed or UnknownPaymentEvent. Two body shapes are understood: the
Stripe event envelope ({"type": "payment_intent.succeeded", "data":
{"object": {"id": ...}}}) and a processor-neutral form ({"kind":
"payment-succeeded", "intentId": ...}).
"""

from __future__ import annotations

from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, Field

SUCCEEDED_KINDS = frozenset({"payment-succeeded", "payment_intent.succeeded"})
FAILED_KINDS = frozenset(
    {"payment-failed", "payment_intent.payment_failed", "payment_intent.canceled"}
)


class PaymentSucceeded(BaseModel):
    kind: Literal["payment-succeeded"] = "payment-succeeded"
    intent_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class PaymentFailed(BaseModel):
    kind: Literal["payment-failed"] = "payment-failed"
    intent_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class UnknownPaymentEvent(BaseModel):
    """Any event kind this service does not act on, kept for logging."""

    kind: Literal["unknown"] = "unknown"
    raw_kind: Optional[str] = None
    intent_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)


PaymentEvent = Union[PaymentSucceeded, PaymentFailed, UnknownPaymentEvent]


def _extract(body: dict[str, Any]) -> tuple[Optional[str], Optional[str], dict[str, Any]]:
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("object"), dict):
        obj = data["object"]
        return body.get("type"), obj.get("id"), obj

    kind = body.get("kind") or body.get("type")
    intent_id = body.get("intentId") or body.get("intent_id")
    payload = body.get("payload")
    return kind, intent_id, payload if isinstance(payload, dict) else {}


def parse_payment_event(body: Any) -> PaymentEvent:
    """
    Parse a verified webhook body into a payment event variant.

    Args:
        body: Decoded JSON body.

    Returns:
        PaymentEvent: PaymentSucceeded or PaymentFailed when the kind is known
        and an intent id is present, UnknownPaymentEvent otherwise.
    """
    if not isinstance(body, dict):
        return UnknownPaymentEvent()

    kind, intent_id, payload = _extract(body)
    intent_id = str(intent_id) if intent_id else None

    if intent_id and kind in SUCCEEDED_KINDS:
        return PaymentSucceeded(intent_id=intent_id, payload=payload)
    if intent_id and kind in FAILED_KINDS:
        return PaymentFailed(intent_id=intent_id, payload=payload)
    return UnknownPaymentEvent(
        raw_kind=str(kind) if kind else None, intent_id=intent_id, payload=payload
    )
