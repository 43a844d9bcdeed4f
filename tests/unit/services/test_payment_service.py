"""Unit tests for payment intent issuance and event application."""

import uuid
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import IntegrityError

from lodging_booking.errors import (
    AlreadyPaidError,
    ConflictError,
    NotFoundError,
    TransientError,
    ValidationError,
)
from lodging_booking.network.processor import PaymentIntent
from lodging_booking.schemas.payment_events import (
    PaymentFailed,
    PaymentSucceeded,
    UnknownPaymentEvent,
)
from lodging_booking.services.notifications import notify_reservation_event
from lodging_booking.services.payments import apply_payment_event, create_payment_intent

SERVICE = "lodging_booking.services.payments"
RESERVATION_ID = uuid.UUID("5f0e4c1a-2b3d-4e5f-8a9b-0c1d2e3f4a5b")


def reservation(**overrides: Any) -> dict[str, Any]:
    row = {
        "id": RESERVATION_ID,
        "confirmation_code": "K7Q2M9XA4B",
        "email": "ada@example.com",
        "total": Decimal("216.00"),
        "paid": False,
        "status": "pending",
    }
    row.update(overrides)
    return row


def payment(status: str, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": 1,
        "reservation_id": RESERVATION_ID,
        "processor_intent_id": "pi_123",
        "client_secret": "pi_123_secret_abc",
        "amount": Decimal("216.00"),
        "currency": "usd",
        "status": status,
    }
    row.update(overrides)
    return row


@pytest.fixture
def engine() -> MagicMock:
    return MagicMock()


@pytest.fixture
def processor() -> MagicMock:
    processor = MagicMock()
    processor.create_intent.return_value = PaymentIntent("pi_123", "pi_123_secret_abc")
    return processor


@pytest.mark.unit
@patch(f"{SERVICE}.list_payments_for_reservation", return_value=[])
@patch(f"{SERVICE}.insert_pending_payment", return_value=True)
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_records_pending_payment(
    mock_get: Any, mock_insert: Any, mock_list: Any, engine: MagicMock, processor: MagicMock
) -> None:
    result = create_payment_intent(
        engine, RESERVATION_ID, "216.00", "USD", processor, idempotency_key="retry-1"
    )

    assert result == {"intent_id": "pi_123", "client_secret": "pi_123_secret_abc"}
    processor.create_intent.assert_called_once_with(
        Decimal("216.00"),
        "usd",
        metadata={"reservation_id": str(RESERVATION_ID), "confirmation_code": "K7Q2M9XA4B"},
        receipt_email="ada@example.com",
        idempotency_key="retry-1",
    )
    conn = engine.begin.return_value.__enter__.return_value
    mock_get.assert_called_with(conn, RESERVATION_ID, for_update=True)
    mock_insert.assert_called_once_with(
        conn, RESERVATION_ID, "pi_123", Decimal("216.00"), "usd", "pi_123_secret_abc"
    )


@pytest.mark.unit
@patch(f"{SERVICE}.list_payments_for_reservation", return_value=[])
@patch(f"{SERVICE}.insert_pending_payment", return_value=True)
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_defaults_to_reservation_total(
    mock_get: Any, mock_insert: Any, mock_list: Any, engine: MagicMock, processor: MagicMock
) -> None:
    create_payment_intent(engine, RESERVATION_ID, None, None, processor)

    args = processor.create_intent.call_args[0]
    assert args == (Decimal("216.00"), "usd")


@pytest.mark.unit
@patch(f"{SERVICE}.list_payments_for_reservation", return_value=[])
@patch(f"{SERVICE}.insert_pending_payment", return_value=False)
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_duplicate_intent_is_not_recorded_twice(
    mock_get: Any, mock_insert: Any, mock_list: Any, engine: MagicMock, processor: MagicMock
) -> None:
    result = create_payment_intent(engine, RESERVATION_ID, "216.00", "usd", processor)

    assert result["intent_id"] == "pi_123"
    mock_insert.assert_called_once()


@pytest.mark.unit
@patch(f"{SERVICE}.insert_pending_payment")
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_returns_pending_intent_without_new_charge(
    mock_get: Any, mock_insert: Any, engine: MagicMock, processor: MagicMock
) -> None:
    existing = [payment("failed", processor_intent_id="pi_old"), payment("pending")]

    with patch(f"{SERVICE}.list_payments_for_reservation", return_value=existing):
        result = create_payment_intent(engine, RESERVATION_ID, None, "usd", processor)

    assert result == {"intent_id": "pi_123", "client_secret": "pi_123_secret_abc"}
    processor.create_intent.assert_not_called()
    mock_insert.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.insert_pending_payment")
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_with_other_terms_while_pending_conflicts(
    mock_get: Any, mock_insert: Any, engine: MagicMock, processor: MagicMock
) -> None:
    with patch(f"{SERVICE}.list_payments_for_reservation", return_value=[payment("pending")]):
        with pytest.raises(ConflictError):
            create_payment_intent(engine, RESERVATION_ID, "100.00", "usd", processor)

    processor.create_intent.assert_not_called()
    mock_insert.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.insert_pending_payment")
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_defers_to_intent_recorded_concurrently(
    mock_get: Any, mock_insert: Any, engine: MagicMock, processor: MagicMock
) -> None:
    processor.create_intent.return_value = PaymentIntent("pi_B", "pi_B_secret")
    winner = payment("pending", processor_intent_id="pi_A", client_secret="pi_A_secret")

    with patch(f"{SERVICE}.list_payments_for_reservation", side_effect=[[], [winner]]):
        result = create_payment_intent(engine, RESERVATION_ID, None, "usd", processor)

    assert result == {"intent_id": "pi_A", "client_secret": "pi_A_secret"}
    processor.create_intent.assert_called_once()
    mock_insert.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.list_payments_for_reservation", return_value=[])
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_pending_index_violation_is_conflict(
    mock_get: Any, mock_list: Any, engine: MagicMock, processor: MagicMock
) -> None:
    violation = IntegrityError(
        "INSERT INTO payments",
        {},
        Exception('duplicate key value violates unique constraint "uq_payments_reservation_pending"'),
    )

    with patch(f"{SERVICE}.insert_pending_payment", side_effect=violation):
        with pytest.raises(ConflictError):
            create_payment_intent(engine, RESERVATION_ID, None, "usd", processor)


@pytest.mark.unit
@patch(f"{SERVICE}.insert_pending_payment")
@patch(f"{SERVICE}.get_reservation", return_value=reservation(paid=True))
def test_create_intent_rejects_paid_reservation(
    mock_get: Any, mock_insert: Any, engine: MagicMock, processor: MagicMock
) -> None:
    with pytest.raises(AlreadyPaidError):
        create_payment_intent(engine, RESERVATION_ID, "216.00", "usd", processor)

    processor.create_intent.assert_not_called()
    mock_insert.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize("status", ["cancelled", "checked_out"])
@patch(f"{SERVICE}.insert_pending_payment")
def test_create_intent_rejects_closed_reservation(
    mock_insert: Any, status: str, engine: MagicMock, processor: MagicMock
) -> None:
    with patch(f"{SERVICE}.get_reservation", return_value=reservation(status=status)):
        with pytest.raises(ConflictError):
            create_payment_intent(engine, RESERVATION_ID, "216.00", "usd", processor)

    processor.create_intent.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.get_reservation", return_value=None)
def test_create_intent_unknown_reservation(
    mock_get: Any, engine: MagicMock, processor: MagicMock
) -> None:
    with pytest.raises(NotFoundError):
        create_payment_intent(engine, RESERVATION_ID, "216.00", "usd", processor)


@pytest.mark.unit
@patch(f"{SERVICE}.list_payments_for_reservation", return_value=[])
@patch(f"{SERVICE}.insert_pending_payment")
@patch(f"{SERVICE}.get_reservation", return_value=reservation())
def test_create_intent_processor_timeout_records_nothing(
    mock_get: Any, mock_insert: Any, mock_list: Any, engine: MagicMock, processor: MagicMock
) -> None:
    processor.create_intent.side_effect = TransientError("processor timed out")

    with pytest.raises(TransientError):
        create_payment_intent(engine, RESERVATION_ID, "216.00", "usd", processor)

    mock_insert.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize(
    "amount,currency,field",
    [("0", "usd", "amount"), ("-5", "usd", "amount"), ("abc", "usd", "amount"), ("10", "dollars", "currency")],
)
def test_create_intent_validates_charge(
    amount: str, currency: str, field: str, engine: MagicMock, processor: MagicMock
) -> None:
    with pytest.raises(ValidationError) as exc_info:
        create_payment_intent(engine, RESERVATION_ID, amount, currency, processor)

    assert field in exc_info.value.errors
    processor.create_intent.assert_not_called()



@pytest.mark.unit
@patch(f"{SERVICE}.get_reservation", return_value=reservation(paid=True))
@patch(f"{SERVICE}.mark_reservation_paid", return_value=True)
@patch(f"{SERVICE}.update_payment_status", return_value=payment("completed"))
@patch(f"{SERVICE}.get_payment_by_intent", return_value=payment("pending"))
def test_succeeded_event_completes_payment_and_marks_paid(
    mock_payment: Any, mock_update: Any, mock_paid: Any, mock_get: Any, engine: MagicMock
) -> None:
    schedule = MagicMock()

    ack = apply_payment_event(engine, PaymentSucceeded(intent_id="pi_123"), schedule=schedule)

    assert ack == {"received": True, "kind": "payment-succeeded", "outcome": "applied"}
    conn = engine.begin.return_value.__enter__.return_value
    mock_payment.assert_called_once_with(conn, "pi_123", for_update=True)
    mock_update.assert_called_once_with(conn, "pi_123", "pending", "completed")
    mock_paid.assert_called_once_with(conn, RESERVATION_ID)
    schedule.assert_called_once_with(
        notify_reservation_event, engine, "payment-notification", reservation(paid=True), None
    )


@pytest.mark.unit
@patch(f"{SERVICE}.mark_reservation_paid", return_value=False)
@patch(f"{SERVICE}.update_payment_status")
@patch(f"{SERVICE}.get_payment_by_intent", return_value=payment("completed"))
def test_repeated_succeeded_event_is_a_no_op(
    mock_payment: Any, mock_update: Any, mock_paid: Any, engine: MagicMock
) -> None:
    schedule = MagicMock()

    ack = apply_payment_event(engine, PaymentSucceeded(intent_id="pi_123"), schedule=schedule)

    assert ack["outcome"] == "duplicate"
    mock_update.assert_not_called()
    schedule.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.mark_reservation_paid")
@patch(f"{SERVICE}.update_payment_status")
@patch(f"{SERVICE}.get_payment_by_intent", return_value=None)
def test_event_for_unknown_intent_is_dropped(
    mock_payment: Any, mock_update: Any, mock_paid: Any, engine: MagicMock
) -> None:
    ack = apply_payment_event(engine, PaymentSucceeded(intent_id="pi_elsewhere"))

    assert ack == {"received": True, "kind": "payment-succeeded", "outcome": "dropped"}
    mock_update.assert_not_called()
    mock_paid.assert_not_called()


@pytest.mark.unit
@patch(f"{SERVICE}.mark_reservation_paid")
@patch(f"{SERVICE}.update_payment_status", return_value=payment("failed"))
@patch(f"{SERVICE}.get_payment_by_intent", return_value=payment("pending"))
def test_failed_event_marks_payment_failed_only(
    mock_payment: Any, mock_update: Any, mock_paid: Any, engine: MagicMock
) -> None:
    ack = apply_payment_event(engine, PaymentFailed(intent_id="pi_123"))

    assert ack["outcome"] == "applied"
    conn = engine.begin.return_value.__enter__.return_value
    mock_update.assert_called_once_with(conn, "pi_123", "pending", "failed")
    mock_paid.assert_not_called()


@pytest.mark.unit
@pytest.mark.parametrize("status,outcome", [("failed", "duplicate"), ("completed", "ignored")])
@patch(f"{SERVICE}.update_payment_status")
def test_failed_event_does_not_rewrite_settled_payment(
    mock_update: Any, status: str, outcome: str, engine: MagicMock
) -> None:
    with patch(f"{SERVICE}.get_payment_by_intent", return_value=payment(status)):
        ack = apply_payment_event(engine, PaymentFailed(intent_id="pi_123"))

    assert ack["outcome"] == outcome
    mock_update.assert_not_called()


@pytest.mark.unit
def test_unknown_event_is_acknowledged(engine: MagicMock) -> None:
    ack = apply_payment_event(engine, UnknownPaymentEvent(raw_kind="charge.refunded"))

    assert ack == {"received": True, "kind": "unknown", "outcome": "ignored"}
    engine.begin.assert_not_called()
