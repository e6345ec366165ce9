"""Tests for the reconciliation engine."""
import json
import logging

import pytest
from sqlalchemy.exc import OperationalError

from app.models import AuditLog, DailyOrder, PaymentChannel, PaymentIntentStatus
from app.schemas.sms import InboundNotification
from app.services import reconciliation
from app.services.reconciliation import WebhookSignatureError


def _webhook_payload(payos_client, order_code: int, amount: int, *, success: bool = True, code: str = "00"):
    data = {
        "orderCode": order_code,
        "amount": amount,
        "description": "CSPAYOS BCM",
        "accountNumber": "0123456789",
        "reference": "FT2610190001",
        "transactionDateTime": "2026-10-19 12:30:00",
        "currency": "VND",
        "paymentLinkId": "plink-1",
        "code": code,
        "desc": "success" if code == "00" else "failed",
        "counterAccountBankId": "970422",
        "counterAccountBankName": "MB Bank",
        "counterAccountName": "NGUYEN VAN A",
        "counterAccountNumber": "9704221234",
        "virtualAccountName": "",
        "virtualAccountNumber": "",
    }
    return {
        "code": code,
        "desc": data["desc"],
        "success": success,
        "data": data,
        "signature": payos_client.create_signature(data),
    }


def test_mark_orders_paid_counts_partial_failures(db_session, make_order):
    first = make_order()
    second = make_order(price=30000)

    updated = reconciliation.mark_orders_paid(db_session, [first.id, "999999", str(second.id), "not-a-number"])

    assert updated == 2
    db_session.expire_all()
    assert db_session.get(DailyOrder, first.id).is_paid
    assert db_session.get(DailyOrder, second.id).is_paid


def test_mark_orders_paid_survives_a_failing_order(db_session, make_order, monkeypatch):
    first = make_order()
    second = make_order(price=30000)
    third = make_order(price=35000)
    real_execute = db_session.execute
    rollbacks = []
    calls = []

    def flaky_execute(statement, *args, **kwargs):
        calls.append(statement)
        if len(calls) == 2:
            raise OperationalError("UPDATE daily_orders", {}, Exception("database is locked"))
        return real_execute(statement, *args, **kwargs)

    monkeypatch.setattr(db_session, "execute", flaky_execute)
    monkeypatch.setattr(db_session, "rollback", lambda: rollbacks.append(True))

    updated = reconciliation.mark_orders_paid(db_session, [first.id, second.id, third.id])

    assert updated == 2
    assert len(calls) == 3
    assert rollbacks == [True]
    monkeypatch.undo()
    db_session.expire_all()
    assert db_session.get(DailyOrder, first.id).is_paid
    assert not db_session.get(DailyOrder, second.id).is_paid
    assert db_session.get(DailyOrder, third.id).is_paid


def test_complete_payment_is_idempotent(db_session, make_order, make_intent):
    order = make_order()
    intent = make_intent(order_ids=[order.id])

    first = reconciliation.complete_payment(db_session, intent, paid_amount=50000, source="test")
    paid_at = first.intent.paid_at
    second = reconciliation.complete_payment(db_session, intent, paid_amount=99999, source="test")

    assert first.transitioned
    assert first.orders_updated == 1
    assert not second.transitioned
    assert second.intent.paid_amount == 50000
    assert second.intent.paid_at == paid_at
    completions = (
        db_session.query(AuditLog)
        .filter(AuditLog.action == "PAYMENT_INTENT_COMPLETED", AuditLog.entity_id == intent.id)
        .count()
    )
    assert completions == 1


def test_complete_payment_loses_race_without_writing(db_session, make_intent):
    intent = make_intent()
    # Another worker completes the intent after this one loaded it.
    db_session.query(type(intent)).filter_by(id=intent.id).update(
        {"status": PaymentIntentStatus.COMPLETED, "paid_amount": 1}, synchronize_session=False
    )
    db_session.commit()

    result = reconciliation.complete_payment(db_session, intent, paid_amount=50000, source="test")

    assert not result.transitioned
    assert result.intent.paid_amount == 1


def test_fail_then_complete_is_a_no_op(db_session, make_order, make_intent):
    order = make_order()
    intent = make_intent(order_ids=[order.id])

    failed = reconciliation.fail_payment(db_session, intent, reason="cancelled", source="test")
    late = reconciliation.complete_payment(db_session, intent, paid_amount=50000, source="test")

    assert failed.transitioned
    assert intent.status == PaymentIntentStatus.FAILED
    assert intent.fail_reason == "cancelled"
    assert not late.transitioned
    db_session.expire_all()
    assert not db_session.get(DailyOrder, order.id).is_paid


@pytest.mark.anyio
async def test_gateway_webhook_completes_intent(db_session, payos_client, notifier, chat_requests, make_order, make_intent):
    order = make_order(price=50000)
    intent = make_intent(
        tracking_code="1760000000001234",
        channel=PaymentChannel.GATEWAY,
        order_code=1760000000001234,
        order_ids=[order.id],
    )

    result = await reconciliation.handle_gateway_webhook(
        db_session, _webhook_payload(payos_client, 1760000000001234, 50000), client=payos_client, notifier=notifier
    )

    assert result is not None and result.transitioned
    assert intent.status == PaymentIntentStatus.COMPLETED
    assert intent.transaction_reference == "FT2610190001"
    assert intent.counter_account_bank_name == "MB Bank"
    db_session.expire_all()
    assert db_session.get(DailyOrder, order.id).is_paid
    assert len(chat_requests) == 1
    assert "Thanh toán thành công" in json.loads(chat_requests[0].content)["text"]


@pytest.mark.anyio
async def test_gateway_webhook_duplicate_delivery(db_session, payos_client, notifier, chat_requests, make_intent):
    make_intent(tracking_code="1760000000005555", channel=PaymentChannel.GATEWAY, order_code=1760000000005555)
    payload = _webhook_payload(payos_client, 1760000000005555, 50000)

    first = await reconciliation.handle_gateway_webhook(db_session, payload, client=payos_client, notifier=notifier)
    second = await reconciliation.handle_gateway_webhook(db_session, payload, client=payos_client, notifier=notifier)

    assert first.transitioned
    assert not second.transitioned
    assert len(chat_requests) == 1


@pytest.mark.anyio
async def test_gateway_webhook_failure_marks_failed(db_session, payos_client, make_intent):
    intent = make_intent(tracking_code="1760000000006666", channel=PaymentChannel.GATEWAY, order_code=1760000000006666)

    result = await reconciliation.handle_gateway_webhook(
        db_session,
        _webhook_payload(payos_client, 1760000000006666, 50000, success=False, code="01"),
        client=payos_client,
    )

    assert result.transitioned
    assert intent.status == PaymentIntentStatus.FAILED
    assert intent.fail_reason == "failed"


@pytest.mark.anyio
async def test_gateway_webhook_rejects_bad_signature(db_session, payos_client, make_intent):
    make_intent(tracking_code="1760000000007777", channel=PaymentChannel.GATEWAY, order_code=1760000000007777)
    payload = _webhook_payload(payos_client, 1760000000007777, 50000)
    payload["data"]["amount"] = 1

    with pytest.raises(WebhookSignatureError):
        await reconciliation.handle_gateway_webhook(db_session, payload, client=payos_client)


@pytest.mark.anyio
async def test_gateway_webhook_unknown_order_is_acknowledged(db_session, payos_client):
    result = await reconciliation.handle_gateway_webhook(
        db_session, _webhook_payload(payos_client, 123, 2000), client=payos_client
    )

    assert result is None


@pytest.mark.anyio
async def test_sms_scenario_matches_and_completes(db_session, notifier, chat_requests, make_order, make_intent):
    order = make_order(price=50000)
    intent = make_intent(tracking_code="BCM1234ABCD", amount=50000, order_ids=[order.id])

    outcome = await reconciliation.process_inbound_notification(
        db_session,
        InboundNotification(
            sender="MoMo",
            body="Ban vua nhan 50,000d tu 0987654321. ND: BCM1234ABCD USER. SD: 1,500,000d",
        ),
        notifier=notifier,
    )

    assert outcome.matched
    assert outcome.orders_updated == 1
    assert outcome.message == "Payment verified. Updated 1 orders."
    assert intent.status == PaymentIntentStatus.COMPLETED
    assert intent.paid_amount == 50000
    assert len(chat_requests) == 1


@pytest.mark.anyio
async def test_sms_amount_mismatch_still_completes(db_session, notifier, make_intent, caplog):
    intent = make_intent(tracking_code="BCM1234ABCD", amount=50000)

    with caplog.at_level(logging.WARNING, logger="app.services.reconciliation"):
        outcome = await reconciliation.process_inbound_notification(
            db_session,
            InboundNotification(
                sender="MoMo",
                body="Ban vua nhan 49,000d tu 0987654321. ND: BCM1234ABCD USER. SD: 1,500,000d",
            ),
            notifier=notifier,
        )

    assert outcome.matched
    assert intent.status == PaymentIntentStatus.COMPLETED
    assert intent.paid_amount == 49000
    mismatches = [
        record
        for record in caplog.records
        if record.getMessage() == "Amount mismatch on matched payment code; completing anyway"
    ]
    assert len(mismatches) == 1
    assert mismatches[0].levelno == logging.WARNING
    assert mismatches[0].expected_amount == 50000
    assert mismatches[0].received_amount == 49000


@pytest.mark.anyio
@pytest.mark.parametrize(
    ("sender", "body", "message"),
    [
        ("VCB", "TK 123 +50,000 VND", "Not a MoMo notification, ignored"),
        ("MoMo", "Chuc mung sinh nhat", "Could not parse notification content"),
        ("MoMo", "Ban vua nhan 50,000d tu 0987654321. ND: an trua", "No payment code found"),
        ("MoMo", "Ban vua nhan 50,000d tu 0987654321. ND: BCMNOPE10190000", "No pending payment found for this code"),
    ],
)
async def test_sms_benign_outcomes(db_session, notifier, chat_requests, sender, body, message):
    outcome = await reconciliation.process_inbound_notification(
        db_session, InboundNotification(sender=sender, body=body), notifier=notifier
    )

    assert outcome.message == message
    assert not outcome.matched
    assert chat_requests == []


@pytest.mark.anyio
async def test_sync_gateway_status_completes_paid_intent(db_session, payos_stub, payos_client, notifier, make_intent):
    intent = make_intent(tracking_code="1760000000008888", channel=PaymentChannel.GATEWAY, order_code=1760000000008888)
    payos_stub.add(
        "GET",
        "/v2/payment-requests/1760000000008888",
        json={
            "code": "00",
            "desc": "success",
            "data": {
                "id": "plink-8888",
                "orderCode": 1760000000008888,
                "amount": 50000,
                "amountPaid": 50000,
                "amountRemaining": 0,
                "status": "PAID",
                "createdAt": "2026-10-19T12:00:00+07:00",
                "transactions": [{"reference": "FT8888", "amount": 50000, "counterAccountName": "NGUYEN VAN A"}],
                "cancellationReason": None,
                "canceledAt": None,
            },
        },
    )

    outcome = await reconciliation.sync_gateway_status(
        db_session, 1760000000008888, client=payos_client, notifier=notifier
    )

    assert outcome.info.status == "PAID"
    assert outcome.result.transitioned
    assert intent.status == PaymentIntentStatus.COMPLETED
    assert intent.transaction_reference == "FT8888"


@pytest.mark.anyio
async def test_cancel_gateway_payment_fails_intent(db_session, payos_stub, payos_client, make_intent):
    intent = make_intent(tracking_code="1760000000009999", channel=PaymentChannel.GATEWAY, order_code=1760000000009999)
    payos_stub.add(
        "POST",
        "/v2/payment-requests/1760000000009999/cancel",
        json={"code": "00", "desc": "success", "data": {"status": "CANCELLED"}},
    )

    result = await reconciliation.cancel_gateway_payment(
        db_session, 1760000000009999, client=payos_client, reason="Changed my mind"
    )

    assert result.transitioned
    assert intent.status == PaymentIntentStatus.FAILED
    assert intent.fail_reason == "Changed my mind"
