"""API tests for the SMS/notification forwarder webhook."""
import pytest

from app.models import DailyOrder, PaymentIntent, PaymentIntentStatus

AUTH = {"Authorization": "Bearer test-sms-secret"}
SMS_TEXT = "Ban vua nhan 50,000d tu 0987654321. ND: BCM1234ABCD USER. SD: 1,500,000d"


@pytest.mark.anyio
async def test_sms_webhook_requires_secret(client, make_intent):
    make_intent()

    missing = await client.post("/api/sms-webhook", json={"from": "MoMo", "text": SMS_TEXT})
    wrong = await client.post(
        "/api/sms-webhook",
        json={"from": "MoMo", "text": SMS_TEXT},
        headers={"Authorization": "Bearer nope"},
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert missing.json()["error"]["code"] == "UNAUTHORIZED"


@pytest.mark.anyio
async def test_sms_webhook_accepts_secret_in_body(client, db_session, make_intent):
    intent = make_intent()

    response = await client.post(
        "/api/sms-webhook", json={"from": "MoMo", "text": SMS_TEXT, "secret": "test-sms-secret"}
    )

    assert response.status_code == 200
    assert response.json()["success"] is True
    db_session.expire_all()
    assert db_session.get(PaymentIntent, intent.id).status == PaymentIntentStatus.COMPLETED


@pytest.mark.anyio
async def test_sms_webhook_ignores_other_senders(client):
    response = await client.post(
        "/api/sms-webhook", json={"from": "Vietcombank", "text": "TK 123 +50,000 VND"}, headers=AUTH
    )

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Not a MoMo notification, ignored"}


@pytest.mark.anyio
async def test_register_then_sms_settles_orders(client, db_session, chat_requests, make_order):
    first = make_order(price=30000)
    second = make_order(price=20000)

    registered = await client.post(
        "/api/register-payment",
        json={
            "paymentCode": "BCM1234ABCD",
            "userId": "user-0001",
            "userName": "Nguyen Van A",
            "amount": 50000,
            "orderIds": [first.id, second.id],
            "date": "2026-10-19",
        },
    )
    assert registered.status_code == 200
    assert registered.json()["payment"]["paymentCode"] == "BCM1234ABCD"

    response = await client.post("/api/sms-webhook", json={"from": "MoMo", "text": SMS_TEXT}, headers=AUTH)

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Payment verified. Updated 2 orders."
    assert body["ordersUpdated"] == 2
    assert body["transaction"]["amount"] == 50000
    assert body["transaction"]["paymentCode"] == "BCM1234ABCD"
    db_session.expire_all()
    assert db_session.get(DailyOrder, first.id).is_paid
    assert db_session.get(DailyOrder, second.id).is_paid
    assert len(chat_requests) == 1

    status = await client.get("/api/payment-status?code=BCM1234ABCD")
    assert status.json()["status"] == "completed"
    assert status.json()["isPaid"] is True


@pytest.mark.anyio
async def test_duplicate_sms_is_a_no_op(client, chat_requests, make_intent):
    make_intent()

    first = await client.post("/api/sms-webhook", json={"from": "MoMo", "text": SMS_TEXT}, headers=AUTH)
    second = await client.post("/api/sms-webhook", json={"from": "MoMo", "text": SMS_TEXT}, headers=AUTH)

    assert first.json()["message"].startswith("Payment verified")
    assert second.json()["message"] == "No pending payment found for this code"
    assert "ordersUpdated" not in second.json()
    assert len(chat_requests) == 1


@pytest.mark.anyio
async def test_app_notification_in_key_field(client, db_session, make_intent):
    intent = make_intent(amount=50000)

    response = await client.post(
        "/api/sms-webhook",
        json={
            "from": "com.mservice.momotransfer",
            "key": 'Số tiền 50.000 ₫, kèm lời nhắn: "BCM1234ABCD NGUYEN VAN A"',
            "sentStamp": 1760850000000,
        },
        headers=AUTH,
    )

    assert response.status_code == 200
    assert response.json()["transaction"]["sender"] == "MoMo"
    db_session.expire_all()
    assert db_session.get(PaymentIntent, intent.id).paid_amount == 50000


@pytest.mark.anyio
async def test_sms_webhook_probe(client):
    ok = await client.get("/api/sms-webhook", headers=AUTH)
    denied = await client.get("/api/sms-webhook")

    assert ok.status_code == 200
    assert ok.json()["status"] == "ok"
    assert denied.status_code == 401


@pytest.mark.anyio
async def test_sms_webhook_accepts_numeric_forwarder_metadata(client, db_session, make_intent):
    intent = make_intent()

    response = await client.post(
        "/api/sms-webhook",
        json={
            "from": "MoMo",
            "text": "Ban vua nhan 50,000d tu 0987654321. ND: BCM1234ABCD USER",
            "timestamp": 1760000000000,
            "sim": 1,
            "sentStamp": "1760000000000",
            "secret": "test-sms-secret",
        },
    )

    assert response.status_code == 200
    assert response.json()["ordersUpdated"] == 0
    db_session.expire_all()
    assert db_session.get(PaymentIntent, intent.id).status == PaymentIntentStatus.COMPLETED
