import pytest
import stripe

from app.core.config import settings
from app.database.connection import get_session
from app.database.unified_models import Profile
from app.models.plans import PlanTier, plan_flags
from app.services.credit_wallet_service import credit_wallet_service

pytestmark = pytest.mark.usefixtures("database")


async def set_profile(user_id: str, credits: int, plan: PlanTier = PlanTier.FREE):
    async with get_session() as session:
        session.add(Profile(id=user_id, credits=credits, **plan_flags(plan)))
        await session.commit()


@pytest.fixture
def checkout_create(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return {"id": "cs_test_1", "url": "https://checkout.stripe.com/c/pay/cs_test_1"}

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


@pytest.fixture
def stripe_sessions(monkeypatch):
    """Checkout sessions served by a fake Session.retrieve, keyed by id"""
    sessions = {}

    def fake_retrieve(session_id, **params):
        if session_id not in sessions:
            raise stripe.InvalidRequestError(f"No such checkout.session: {session_id}", "id")
        return sessions[session_id]

    monkeypatch.setattr(stripe.checkout.Session, "retrieve", fake_retrieve)
    return sessions


@pytest.fixture
def webhook_event(monkeypatch):
    """Replace signature verification; the test sets the event to return"""
    holder = {}

    def fake_construct_event(payload, sig_header, secret, *args, **kwargs):
        if sig_header == "bad":
            raise stripe.SignatureVerificationError("No signatures found", sig_header)
        return holder["event"]

    monkeypatch.setattr(stripe.Webhook, "construct_event", fake_construct_event)
    return holder


def paid_session(session_id: str, user_id: str, plan: str, price_id: str) -> dict:
    return {
        "id": session_id,
        "payment_status": "paid",
        "metadata": {"user_id": user_id, "plan_id": plan},
        "line_items": {"data": [{"price": {"id": price_id}}]},
    }


def completed_event(event_id: str, session_id: str) -> dict:
    return {
        "id": event_id,
        "type": "checkout.session.completed",
        "data": {"object": {"id": session_id, "metadata": {}}},
    }


# =============================================================================
# CHECKOUT
# =============================================================================

async def test_checkout_for_plan(client, current_user, checkout_create):
    response = await client.post("/api/billing/checkout", json={"planId": "pro"})

    assert response.status_code == 200
    assert response.json() == {"url": "https://checkout.stripe.com/c/pay/cs_test_1"}

    kwargs = checkout_create[0]
    assert kwargs["mode"] == "payment"
    assert kwargs["line_items"] == [{"price": "price_pro", "quantity": 1}]
    assert kwargs["metadata"] == {"user_id": current_user.id, "plan_id": "pro", "credits": "30"}
    assert kwargs["customer_email"] == current_user.email
    assert kwargs["success_url"].startswith("https://modelcast.test/billing/success?session_id={CHECKOUT_SESSION_ID}")


async def test_checkout_rejects_unknown_plan(client, checkout_create):
    response = await client.post("/api/billing/checkout", json={"planId": "free"})

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_PLAN"
    assert checkout_create == []


async def test_checkout_disabled_without_secret_key(client, checkout_create, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "")

    response = await client.post("/api/billing/checkout", json={"planId": "studio"})

    assert response.status_code == 503
    assert response.json()["error"] == "BILLING_DISABLED"


async def test_checkout_stripe_error(client, monkeypatch):
    def failing_create(**kwargs):
        raise stripe.APIConnectionError("Network down")

    monkeypatch.setattr(stripe.checkout.Session, "create", failing_create)

    response = await client.post("/api/billing/checkout", json={"planId": "pro"})

    assert response.status_code == 502
    assert response.json()["error"] == "CHECKOUT_FAILED"


async def test_create_session_by_price(client, checkout_create):
    response = await client.post("/api/billing/create-session", json={"priceId": "price_studio"})

    assert response.status_code == 200
    assert response.json() == {"ok": True, "url": "https://checkout.stripe.com/c/pay/cs_test_1"}
    assert checkout_create[0]["metadata"]["plan_id"] == "studio"

    response = await client.post("/api/billing/create-session", json={"priceId": "price_unknown"})
    assert response.status_code == 400
    assert response.json()["error"] == "UNSUPPORTED_PRICE"


async def test_malformed_body_is_invalid_input(client):
    response = await client.post(
        "/api/billing/checkout", content=b"{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_INPUT"


# =============================================================================
# CONFIRMATION
# =============================================================================

async def test_confirm_applies_purchase_once(client, current_user, stripe_sessions):
    await set_profile(current_user.id, 2)
    stripe_sessions["cs_1"] = paid_session("cs_1", current_user.id, "pro", "price_pro")

    first = await client.post("/api/billing/confirm", json={"sessionId": "cs_1", "planId": "pro"})
    second = await client.post("/api/billing/confirm", json={"sessionId": "cs_1", "planId": "pro"})

    assert first.status_code == 200
    assert first.json() == {"success": True, "credits": 32, "plan": "pro", "alreadyApplied": False}
    assert second.json() == {"success": True, "credits": 32, "plan": "pro", "alreadyApplied": True}


@pytest.mark.parametrize("payload, status, error", [
    ({"sessionId": "cs_1"}, 400, "MISSING_CHECKOUT_DETAILS"),
    ({"sessionId": "cs_1", "planId": "free"}, 400, "UNSUPPORTED_PLAN"),
    ({"sessionId": "cs_missing", "planId": "pro"}, 502, "PAYMENT_VERIFICATION_FAILED"),
])
async def test_confirm_rejections(client, stripe_sessions, payload, status, error):
    response = await client.post("/api/billing/confirm", json=payload)

    assert response.status_code == status
    assert response.json()["error"] == error


async def test_confirm_unpaid_session(client, current_user, stripe_sessions):
    session = paid_session("cs_1", current_user.id, "pro", "price_pro")
    session["payment_status"] = "unpaid"
    stripe_sessions["cs_1"] = session

    response = await client.post("/api/billing/confirm", json={"sessionId": "cs_1", "planId": "pro"})

    assert response.status_code == 409
    assert response.json()["error"] == "PAYMENT_INCOMPLETE"


async def test_confirm_someone_elses_session(client, current_user, stripe_sessions):
    stripe_sessions["cs_1"] = paid_session("cs_1", "another-user", "pro", "price_pro")

    response = await client.post("/api/billing/confirm", json={"sessionId": "cs_1", "planId": "pro"})

    assert response.status_code == 403
    assert response.json()["error"] == "CHECKOUT_OWNER_MISMATCH"
    assert await credit_wallet_service.get_profile(current_user.id) is None


# =============================================================================
# WEBHOOK
# =============================================================================

async def test_webhook_applies_purchase_idempotently(client, current_user, stripe_sessions, webhook_event):
    await set_profile(current_user.id, 1)
    stripe_sessions["cs_2"] = paid_session("cs_2", current_user.id, "studio", "price_studio")
    webhook_event["event"] = completed_event("evt_1", "cs_2")

    first = await client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})
    replay = await client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=abc"})

    assert first.json() == {"ok": True, "applied": True}
    assert replay.json() == {"ok": True, "applied": False}

    profile = await credit_wallet_service.get_profile(current_user.id)
    assert profile.credits == 151
    assert profile.plan == "studio"
    assert profile.is_pro and profile.is_studio


async def test_webhook_after_confirm_does_not_double_grant(client, current_user, stripe_sessions, webhook_event):
    await set_profile(current_user.id, 0)
    stripe_sessions["cs_3"] = paid_session("cs_3", current_user.id, "pro", "price_pro")
    webhook_event["event"] = completed_event("evt_3", "cs_3")

    await client.post("/api/billing/confirm", json={"sessionId": "cs_3", "planId": "pro"})
    response = await client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.json() == {"ok": True, "applied": False}
    assert (await credit_wallet_service.get_profile(current_user.id)).credits == 30


async def test_webhook_signature_checks(anonymous_client, webhook_event):
    missing = await anonymous_client.post("/api/billing/webhook", content=b"{}")
    invalid = await anonymous_client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "bad"})

    assert missing.status_code == 400
    assert missing.json()["error"] == "MISSING_SIGNATURE"
    assert invalid.status_code == 400
    assert invalid.json()["error"] == "INVALID_SIGNATURE"


async def test_webhook_requires_configuration(anonymous_client, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_WEBHOOK_SECRET", "")

    response = await anonymous_client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 500
    assert response.json()["error"] == "STRIPE_CONFIG_MISSING"


async def test_webhook_ignores_other_events(anonymous_client, webhook_event):
    webhook_event["event"] = {"id": "evt_4", "type": "invoice.paid", "data": {"object": {}}}

    response = await anonymous_client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}


async def test_webhook_ignores_unknown_price(anonymous_client, stripe_sessions, webhook_event):
    stripe_sessions["cs_5"] = paid_session("cs_5", "user-5", "pro", "price_legacy")
    webhook_event["event"] = completed_event("evt_5", "cs_5")

    response = await anonymous_client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.json() == {"ok": True}
    assert await credit_wallet_service.get_profile("user-5") is None


async def test_webhook_without_user_metadata(anonymous_client, stripe_sessions, webhook_event):
    session = paid_session("cs_6", "", "pro", "price_pro")
    session["metadata"] = {}
    stripe_sessions["cs_6"] = session
    webhook_event["event"] = completed_event("evt_6", "cs_6")

    response = await anonymous_client.post("/api/billing/webhook", content=b"{}", headers={"stripe-signature": "sig"})

    assert response.status_code == 400
    assert response.json()["error"] == "MISSING_USER"


# =============================================================================
# FREE CREDITS
# =============================================================================

async def test_grant_free_tops_up_free_users(client, current_user):
    await set_profile(current_user.id, 0)

    response = await client.post("/api/billing/grant-free")

    assert response.status_code == 200
    assert response.json() == {"success": True, "credits": 2, "plan": "free"}


async def test_grant_free_refuses_pro_users(client, current_user):
    await set_profile(current_user.id, 3, PlanTier.PRO)

    response = await client.post("/api/billing/grant-free")

    assert response.status_code == 400
    assert response.json()["error"] == "ALREADY_PRO"
