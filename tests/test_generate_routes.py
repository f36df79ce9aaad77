import pytest

from app.core.config import settings
from app.database.connection import get_session
from app.database.unified_models import Profile
from app.models.plans import PlanTier, plan_flags
from app.services.credit_wallet_service import credit_wallet_service
from app.services.fashn_client import FashnError, FashnResult
from app.services.generation_service import MOCK_OUTPUT_URL, generation_service, parse_generate_request
from app.models.generation import GenerateRequest
from app.core.exceptions import ValidationException

pytestmark = pytest.mark.usefixtures("database")

GARMENT = "https://res.cloudinary.com/demo/image/upload/v1/modelcast/uploads/garment.png"
MODEL = "https://res.cloudinary.com/demo/image/upload/v1/modelcast/uploads/model.png"
OUTPUT = "https://res.cloudinary.com/demo/image/upload/v1/modelcast/output.png"


class FakeFashnClient:
    """Completes with the first candidate unless told to fail"""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def run_with_fallback(self, candidates, build_inputs):
        model = candidates[0]
        inputs = build_inputs(model)
        self.calls.append((model, inputs))
        if self.error:
            raise FashnError(self.error)
        return FashnResult(output_url=OUTPUT, model=model, prediction_id="pred-1", inputs=inputs)


@pytest.fixture
def fashn(monkeypatch):
    fake = FakeFashnClient()
    monkeypatch.setattr(generation_service, "client", fake)
    return fake


async def set_profile(user_id: str, credits: int, plan: PlanTier = PlanTier.FREE):
    async with get_session() as session:
        session.add(Profile(id=user_id, credits=credits, **plan_flags(plan)))
        await session.commit()


async def current_credits(user_id: str) -> int:
    profile = await credit_wallet_service.get_profile(user_id)
    return profile.credits


async def test_free_generation_is_watermarked_and_costs_one_credit(client, current_user, fashn):
    response = await client.post("/api/generate", json={
        "garmentImageUrl": GARMENT,
        "gender": "female",
        "skinTone": "olive",
        "styleType": "studio",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert "l_modelcast_watermark" in body["outputUrl"]
    assert "w_1024," in body["outputUrl"]
    assert "cb=" in body["outputUrl"]
    assert body["creditsRemaining"] == 1
    assert body["totalCredits"] == 2
    assert body["plan"] == "free"
    assert body["model"] == "product-to-model"
    assert body["generation"]["metadata"]["delivery"] == "preview"
    assert await current_credits(current_user.id) == 1

    model, inputs = fashn.calls[0]
    assert inputs["product_image"] == GARMENT
    assert inputs["prompt"].startswith("Full-body female model with olive-toned skin")
    assert "studio photography" in inputs["prompt"]


async def test_pro_dual_image_uses_tryon_without_prompt(client, current_user, fashn):
    await set_profile(current_user.id, 10, PlanTier.PRO)

    response = await client.post("/api/generate", json={
        "garment_image": GARMENT,
        "modelImage": MODEL,
        "mode": "advanced",
    })

    assert response.status_code == 200
    body = response.json()
    assert body["outputUrl"] == OUTPUT
    assert body["creditsRemaining"] == 9
    assert body["totalCredits"] == 30
    assert body["model"] == "tryon-v1.6"

    model, inputs = fashn.calls[0]
    assert inputs == {"output_format": "png", "model_image": MODEL, "garment_image": GARMENT}


async def test_free_user_cannot_use_model_image(client, current_user, fashn):
    await set_profile(current_user.id, 2)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT, "modelImageUrl": MODEL})

    assert response.status_code == 403
    assert response.json()["error"] == "PLAN_UPGRADE_REQUIRED"
    assert fashn.calls == []
    assert await current_credits(current_user.id) == 2


async def test_out_of_credits(client, current_user, fashn):
    await set_profile(current_user.id, 0, PlanTier.STUDIO)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 402
    assert response.json() == {"success": False, "error": "OUT_OF_CREDITS", "message": "Out of credits"}
    assert fashn.calls == []


async def test_upstream_failure_keeps_credits(client, current_user, monkeypatch):
    monkeypatch.setattr(generation_service, "client", FakeFashnClient(error="FASHN_STATUS_TIMEOUT"))
    await set_profile(current_user.id, 2)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 502
    assert response.json()["error"] == "FASHN_STATUS_TIMEOUT"
    assert await current_credits(current_user.id) == 2


async def test_failed_credit_decrement_is_server_error(client, current_user, fashn, monkeypatch):
    async def consume_nothing(user_id):
        return None

    monkeypatch.setattr(credit_wallet_service, "consume_credit", consume_nothing)
    await set_profile(current_user.id, 2)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 500
    assert response.json()["error"] == "CREDIT_UPDATE_FAILED"
    assert len(fashn.calls) == 1


@pytest.mark.parametrize("payload, error", [
    ({}, "MISSING_GARMENT_IMAGE"),
    ({"garmentImageUrl": "   "}, "MISSING_GARMENT_IMAGE"),
    ({"garmentImageUrl": "https://example.com/shirt.png"}, "INVALID_IMAGE_URL"),
    ({"garmentImageUrl": GARMENT, "modelImageUrl": "http://evil.test/x.png"}, "INVALID_IMAGE_URL"),
    ({"garmentImageUrl": GARMENT, "mode": "advanced"}, "MODEL_IMAGE_REQUIRED"),
])
async def test_invalid_payloads(client, fashn, payload, error):
    response = await client.post("/api/generate", json=payload)

    assert response.status_code == 400
    assert response.json()["error"] == error
    assert fashn.calls == []


async def test_mock_mode_skips_everything(client, current_user, fashn, monkeypatch):
    monkeypatch.setattr(settings, "FASHN_ENABLED", False)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 200
    assert response.json() == {"success": True, "outputUrl": MOCK_OUTPUT_URL, "creditsRemaining": 999}
    assert fashn.calls == []
    assert await credit_wallet_service.get_profile(current_user.id) is None


async def test_dev_mode_treats_caller_as_pro(client, current_user, fashn, monkeypatch):
    monkeypatch.setattr(settings, "DEV_MODE", True)
    await set_profile(current_user.id, 0)

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT, "modelImageUrl": MODEL})

    assert response.status_code == 200
    body = response.json()
    assert body["creditsRemaining"] == 999
    assert body["outputUrl"] == OUTPUT
    assert await current_credits(current_user.id) == 0


async def test_dev_mode_refused_in_production(client, fashn, monkeypatch):
    monkeypatch.setattr(settings, "DEV_MODE", True)
    monkeypatch.setattr(settings, "ENVIRONMENT", "production")

    response = await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 500
    assert response.json()["error"] == "SERVER_CONFIGURATION_ERROR"


async def test_generation_history(client, current_user, fashn):
    await client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    response = await client.get("/api/generations")

    assert response.status_code == 200
    generations = response.json()["generations"]
    assert len(generations) == 1
    assert generations[0]["plan"] == "free"
    assert generations[0]["metadata"]["api"]["model"] == "product-to-model"


async def test_requires_authentication(anonymous_client):
    response = await anonymous_client.post("/api/generate", json={"garmentImageUrl": GARMENT})

    assert response.status_code == 401
    assert response.json()["error"] == "UNAUTHORIZED"


def test_options_merge_precedence():
    request = parse_generate_request(GenerateRequest(
        imageUrl=GARMENT,
        styleType="street",
        environment="studio",
        options={"gender": "Woman", "ageGroup": "teen"},
        age="senior",
    ))

    assert request.garment_image_url == GARMENT
    assert request.options.environment == "studio"
    assert request.options.model_type == "street"
    assert request.options.style == "streetwear"
    assert request.options.gender == "female"
    assert request.options.age_group == "young"
    assert request.form.style_type == "street"


def test_unknown_mode_is_ignored():
    request = parse_generate_request(GenerateRequest(garmentImageUrl=GARMENT, mode="turbo"))

    assert request.mode is None
    assert not request.has_model_image


def test_model_image_alias_inside_options():
    request = parse_generate_request(GenerateRequest(garmentImageUrl=GARMENT, options={"modelImageUrl": MODEL}))

    assert request.model_image_url == MODEL


def test_parse_rejects_non_cloudinary_garment():
    with pytest.raises(ValidationException):
        parse_generate_request(GenerateRequest(garmentImageUrl="ftp://files/shirt.png"))
