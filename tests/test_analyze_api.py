"""End-to-end tests for POST /api/analyze with a fake vision model."""

import base64
import json

from carblens.core.prompts import RESPONSE_KEYS
from carblens.middleware import CORRELATION_ID_HEADER
from tests.conftest import MODEL_PAYLOAD, SAMPLE_IMAGE, analyze_body


class TestAnalyzeSuccess:
    async def test_recomputes_doses(self, client, fake_client):
        """The model says 3 units for 47 g at 1:15; the server says 4."""
        response = await client.post("/api/analyze", json=analyze_body(currentGlucose=220))

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert "timestamp" in data

        analysis = data["analysis"]
        assert analysis["totalCarbs"] == 47
        assert analysis["mealInsulin"]["units"] == 4
        assert analysis["correction"] == {
            "needed": True,
            "calculation": analysis["correction"]["calculation"],
            "units": 2.5,
        }
        assert analysis["recommendation"]["standard"] == 6.5
        assert analysis["recommendation"]["conservative"] == 6.0
        assert analysis["recommendation"]["note"] == "Check in 90 min."

    async def test_camel_case_response(self, client):
        response = await client.post("/api/analyze", json=analyze_body())

        analysis = response.json()["analysis"]
        assert "imageQuality" in analysis
        assert "mealInsulin" in analysis
        assert "meal_insulin" not in analysis
        assert analysis["warnings"] == []

    async def test_foods_passed_through(self, client):
        response = await client.post("/api/analyze", json=analyze_body())

        foods = response.json()["analysis"]["foods"]
        assert [f["name"] for f in foods] == [f["name"] for f in MODEL_PAYLOAD["foods"]]
        assert [f["carbs"] for f in foods] == [34, 10, 3]
        assert foods[0]["confidence"] == "high"

    async def test_no_glucose_no_correction(self, client):
        response = await client.post("/api/analyze", json=analyze_body())

        analysis = response.json()["analysis"]
        assert analysis["correction"]["needed"] is False
        assert analysis["correction"]["units"] == 0
        assert analysis["recommendation"]["standard"] == 4
        assert analysis["recommendation"]["conservative"] == 3.5

    async def test_glucose_below_target(self, client):
        response = await client.post("/api/analyze", json=analyze_body(currentGlucose=95))

        assert response.json()["analysis"]["correction"]["needed"] is False

    async def test_prompt_carries_profile(self, client, fake_client):
        await client.post("/api/analyze", json=analyze_body(currentGlucose=180))

        _, prompt = fake_client.calls[0]
        assert "1u per 15g" in prompt
        assert "Current glucose: 180 mg/dL" in prompt
        for key in RESPONSE_KEYS:
            assert f'"{key}"' in prompt

    async def test_bare_base64_sent_as_jpeg(self, client, fake_client):
        await client.post("/api/analyze", json=analyze_body())

        image, _ = fake_client.calls[0]
        assert image.data == SAMPLE_IMAGE
        assert image.media_type == "image/jpeg"

    async def test_data_url_prefix_stripped(self, client, fake_client):
        body = analyze_body(image=f"data:image/png;base64,{SAMPLE_IMAGE}")

        response = await client.post("/api/analyze", json=body)

        assert response.status_code == 200
        image, _ = fake_client.calls[0]
        assert image.data == SAMPLE_IMAGE
        assert image.media_type == "image/png"

    async def test_reply_without_fences(self, client, fake_client):
        fake_client.replies = [json.dumps(MODEL_PAYLOAD)]

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.status_code == 200

    async def test_extra_model_fields_kept(self, client, fake_client):
        fake_client.replies = [json.dumps({**MODEL_PAYLOAD, "mealType": "lunch"})]

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.json()["analysis"]["mealType"] == "lunch"

    async def test_correlation_id_header(self, client):
        response = await client.post(
            "/api/analyze",
            json=analyze_body(),
            headers={CORRELATION_ID_HEADER: "req-123"},
        )

        assert response.headers[CORRELATION_ID_HEADER] == "req-123"


class TestAnalyzeInputErrors:
    async def test_missing_image(self, client, fake_client):
        body = analyze_body()
        del body["image"]

        response = await client.post("/api/analyze", json=body)

        assert response.status_code == 400
        assert response.json() == {"error": "No image provided"}
        assert fake_client.calls == []

    async def test_empty_image(self, client, fake_client):
        response = await client.post("/api/analyze", json=analyze_body(image=""))

        assert response.status_code == 400
        assert response.json() == {"error": "No image provided"}
        assert fake_client.calls == []

    async def test_empty_data_url(self, client, fake_client):
        response = await client.post(
            "/api/analyze", json=analyze_body(image="data:image/jpeg;base64,")
        )

        assert response.status_code == 400
        assert fake_client.calls == []

    async def test_invalid_base64(self, client, fake_client):
        response = await client.post(
            "/api/analyze", json=analyze_body(image="not base64 at all!")
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid image data"}
        assert fake_client.calls == []

    async def test_invalid_user_settings(self, client, fake_client):
        body = analyze_body(userSettings={"insulinRatio": 0, "sensitivityFactor": 40})

        response = await client.post("/api/analyze", json=body)

        assert response.status_code == 422
        assert fake_client.calls == []

    async def test_blank_glucose_treated_as_absent(self, client):
        response = await client.post("/api/analyze", json=analyze_body(currentGlucose=""))

        assert response.status_code == 200
        assert response.json()["analysis"]["correction"]["needed"] is False

    async def test_infinite_glucose_rejected(self, client, fake_client):
        body = json.dumps(analyze_body(currentGlucose=float("inf")))
        assert "Infinity" in body

        response = await client.post(
            "/api/analyze", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert fake_client.calls == []

    async def test_infinite_profile_value_rejected(self, client, fake_client):
        settings = {
            "insulinRatio": float("inf"),
            "sensitivityFactor": 40,
            "targetGlucose": 120,
        }
        body = json.dumps(analyze_body(userSettings=settings))

        response = await client.post(
            "/api/analyze", content=body, headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 422
        assert fake_client.calls == []

    async def test_validation_body_omits_inputs(self, client):
        response = await client.post(
            "/api/analyze", json=analyze_body(currentGlucose=-5)
        )

        assert response.status_code == 422
        errors = response.json()["detail"]
        assert errors[0]["loc"] == ["body", "currentGlucose"]
        assert all("input" not in error for error in errors)
        assert SAMPLE_IMAGE not in response.text

    async def test_implausible_glucose_rejected(self, client, fake_client):
        response = await client.post("/api/analyze", json=analyze_body(currentGlucose=1e30))

        assert response.status_code == 422
        assert fake_client.calls == []

    async def test_string_glucose_accepted(self, client):
        response = await client.post("/api/analyze", json=analyze_body(currentGlucose="220"))

        assert response.json()["analysis"]["correction"]["units"] == 2.5


class TestAnalyzePipelineErrors:
    async def test_no_json_in_reply(self, client, fake_client):
        fake_client.replies = ["Sorry, I can't see any food in this picture."]

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.status_code == 500
        assert response.json() == {
            "error": "Error analyzing image",
            "message": "Invalid AI response format",
            "kind": "extraction",
        }

    async def test_malformed_json(self, client, fake_client):
        fake_client.replies = ['```json\n{"foods": [ {"name": "rice",, } ]}\n```']

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.status_code == 500
        data = response.json()
        assert data["kind"] == "malformed_json"
        assert "rice" not in data["message"]

    async def test_missing_foods(self, client, fake_client):
        payload = {k: v for k, v in MODEL_PAYLOAD.items() if k != "foods"}
        fake_client.replies = [json.dumps(payload)]

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.status_code == 500
        data = response.json()
        assert data["error"] == "Error analyzing image"
        assert data["kind"] == "incomplete_response"
        assert "foods" in data["message"]

    async def test_model_failure(self, client, fake_client):
        fake_client.replies = [RuntimeError("upstream exploded")]

        response = await client.post("/api/analyze", json=analyze_body())

        assert response.status_code == 500
        data = response.json()
        assert data["kind"] == "model_invocation"
        assert data["message"] == "AI service unavailable"
        assert "exploded" not in json.dumps(data)
        assert len(fake_client.calls) == 1


def test_sample_image_is_valid_base64():
    assert base64.b64decode(SAMPLE_IMAGE, validate=True).startswith(b"\xff\xd8")
