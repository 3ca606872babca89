"""Tests for the FastAPI server endpoints."""

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient

from affect_router.api.server import app

EXHAUSTED = {"valence": 2, "energy": 1, "tension": 3, "clarity": 4, "control": 3, "social": 3}


@pytest.fixture
async def client():
    """Async test client with lifespan (startup / shutdown) fully executed."""
    async with LifespanManager(app) as manager:
        transport = ASGITransport(app=manager.app)
        async with AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["rules_version"] == "rules_v1"
    assert body["aliases_version"] == "aliases_v1"
    assert body["questions_loaded"] > 0


@pytest.mark.asyncio
async def test_classify_tags(client: AsyncClient):
    resp = await client.post("/classify", json={"tags": ["L1_ENERGY_LOW", "L2_DISCONNECT_NUMB"]})
    assert resp.status_code == 200
    body = resp.json()
    assert len(body["ranked"]) == 11
    assert body["mode"] in ("single", "mix", "probe")
    assert sum(r["probability"] for r in body["ranked"]) == pytest.approx(1.0, abs=1e-5)


@pytest.mark.asyncio
async def test_baseline(client: AsyncClient):
    resp = await client.post("/baseline", json=EXHAUSTED)
    assert resp.status_code == 200
    body = resp.json()
    assert body["macro"] == "exhausted"
    assert body["confidence_band"] == "high"
    assert body["needs_refine"] is False


@pytest.mark.asyncio
async def test_baseline_malformed_rating_uses_midpoint(client: AsyncClient):
    resp = await client.post("/baseline", json={"valence": "very", "energy": None})
    assert resp.status_code == 200
    midpoint = await client.post("/baseline", json={})
    assert resp.json() == midpoint.json()


@pytest.mark.asyncio
async def test_refine_blocks_connection_flip(client: AsyncClient):
    payload = {
        "scalars": EXHAUSTED,
        "tags": ["sig.micro.connected.warm", "sig.context.social.support"],
    }
    resp = await client.post("/refine", json=payload)
    assert resp.status_code == 200
    body = resp.json()
    assert body["schema_version"] == "decision_v1"
    assert body["macro"] == "exhausted"
    assert body["macro_flip_applied"] is False
    assert body["diagnostics"]["blocked_by"] == "fatigue_dominant_blocks_connected"
    assert body["diagnostics"]["stop_reason"] == "one_shot"


@pytest.mark.asyncio
async def test_list_questions(client: AsyncClient):
    resp = await client.get("/questions")
    assert resp.status_code == 200
    ids = [q["id"] for q in resp.json()]
    assert ids[:5] == ["q_mood", "q_energy", "q_control", "q_clarity", "q_safety"]


@pytest.mark.asyncio
async def test_adaptive_run_with_choices(client: AsyncClient):
    payload = {
        "scalars": EXHAUSTED,
        "choices": {"q_mood": "low", "q_energy": "drained", "q_control": "low"},
    }
    resp = await client.post("/adaptive/run", json=payload)
    assert resp.status_code == 200
    diagnostics = resp.json()["diagnostics"]
    assert diagnostics["asked_question_ids"] == ["q_mood", "q_energy", "q_control"]
    assert diagnostics["stop_reason"] == "answers_exhausted"


@pytest.mark.asyncio
async def test_adaptive_run_out_of_turn(client: AsyncClient):
    payload = {
        "scalars": EXHAUSTED,
        "answers": [{"question_id": "q_safety", "option_id": "safe"}],
    }
    resp = await client.post("/adaptive/run", json=payload)
    assert resp.status_code == 409
    assert "q_safety" in resp.json()["detail"]
