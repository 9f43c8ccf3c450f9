"""End-to-end caption routes through TestClient."""
import base64

from captionflow.models.user import Tier


def _headers(user_id):
    return {"X-User-Id": user_id}


GENERATE_BODY = {"description": "sunset at the beach", "tone": "casual", "platform": ["instagram"]}


def test_first_generation_for_new_free_user(client):
    resp = client.post("/api/generate-caption", json=GENERATE_BODY, headers=_headers("newbie"))
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["tier"] == "free"
    assert body["remainingToday"] == 9
    assert body["caption"]["content"]
    assert 0 < len(body["caption"]["hashtags"]) <= 15
    assert body["caption"]["platform"] == ["instagram"]

    listed = client.get("/api/captions", headers=_headers("newbie")).json()
    assert [c["id"] for c in listed["captions"]] == [body["caption"]["id"]]


def test_hashtags_never_exceed_requested_count(client, fake_llm):
    fake_llm.responses = ["CAPTION: Beach day\nHASHTAGS: " + " ".join(f"#t{i}" for i in range(20))]
    resp = client.post("/api/generate-caption", json={**GENERATE_BODY, "numHashtags": 5}, headers=_headers("tags1"))
    assert resp.status_code == 200
    assert resp.json()["caption"]["hashtags"] == ["t0", "t1", "t2", "t3", "t4"]


def test_tenth_generation_allowed_then_quota_exceeded(client, make_user, fake_llm):
    make_user("u9", count=9)
    ok = client.post("/api/generate-caption", json=GENERATE_BODY, headers=_headers("u9"))
    assert ok.status_code == 200
    assert ok.json()["remainingToday"] == 0

    denied = client.post("/api/generate-caption", json=GENERATE_BODY, headers=_headers("u9"))
    assert denied.status_code == 403
    body = denied.json()
    assert body["code"] == "quota_exceeded"
    assert body["error"] == "Daily limit reached. Upgrade to Pro for unlimited captions."
    assert body["request_id"] == denied.headers["x-request-id"]
    assert len(fake_llm.requests) == 1


def test_pro_user_is_unlimited(client, make_user):
    make_user("pro1", tier=Tier.PRO, count=250)
    resp = client.post("/api/generate-caption", json=GENERATE_BODY, headers=_headers("pro1"))
    assert resp.status_code == 200
    assert resp.json()["remainingToday"] is None
    assert resp.json()["tier"] == "pro"


def test_request_validation_returns_400_with_details(client, fake_llm):
    bad = {"description": "hey", "tone": "sarcastic", "platform": [], "numHashtags": 30}
    resp = client.post("/api/generate-caption", json=bad, headers=_headers("v1"))
    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "validation_error"
    fields = {d["field"] for d in body["details"]}
    assert {"description", "tone", "platform", "numHashtags"} <= fields
    assert fake_llm.requests == []


def test_generation_failure_is_generic_500(client, fake_llm):
    from captionflow.core.errors import GenerationFailedError

    fake_llm.error = GenerationFailedError()
    resp = client.post("/api/generate-caption", json=GENERATE_BODY, headers=_headers("f1"))
    assert resp.status_code == 500
    assert resp.json()["code"] == "generation_failed"
    assert resp.json()["error"] == "Caption generation failed. Please try again."


def test_unauthenticated_request_is_401(client):
    resp = client.post("/api/generate-caption", json=GENERATE_BODY)
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"


def test_vision_route(client, fake_llm):
    image_b64 = base64.b64encode(b"\xff\xd8\xff" + b"\x01" * 300).decode()
    body = {"imageBase64": image_b64, "mimeType": "image/jpeg", "tone": "witty", "platform": ["tiktok", "twitter"]}
    resp = client.post("/api/generate-caption-vision", json=body, headers=_headers("eye"))
    assert resp.status_code == 200
    assert resp.json()["caption"]["platform"] == ["tiktok", "twitter"]
    assert fake_llm.requests[0].image.data_url.startswith("data:image/jpeg;base64,")


def test_vision_rejects_unsupported_mime(client):
    body = {"imageBase64": "A" * 200, "mimeType": "image/gif", "tone": "witty", "platform": ["tiktok"]}
    resp = client.post("/api/generate-caption-vision", json=body, headers=_headers("eye"))
    assert resp.status_code == 400


def test_delete_and_favorite(client):
    caption_id = client.post(
        "/api/generate-caption", json=GENERATE_BODY, headers=_headers("lib")
    ).json()["caption"]["id"]

    fav = client.patch(f"/api/captions/{caption_id}/favorite", json={"isFavorite": True}, headers=_headers("lib"))
    assert fav.status_code == 200
    assert fav.json()["caption"]["is_favorite"] is True

    assert client.delete("/api/captions", headers=_headers("lib")).status_code == 400
    assert client.delete(f"/api/captions?id={caption_id}", headers=_headers("intruder")).status_code == 404
    assert client.delete(f"/api/captions?id={caption_id}", headers=_headers("lib")).json() == {"success": True}
    assert client.get("/api/captions", headers=_headers("lib")).json()["captions"] == []
