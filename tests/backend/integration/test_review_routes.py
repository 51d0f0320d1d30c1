import pytest


pytestmark = pytest.mark.asyncio


async def _setup(client, create_admin, create_worker, auth_header_factory, count=2):
    admin, admin_pwd = await create_admin()
    worker, worker_pwd = await create_worker()
    admin_headers = await auth_header_factory(admin, admin_pwd)
    worker_headers = await auth_header_factory(worker, worker_pwd)
    resp = await client.post(
        "/api/v1/batches",
        headers=admin_headers,
        json={
            "name": "Market recordings",
            "workerIds": [str(worker.id)],
            "segments": [{"filename": f"m_{i}.wav", "duration": 8} for i in range(count)],
        },
    )
    assert resp.status_code == 200, resp.text
    seg_ids = [s["id"] for s in resp.json()["data"]["segments"]]
    return admin, admin_headers, worker_headers, seg_ids


async def _transcribe(client, headers, seg_id, text):
    await client.post(f"/api/v1/segments/{seg_id}/open", headers=headers)
    await client.put(f"/api/v1/segments/{seg_id}/draft", headers=headers, json={"text": text})
    resp = await client.post(f"/api/v1/segments/{seg_id}/submit", headers=headers)
    assert resp.status_code == 200, resp.text


async def test_review_flow(client, create_admin, create_worker, auth_header_factory):
    admin, admin_headers, worker_headers, (first, second) = await _setup(
        client, create_admin, create_worker, auth_header_factory
    )
    await _transcribe(client, worker_headers, first, "أنا كنت نمشي للسوق")
    await _transcribe(client, worker_headers, second, "كيف راك؟")

    queue = await client.get("/api/v1/review/queue", headers=admin_headers)
    assert queue.status_code == 200
    assert [s["id"] for s in queue.json()["data"]["items"]] == [first, second]

    approve = await client.post(f"/api/v1/review/{first}/approve", headers=admin_headers)
    assert approve.status_code == 200
    assert approve.json()["data"]["decision"] == "approve"
    assert approve.json()["data"]["reviewedBy"] == str(admin.id)

    deny = await client.post(
        f"/api/v1/review/{second}/deny",
        headers=admin_headers,
        json={"reason": "incorrect-transcription", "comments": "dialect standardized"},
    )
    assert deny.status_code == 200
    assert deny.json()["data"]["reason"] == "incorrect-transcription"

    detail = await client.get(f"/api/v1/segments/{second}", headers=worker_headers)
    segment = detail.json()["data"]["segment"]
    assert segment["status"] == "returned"
    assert segment["returnReason"] == "incorrect-transcription"

    stats = await client.get("/api/v1/review/stats", headers=admin_headers)
    assert stats.json()["data"] == {"pending": 1, "reviewedByMe": 2, "returned": 1}


async def test_deny_validation(client, create_admin, create_worker, auth_header_factory):
    _, admin_headers, worker_headers, (first, _) = await _setup(
        client, create_admin, create_worker, auth_header_factory
    )
    await _transcribe(client, worker_headers, first, "نص")

    missing = await client.post(f"/api/v1/review/{first}/deny", headers=admin_headers, json={})
    assert missing.status_code == 400
    assert missing.json()["detail"]["code"] == "DENIAL_REASON_REQUIRED"

    unknown = await client.post(
        f"/api/v1/review/{first}/deny", headers=admin_headers, json={"reason": "bad-vibes"}
    )
    assert unknown.status_code == 400
    assert unknown.json()["detail"]["code"] == "DENIAL_REASON_INVALID"


async def test_review_permissions_and_state(client, create_admin, create_worker, auth_header_factory):
    _, admin_headers, worker_headers, (first, _) = await _setup(
        client, create_admin, create_worker, auth_header_factory
    )
    assert (await client.get("/api/v1/review/queue", headers=worker_headers)).status_code == 403

    not_done = await client.post(f"/api/v1/review/{first}/approve", headers=admin_headers)
    assert not_done.status_code == 409
    assert not_done.json()["detail"]["code"] == "INVALID_TRANSITION"

    await _transcribe(client, worker_headers, first, "نص")
    assert (await client.post(f"/api/v1/review/{first}/approve", headers=worker_headers)).status_code == 403


async def test_batches(client, create_admin, create_worker, auth_header_factory):
    _, admin_headers, worker_headers, (first, second) = await _setup(
        client, create_admin, create_worker, auth_header_factory
    )
    listing = await client.get("/api/v1/batches", headers=admin_headers)
    assert listing.status_code == 200
    [batch] = listing.json()["data"]["items"]
    assert batch["status"] == "pending"
    assert batch["totalSegments"] == 2

    await _transcribe(client, worker_headers, first, "one")
    await _transcribe(client, worker_headers, second, "two")
    [batch] = (await client.get("/api/v1/batches", headers=admin_headers)).json()["data"]["items"]
    assert batch["status"] == "completed"
    assert batch["completedSegments"] == 2

    assert (await client.get("/api/v1/batches", headers=worker_headers)).status_code == 403

    bad = await client.post(
        "/api/v1/batches",
        headers=admin_headers,
        json={"name": "empty", "workerIds": [], "segments": [{"filename": "x.wav"}]},
    )
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "BATCH_UNASSIGNED"
