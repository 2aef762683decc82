"""Video routes end to end against the fake provider."""
from app.models import VideoJob


def _wait_for_jobs(client):
    client.portal.call(client.app.state.tracker.join)


def _create(client, headers, prompt="a cat on a skateboard", **form):
    return client.post("/api/videos/create", data={"prompt": prompt, **form}, headers=headers)


def test_create_requires_token(make_client):
    with make_client() as client:
        r = _create(client, {})
    assert r.status_code == 401


def test_create_then_status(make_client, fake_provider, make_user):
    user, headers = make_user()
    fake_provider.statuses = [{"status": "completed", "url": "https://x/video.mp4"}]
    with make_client() as client:
        r = _create(client, headers, seconds="8", size="1280x720")
        assert r.status_code == 201
        created = r.json()
        assert created["message"] == "Video generation started"
        video = created["video"]
        assert video["status"] == "queued"
        assert video["openaiVideoId"] == "video_1"
        assert video["prompt"] == "a cat on a skateboard"

        _wait_for_jobs(client)

        r = client.get(f"/api/videos/status/{video['id']}", headers=headers)
    assert r.status_code == 200
    body = r.json()["video"]
    assert body["status"] == "completed"
    assert body["progress"] == 100
    assert body["videoUrl"] == "https://x/video.mp4"
    assert body["userId"] == user.id
    assert body["seconds"] == 8


def test_create_with_reference_image(make_client, fake_provider, make_user):
    _, headers = make_user()
    with make_client() as client:
        r = client.post(
            "/api/videos/create",
            data={"prompt": "animate this"},
            files={"image": ("ref.png", b"\x89PNG fake", "image/png")},
            headers=headers,
        )
        _wait_for_jobs(client)
    assert r.status_code == 201
    image = fake_provider.created[0]["reference_image"]
    assert image.filename == "ref.png"
    assert image.content == b"\x89PNG fake"


def test_create_rejects_unsupported_image(make_client, fake_provider, make_user):
    _, headers = make_user()
    with make_client() as client:
        r = client.post(
            "/api/videos/create",
            data={"prompt": "animate this"},
            files={"image": ("ref.gif", b"GIF89a", "image/gif")},
            headers=headers,
        )
    assert r.status_code == 400
    assert fake_provider.created == []


def test_create_empty_prompt(make_client, make_user):
    _, headers = make_user()
    with make_client() as client:
        r = _create(client, headers, prompt="  ")
    assert r.status_code == 400
    assert r.json()["error"] == "Prompt is required"


def test_flagged_prompt_returns_moderation(make_client, fake_provider, make_user):
    _, headers = make_user()
    fake_provider.flagged_words = {"gore"}
    with make_client() as client:
        r = _create(client, headers, prompt="lots of gore")
        listing = client.get("/api/videos", headers=headers).json()
    assert r.status_code == 400
    assert r.json()["moderation"] == {"allowed": False, "flagged": True, "categories": {"gore": True}}
    assert listing["videos"] == []
    assert fake_provider.created == []


def test_status_of_other_users_video_is_404(make_client, make_user):
    _, owner_headers = make_user()
    _, other_headers = make_user()
    with make_client() as client:
        video_id = _create(client, owner_headers).json()["video"]["id"]
        _wait_for_jobs(client)
        r = client.get(f"/api/videos/status/{video_id}", headers=other_headers)
        missing = client.get("/api/videos/status/nope", headers=owner_headers)
    assert r.status_code == 404
    assert r.json()["error"] == "Video not found"
    assert missing.status_code == 404


def test_list_is_paginated_and_scoped(make_client, make_user):
    _, headers = make_user()
    _, other_headers = make_user()
    with make_client() as client:
        for i in range(3):
            _create(client, headers, prompt=f"clip {i}")
        _create(client, other_headers, prompt="not mine")
        _wait_for_jobs(client)
        r = client.get("/api/videos?limit=2&page=1", headers=headers)
    assert r.status_code == 200
    body = r.json()
    assert len(body["videos"]) == 2
    assert body["pagination"] == {"total": 3, "page": 1, "limit": 2, "totalPages": 2}
    assert all(v["prompt"].startswith("clip") for v in body["videos"])


def test_remix_route(make_client, fake_provider, make_user):
    _, headers = make_user()
    with make_client() as client:
        video_id = _create(client, headers, model="sora-2-pro").json()["video"]["id"]
        _wait_for_jobs(client)
        r = client.post(f"/api/videos/remix/{video_id}", json={"prompt": "at night"}, headers=headers)
        _wait_for_jobs(client)
    assert r.status_code == 201
    video = r.json()["video"]
    assert video["prompt"] == "Remix: at night"
    assert video["openaiVideoId"] == "remix_1"
    assert fake_provider.remixed == [("video_1", "at night")]


def test_download_before_and_after_completion(make_client, fake_provider, make_user):
    user, headers = make_user()
    with make_client() as client:
        pending = client.app.state.videos.store.insert(
            VideoJob(user_id=user.id, prompt="still rendering", provider_job_id="video_pending")
        )
        early = client.get(f"/api/videos/{pending.id}/download", headers=headers)

        video_id = _create(client, headers).json()["video"]["id"]
        _wait_for_jobs(client)
        r = client.get(f"/api/videos/{video_id}/download", headers=headers)
        thumb = client.get(f"/api/videos/{video_id}/thumbnail", headers=headers)
    assert early.status_code == 400
    assert r.status_code == 200
    assert r.headers["content-type"] == "video/mp4"
    assert r.content == fake_provider.content
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/webp"
    assert fake_provider.downloads == [("video_1", "video"), ("video_1", "thumbnail")]


def test_delete_route(make_client, fake_provider, make_user):
    _, headers = make_user()
    with make_client() as client:
        video_id = _create(client, headers).json()["video"]["id"]
        _wait_for_jobs(client)
        r = client.delete(f"/api/videos/{video_id}", headers=headers)
        after = client.get(f"/api/videos/status/{video_id}", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"message": "Video deleted successfully"}
    assert after.status_code == 404
    assert fake_provider.deleted == ["video_1"]


def test_list_reports_clamped_paging(make_client, make_user):
    _, headers = make_user()
    with make_client() as client:
        _create(client, headers)
        _wait_for_jobs(client)
        r = client.get("/api/videos?limit=0&page=-2", headers=headers)
    assert r.status_code == 200
    assert r.json()["pagination"] == {"total": 1, "page": 1, "limit": 1, "totalPages": 1}
