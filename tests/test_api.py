"""API tests for the analysis proxy and the clip library endpoints."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from api.frame_proxy import DashScopeProxy, get_frame_proxy
from api.handlers import get_file_manager, get_video_analyzer, get_video_library
from models.frame_analysis import FrameAnalysis
from processing.prompts import FRAME_ANALYSIS_PROMPT
from processing.video_analyzer import VideoAnalyzer
from main import app

from conftest import FakeClassifier, frame_result

UPSTREAM_URL = "https://dashscope.test/api/v1/services/aigc/multimodal-generation/generation"
FRAME_URI = "data:image/jpeg;base64,/9j/AAAA"


@pytest.fixture
def analysis_classifier():
    """Classifier used by the upload endpoint; two face frames by default."""
    return FakeClassifier({i: frame_result(i, face=True, face_confidence=0.9) for i in (0, 3)})


@pytest.fixture
def api_client(video_library, file_manager, analysis_classifier):
    """TestClient with storage and analysis dependencies replaced."""
    async def _analyzer():
        yield VideoAnalyzer(classifier=analysis_classifier)

    app.dependency_overrides[get_video_library] = lambda: video_library
    app.dependency_overrides[get_file_manager] = lambda: file_manager
    app.dependency_overrides[get_video_analyzer] = _analyzer

    yield TestClient(app)

    app.dependency_overrides.clear()


def use_upstream(handler, api_key="test-qwen-key"):
    """Route the analysis proxy to a mock DashScope transport."""
    async def _proxy():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        proxy = DashScopeProxy(api_key=api_key, url=UPSTREAM_URL, client=client)
        try:
            yield proxy
        finally:
            await proxy.close()

    app.dependency_overrides[get_frame_proxy] = _proxy


def upload(client, path, filename=None):
    with open(path, "rb") as f:
        return client.post(
            "/api/v1/videos",
            files={"file": (filename or path.name, f, "video/mp4")}
        )


class TestAnalyzeFrameProxy:
    """Test cases for POST /api/analyze-frame."""

    def test_forwards_frame_upstream(self, api_client):
        seen = []
        reply = {"output": {"choices": [{"message": {"content": [{"text": "{}"}]}}]}}

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=reply)

        use_upstream(handler)
        response = api_client.post("/api/analyze-frame", json={"image": FRAME_URI, "index": 3})

        assert response.status_code == 200
        assert response.json() == reply

        request = seen[0]
        assert str(request.url) == UPSTREAM_URL
        assert request.headers["Authorization"] == "Bearer test-qwen-key"
        body = json.loads(request.content)
        assert body["model"] == "qwen-vl-max"
        content = body["input"]["messages"][0]["content"]
        assert body["input"]["messages"][0]["role"] == "user"
        assert content[0] == {"image": FRAME_URI}
        assert content[1]["text"] == f"{FRAME_ANALYSIS_PROMPT}\n当前帧序号：3"

    def test_missing_api_key(self, api_client):
        use_upstream(lambda request: httpx.Response(200, json={}), api_key=None)

        response = api_client.post("/api/analyze-frame", json={"image": FRAME_URI, "index": 0})

        assert response.status_code == 500
        assert response.json() == {"error": "Missing QWEN_API_KEY on server"}

    @pytest.mark.parametrize("payload", [{}, {"image": ""}, {"image": 42}, {"index": 1}, []])
    def test_invalid_image_payload(self, api_client, payload):
        use_upstream(lambda request: httpx.Response(200, json={}))

        response = api_client.post("/api/analyze-frame", json=payload)

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid image payload"}

    def test_malformed_json(self, api_client):
        use_upstream(lambda request: httpx.Response(200, json={}))

        response = api_client.post(
            "/api/analyze-frame", content=b"{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid image payload"}

    def test_upstream_error_status_relayed(self, api_client):
        upstream_body = {"code": "InvalidApiKey", "message": "Invalid API-key provided."}
        use_upstream(lambda request: httpx.Response(401, json=upstream_body))

        response = api_client.post("/api/analyze-frame", json={"image": FRAME_URI, "index": 0})

        assert response.status_code == 401
        assert response.json() == {"error": "DashScope request failed", "details": upstream_body}

    def test_upstream_unreachable(self, api_client):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        use_upstream(handler)
        response = api_client.post("/api/analyze-frame", json={"image": FRAME_URI, "index": 0})

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "connection refused"}

    def test_method_not_allowed(self, api_client):
        response = api_client.get("/api/analyze-frame")

        assert response.status_code == 405
        assert response.json()["error"] == "http_error"
        assert "POST" in response.headers["allow"]


class TestUpload:
    """Test cases for POST /api/v1/videos."""

    def test_upload_and_analyse(self, api_client, landscape_video, video_library, file_manager):
        response = upload(api_client, landscape_video)

        assert response.status_code == 201
        data = response.json()
        assert data["video"]["title"] == "landscape.mp4"
        assert data["video"]["orientation"] == "landscape"
        assert data["video"]["has_human"] is True
        assert data["video"]["has_subtitles"] is False
        assert data["video"]["duration"] == "00:03"
        assert data["analysis"]["hasHuman"] is True
        assert data["analysis"]["thumbnailBase64"].startswith("data:image/jpeg;base64,")

        record = video_library.get_video(data["video"]["video_id"])
        assert record is not None
        stored = list(file_manager.base_storage_path.iterdir())
        assert [str(p) for p in stored] == [record.storage_path]
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_duplicate_title_rejected(self, api_client, landscape_video, analysis_classifier):
        assert upload(api_client, landscape_video).status_code == 201
        calls_after_first = len(analysis_classifier.calls)

        response = upload(api_client, landscape_video)

        assert response.status_code == 409
        assert response.json()["error"] == "duplicate_clip"
        assert len(analysis_classifier.calls) == calls_after_first

    def test_unsupported_extension(self, api_client, landscape_video, file_manager):
        response = upload(api_client, landscape_video, filename="clip.txt")

        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "validation_error"
        assert ".mp4" in body["supported_formats"]
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_too_small(self, api_client, temp_dir, file_manager):
        tiny = temp_dir / "tiny.mp4"
        tiny.write_bytes(b"\x00" * 100)

        response = upload(api_client, tiny)

        assert response.status_code == 400
        assert "too small" in response.json()["message"]
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_not_a_video(self, api_client, corrupted_video_file, file_manager):
        response = upload(api_client, corrupted_video_file)

        assert response.status_code == 422
        assert response.json()["error"] == "file_validation_error"
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_all_frames_failed(self, api_client, landscape_video, analysis_classifier,
                               video_library, file_manager):
        analysis_classifier.results = {}
        analysis_classifier.default = FrameAnalysis.failure(0, "HTTP 500")

        response = upload(api_client, landscape_video)

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "analysis_failed"
        assert "QWEN_API_KEY" in body["message"]
        assert video_library.list_videos() == []
        assert list(file_manager.base_storage_path.iterdir()) == []
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_library_unavailable(self, api_client, landscape_video, fake_redis):
        fake_redis.available = False

        response = upload(api_client, landscape_video)

        assert response.status_code == 503
        assert response.json()["error"] == "service_unavailable"


class TestLibraryEndpoints:
    """Test cases for browsing and managing clips."""

    @pytest.fixture
    def clip_id(self, api_client, landscape_video):
        return upload(api_client, landscape_video).json()["video"]["video_id"]

    def test_list_and_filter(self, api_client, clip_id):
        listing = api_client.get("/api/v1/videos").json()
        assert listing["total"] == 1
        assert listing["videos"][0]["video_id"] == clip_id

        assert api_client.get("/api/v1/videos", params={"orientation": "portrait"}).json()["total"] == 0
        assert api_client.get("/api/v1/videos", params={"content": "human"}).json()["total"] == 1
        assert api_client.get("/api/v1/videos", params={"search": "LANDSCAPE"}).json()["total"] == 1
        assert api_client.get("/api/v1/videos", params={"folder": "trash"}).json()["total"] == 0

    def test_invalid_filter(self, api_client):
        response = api_client.get("/api/v1/videos", params={"folder": "archive"})

        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_get_video(self, api_client, clip_id):
        response = api_client.get(f"/api/v1/videos/{clip_id}")

        assert response.status_code == 200
        assert response.json()["title"] == "landscape.mp4"

    def test_get_unknown_video(self, api_client):
        response = api_client.get("/api/v1/videos/unknown")

        assert response.status_code == 404
        assert response.json()["error"] == "video_not_found"

    def test_favorite_trash_restore(self, api_client, clip_id):
        favorite = api_client.patch(f"/api/v1/videos/{clip_id}", json={"is_favorite": True})
        assert favorite.status_code == 200
        assert favorite.json()["is_favorite"] is True
        assert api_client.get("/api/v1/videos", params={"folder": "fav"}).json()["total"] == 1

        trashed = api_client.patch(f"/api/v1/videos/{clip_id}", json={"is_deleted": True})
        assert trashed.json()["is_deleted"] is True
        assert api_client.get("/api/v1/videos").json()["total"] == 0
        assert api_client.get("/api/v1/videos", params={"folder": "fav"}).json()["total"] == 0
        assert api_client.get("/api/v1/videos", params={"folder": "trash"}).json()["total"] == 1

        restored = api_client.patch(f"/api/v1/videos/{clip_id}", json={"is_deleted": False})
        assert restored.json()["is_deleted"] is False
        assert restored.json()["is_favorite"] is True

    def test_update_unknown_video(self, api_client):
        response = api_client.patch("/api/v1/videos/unknown", json={"is_favorite": True})
        assert response.status_code == 404

    def test_download(self, api_client, clip_id, landscape_video):
        response = api_client.get(f"/api/v1/videos/{clip_id}/file")

        assert response.status_code == 200
        assert response.content == landscape_video.read_bytes()
        assert response.headers["x-video-id"] == clip_id

    def test_delete_trashed_clip(self, api_client, clip_id, file_manager):
        api_client.patch(f"/api/v1/videos/{clip_id}", json={"is_deleted": True})

        response = api_client.delete(f"/api/v1/videos/{clip_id}")

        assert response.status_code == 200
        assert response.json() == {"status": "deleted", "video_id": clip_id}
        assert list(file_manager.base_storage_path.iterdir()) == []
        assert api_client.get(f"/api/v1/videos/{clip_id}").status_code == 404
        assert api_client.delete(f"/api/v1/videos/{clip_id}").status_code == 404

    def test_delete_requires_trash(self, api_client, clip_id, file_manager):
        response = api_client.delete(f"/api/v1/videos/{clip_id}")

        assert response.status_code == 409
        assert response.json()["error"] == "clip_not_in_trash"
        assert api_client.get(f"/api/v1/videos/{clip_id}").status_code == 200
        assert len(list(file_manager.base_storage_path.iterdir())) == 1

    def test_stats(self, api_client, clip_id):
        response = api_client.get("/api/v1/videos/stats")

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["total"] == 1
        assert stats["with_human"] == 1


def upload_batch(client, clips):
    """POST several (filename, content) pairs to the batch endpoint."""
    return client.post(
        "/api/v1/videos/batch",
        files=[("files", (name, content, "video/mp4")) for name, content in clips]
    )


class TestBatchUpload:
    """Test cases for POST /api/v1/videos/batch."""

    def test_mixed_batch(self, api_client, landscape_video, portrait_video, corrupted_video_file,
                         video_library, file_manager):
        """Duplicates are skipped and a failed file does not stop the batch."""
        assert upload(api_client, landscape_video).status_code == 201

        response = upload_batch(api_client, [
            ("broken.mp4", corrupted_video_file.read_bytes()),
            ("landscape.mp4", landscape_video.read_bytes()),
            ("notes.txt", b"plain text"),
            ("portrait.mp4", portrait_video.read_bytes()),
        ])

        assert response.status_code == 200
        data = response.json()
        assert [(r["filename"], r["status"]) for r in data["results"]] == [
            ("broken.mp4", "failed"),
            ("landscape.mp4", "skipped"),
            ("notes.txt", "failed"),
            ("portrait.mp4", "analysed"),
        ]
        assert (data["analysed"], data["skipped"], data["failed"]) == (1, 1, 2)

        broken, duplicate, notes, portrait = data["results"]
        assert broken["error"]["error"] == "file_validation_error"
        assert duplicate["error"]["error"] == "duplicate_clip"
        assert notes["error"]["error"] == "validation_error"
        assert portrait["video"]["orientation"] == "portrait"
        assert portrait["error"] is None

        assert sorted(r.title for r in video_library.list_videos()) == ["landscape.mp4", "portrait.mp4"]
        assert len(list(file_manager.base_storage_path.iterdir())) == 2
        assert list(file_manager.temp_dir.iterdir()) == []

    def test_repeated_name_within_batch(self, api_client, landscape_video, analysis_classifier):
        content = landscape_video.read_bytes()

        data = upload_batch(api_client, [("a.mp4", content), ("a.mp4", content)]).json()

        assert [r["status"] for r in data["results"]] == ["analysed", "skipped"]
        assert len(analysis_classifier.calls) == 6

    def test_analysis_failure_reported_per_file(self, api_client, landscape_video, analysis_classifier):
        analysis_classifier.results = {}
        analysis_classifier.default = FrameAnalysis.failure(0, "HTTP 500")

        data = upload_batch(api_client, [("a.mp4", landscape_video.read_bytes())]).json()

        assert data["failed"] == 1
        assert data["results"][0]["error"]["error"] == "analysis_failed"

    def test_no_files(self, api_client):
        assert api_client.post("/api/v1/videos/batch").status_code == 422


class TestBatchDelete:
    """Test cases for POST /api/v1/videos/batch-delete."""

    @pytest.fixture
    def clip_ids(self, api_client, landscape_video, portrait_video):
        return [upload(api_client, path).json()["video"]["video_id"]
                for path in (landscape_video, portrait_video)]

    def test_trash_then_delete(self, api_client, clip_ids, file_manager):
        first = api_client.post("/api/v1/videos/batch-delete", json={"video_ids": clip_ids})

        assert first.status_code == 200
        assert first.json()["trashed"] == 2
        assert api_client.get("/api/v1/videos", params={"folder": "trash"}).json()["total"] == 2
        assert len(list(file_manager.base_storage_path.iterdir())) == 2

        second = api_client.post("/api/v1/videos/batch-delete", json={"video_ids": clip_ids})

        assert [r["status"] for r in second.json()["results"]] == ["deleted", "deleted"]
        assert api_client.get("/api/v1/videos", params={"folder": "trash"}).json()["total"] == 0
        assert list(file_manager.base_storage_path.iterdir()) == []

    def test_mixed_selection(self, api_client, clip_ids):
        trashed_id, live_id = clip_ids
        api_client.patch(f"/api/v1/videos/{trashed_id}", json={"is_deleted": True})

        response = api_client.post(
            "/api/v1/videos/batch-delete",
            json={"video_ids": [trashed_id, live_id, "unknown", live_id]}
        )

        data = response.json()
        assert [(r["video_id"], r["status"]) for r in data["results"]] == [
            (trashed_id, "deleted"),
            (live_id, "trashed"),
            ("unknown", "not_found"),
        ]
        assert (data["trashed"], data["deleted"], data["not_found"]) == (1, 1, 1)
        assert api_client.get(f"/api/v1/videos/{live_id}").json()["is_deleted"] is True

    def test_library_unavailable(self, api_client, clip_ids, fake_redis):
        fake_redis.available = False

        response = api_client.post("/api/v1/videos/batch-delete", json={"video_ids": clip_ids})

        assert response.status_code == 503


class TestHealth:
    """Test cases for health endpoints."""

    def test_api_health(self, api_client):
        response = api_client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["redis_connected"] is True
        assert data["analysis_proxy_configured"] is True
        assert ".webm" in data["supported_formats"]
        assert data["max_file_size_mb"] == 50.0

    def test_api_health_degraded(self, api_client, fake_redis):
        fake_redis.available = False

        data = api_client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["redis_connected"] is False

    def test_service_health(self, api_client, monkeypatch, video_library, file_manager):
        import main
        monkeypatch.setattr(main, "get_video_library", lambda: video_library)
        monkeypatch.setattr(main, "get_file_manager", lambda: file_manager)

        response = api_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["services"]["video_library"]["stats"]["total"] == 0
        assert data["services"]["file_manager"]["status"] == "healthy"
        assert data["services"]["analysis_proxy"]["status"] == "healthy"

    def test_security_headers(self, api_client):
        response = api_client.get("/api/v1/health")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "DENY"
