from __future__ import annotations

from typing import Any, Optional, Sequence

import pytest

from record.backend import (
    BackendConfig,
    BackendError,
    BackendHttpError,
    RealtimeDbClient,
    StorageClient,
    backend_config_from_cfg,
)


class _FakeResp:
    def __init__(self, status_code: int = 200, json_data: Any = None, text: str = "") -> None:
        self.status_code = status_code
        self._json_data = json_data
        self.text = text

    def json(self) -> Any:
        if isinstance(self._json_data, Exception):
            raise self._json_data
        return self._json_data


class _FakeSession:
    def __init__(self, responses: Sequence[Any]) -> None:
        self._responses = list(responses)
        self.calls: list[dict[str, Any]] = []

    def _next(self, method: str, url: str, **kw: Any) -> _FakeResp:
        self.calls.append({"method": method, "url": url, **kw})
        if not self._responses:
            raise AssertionError("no more fake responses configured")
        resp = self._responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp

    def post(self, url: str, **kw: Any) -> _FakeResp:
        return self._next("POST", url, **kw)

    def put(self, url: str, **kw: Any) -> _FakeResp:
        return self._next("PUT", url, **kw)

    def get(self, url: str, **kw: Any) -> _FakeResp:
        return self._next("GET", url, **kw)


def _cfg(token: Optional[str] = "tok") -> BackendConfig:
    return BackendConfig(
        database_url="https://demo-rtdb.example.com/",
        storage_bucket="demo.appspot.com",
        auth_token=token,
        timeout_ms=2500,
    )


def test_push_posts_json_and_returns_generated_key():
    session = _FakeSession([_FakeResp(json_data={"name": "-Nabc"})])
    db = RealtimeDbClient(_cfg(), session=session)

    key = db.push("motion_events", {"boxCount": 2})

    assert key == "-Nabc"
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "https://demo-rtdb.example.com/motion_events.json"
    assert call["json"] == {"boxCount": 2}
    assert call["params"] == {"auth": "tok"}
    assert call["timeout"] == 2.5


def test_no_auth_param_without_token():
    session = _FakeSession([_FakeResp(json_data={"suhu": 36.5})])
    db = RealtimeDbClient(_cfg(token=None), session=session)
    assert db.get("/inkubator/realtime/") == {"suhu": 36.5}
    assert session.calls[0]["url"].endswith("/inkubator/realtime.json")
    assert session.calls[0]["params"] is None


@pytest.mark.parametrize(
    "resp",
    [
        _FakeResp(status_code=401, json_data={"error": "Permission denied"}, text="denied"),
        _FakeResp(json_data={"unexpected": True}),
        _FakeResp(json_data=ValueError("not json")),
    ],
)
def test_push_failures_raise_backend_http_error(resp):
    db = RealtimeDbClient(_cfg(), session=_FakeSession([resp]))
    with pytest.raises(BackendHttpError):
        db.push("motion_events", {})


def test_transport_errors_are_wrapped():
    db = RealtimeDbClient(_cfg(), session=_FakeSession([ConnectionError("offline")]))
    with pytest.raises(BackendHttpError) as ei:
        db.put("inkubator/realtime", {"suhu": 1})
    assert "offline" in str(ei.value)


def test_database_url_is_required():
    with pytest.raises(BackendError):
        RealtimeDbClient(BackendConfig(database_url=""))


def test_storage_upload_returns_download_url_with_token():
    session = _FakeSession(
        [_FakeResp(json_data={"name": "captures/1700000000000.jpg", "downloadTokens": "t1,t2"})]
    )
    storage = StorageClient(_cfg(), session=session)

    url = storage.upload("captures/1700000000000.jpg", b"\xff\xd8jpeg", "image/jpeg")

    assert url == (
        "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o/"
        "captures%2F1700000000000.jpg?alt=media&token=t1"
    )
    call = session.calls[0]
    assert call["url"] == "https://firebasestorage.googleapis.com/v0/b/demo.appspot.com/o"
    assert call["params"] == {"uploadType": "media", "name": "captures/1700000000000.jpg"}
    assert call["data"] == b"\xff\xd8jpeg"
    assert call["headers"]["Content-Type"] == "image/jpeg"
    assert call["headers"]["Authorization"] == "Bearer tok"


def test_storage_upload_http_error():
    storage = StorageClient(_cfg(), session=_FakeSession([_FakeResp(status_code=403, text="no")]))
    with pytest.raises(BackendHttpError):
        storage.upload("captures/1.jpg", b"x")


def test_storage_bucket_is_required():
    with pytest.raises(BackendError):
        StorageClient(BackendConfig(database_url="https://x"))


def test_backend_config_from_cfg():
    class _Cfg:
        DATABASE_URL = "https://demo-rtdb.example.com"
        STORAGE_BUCKET = "bucket"
        BACKEND_AUTH_TOKEN = None
        BACKEND_TIMEOUT_MS = 1000

    cfg = backend_config_from_cfg(_Cfg)
    assert cfg is not None
    assert cfg.storage_bucket == "bucket"
    assert cfg.timeout_ms == 1000
    assert cfg.motion_events_path == "motion_events"
    assert cfg.alerts_path == "inkubator/alerts"

    class _Empty:
        DATABASE_URL = ""

    assert backend_config_from_cfg(_Empty) is None
