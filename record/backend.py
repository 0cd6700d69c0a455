from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional
from urllib.parse import quote

import requests

_LOG = logging.getLogger(__name__)


@dataclass
class BackendConfig:
    """Configuration for the realtime-database and object-storage clients.

    Parameters
    ----------
    database_url:
        Root URL of the realtime database (e.g.
        ``"https://my-project-default-rtdb.firebaseio.com"``).
    storage_bucket:
        Object-storage bucket name used for snapshots; empty disables uploads.
    auth_token:
        Optional ID token. Sent as the ``auth`` query parameter to the
        database and as a bearer token to storage.
    timeout_ms:
        Per-request timeout.
    storage_base_url:
        REST root for the storage API.
    """

    database_url: str
    storage_bucket: str = ""
    auth_token: Optional[str] = None
    timeout_ms: int = 5000
    storage_base_url: str = "https://firebasestorage.googleapis.com/v0"

    # Database paths, kept compatible with the existing dashboard data.
    motion_events_path: str = "motion_events"
    alerts_path: str = "inkubator/alerts"
    captures_path: str = "captures"
    telemetry_path: str = "inkubator/realtime"


class BackendError(Exception):
    """Base class for backend (database / storage) errors."""


class BackendHttpError(BackendError):
    """HTTP or response-parsing failure while talking to the backend."""


def _check_response(resp: Any, what: str) -> Any:
    if not (200 <= resp.status_code < 300):
        raise BackendHttpError(f"{what} returned HTTP {resp.status_code}: {resp.text!r}")
    try:
        return resp.json()
    except Exception as exc:
        raise BackendHttpError(f"{what} returned invalid JSON: {exc}") from exc


class RealtimeDbClient:
    """Minimal REST client for a JSON realtime database.

    Paths are slash-separated keys below ``database_url``; ``.json`` is
    appended to every request as the REST API requires.
    """

    def __init__(
        self,
        cfg: BackendConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not cfg.database_url:
            raise BackendError("database_url is required")
        self._cfg = cfg
        self._session = session or requests.Session()
        self._log = logger or _LOG

    @property
    def config(self) -> BackendConfig:
        return self._cfg

    def url_for(self, path: str) -> str:
        base = self._cfg.database_url.rstrip("/")
        return f"{base}/{path.strip('/')}.json"

    def _params(self) -> Optional[dict[str, str]]:
        if self._cfg.auth_token:
            return {"auth": self._cfg.auth_token}
        return None

    # ----------------------------------------------------------------- main API

    def push(self, path: str, payload: Mapping[str, Any]) -> str:
        """Append ``payload`` under ``path`` with a generated key; returns the key."""
        url = self.url_for(path)
        try:
            resp = self._session.post(
                url, json=dict(payload), params=self._params(), timeout=self._timeout_s
            )
        except Exception as exc:
            raise BackendHttpError(f"POST {url!r} failed: {exc}") from exc

        data = _check_response(resp, f"POST {url!r}")
        if not isinstance(data, Mapping) or not data.get("name"):
            raise BackendHttpError(f"POST {url!r} response missing generated key: {data!r}")
        key = str(data["name"])
        self._log.debug("pushed %s/%s", path, key)
        return key

    def put(self, path: str, payload: Any) -> Any:
        """Overwrite the value at ``path``."""
        url = self.url_for(path)
        try:
            resp = self._session.put(url, json=payload, params=self._params(), timeout=self._timeout_s)
        except Exception as exc:
            raise BackendHttpError(f"PUT {url!r} failed: {exc}") from exc
        return _check_response(resp, f"PUT {url!r}")

    def get(self, path: str) -> Any:
        """Read the value at ``path`` (``None`` when nothing is stored there)."""
        url = self.url_for(path)
        try:
            resp = self._session.get(url, params=self._params(), timeout=self._timeout_s)
        except Exception as exc:
            raise BackendHttpError(f"GET {url!r} failed: {exc}") from exc
        return _check_response(resp, f"GET {url!r}")

    @property
    def _timeout_s(self) -> float:
        return max(1, int(self._cfg.timeout_ms)) / 1000.0


class StorageClient:
    """Upload objects to a bucket and return their public download URL."""

    def __init__(
        self,
        cfg: BackendConfig,
        session: Optional[requests.Session] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if not cfg.storage_bucket:
            raise BackendError("storage_bucket is required")
        self._cfg = cfg
        self._session = session or requests.Session()
        self._log = logger or _LOG

    def _object_url(self, name: str) -> str:
        base = self._cfg.storage_base_url.rstrip("/")
        return f"{base}/b/{self._cfg.storage_bucket}/o/{quote(name, safe='')}"

    def upload(self, name: str, data: bytes, content_type: str = "image/jpeg") -> str:
        base = self._cfg.storage_base_url.rstrip("/")
        url = f"{base}/b/{self._cfg.storage_bucket}/o"
        headers = {"Content-Type": content_type}
        if self._cfg.auth_token:
            headers["Authorization"] = f"Bearer {self._cfg.auth_token}"

        try:
            resp = self._session.post(
                url,
                params={"uploadType": "media", "name": name},
                data=data,
                headers=headers,
                timeout=max(1, int(self._cfg.timeout_ms)) / 1000.0,
            )
        except Exception as exc:
            raise BackendHttpError(f"upload of {name!r} failed: {exc}") from exc

        meta = _check_response(resp, f"POST {url!r}")
        if not isinstance(meta, Mapping):
            raise BackendHttpError(f"upload of {name!r} returned non-object JSON: {meta!r}")

        download_url = f"{self._object_url(name)}?alt=media"
        token = meta.get("downloadTokens")
        if token:
            # Several tokens may be listed; the first one is enough for a link.
            download_url += f"&token={str(token).split(',')[0]}"
        self._log.info("uploaded %s (%d bytes)", name, len(data))
        return download_url


def backend_config_from_cfg(cfg_module: Any) -> Optional[BackendConfig]:
    """Build :class:`BackendConfig` from a runtime config module.

    Returns ``None`` when ``DATABASE_URL`` is empty, meaning the pipeline
    runs without remote persistence.
    """
    url = str(getattr(cfg_module, "DATABASE_URL", "") or "")
    if not url:
        return None
    return BackendConfig(
        database_url=url,
        storage_bucket=str(getattr(cfg_module, "STORAGE_BUCKET", "") or ""),
        auth_token=getattr(cfg_module, "BACKEND_AUTH_TOKEN", None),
        timeout_ms=int(getattr(cfg_module, "BACKEND_TIMEOUT_MS", 5000)),
        telemetry_path=str(getattr(cfg_module, "TELEMETRY_PATH", "inkubator/realtime")),
    )
