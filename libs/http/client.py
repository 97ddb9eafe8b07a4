# libs/http/client.py
from __future__ import annotations
import json, uuid
from typing import Any, Dict, Optional
import requests

# Header constants
CID_HEADER = "X-Correlation-Id"
AUTH_HEADER = "Authorization"

def _gen_cid() -> str:
    """Random correlation id when the caller has none."""
    return str(uuid.uuid4())


class HttpError(Exception):
    """Raised for HTTP responses with status >= 400."""
    def __init__(self, status: int, url: str, body: Any, correlation_id: Optional[str] = None):
        super().__init__(f"HTTP {status} {url} (cid={correlation_id})")
        self.status = status
        self.url = url
        self.body = body
        self.correlation_id = correlation_id


class HttpClient:
    """
    Small JSON client for outbound calls.
    - POST (JSON)
    - Auto JSON encode/decode
    - Timeout (None waits indefinitely)
    - Propagate X-Correlation-Id
    - Optional bearer token on every request
    """

    def __init__(self, base_url: str, *, timeout_sec: float | None = 5.0,
                 bearer_token: str | None = None):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self.s = requests.Session()
        self.s.headers.update({"Accept": "application/json"})
        if bearer_token:
            self.s.headers[AUTH_HEADER] = f"Bearer {bearer_token}"

    # ---- generic request helper ----
    def _request(self,
                 method: str,
                 path: str,
                 *,
                 params: Dict[str, Any] | None = None,
                 json_body: Dict[str, Any] | None = None,
                 headers: Dict[str, str] | None = None,
                 correlation_id: str | None = None) -> Any:

        url = f"{self.base_url}/{path.lstrip('/')}"
        hdrs = {**(headers or {})}

        cid = correlation_id or hdrs.get(CID_HEADER) or _gen_cid()
        hdrs[CID_HEADER] = cid

        data = None
        if json_body is not None:
            hdrs.setdefault("Content-Type", "application/json")
            data = json.dumps(json_body)

        resp = self.s.request(method, url, params=params, data=data, headers=hdrs, timeout=self.timeout_sec)

        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            raise HttpError(resp.status_code, url, body, correlation_id=cid)

        if "application/json" in resp.headers.get("Content-Type", ""):
            return resp.json()
        return resp.text or None

    # ---- public shortcut methods ----
    def post(self, path: str, **kwargs): return self._request("POST", path, **kwargs)

    def close(self) -> None:
        self.s.close()
