from __future__ import annotations

import http.client
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from app.adminflow.modules.directory_sync.clients.base import DirectoryConfigurationError, TransientDirectoryError


class DirectoryHTTPError(TransientDirectoryError):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status


def build_url(base_url: str, path: str, params: dict[str, Any] | None = None) -> str:
    url = base_url.rstrip("/") + path
    if params:
        url += "?" + urllib.parse.urlencode({k: v for k, v in params.items() if v is not None})
    return url


def request_json(
    method: str,
    url: str,
    *,
    headers: dict[str, str],
    body: dict[str, Any] | None = None,
    timeout: float,
) -> tuple[int, Any]:
    """
    Single HTTP call, no retries. Returns (status, parsed JSON or None for empty bodies).
    Raises DirectoryHTTPError for 4xx/5xx, DirectoryConfigurationError for an unusable URL and
    TransientDirectoryError for transport failures.
    """
    data = json.dumps(body).encode("utf-8") if body is not None else None
    try:
        req = urllib.request.Request(url, data=data, method=method)
        for key, value in headers.items():
            req.add_header(key, value)
        if data is not None:
            req.add_header("Content-Type", "application/json; charset=utf-8")
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            status = resp.status
            raw = resp.read()
    except urllib.error.HTTPError as e:
        try:
            detail = e.read().decode("utf-8", errors="ignore")
        except Exception:
            detail = ""
        raise DirectoryHTTPError(e.code, f"HTTP {e.code} from {method} {url}: {detail[:300]}") from e
    except ValueError as e:
        # unknown url type / http.client.InvalidURL: the configured base URL is unusable
        raise DirectoryConfigurationError(f"Invalid URL for {method} {url}: {e}") from e
    except (urllib.error.URLError, http.client.HTTPException, TimeoutError, OSError) as e:
        raise TransientDirectoryError(f"{method} {url} failed: {e}") from e

    if not raw:
        return status, None
    try:
        return status, json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise TransientDirectoryError(f"Invalid JSON from {method} {url}") from e
