# -*- coding: utf-8 -*-
"""Vocoder translation service client.

Submits extracted source strings for a branch and polls the batch until the
service reports it finished. Endpoints (all under ``api_url``):
- GET  /api/cli/config                 project locales and target branches
- POST /api/cli/sync                   submit strings for a branch
- GET  /api/cli/sync/status/<batch>    batch progress and translations
- POST /api/cli/init/start             open a browser setup session (no key)
- POST /api/cli/init/status            poll a setup session (no key)

Design principles
- Bearer-token auth; the key never reaches the logs unmasked
- Timeouts on every request, retries with exponential backoff on transport errors
- HTTP errors and malformed bodies raise distinct exception types
- Plan limit responses (``errorCode == "LIMIT_EXCEEDED"``) are parsed into ``LimitError``

Usage
-----
from vocoder_cli.api.client import VocoderClient
client = VocoderClient(api_url="https://vocoder.app", api_key="vc_...")
batch = client.submit_translation("main", ["Hello"], ["fr", "de"])
result = client.wait_for_completion(batch["batchId"])
"""
from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

import requests

from .. import __version__
from ..utils.logging import compact_json, get_logger, log_http_request, log_http_response, mask_token

LOG = get_logger(__name__)

__all__ = [
    "VocoderClient",
    "VocoderError",
    "VocoderConfigError",
    "VocoderRequestError",
    "VocoderContractError",
    "LimitError",
    "strings_hash",
]

STATUS_COMPLETED = "COMPLETED"
STATUS_FAILED = "FAILED"

INIT_PENDING = "pending"
INIT_COMPLETED = "completed"
INIT_FAILED = "failed"

LIMIT_EXCEEDED = "LIMIT_EXCEEDED"


# -------------------------
# Exceptions
# -------------------------
@dataclass(frozen=True)
class LimitError:
    """Plan limit details returned with a ``LIMIT_EXCEEDED`` error."""

    limit_type: str
    plan_id: str
    current: Any
    required: Any
    upgrade_url: str
    message: str

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> Optional["LimitError"]:
        if not isinstance(payload, dict) or payload.get("errorCode") != LIMIT_EXCEEDED:
            return None
        return cls(
            limit_type=str(payload.get("limitType") or ""),
            plan_id=str(payload.get("planId") or ""),
            current=payload.get("current"),
            required=payload.get("required"),
            upgrade_url=str(payload.get("upgradeUrl") or ""),
            message=str(payload.get("message") or "Plan limit reached"),
        )


class VocoderError(Exception):
    """Base exception for the service client."""


class VocoderConfigError(VocoderError):
    """Raised when the client is missing its URL or key."""


class VocoderRequestError(VocoderError):
    """Raised on HTTP-level or transport-level failures."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload or {}
        self.limit_error = LimitError.from_payload(self.payload)


class VocoderContractError(VocoderError):
    """Raised when a 2xx response body is not what the endpoint promises."""

    def __init__(self, message: str, status: Optional[int] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.status = status
        self.payload = payload or {}


# -------------------------
# Helpers
# -------------------------
def strings_hash(strings: List[str]) -> str:
    """sha256 of the compact JSON array of the sorted strings."""
    payload = json.dumps(sorted(strings), ensure_ascii=False, separators=(",", ":"))
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def parse_timestamp(value: str) -> float:
    """Epoch seconds of an ISO-8601 timestamp (``Z`` suffix accepted)."""
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


# -------------------------
# Client
# -------------------------
@dataclass
class VocoderClient:
    api_url: str
    # None only for the key-less setup session endpoints.
    api_key: Optional[str] = None
    timeout_seconds: int = 30
    user_agent: str = f"vocoder-cli/{__version__}"
    retry_count: int = 3
    retry_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        if not isinstance(self.api_url, str) or not self.api_url.startswith("http"):
            raise VocoderConfigError("api_url must start with http:// or https://")
        if self.api_key is not None and (not isinstance(self.api_key, str) or not self.api_key):
            raise VocoderConfigError("api_key must be a non-empty string")
        self.api_url = self.api_url.rstrip("/")
        LOG.info(
            "VocoderClient.init: api_url=%r key=%s timeout=%ss",
            self.api_url,
            mask_token(self.api_key),
            self.timeout_seconds,
        )

    # ---------------------
    # Public API
    # ---------------------
    def get_project_config(self) -> Dict[str, Any]:
        body = self._request("GET", "/api/cli/config", auth=True)
        try:
            return {
                "sourceLocale": body["sourceLocale"],
                "targetLocales": list(body["targetLocales"]),
                "targetBranches": list(body.get("targetBranches") or []),
            }
        except (KeyError, TypeError) as e:
            raise VocoderContractError(f"Malformed project config: missing {e}", payload=body) from e

    def submit_translation(self, branch: str, strings: List[str], target_locales: List[str]) -> Dict[str, Any]:
        payload = {
            "branch": branch,
            "strings": strings,
            "targetLocales": target_locales,
            "stringsHash": strings_hash(strings),
        }
        LOG.info("submit_translation: branch=%r strings=%d locales=%s", branch, len(strings), target_locales)
        body = self._request("POST", "/api/cli/sync", json_body=payload, auth=True)
        if "status" not in body:
            raise VocoderContractError("Sync response has no status", payload=body)
        return body

    def get_translation_status(self, batch_id: str) -> Dict[str, Any]:
        if not batch_id:
            raise VocoderConfigError("batch_id must be a non-empty string")
        body = self._request("GET", f"/api/cli/sync/status/{batch_id}", auth=True)
        if "status" not in body:
            raise VocoderContractError("Status response has no status", payload=body)
        return body

    def wait_for_completion(
        self,
        batch_id: str,
        timeout: float = 60.0,
        poll_interval: float = 1.0,
        on_progress: Optional[Callable[[float], None]] = None,
    ) -> Dict[str, Any]:
        """Poll until the batch completes; return its translations and locale metadata."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            status = self.get_translation_status(batch_id)
            if on_progress is not None:
                on_progress(status.get("progress", 0))

            if status["status"] == STATUS_COMPLETED:
                if not status.get("translations"):
                    raise VocoderContractError("Translation completed but no translations returned", payload=status)
                return {
                    "translations": status["translations"],
                    "localeMetadata": status.get("localeMetadata"),
                }
            if status["status"] == STATUS_FAILED:
                raise VocoderRequestError(
                    f"Translation failed: {status.get('errorMessage') or 'Unknown error'}",
                    payload=status,
                )
            time.sleep(poll_interval)

        raise VocoderRequestError(f"Translation timeout after {timeout}s")

    # ---------------------
    # Setup sessions
    # ---------------------
    def start_init_session(
        self,
        project_name: Optional[str] = None,
        source_locale: Optional[str] = None,
        target_locales: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Open a setup session; the user authorizes it in a browser."""
        payload: Dict[str, Any] = {}
        if project_name:
            payload["projectName"] = project_name
        if source_locale:
            payload["sourceLocale"] = source_locale
        if target_locales:
            payload["targetLocales"] = target_locales
        body = self._request("POST", "/api/cli/init/start", json_body=payload)
        try:
            poll = body["poll"]
            return {
                "sessionId": body["sessionId"],
                "verificationUrl": body["verificationUrl"],
                "userCode": body["userCode"],
                "expiresAt": body["expiresAt"],
                "poll": {"token": poll["token"], "intervalSeconds": float(poll.get("intervalSeconds") or 2)},
            }
        except (KeyError, TypeError, ValueError) as e:
            raise VocoderContractError(f"Malformed setup session: missing {e}", payload=body) from e

    def get_init_session_status(self, session_id: str, poll_token: str) -> Dict[str, Any]:
        body = self._request("POST", "/api/cli/init/status", json_body={"sessionId": session_id, "pollToken": poll_token})
        if body.get("status") not in (INIT_PENDING, INIT_COMPLETED, INIT_FAILED):
            raise VocoderContractError("Setup status response has no valid status", payload=body)
        if body["status"] == INIT_COMPLETED and not (body.get("credentials") or {}).get("apiKey"):
            raise VocoderContractError("Setup completed but no API key returned", payload=body)
        return body

    def wait_for_authorization(
        self,
        session: Dict[str, Any],
        on_pending: Optional[Callable[[str], None]] = None,
    ) -> Dict[str, Any]:
        """Poll a setup session until authorized; return its credentials.

        Raises ``VocoderRequestError`` if the session fails or expires first.
        """
        try:
            deadline = parse_timestamp(session["expiresAt"])
        except (TypeError, ValueError) as e:
            raise VocoderContractError(f"Invalid expiresAt: {session.get('expiresAt')!r}", payload=session) from e
        interval = session["poll"]["intervalSeconds"]
        while time.time() < deadline:
            status = self.get_init_session_status(session["sessionId"], session["poll"]["token"])
            if status["status"] == INIT_COMPLETED:
                return status["credentials"]
            if status["status"] == INIT_FAILED:
                raise VocoderRequestError(status.get("message") or "Setup failed", payload=status)
            message = (status.get("message") or "").strip()
            if message and on_pending is not None:
                on_pending(message)
            time.sleep(float(status.get("pollIntervalSeconds") or interval))

        raise VocoderRequestError("Authorization timed out. Run `vocoder init` again.")

    # ---------------------
    # Internals
    # ---------------------
    def _headers(self, auth: bool = False) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
        }
        if auth:
            if not self.api_key:
                raise VocoderConfigError("api_key is required for this request")
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        json_body: Optional[Dict[str, Any]] = None,
        auth: bool = False,
    ) -> Dict[str, Any]:
        url = f"{self.api_url}{path}"
        headers = self._headers(auth)
        log_http_request(LOG, method=method, url=url, headers=headers)

        attempt = 0
        while True:
            try:
                resp = requests.request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    timeout=self.timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as e:
                LOG.warning("network error on %s %s attempt=%d/%d: %s", method, url, attempt, self.retry_count, e)
                if attempt >= self.retry_count:
                    raise VocoderRequestError(f"Network error: {e}") from e
                time.sleep(self.retry_backoff_seconds * (2 ** attempt))
                attempt += 1
                continue
            return self._handle_response(resp, url)

    def _handle_response(self, resp: requests.Response, url: str) -> Dict[str, Any]:
        status = resp.status_code
        text = resp.text or ""

        if status >= 400:
            try:
                payload = resp.json()
            except ValueError:
                payload = {"raw": text}
            if not isinstance(payload, dict):
                payload = {"raw": payload}
            log_http_response(LOG, url=url, status=status, body=payload)
            message = payload.get("message") or payload.get("error") or text or f"HTTP {status}"
            raise VocoderRequestError(str(message), status=status, payload=payload)

        try:
            body = resp.json()
        except ValueError as e:
            LOG.error("invalid_json: %s; raw=%s", e, compact_json(text))
            raise VocoderContractError(f"Invalid JSON response: {e}", status=status, payload={"raw": text}) from e
        if not isinstance(body, dict):
            raise VocoderContractError("Expected a JSON object", status=status, payload={"raw": body})
        log_http_response(LOG, url=url, status=status, body=body)
        return body
