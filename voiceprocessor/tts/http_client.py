"""Vendor HTTP clients for speech synthesis.

Responsibilities:
- Send minimal speech and voice-catalog requests to OpenAI and ElevenLabs REST APIs.
- Classify HTTP and transport failures into transient and permanent kinds.
- Redact credentials and cap provider messages before they reach logs or users.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any

import requests


TRANSIENT_FAILURE_KINDS = frozenset({"timeout", "rate_limited", "server_error", "transport"})


class ProviderError(RuntimeError):
    """Raised when a vendor request fails or returns malformed output."""

    def __init__(
        self,
        message: str,
        *,
        failure_kind: str = "unknown",
        status_code: int | None = None,
        provider_code: str | None = None,
    ) -> None:
        """Initialize provider error metadata for retry and diagnostics."""

        super().__init__(message)
        self.failure_kind = failure_kind
        self.status_code = status_code
        self.provider_code = provider_code

    @property
    def transient(self) -> bool:
        """Return whether retrying the same request may succeed."""

        return self.failure_kind in TRANSIENT_FAILURE_KINDS


class _SpeechHttpClient:
    """Shared HTTP settings and failure mapping for vendor clients."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180
    vendor = "provider"
    api_key_variable = "API_KEY"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str,
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize HTTP client settings."""

        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def _auth_headers(self) -> dict[str, str]:
        """Return vendor authentication headers."""

        return {"Authorization": f"Bearer {self.api_key}"}

    def _require_api_key(self) -> None:
        """Require API key presence before issuing requests."""

        if not self.api_key:
            raise ProviderError(
                f"Missing {self.vendor} API key. Set `{self.api_key_variable}`.",
                failure_kind="invalid_api_key",
            )

    def _request_bytes(
        self,
        method: str,
        endpoint_path: str,
        *,
        payload: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        require_non_empty_response: bool = False,
    ) -> bytes:
        """Execute one request and map failures consistently."""

        self._require_api_key()
        endpoint = f"{self.base_url}{endpoint_path}"
        headers = {**self._auth_headers(), "Content-Type": "application/json"}
        try:
            response = requests.request(
                method,
                endpoint,
                headers=headers,
                json=payload,
                params=params,
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            response_bytes = bytes(response.content)
        except requests.HTTPError as exc:
            raise self._http_error_to_provider_error(exc) from exc
        except requests.RequestException as exc:
            failure_kind = self._classify_transport_failure(exc)
            if failure_kind == "timeout":
                detail = f"{self.vendor} request timed out."
            else:
                detail = (
                    f"{self.vendor} request transport error: "
                    f"{self._short_message(self._redact_sensitive_tokens(str(exc)))}"
                )
            raise ProviderError(detail, failure_kind=failure_kind) from exc
        except TimeoutError as exc:
            raise ProviderError(f"{self.vendor} request timed out.", failure_kind="timeout") from exc

        if require_non_empty_response and not response_bytes:
            raise ProviderError(f"{self.vendor} response is empty.", failure_kind="empty_response")
        return response_bytes

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        return bytes(response.content or b"").decode("utf-8", errors="replace").strip()

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from provider error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        redacted = re.sub(
            r"(?i)(xi-api-key[\"']?\s*[:=]\s*[\"']?)[A-Za-z0-9]{12,}",
            r"\1[redacted-key]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing provider message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> tuple[str, str | None]:
        """Extract a concise message and optional code from `error` or `detail` payloads."""

        if not body:
            return "", None

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body)), None

        provider_code: str | None = None
        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error", payload.get("detail"))
            if isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()
            elif isinstance(error_payload, dict):
                code_value = error_payload.get("code", error_payload.get("status"))
                if isinstance(code_value, str) and code_value.strip():
                    provider_code = code_value.strip()
                message_value = error_payload.get("message")
                if isinstance(message_value, str) and message_value.strip():
                    message = message_value.strip()

        if message is None:
            message = body
        return cls._short_message(cls._redact_sensitive_tokens(message)), provider_code

    @staticmethod
    def _classify_http_failure(
        status_code: int,
        provider_message: str,
        provider_code: str | None,
    ) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        normalized_code = provider_code.lower() if provider_code is not None else ""

        if status_code == 401 or "api key" in message_lower:
            return "invalid_api_key"
        if normalized_code in {"insufficient_quota", "quota_exceeded"} or (
            status_code in {402, 429} and "quota" in message_lower
        ):
            return "insufficient_quota"
        if status_code == 429:
            return "rate_limited"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        if status_code >= 500:
            return "server_error"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, (TimeoutError, socket.timeout, requests.Timeout)):
            return "timeout"
        return "transport"

    @classmethod
    def _http_error_to_provider_error(cls, exc: requests.HTTPError) -> ProviderError:
        """Convert HTTP errors into normalized provider exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        body = cls._decode_error_body(exc)
        provider_message, provider_code = cls._extract_provider_message(body)
        failure_kind = cls._classify_http_failure(status_code, provider_message, provider_code)

        headline = {
            "invalid_api_key": f"{cls.vendor} authentication failed",
            "insufficient_quota": f"{cls.vendor} quota is insufficient for this request",
            "rate_limited": f"{cls.vendor} rate limit reached",
            "timeout": f"{cls.vendor} request timed out",
            "server_error": f"{cls.vendor} service error",
        }.get(failure_kind, f"{cls.vendor} request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return ProviderError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            provider_code=provider_code,
        )


class OpenAISpeechClient(_SpeechHttpClient):
    """Minimal requests-based OpenAI `/audio/speech` client."""

    vendor = "OpenAI"
    api_key_variable = "OPENAI_API_KEY"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize OpenAI HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)

    def synthesize_speech(
        self,
        *,
        model: str,
        voice: str,
        text: str,
        response_format: str = "mp3",
        speed: float = 1.0,
    ) -> bytes:
        """Return synthesized audio bytes."""

        payload = {
            "model": model,
            "voice": voice,
            "input": text,
            "response_format": response_format,
            "speed": speed,
        }
        return self._request_bytes(
            "POST",
            "/audio/speech",
            payload=payload,
            require_non_empty_response=True,
        )


class ElevenLabsClient(_SpeechHttpClient):
    """Minimal requests-based ElevenLabs text-to-speech and voices client."""

    vendor = "ElevenLabs"
    api_key_variable = "ELEVENLABS_API_KEY"

    def __init__(
        self,
        *,
        api_key: str | None,
        base_url: str = "https://api.elevenlabs.io/v1",
        timeout_seconds: float = 60.0,
    ) -> None:
        """Initialize ElevenLabs HTTP client settings."""

        super().__init__(api_key=api_key, base_url=base_url, timeout_seconds=timeout_seconds)

    def _auth_headers(self) -> dict[str, str]:
        """Return the ElevenLabs API key header."""

        return {"xi-api-key": self.api_key}

    def synthesize_speech(
        self,
        *,
        voice_id: str,
        text: str,
        model_id: str,
        voice_settings: dict[str, float],
        output_format: str = "mp3_44100_128",
    ) -> bytes:
        """Return synthesized audio bytes for one voice."""

        payload: dict[str, Any] = {"text": text, "model_id": model_id}
        if voice_settings:
            payload["voice_settings"] = voice_settings
        return self._request_bytes(
            "POST",
            f"/text-to-speech/{voice_id}",
            payload=payload,
            params={"output_format": output_format},
            require_non_empty_response=True,
        )

    def list_voices(self) -> list[dict[str, Any]]:
        """Return raw voice entries from the account voice library."""

        raw = self._request_bytes("GET", "/voices").decode("utf-8")
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ProviderError("ElevenLabs returned invalid JSON payload.") from exc
        voices = payload.get("voices") if isinstance(payload, dict) else None
        if not isinstance(voices, list):
            raise ProviderError("ElevenLabs response missing `voices` list.")
        return [voice for voice in voices if isinstance(voice, dict)]
