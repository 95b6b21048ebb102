from __future__ import annotations

import threading
import time
from typing import Any, Callable, Protocol

import requests
from loguru import logger

from .http import HttpClient

FATSECRET_API_URL = "https://platform.fatsecret.com/rest"
FATSECRET_TOKEN_URL = "https://oauth.fatsecret.com/connect/token"

# Refresh this many seconds before the token actually expires.
_TOKEN_SLACK_S = 60.0


class CatalogError(RuntimeError):
    """The catalog search service could not be reached or answered badly."""


class CatalogSearch(Protocol):
    def search(self, text: str, max_results: int = 10) -> dict[str, Any]:
        """Return the `foods` object: {"food": [...] | {...}} or {}."""
        ...


class FatSecretTokenProvider:
    """OAuth2 client-credentials token, cached until shortly before expiry."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        scope: str = "basic",
        timeout_s: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.scope = scope
        self.timeout_s = timeout_s
        self._clock = clock
        self._lock = threading.Lock()
        self._token: str | None = None
        self._expires_at = 0.0

    def __call__(self) -> str:
        with self._lock:
            if self._token and self._clock() < self._expires_at - _TOKEN_SLACK_S:
                return self._token
            self._token, self._expires_at = self._fetch()
            return self._token

    def _fetch(self) -> tuple[str, float]:
        try:
            resp = requests.post(
                FATSECRET_TOKEN_URL,
                data={"grant_type": "client_credentials", "scope": self.scope},
                auth=(self.client_id, self.client_secret),
                timeout=self.timeout_s,
            )
        except requests.RequestException as e:
            raise CatalogError(f"FatSecret token request failed: {e}") from e
        if resp.status_code >= 400:
            raise CatalogError(f"FatSecret token error {resp.status_code}: {resp.text[:300]}")
        try:
            data = resp.json()
            token = str(data["access_token"])
            expires_in = float(data.get("expires_in", 3600))
        except (ValueError, KeyError, TypeError) as e:
            raise CatalogError(f"Malformed FatSecret token response: {e}") from e
        logger.debug("Fetched FatSecret token, expires in {}s", expires_in)
        return token, self._clock() + expires_in


class FatSecretClient:
    def __init__(
        self,
        *,
        client_id: str = "",
        client_secret: str = "",
        token_provider: Callable[[], str] | None = None,
        base_url: str = FATSECRET_API_URL,
        timeout_s: float = 15.0,
    ):
        provider = token_provider or FatSecretTokenProvider(client_id, client_secret, timeout_s=timeout_s)
        self.http = HttpClient(base_url=base_url, token=provider, timeout_s=timeout_s)

    def search(self, text: str, max_results: int = 10) -> dict[str, Any]:
        data = self._get_json(
            "/server.api",
            params={
                "method": "foods.search",
                "search_expression": text,
                "max_results": max_results,
                "format": "json",
            },
        )
        if "error" in data:
            err = data["error"] or {}
            raise CatalogError(f"FatSecret error {err.get('code')}: {err.get('message')}")
        # No hits: {"foods": {"max_results": "10", "total_results": "0", ...}} without "food".
        foods = data.get("foods") or {}
        if not isinstance(foods, dict):
            raise CatalogError(f"Unexpected FatSecret foods payload: {type(foods).__name__}")
        return foods

    def _get_json(self, path: str, *, params: dict[str, Any] | None = None) -> dict[str, Any]:
        try:
            resp = self.http.get(path, params=params)
        except requests.RequestException as e:
            raise CatalogError(f"FatSecret request failed for {path}: {e}") from e
        if resp.status_code >= 400:
            raise CatalogError(f"FatSecret API error {resp.status_code} for {path}: {resp.text[:500]}")
        try:
            data = resp.json()
        except ValueError as e:
            raise CatalogError(f"Failed to decode JSON from FatSecret for {path}: {e}") from e
        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected FatSecret response for {path}")
        return data
