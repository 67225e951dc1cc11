"""Graph API client — app-only token + retry wrapper for sendMail.

Usage:
    from tradedesk.utils.graph_client import GraphClient
    gc = GraphClient(tenant_id, client_id, client_secret)
    result = await gc.post_json(f"/users/{mailbox}/sendMail", payload)
"""
import asyncio
import logging
import time

import httpx

from ..http_client import http

log = logging.getLogger("tradedesk.graph")

GRAPH_BASE = "https://graph.microsoft.com/v1.0"
TOKEN_URL = "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Retry config
MAX_RETRIES = 3
BACKOFF_BASE = 2  # seconds — exponential: 2, 4, 8


class GraphClient:
    """Thin wrapper around Microsoft Graph with client-credential auth and retry."""

    def __init__(self, tenant_id: str, client_id: str, client_secret: str,
                 client: httpx.AsyncClient | None = None,
                 backoff_base: float = BACKOFF_BASE):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.backoff_base = backoff_base
        self._client = client or http
        self._token: str | None = None
        self._token_expires = 0.0

    async def _get_token(self) -> str:
        if self._token and time.monotonic() < self._token_expires - 60:
            return self._token
        try:
            resp = await self._client.post(
                TOKEN_URL.format(tenant=self.tenant_id),
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "scope": GRAPH_SCOPE,
                },
                timeout=15,
            )
            if resp.status_code != 200:
                log.error(f"Graph token request failed {resp.status_code}: {resp.text[:300]}")
                return ""
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.error(f"Graph token request error: {e}")
            return ""
        self._token = data.get("access_token", "")
        self._token_expires = time.monotonic() + int(data.get("expires_in", 3600))
        return self._token

    async def post_json(self, path: str, json_data: dict,
                        timeout: int = 30) -> dict:
        """POST → parsed JSON, empty dict on 202/204, {"error": ...} on failure."""
        url = path if path.startswith("http") else f"{GRAPH_BASE}{path}"
        token = await self._get_token()
        if not token:
            return {"error": 401, "detail": "No Graph access token"}
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        return await self._request_with_retry(url, json_data, headers, timeout)

    # ── Internal retry logic ────────────────────────────────────────

    async def _request_with_retry(self, url: str, json_data: dict,
                                  headers: dict, timeout: int) -> dict:
        """Execute POST with exponential backoff on 429 / 5xx."""
        last_error: Exception | None = None

        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await self._client.post(url, json=json_data,
                                               headers=headers, timeout=timeout)

                if resp.status_code in (200, 201):
                    return resp.json()
                if resp.status_code in (202, 204):
                    return {}  # Accepted (sendMail) / no content

                # Throttled — respect Retry-After
                if resp.status_code == 429:
                    wait = float(resp.headers.get("Retry-After", self.backoff_base ** (attempt + 1)))
                    log.warning(f"Graph 429 — retry in {wait}s (attempt {attempt + 1})")
                    await asyncio.sleep(wait)
                    continue

                if resp.status_code >= 500:
                    wait = self.backoff_base ** (attempt + 1)
                    log.warning(f"Graph {resp.status_code} — retry in {wait}s (attempt {attempt + 1})")
                    await asyncio.sleep(wait)
                    continue

                # Client error (400, 401, 403, 404) — don't retry
                log.error(f"Graph {resp.status_code}: {resp.text[:300]}")
                return {"error": resp.status_code, "detail": resp.text[:300]}

            except (httpx.TimeoutException, httpx.ConnectError) as e:
                last_error = e
                wait = self.backoff_base ** (attempt + 1)
                log.warning(f"Graph connection error — retry in {wait}s: {e}")
                await asyncio.sleep(wait)
            except httpx.HTTPError as e:
                log.error(f"Graph transport error: {e}")
                return {"error": "transport", "detail": str(e)[:300]}
            except ValueError as e:
                log.error(f"Graph returned a non-JSON body: {e}")
                return {"error": "invalid_json", "detail": str(e)[:300]}

        log.error(f"Graph request failed after {MAX_RETRIES} retries: {url}")
        if last_error:
            return {"error": "connection", "detail": str(last_error)[:300]}
        return {"error": "max_retries", "detail": "All retries exhausted"}
