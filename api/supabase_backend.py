import asyncio
from typing import Any, Dict, Optional
from urllib.parse import quote

import aiohttp

from utils.logger import get_logger
from utils.session import Session

log = get_logger("[SupabaseAPI]")

REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=30)


def error_message(data: Any, status: int) -> str:
    """GoTrue and Storage use different keys for the human readable message."""
    if isinstance(data, dict):
        for key in ("msg", "error_description", "message", "error"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {status}"


class _SupabaseHttp:
    def __init__(self, url: str, api_key: str):
        self._base_url = url.rstrip("/")
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
        }
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers, timeout=REQUEST_TIMEOUT)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    async def _make_request(
            self,
            method: str,
            path: str,
            json_payload: Optional[Dict] = None,
            params: Optional[Dict] = None,
            data: Optional[bytes] = None,
            headers: Optional[Dict] = None,
    ) -> tuple[Optional[Any], Optional[str]]:
        """Returns (json_body, error_message)."""
        session = await self._get_session()
        url = self._base_url + path
        try:
            async with session.request(
                    method, url, json=json_payload, params=params, data=data, headers=headers
            ) as response:
                body = None
                if response.status != 204 and response.content_type == "application/json":
                    body = await response.json()
                if 200 <= response.status < 300:
                    log.debug(f"{method} {path} -> {response.status}")
                    return body, None
                message = error_message(body, response.status)
                log.error(f"Supabase API error ({response.status}) {method} {path}: {message}")
                return None, message
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            log.exception(f"Request failed {method} {path}: {e}")
            return None, str(e) or e.__class__.__name__


class SupabaseAuthClient(_SupabaseHttp):
    """Email + password authentication through the GoTrue REST API (`/auth/v1`)."""

    async def sign_in(self, email: str, password: str) -> tuple[Optional[Session], Optional[str]]:
        data, error = await self._make_request(
            "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json_payload={"email": email, "password": password},
        )
        if error:
            return None, error
        try:
            return Session.from_payload(data), None
        except (KeyError, TypeError) as e:
            log.error(f"Unexpected token payload: {e}")
            return None, "Risposta di autenticazione non valida"

    async def sign_up(self, email: str, password: str) -> tuple[bool, Optional[str]]:
        _, error = await self._make_request(
            "POST", "/auth/v1/signup",
            json_payload={"email": email, "password": password},
        )
        return error is None, error

    async def sign_out(self, session: Session) -> Optional[str]:
        _, error = await self._make_request(
            "POST", "/auth/v1/logout",
            headers={"Authorization": f"Bearer {session.access_token}"},
        )
        return error


class SupabaseStorageClient(_SupabaseHttp):
    """Object storage (`/storage/v1`). Meant to run with the service key."""

    async def upload(
            self, bucket: str, key: str, data: bytes, content_type: str = "application/octet-stream"
    ) -> tuple[Optional[str], Optional[str]]:
        """Returns (key, error_message). Existing objects are never overwritten."""
        _, error = await self._make_request(
            "POST", f"/storage/v1/object/{bucket}/{quote(key)}",
            data=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        if error:
            return None, error
        return key, None

    async def create_signed_url(
            self, bucket: str, key: str, ttl_seconds: int
    ) -> tuple[Optional[str], Optional[str]]:
        data, error = await self._make_request(
            "POST", f"/storage/v1/object/sign/{bucket}/{quote(key)}",
            json_payload={"expiresIn": ttl_seconds},
        )
        if error:
            return None, error

        signed_path = (data or {}).get("signedURL") or (data or {}).get("signedUrl")
        if not signed_path:
            return None, "Signed URL missing from response"
        return f"{self._base_url}/storage/v1{signed_path}", None
