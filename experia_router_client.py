from __future__ import annotations

import json
import logging
from http.cookiejar import Cookie
from typing import Optional
from urllib.parse import urlsplit

import requests

from experia_router_client_exceptions import AuthenticationException, FetchException
from experia_router_models import SessionContext
from experia_router_services import login_body
from experia_router_utils import ReadWriteLock

logger = logging.getLogger(__name__)

API_PATH = "/ws/NeMo/Intf/lan:getMIBs"

SAH_CONTENT_TYPE = "application/x-sah-ws-4-call+json"

EXPERIA_CLIENT_DEFAULT_HEADERS = {
    "Accept": "*/*",
    "Accept-Language": "en-US,en;q=0.7",
    "Sec-GPC": "1",
}

DEFAULT_TIMEOUT = 5


def normalize_host(host: str) -> str:
    if not host.startswith(("http://", "https://")):
        host = f"http://{host}"
    return host.rstrip("/")


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(EXPERIA_CLIENT_DEFAULT_HEADERS)
    return session


class RouterClient:
    """
    HTTP client for the Experia Box V10 web services API.

    Holds the cookie-carrying requests session and the session token (contextID)
    obtained from createContext. The token is guarded by a read/write lock so that
    concurrent scrapes read it freely while a re-login excludes them.
    """

    def __init__(self, host: str, username: str, password: str,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.host = normalize_host(host)
        self.api_url = f"{self.host}{API_PATH}"
        self.username = username
        self.password = password
        self.timeout = timeout
        self.session = session if session is not None else build_session()
        self._context = SessionContext()
        self._context_lock = ReadWriteLock()

    def _browser_headers(self) -> dict[str, str]:
        return {
            "Origin": self.host,
            "Referer": f"{self.host}/",
        }

    def _auth_headers(self, token: str) -> dict[str, str]:
        return {
            **self._browser_headers(),
            "Content-Type": SAH_CONTENT_TYPE,
            "Authorization": f"X-Sah {token}",
            "x-context": token,
        }

    @property
    def session_token(self) -> str:
        with self._context_lock.read_locked():
            return self._context.token

    def _set_token(self, token: str):
        with self._context_lock.write_locked():
            self._context = SessionContext(token=token)

    def clear_session(self):
        self._set_token("")

    def login(self) -> str:
        """
        Create a session context and store its token.

        Raises AuthenticationException on transport failure, non-2xx status,
        malformed JSON or an empty contextID. Never retries.
        """
        headers = {
            **self._browser_headers(),
            "Content-Type": SAH_CONTENT_TYPE,
            "Authorization": "X-Sah-Login",
        }
        try:
            response = self.session.post(self.api_url,
                                         data=login_body(self.username, self.password),
                                         headers=headers,
                                         timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise AuthenticationException(f"createContext request failed: {e}") from e

        try:
            data = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise AuthenticationException(f"failed to parse auth response: {e}") from e

        token = ""
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            context_id = data["data"].get("contextID")
            if isinstance(context_id, str):
                token = context_id
        if not token:
            raise AuthenticationException("authentication failed: no contextID")

        self._set_token(token)
        logger.debug(f"Session context established for {self.host}")
        self._warm_up(token)
        return token

    def _warm_up(self, token: str):
        # Some firmware only issues its session cookie on an authenticated GET
        try:
            response = self.session.get(f"{self.host}/",
                                        headers={
                                            **self._browser_headers(),
                                            "Authorization": f"X-Sah {token}",
                                            "x-context": token,
                                        },
                                        timeout=self.timeout)
            logger.debug(f"Follow-up GET status={response.status_code} cookies={len(self.session.cookies)}")
        except requests.RequestException as e:
            logger.warning(f"Follow-up GET to {self.host}/ failed: {e}")

    def call(self, body: str) -> bytes:
        """POST an API request body with the current session token and return the raw response."""
        token = self.session_token
        try:
            response = self.session.post(self.api_url,
                                         data=body,
                                         headers=self._auth_headers(token),
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchException(f"request failed: {e}") from e
        if not 200 <= response.status_code < 300:
            raise FetchException(f"http status {response.status_code}: {response.text[:200]}",
                                 status_code=response.status_code)
        return response.content

    def cookies_for_host(self, url: str) -> list[Cookie]:
        try:
            hostname = urlsplit(url).hostname
        except ValueError:
            return []
        if not hostname:
            return []
        return [c for c in self.session.cookies
                if c.domain.lstrip(".").lower() == hostname.lower()]
