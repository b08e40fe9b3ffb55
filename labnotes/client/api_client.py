"""Thin REST client for the Lab Notes API, used by the client-side auth state."""

from typing import Any, Dict, Optional

import requests

from config.logging_config import LogCategory, get_smart_logger

logger = get_smart_logger(__name__, LogCategory.CLIENT)

DEFAULT_TIMEOUT = 10.0


class ApiRequestError(Exception):
    """Non-2xx response. ``message`` is the server's message when it sent one."""

    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}
        super().__init__(f"{status_code}: {message}")


class ApiClient:
    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method: str, path: str, *, json: Any = None, token: Optional[str] = None,
                files: Any = None) -> requests.Response:
        headers = {}
        if token:
            headers['Authorization'] = f'Bearer {token}'
        response = self.session.request(
            method,
            f'{self.base_url}{path}',
            json=json,
            files=files,
            headers=headers,
            timeout=self.timeout,
        )
        if not response.ok:
            raise self._error_for(response)
        return response

    @staticmethod
    def _error_for(response: requests.Response) -> ApiRequestError:
        payload = None
        try:
            payload = response.json()
        except ValueError:
            pass
        if isinstance(payload, dict) and payload.get('message'):
            message = payload['message']
        else:
            message = response.text or response.reason or 'Request failed'
        return ApiRequestError(response.status_code, message, payload if isinstance(payload, dict) else None)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        return self.request('POST', '/api/auth/login', json={'username': username, 'password': password}).json()

    def register(self, username: str, email: str, password: str, display_name: Optional[str] = None) -> Dict[str, Any]:
        body = {'username': username, 'email': email, 'password': password}
        if display_name:
            body['displayName'] = display_name
        return self.request('POST', '/api/auth/register', json=body).json()

    def current_user(self, token: str) -> Dict[str, Any]:
        return self.request('GET', '/api/auth/me', token=token).json()

    def logout(self, token: Optional[str]) -> None:
        self.request('POST', '/api/auth/logout', token=token)
