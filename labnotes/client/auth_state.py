"""Client-side authentication state.

``AuthContext`` owns the token, the resolved user and the loading/error flags for
one client session. It is created explicitly and torn down with ``dispose()``.
Every token change bumps a generation counter; a resolution that settles after
the token has moved on is dropped, so a logout issued while ``/me`` is in flight
cannot bring the old session back.
"""

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from client.api_client import ApiClient, ApiRequestError
from client.session_resolver import Resolution, ResolutionOutcome, SessionResolver
from client.token_store import TokenStore
from client.user_cache import UserScopedCache
from config.logging_config import LogCategory, get_smart_logger
from utils.errors import DuplicateUser, InvalidCredentials, TransientFailure, ValidationError

logger = get_smart_logger(__name__, LogCategory.CLIENT)

Notice = Callable[[str, str, str], None]
Listener = Callable[['AuthSnapshot'], None]


@dataclass(frozen=True)
class AuthSnapshot:
    token: Optional[str]
    user: Optional[Dict[str, Any]]
    is_loading: bool
    error: Optional[str]

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


def _run_inline(job: Callable[[], None]) -> None:
    job()


class AuthContext:
    def __init__(self, api: ApiClient, token_store: TokenStore,
                 resolver: Optional[SessionResolver] = None,
                 cache: Optional[UserScopedCache] = None,
                 notify: Optional[Notice] = None,
                 dispatch: Callable[[Callable[[], None]], None] = _run_inline):
        self.api = api
        self.token_store = token_store
        self.resolver = resolver or SessionResolver(api)
        self.cache = cache or UserScopedCache()
        self.notify = notify
        self._dispatch = dispatch

        self._lock = threading.RLock()
        self._listeners: List[Listener] = []
        self._generation = 0
        self._disposed = False
        self._token: Optional[str] = None
        self._user: Optional[Dict[str, Any]] = None
        self._is_loading = False
        self._error: Optional[str] = None

    # -- state ---------------------------------------------------------------

    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self._user

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def error(self) -> Optional[str]:
        return self._error

    def snapshot(self) -> AuthSnapshot:
        with self._lock:
            return AuthSnapshot(self._token, self._user, self._is_loading, self._error)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)
        return unsubscribe

    def _emit(self) -> None:
        with self._lock:
            if self._disposed:
                return
            listeners = list(self._listeners)
            snapshot = AuthSnapshot(self._token, self._user, self._is_loading, self._error)
        for listener in listeners:
            listener(snapshot)

    def _notice(self, title: str, description: str, variant: str = 'destructive') -> None:
        if self.notify is not None:
            self.notify(title, description, variant)

    # -- lifecycle -----------------------------------------------------------

    def init(self) -> None:
        """Load the persisted token and resolve it once."""
        self._set_token(self.token_store.get())

    def dispose(self) -> None:
        with self._lock:
            self._disposed = True
            self._generation += 1
            self._listeners.clear()

    # -- token changes -------------------------------------------------------

    def _set_token(self, token: Optional[str], persist: bool = False) -> None:
        """Make ``token`` current; with ``persist`` the store is written first.

        The generation bump and the store write share one lock hold, so a
        resolution started for an older token can no longer touch the store.
        """
        with self._lock:
            if self._disposed:
                if persist and token is None:
                    self.token_store.clear()
                return
            self._generation += 1
            generation = self._generation
            if persist:
                try:
                    if token is None:
                        self.token_store.clear()
                    else:
                        self.token_store.set(token)
                except Exception:
                    # The bump above voided any in-flight resolution
                    self._is_loading = False
                    raise
            self._token = token
            self._error = None
            if token is None:
                self._user = None
                self._is_loading = False
                self.cache.clear()
            else:
                self._is_loading = True
        self._emit()
        if token is not None:
            self._dispatch(lambda: self._resolve(generation, token))

    def _resolve(self, generation: int, token: str) -> None:
        resolution = self.resolver.resolve(token)
        self._apply(generation, resolution)

    def _apply(self, generation: int, resolution: Resolution) -> None:
        with self._lock:
            if self._disposed or generation != self._generation:
                logger.debug("Discarding resolution for a token that is no longer current")
                return
            outcome = resolution.outcome
            self._is_loading = False
            if outcome is ResolutionOutcome.TOKEN_INVALID:
                # Rejected token: drop it from storage and memory together
                self._generation += 1
                self.token_store.clear()
                self._token = None
                self._user = None
                self._error = None
                self.cache.clear()
            elif outcome is ResolutionOutcome.RESOLVED:
                self._user = resolution.user
                self._error = None
                self.cache.bind(resolution.user.get('id'))
            else:
                self._user = None
                self._error = resolution.message or 'Unable to reach the server'
        self._emit()

    # -- operations ----------------------------------------------------------

    def _adopt(self, token: str) -> None:
        # Persisted before the in-memory switch so a crash mid-update cannot lose the session
        self._set_token(token, persist=True)

    def login(self, username: str, password: str) -> Dict[str, Any]:
        try:
            payload = self.api.login(username, password)
        except ApiRequestError as exc:
            self._notice('Login failed', exc.message or 'Invalid username or password')
            if exc.status_code in (400, 401):
                raise InvalidCredentials(exc.message)
            raise TransientFailure(exc.message)
        except requests.RequestException as exc:
            self._notice('Login failed', 'Unable to reach the server. Please try again.')
            raise TransientFailure(str(exc))

        self._adopt(payload['token'])
        user = payload.get('user') or {}
        self._notice('Login successful', f"Welcome back, {user.get('displayName') or username}!", 'default')
        return user

    def register(self, username: str, email: str, password: str,
                 display_name: Optional[str] = None) -> Dict[str, Any]:
        try:
            payload = self.api.register(username, email, password, display_name)
        except ApiRequestError as exc:
            self._notice('Registration failed', exc.message or 'Could not create account')
            if exc.status_code == 409:
                raise DuplicateUser(exc.message)
            if exc.status_code == 400:
                raise ValidationError(exc.message)
            raise TransientFailure(exc.message)
        except requests.RequestException as exc:
            self._notice('Registration failed', 'Unable to reach the server. Please try again.')
            raise TransientFailure(str(exc))

        token = payload.get('token')
        if token:
            self._adopt(token)
        else:
            # Account exists but the server did not start a session; the user signs in next
            logger.info("Registration response carried no token; staying signed out")
        self._notice('Registration successful', payload.get('message') or 'Your account has been created.', 'default')
        return payload.get('user') or {}

    def logout(self) -> None:
        """Ends the session locally no matter what the server says."""
        token = self._token
        try:
            if token:
                self.api.logout(token)
        except (ApiRequestError, requests.RequestException) as exc:
            logger.warning(f"Server logout failed, clearing local session anyway: {exc}")
        finally:
            self._set_token(None, persist=True)
        self._notice('Logged out', 'You have been logged out successfully.', 'default')

    def refresh(self) -> None:
        """Re-resolve the current token, for example after a transient failure."""
        self._set_token(self._token)
