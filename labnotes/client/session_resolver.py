"""Maps the current token to a user by asking the server."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests

from client.api_client import ApiClient, ApiRequestError
from config.logging_config import LogCategory, get_smart_logger

logger = get_smart_logger(__name__, LogCategory.CLIENT)


class ResolutionOutcome(Enum):
    NO_TOKEN = 'no_token'
    RESOLVED = 'resolved'
    TOKEN_INVALID = 'token_invalid'
    TRANSIENT = 'transient'


@dataclass(frozen=True)
class Resolution:
    user: Optional[Dict[str, Any]]
    outcome: ResolutionOutcome
    message: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.outcome is ResolutionOutcome.RESOLVED and self.user is not None


class SessionResolver:
    def __init__(self, api: ApiClient):
        self.api = api

    def resolve(self, token: Optional[str]) -> Resolution:
        if not token:
            return Resolution(None, ResolutionOutcome.NO_TOKEN)
        try:
            user = self.api.current_user(token)
        except ApiRequestError as exc:
            if exc.status_code == 401:
                logger.info("Stored token rejected by server")
                return Resolution(None, ResolutionOutcome.TOKEN_INVALID, exc.message)
            logger.warning(f"Session check failed with HTTP {exc.status_code}")
            return Resolution(None, ResolutionOutcome.TRANSIENT, exc.message)
        except requests.RequestException as exc:
            logger.warning(f"Session check could not reach the server: {exc}")
            return Resolution(None, ResolutionOutcome.TRANSIENT, str(exc))
        except ValueError:
            # 2xx with a body that is not JSON
            logger.warning("Session check returned an undecodable body")
            return Resolution(None, ResolutionOutcome.TRANSIENT, 'Invalid response from server')

        if not isinstance(user, dict) or 'id' not in user:
            return Resolution(None, ResolutionOutcome.TRANSIENT, 'Invalid response from server')
        return Resolution(user, ResolutionOutcome.RESOLVED)
