"""Decides what a protected view shows for the current auth state."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class GuardAction(Enum):
    RENDER = 'render'
    PLACEHOLDER = 'placeholder'
    REDIRECT = 'redirect'


@dataclass(frozen=True)
class GuardDecision:
    action: GuardAction
    location: Optional[str] = None


def _normalize(path: str) -> str:
    path = (path or '/').split('?', 1)[0].split('#', 1)[0]
    if len(path) > 1:
        path = path.rstrip('/')
    return path or '/'


class RouteGuard:
    def __init__(self, login_path: str = '/auth', default_path: str = '/',
                 public_paths: Iterable[str] = ('/reset-password',)):
        self.login_path = _normalize(login_path)
        self.default_path = default_path
        self.public_paths = tuple(_normalize(p) for p in public_paths)

    def is_public(self, path: str) -> bool:
        path = _normalize(path)
        return any(path == public or path.startswith(public + '/') for public in self.public_paths)

    def decide(self, path: str, state) -> GuardDecision:
        """``state`` is anything with ``is_loading`` and ``user`` (an ``AuthSnapshot``)."""
        if self.is_public(path):
            return GuardDecision(GuardAction.RENDER)
        if state.is_loading:
            return GuardDecision(GuardAction.PLACEHOLDER)

        authenticated = state.user is not None
        if _normalize(path) == self.login_path:
            if authenticated:
                return GuardDecision(GuardAction.REDIRECT, self.default_path)
            return GuardDecision(GuardAction.RENDER)
        if authenticated:
            return GuardDecision(GuardAction.RENDER)
        return GuardDecision(GuardAction.REDIRECT, self.login_path)
