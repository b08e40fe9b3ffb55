from unittest.mock import MagicMock

import requests

from client.api_client import ApiRequestError
from client.session_resolver import ResolutionOutcome, SessionResolver

USER = {'id': 1, 'username': 'admin', 'isAdmin': True}


def _resolver(**behaviour):
    api = MagicMock()
    api.current_user.configure_mock(**behaviour)
    return SessionResolver(api), api


def test_no_token_skips_network():
    resolver, api = _resolver(return_value=USER)
    resolution = resolver.resolve(None)
    assert resolution.outcome is ResolutionOutcome.NO_TOKEN
    assert resolution.user is None
    api.current_user.assert_not_called()


def test_resolved():
    resolver, api = _resolver(return_value=USER)
    resolution = resolver.resolve('tok')
    assert resolution.outcome is ResolutionOutcome.RESOLVED
    assert resolution.user == USER
    assert resolution.is_authenticated
    api.current_user.assert_called_once_with('tok')


def test_401_means_token_invalid():
    resolver, _ = _resolver(side_effect=ApiRequestError(401, 'Session expired'))
    resolution = resolver.resolve('tok')
    assert resolution.outcome is ResolutionOutcome.TOKEN_INVALID
    assert resolution.message == 'Session expired'


def test_server_error_is_transient():
    resolver, _ = _resolver(side_effect=ApiRequestError(500, 'boom'))
    resolution = resolver.resolve('tok')
    assert resolution.outcome is ResolutionOutcome.TRANSIENT
    assert resolution.user is None


def test_network_failure_is_transient():
    resolver, _ = _resolver(side_effect=requests.ConnectionError('refused'))
    assert resolver.resolve('tok').outcome is ResolutionOutcome.TRANSIENT


def test_undecodable_body_is_transient():
    resolver, _ = _resolver(side_effect=ValueError('not json'))
    assert resolver.resolve('tok').outcome is ResolutionOutcome.TRANSIENT


def test_unexpected_shape_is_transient():
    resolver, _ = _resolver(return_value=['not', 'a', 'user'])
    assert resolver.resolve('tok').outcome is ResolutionOutcome.TRANSIENT
