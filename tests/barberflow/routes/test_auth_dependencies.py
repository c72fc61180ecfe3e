import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from barberflow.auth import jwt_handler
from barberflow.auth.dependencies import get_current_provider, get_current_user


@pytest.fixture
def auth_session(session_factory, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr('barberflow.auth.dependencies.SessionLocal', session_factory)


def _bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme='Bearer', credentials=token)


def test_create_access_token_round_trips_subject_and_role() -> None:
    payload = jwt_handler.decode_access_token(jwt_handler.create_access_token('sam@shop.example', role='provider'))

    assert payload['sub'] == 'sam@shop.example'
    assert payload['role'] == 'provider'


def test_get_current_user_resolves_token_subject(auth_session, provider) -> None:
    user = get_current_user(_bearer(jwt_handler.create_access_token(provider.email)))

    assert user.id == provider.id


def test_get_current_user_requires_credentials() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(None)

    assert exception_info.value.status_code == 401


def test_get_current_user_rejects_garbage_token() -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_bearer('not-a-jwt'))

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'Invalid token'


def test_get_current_user_rejects_unknown_subject(auth_session) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_user(_bearer(jwt_handler.create_access_token('ghost@example.com')))

    assert exception_info.value.status_code == 401
    assert exception_info.value.detail == 'User not found'


def test_get_current_provider_rejects_customers(customer) -> None:
    with pytest.raises(HTTPException) as exception_info:
        get_current_provider(customer)

    assert exception_info.value.status_code == 403


def test_get_current_provider_accepts_providers(provider) -> None:
    assert get_current_provider(provider) is provider
