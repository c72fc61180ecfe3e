import pytest

from barberflow.core import config


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        (None, 30),
        ('', 30),
        ('   ', 30),
        ('45', 45),
    ],
)
def test_get_int_falls_back_to_default_for_missing_or_blank_values(
    monkeypatch: pytest.MonkeyPatch,
    raw: str | None,
    expected: int,
) -> None:
    if raw is None:
        monkeypatch.delenv('REMINDER_LEAD_MINUTES', raising=False)
    else:
        monkeypatch.setenv('REMINDER_LEAD_MINUTES', raw)

    assert config._get_int('REMINDER_LEAD_MINUTES', 30) == expected


def test_config_exposes_only_helpers_it_uses() -> None:
    assert not hasattr(config, '_get_bool')


def test_validate_runtime_config_rejects_default_secret_in_production(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'production')
    monkeypatch.setattr(config, 'JWT_SECRET_KEY', 'change-me')

    with pytest.raises(RuntimeError, match='JWT_SECRET_KEY'):
        config.validate_runtime_config()


def test_validate_runtime_config_rejects_empty_reminder_window(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'APP_ENV', 'development')
    monkeypatch.setattr(config, 'REMINDER_WINDOW_MINUTES', 0)

    with pytest.raises(RuntimeError, match='REMINDER_WINDOW_MINUTES'):
        config.validate_runtime_config()
