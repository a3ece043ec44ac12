import pytest

from taskmanager.config import Settings


def test_default_secret_is_rejected_outside_dev(monkeypatch):
    monkeypatch.setenv('ENV', 'prod')
    monkeypatch.delenv('JWT_SECRET', raising=False)
    monkeypatch.delenv('ALLOW_INSECURE_JWT', raising=False)
    with pytest.raises(RuntimeError):
        Settings()


def test_insecure_secret_can_be_allowed_explicitly(monkeypatch):
    monkeypatch.setenv('ENV', 'staging')
    monkeypatch.delenv('JWT_SECRET', raising=False)
    monkeypatch.setenv('ALLOW_INSECURE_JWT', 'true')
    assert Settings().JWT_SECRET == 'change_me_for_prod'


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv('DATABASE_URL', 'postgresql+psycopg://tm:tm@db/tm')
    monkeypatch.setenv('JWT_EXPIRE_HOURS', '2')
    monkeypatch.setenv('SEED_DEMO_DATA', 'false')
    monkeypatch.setenv('LOG_LEVEL', 'debug')
    s = Settings()
    assert s.DATABASE_URL == 'postgresql+psycopg://tm:tm@db/tm'
    assert s.JWT_EXPIRE_HOURS == 2
    assert s.SEED_DEMO_DATA is False
    assert s.LOG_LEVEL == 'DEBUG'


def test_non_positive_expiry_is_rejected(monkeypatch):
    monkeypatch.setenv('JWT_EXPIRE_HOURS', '0')
    with pytest.raises(RuntimeError):
        Settings()


def test_demo_data_defaults_on_only_in_dev(monkeypatch):
    monkeypatch.delenv('SEED_DEMO_DATA', raising=False)
    monkeypatch.setenv('ENV', 'dev')
    assert Settings().SEED_DEMO_DATA is True

    monkeypatch.setenv('ENV', 'prod')
    monkeypatch.setenv('JWT_SECRET', 'a-real-production-secret-value')
    assert Settings().SEED_DEMO_DATA is False


def test_demo_data_can_be_enabled_outside_dev(monkeypatch):
    monkeypatch.setenv('ENV', 'staging')
    monkeypatch.setenv('JWT_SECRET', 'a-real-production-secret-value')
    monkeypatch.setenv('SEED_DEMO_DATA', 'true')
    assert Settings().SEED_DEMO_DATA is True
