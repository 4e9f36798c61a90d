import pytest

from flowpatch.config import KEY_VARS, URL_VARS, ConfigError, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in URL_VARS + KEY_VARS + ("N8N_TIMEOUT",):
        monkeypatch.delenv(var, raising=False)


def test_load_config_reads_first_set_alias(monkeypatch):
    monkeypatch.setenv("N8N_HOST", "https://n8n.example.com")
    monkeypatch.setenv("N8N_URL", "https://ignored.example.com")
    monkeypatch.setenv("API_KEY", "k")

    cfg = load_config()
    assert cfg.base_url == "https://n8n.example.com"
    assert cfg.api_key == "k"
    assert cfg.timeout == 30.0


def test_load_config_timeout(monkeypatch):
    monkeypatch.setenv("N8N_API_URL", "http://localhost:5678")
    monkeypatch.setenv("N8N_API_KEY", "k")
    monkeypatch.setenv("N8N_TIMEOUT", "5")
    assert load_config().timeout == 5.0

    monkeypatch.setenv("N8N_TIMEOUT", "soon")
    with pytest.raises(ConfigError):
        load_config()


@pytest.mark.parametrize("env", [{}, {"N8N_API_URL": "http://localhost:5678"}])
def test_load_config_missing_values(monkeypatch, env):
    for k, v in env.items():
        monkeypatch.setenv(k, v)
    with pytest.raises(ConfigError):
        load_config()
