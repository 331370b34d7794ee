from chatbot.config import Settings

_VARS = (
    "LLM_API_URL",
    "LLM_API_KEY",
    "OPENAI_API_KEY",
    "LLM_MODEL",
    "LLM_TIMEOUT_SECONDS",
    "DB_PATH",
    "READ_ONLY_MODE",
    "API_HOST",
    "API_PORT",
    "LOG_LEVEL",
)


def _clear(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)

    settings = Settings.from_env()

    assert settings.llm_api_url == "https://api.openai.com/v1"
    assert settings.llm_model == "gpt-4o-mini"
    assert settings.read_only_mode is True
    assert settings.db_path is None
    assert settings.api_port == 3000


def test_environment_overrides(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("OPENAI_API_KEY", "sk-fallback")
    monkeypatch.setenv("READ_ONLY_MODE", "false")
    monkeypatch.setenv("DB_PATH", "data/demo.db")
    monkeypatch.setenv("API_PORT", "8080")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.llm_api_key == "sk-fallback"
    assert settings.read_only_mode is False
    assert settings.db_path == "data/demo.db"
    assert settings.api_port == 8080
    assert settings.log_level == "DEBUG"
