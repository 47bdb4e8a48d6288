from papercapsule.config import DEFAULT_DB_URL, Settings

_VARS = [
    "PAPERCAPSULE_DB_URL",
    "PAPERCAPSULE_CORS_RELAY_URL",
    "PAPERCAPSULE_OPENALEX_MAILTO",
    "PAPERCAPSULE_S2_API_KEY",
    "PAPERCAPSULE_TRANSLATION_URL",
    "PAPERCAPSULE_TRANSLATION_API_KEY",
    "PAPERCAPSULE_TRANSLATION_LANGUAGE",
    "PAPERCAPSULE_OPENALEX_TIMEOUT",
    "PAPERCAPSULE_ARXIV_TIMEOUT",
    "PAPERCAPSULE_S2_TIMEOUT",
    "PAPERCAPSULE_CACHE_MAX_ENTRIES",
]


def _clear(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults(monkeypatch):
    _clear(monkeypatch)

    settings = Settings.from_env(load_env_file=False)

    assert settings.db_url == DEFAULT_DB_URL
    assert settings.cors_relay_url is None
    assert settings.translation_language == "Turkish"
    assert settings.translation_enabled is False
    assert (settings.openalex_timeout, settings.arxiv_timeout, settings.semantic_scholar_timeout) == (
        15.0,
        15.0,
        20.0,
    )
    assert settings.cache_max_entries == 500


def test_reads_environment(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("PAPERCAPSULE_DB_URL", "sqlite:///tmp/x.db")
    monkeypatch.setenv("PAPERCAPSULE_CORS_RELAY_URL", "https://api.allorigins.win/raw?url=")
    monkeypatch.setenv("PAPERCAPSULE_TRANSLATION_URL", "https://translate.example/batch")
    monkeypatch.setenv("PAPERCAPSULE_S2_TIMEOUT", "12.5")
    monkeypatch.setenv("PAPERCAPSULE_CACHE_MAX_ENTRIES", "50")

    settings = Settings.from_env(load_env_file=False)

    assert settings.db_url == "sqlite:///tmp/x.db"
    assert settings.cors_relay_url == "https://api.allorigins.win/raw?url="
    assert settings.translation_enabled is True
    assert settings.semantic_scholar_timeout == 12.5
    assert settings.cache_max_entries == 50


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("PAPERCAPSULE_OPENALEX_TIMEOUT", "soon")
    monkeypatch.setenv("PAPERCAPSULE_CACHE_MAX_ENTRIES", "many")

    settings = Settings.from_env(load_env_file=False)

    assert settings.openalex_timeout == 15.0
    assert settings.cache_max_entries == 500


def test_blank_values_are_unset(monkeypatch):
    _clear(monkeypatch)
    monkeypatch.setenv("PAPERCAPSULE_S2_API_KEY", "   ")

    assert Settings.from_env(load_env_file=False).semantic_scholar_api_key is None
