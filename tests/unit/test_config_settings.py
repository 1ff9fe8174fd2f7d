"""Unit tests for application settings configuration."""

from pathlib import Path

from retrieval_engine.config import Settings


def test_settings_uses_project_env_file_independent_of_cwd():
    """Settings should always include the project-level .env as an env source."""
    env_files = Settings.model_config.get("env_file")
    assert env_files is not None

    normalized = {str(Path(item)) for item in env_files}
    expected_project_env = str(Path(__file__).resolve().parents[2] / ".env")

    assert expected_project_env in normalized
    assert str(Path(".env")) in normalized


def test_embeddings_are_disabled_by_default():
    settings = Settings(_env_file=None)

    assert settings.embeddings_enabled is False
    assert settings.embedding_dimensions == 128


def test_retrieval_and_chunking_defaults():
    settings = Settings(_env_file=None)

    assert (settings.chunk_size, settings.chunk_overlap, settings.chunk_soft_boundary) == (1200, 200, 200)
    assert settings.retrieval_top_k == 6
    assert settings.retrieval_max_context_chars == 24000
    assert settings.job_attempts == 3


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("EMBEDDINGS_ENABLED", "true")
    monkeypatch.setenv("RETRIEVAL_TOP_K", "10")

    settings = Settings(_env_file=None)

    assert settings.embeddings_enabled is True
    assert settings.retrieval_top_k == 10
