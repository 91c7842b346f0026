from __future__ import annotations

import logging

import pytest

pytest.importorskip("pydantic_settings")

from app import main as main_module
from app.errors import ConfigurationError
from app.settings import Settings, reload_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("EI_PROJECT_API_KEY", "OPENAI_API_KEY", "EI_API_ENDPOINT", "PAGE_SIZE"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_settings_from_environment(clean_env) -> None:
    clean_env.setenv("EI_PROJECT_API_KEY", "ei")
    clean_env.setenv("OPENAI_API_KEY", "sk")
    clean_env.setenv("EI_API_ENDPOINT", "https://studio.example.com/v1")
    clean_env.setenv("PAGE_SIZE", "50")

    settings = Settings()

    assert settings.store_api_key == "ei"
    assert settings.store_endpoint == "https://studio.example.com"
    assert settings.page_size == 50
    assert settings.inference_max_retries == 3
    settings.require_credentials()


def test_missing_credentials(clean_env) -> None:
    with pytest.raises(ConfigurationError, match="EI_PROJECT_API_KEY"):
        Settings(_env_file=None).require_credentials()


def test_cli_builds_options(tmp_path) -> None:
    ids = tmp_path / "ids.json"
    ids.write_text("[4, 5]")
    parser = main_module.build_parser()
    args, unknown = parser.parse_known_args(
        [
            "--prompt", "Is it\\nblurry?",
            "--disable-labels", "Blurry,dark",
            "--concurrency", "4",
            "--auto-convert-videos", "true",
            "--data-ids-file", str(ids),
            "--propose-actions", "12",
            "--unknown-flag", "x",
        ]
    )

    options = main_module.options_from_args(args)

    assert unknown == ["--unknown-flag", "x"]
    assert options.prompt == "Is it\nblurry?"
    assert options.disable_labels == ["blurry", "dark"]
    assert options.concurrency == 4
    assert options.auto_convert_videos is True
    assert options.data_ids == [4, 5]
    assert options.propose_actions_job_id == 12
    assert options.dry_run


def test_main_exits_non_zero_without_credentials(clean_env, caplog) -> None:
    reload_settings()
    with caplog.at_level(logging.ERROR):
        assert main_module.main(["--prompt", "hi"]) == 1
    assert "Missing EI_PROJECT_API_KEY" in caplog.text
    reload_settings()


def test_default_store_endpoint_drops_version(clean_env) -> None:
    assert Settings(_env_file=None).store_endpoint == "https://studio.edgeimpulse.com"
