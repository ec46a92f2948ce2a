from core.config import Settings, load_settings


def test_defaults_without_config_file(tmp_path, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    monkeypatch.delenv("LLM_SERVER_URL", raising=False)

    settings = load_settings(str(tmp_path / "missing.yaml"))

    assert settings == Settings()
    assert settings.timeouts.row == 60.0
    assert settings.attachments.max_bytes == 8 * 1024 * 1024
    assert settings.detail_selectors.main_container == "#sn_form_inline_stream_entries"


def test_yaml_and_env_overrides(tmp_path, monkeypatch):
    config = tmp_path / "config.yaml"
    config.write_text(
        "timeouts:\n"
        "  row: 30\n"
        "summary:\n"
        "  enabled: false\n"
        "detail_selectors:\n"
        "  body: .custom-body\n",
        encoding="utf-8",
    )
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("LLM_SERVER_URL", "http://llm.local/summarize")

    settings = load_settings(str(config))

    assert settings.timeouts.row == 30
    assert settings.timeouts.stale_run == 120.0
    assert settings.summary.enabled is False
    assert settings.summary.url == "http://llm.local/summarize"
    assert settings.log_level == "DEBUG"
    assert settings.detail_selectors.body == ".custom-body"


def test_site_urls_and_credentials(monkeypatch):
    monkeypatch.setenv("SITE1_USERNAME", "operator")
    monkeypatch.delenv("SITE1_PASSWORD", raising=False)
    site1 = Settings().reconcile.site1

    assert site1.url_for("prod") == "https://SITE1_PROD_URL"
    assert site1.url_for("uat") == "https://SITE1_UAT_URL"
    assert site1.url_for("prod", "https://override") == "https://override"
    assert site1.credentials() == {"username": "operator", "password": ""}
