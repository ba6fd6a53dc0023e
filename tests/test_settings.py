from geocluster.settings import DEFAULT_SETTINGS, load_settings


def test_missing_file_uses_defaults(tmp_path):
    settings = load_settings(tmp_path / "absent.toml")
    assert settings == DEFAULT_SETTINGS
    assert settings is not DEFAULT_SETTINGS


def test_file_overrides_are_layered(tmp_path):
    path = tmp_path / "settings.toml"
    path.write_text(
        '[geocoder]\nuser_agent = "test-agent"\n\n[store]\napi_base_url = "https://api.example.com"\n',
        encoding="utf-8",
    )
    settings = load_settings(path)
    assert settings["geocoder"]["user_agent"] == "test-agent"
    assert settings["geocoder"]["min_interval_seconds"] == 1.0
    assert settings["store"]["api_base_url"] == "https://api.example.com"
    assert DEFAULT_SETTINGS["geocoder"]["user_agent"] == "Arcane-City-Events/1.0"
