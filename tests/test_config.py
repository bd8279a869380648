from lmd_grades.config import Settings, get_settings


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("LMD_PASS_MARK", "LMD_DEFAULT_TARGET", "LMD_SAMPLE_CATALOG", "LMD_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)
        settings = get_settings()
        assert settings == Settings()
        assert settings.sample_catalog.exists()

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("LMD_PASS_MARK", "12")
        monkeypatch.setenv("LMD_DEFAULT_TARGET", "11,5")
        monkeypatch.setenv("LMD_LOG_LEVEL", "debug")
        monkeypatch.setenv("LMD_SAMPLE_CATALOG", "catalogs/info.csv")
        settings = get_settings()
        assert settings.pass_mark == 12.0
        assert settings.default_target == 11.5
        assert settings.log_level == "DEBUG"
        assert settings.sample_catalog == tmp_path.resolve() / "catalogs" / "info.csv"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("LMD_PASS_MARK", "abc")
        monkeypatch.setenv("LMD_DEFAULT_TARGET", "25")
        monkeypatch.setenv("LMD_LOG_LEVEL", "loud")
        settings = get_settings()
        assert settings.pass_mark == 10.0
        assert settings.default_target == 10.0
        assert settings.log_level == "INFO"

    def test_absolute_catalog_path_kept(self, monkeypatch, tmp_path):
        catalog = tmp_path / "catalog.csv"
        monkeypatch.setenv("LMD_SAMPLE_CATALOG", str(catalog))
        assert get_settings().sample_catalog == catalog
