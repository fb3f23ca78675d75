"""Tests for configuration loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from docsmith.config import API_KEY_ENV, Config, LLMConfig
from docsmith.i18n import TargetLanguage


class TestConfigLoading:
    def test_defaults(self):
        config = Config()
        assert config.target_language is TargetLanguage.ENGLISH
        assert config.llm.max_parallels == 3
        assert config.cache.enabled
        assert "node_modules" in config.excluded_dirs

    def test_from_dict(self):
        config = Config.from_dict({
            "project_path": "/srv/shop",
            "target_language": "ja",
            "unknown_key": 1,
            "llm": {"provider": "anthropic", "max_parallels": 5, "bogus": True},
            "cache": {"cache_dir": "/tmp/c", "expire_hours": 2},
        })
        assert config.project_path == Path("/srv/shop")
        assert config.target_language is TargetLanguage.JAPANESE
        assert config.llm.provider == "anthropic"
        assert config.llm.max_parallels == 5
        assert config.cache.cache_dir == Path("/tmp/c")
        assert config.cache.expire_hours == 2

    def test_from_file(self, tmp_path):
        path = tmp_path / "docsmith.toml"
        path.write_text(
            'project_name = "Shop"\n'
            'target_language = "german"\n'
            "[llm]\n"
            'model_efficient = "mini"\n',
            encoding="utf-8",
        )
        config = Config.from_file(path)
        assert config.get_project_name() == "Shop"
        assert config.target_language is TargetLanguage.GERMAN
        assert config.llm.model_efficient == "mini"
        assert config.llm.model_powerful == "gpt-4o"

    def test_bad_toml(self, tmp_path):
        path = tmp_path / "bad.toml"
        path.write_text("this is = = not toml", encoding="utf-8")
        with pytest.raises(ValueError, match="Failed to parse"):
            Config.from_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValueError, match="Failed to read"):
            Config.from_file(tmp_path / "absent.toml")

    def test_project_name_from_directory(self, tmp_path):
        assert Config(project_path=tmp_path).get_project_name() == tmp_path.name
        assert Config(project_path=tmp_path, project_name="  ").get_project_name() == tmp_path.name


class TestApiKey:
    def test_explicit_key_wins(self, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "from-env")
        assert LLMConfig(api_key="explicit").resolve_api_key() == "explicit"

    def test_generic_env_var(self, monkeypatch):
        monkeypatch.setenv(API_KEY_ENV, "generic")
        monkeypatch.setenv("OPENAI_API_KEY", "openai")
        assert LLMConfig().resolve_api_key() == "generic"

    def test_provider_env_var(self, monkeypatch):
        monkeypatch.delenv(API_KEY_ENV, raising=False)
        monkeypatch.setenv("ANTHROPIC_API_KEY", "claude-key")
        assert LLMConfig(provider="anthropic").resolve_api_key() == "claude-key"

    def test_ollama_needs_no_key(self, monkeypatch):
        monkeypatch.delenv(API_KEY_ENV, raising=False)
        assert LLMConfig(provider="ollama").resolve_api_key() is None


class TestTargetLanguage:
    @pytest.mark.parametrize("value, expected", [
        ("en", TargetLanguage.ENGLISH),
        ("ZH", TargetLanguage.CHINESE),
        ("French", TargetLanguage.FRENCH),
        (" ko ", TargetLanguage.KOREAN),
    ])
    def test_parse(self, value, expected):
        assert TargetLanguage.parse(value) is expected

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown target language"):
            TargetLanguage.parse("klingon")

    def test_every_language_has_an_instruction(self):
        for lang in TargetLanguage:
            assert lang.prompt_instruction()
            assert lang.display_name
