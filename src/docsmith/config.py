"""Configuration for a docsmith run.

Settings are plain dataclasses. ``Config.from_file`` reads a TOML file
whose tables mirror the dataclasses::

    project_path = "."
    target_language = "en"

    [llm]
    provider = "openai"
    model_efficient = "gpt-4o-mini"
    model_powerful = "gpt-4o"

    [cache]
    expire_hours = 24
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .i18n import TargetLanguage

# Provider → env-var mapping for API keys
_KEY_ENV_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "ollama": "",
    "azure": "AZURE_OPENAI_API_KEY",
}

API_KEY_ENV = "DOCSMITH_LLM_API_KEY"


@dataclass
class LLMConfig:
    """Model provider, model names and resilience limits."""

    provider: str = "openai"
    api_key: str = ""
    api_base_url: str | None = None
    # Cheap/fast model for regular work; the powerful one handles large
    # prompts and takes over when the efficient one keeps failing.
    model_efficient: str = "gpt-4o-mini"
    model_powerful: str = "gpt-4o"
    max_tokens: int = 8192
    temperature: float = 0.1
    retry_attempts: int = 5
    retry_delay_ms: int = 5000
    timeout_seconds: int = 300
    disable_preset_tools: bool = False
    max_parallels: int = 3
    react_max_iterations: int = 10
    enable_summary_reasoning: bool = True

    def resolve_api_key(self) -> str | None:
        """Return the API key from config or the environment."""
        if self.api_key:
            return self.api_key
        if os.environ.get(API_KEY_ENV):
            return os.environ[API_KEY_ENV]
        env_var = _KEY_ENV_VARS.get(self.provider.lower(), "")
        if env_var:
            return os.environ.get(env_var)
        return None


@dataclass
class CacheConfig:
    """Persistent prompt-result cache settings."""

    enabled: bool = True
    cache_dir: Path = field(default_factory=lambda: Path(".docsmith") / "cache")
    expire_hours: int = 8760


@dataclass
class Config:
    """Top-level settings for one documentation run."""

    project_path: Path = field(default_factory=lambda: Path("."))
    output_path: Path = field(default_factory=lambda: Path("./docsmith.docs"))
    internal_path: Path = field(default_factory=lambda: Path("./.docsmith"))
    project_name: str | None = None
    target_language: TargetLanguage = TargetLanguage.ENGLISH

    max_file_size: int = 64 * 1024
    include_tests: bool = False
    include_hidden: bool = False
    excluded_dirs: list[str] = field(default_factory=lambda: [
        ".docsmith", "docsmith.docs", "target", "node_modules", ".git",
        "build", "dist", "venv", ".venv", "__pycache__", ".svelte-kit",
        ".mypy_cache", ".pytest_cache",
    ])
    excluded_extensions: list[str] = field(default_factory=lambda: [
        "jpg", "jpeg", "png", "gif", "bmp", "ico", "svg", "mp3", "mp4",
        "avi", "pdf", "zip", "tar", "gz", "exe", "dll", "so", "lock",
    ])
    included_extensions: list[str] = field(default_factory=list)

    llm: LLMConfig = field(default_factory=LLMConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)

    force_regenerate: bool = False
    skip_research: bool = False
    verbose: bool = False

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    @classmethod
    def from_file(cls, path: Path | str) -> "Config":
        """Load settings from a TOML file."""
        path = Path(path)
        try:
            data = tomllib.loads(path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ValueError(f"Failed to read config file {path}: {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"Failed to parse config file {path}: {exc}") from exc
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Config":
        llm = LLMConfig(**_known(LLMConfig, data.get("llm", {})))
        cache_data = _known(CacheConfig, data.get("cache", {}))
        if "cache_dir" in cache_data:
            cache_data["cache_dir"] = Path(cache_data["cache_dir"])
        cache = CacheConfig(**cache_data)

        top = _known(cls, data)
        top.pop("llm", None)
        top.pop("cache", None)
        for key in ("project_path", "output_path", "internal_path"):
            if key in top:
                top[key] = Path(top[key])
        if "target_language" in top:
            top["target_language"] = TargetLanguage.parse(top["target_language"])
        return cls(llm=llm, cache=cache, **top)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def get_project_name(self) -> str:
        """Configured project name, else the project directory name."""
        if self.project_name and self.project_name.strip():
            return self.project_name
        return self.project_path.resolve().name


def _known(cls: type, data: dict[str, Any]) -> dict[str, Any]:
    """Drop keys that are not fields of the dataclass *cls*."""
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}
