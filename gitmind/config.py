"""Configuration management for gitmind."""
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli
import tomli_w
from pydantic import BaseModel, Field, ValidationError
from rich.console import Console

from .models import APIKey, APITier, MergeStrategy

DEFAULT_CONFIG_FILENAME = ".gitmind.toml"
CONFIG_SECTION = "gitmind"

_console = Console(stderr=True)

# Environment variables that override file values.
ENV_MAPPING = {
    "GITMIND_PROVIDER": "provider",
    "GITMIND_API_KEY": "api_key",
    "GITMIND_API_TIER": "api_tier",
    "GITMIND_MODEL": "default_model",
    "GITMIND_BASE_URL": "base_url",
    "GITMIND_CONVENTIONAL_COMMITS": "use_conventional_commits",
    "GITMIND_PROTECTED_BRANCHES": "protected_branches",
    "GITMIND_MERGE_STRATEGY": "default_merge_strategy",
    "GITMIND_AUTO_PUSH": "auto_push",
    "GITMIND_ALWAYS_LOG": "always_log",
    "GITMIND_LOG_FILE": "log_file",
    "GITMIND_MAX_RETRIES": "max_retries",
}
PROVIDER_KEY_ENV_VARS = {
    "cerebras": "CEREBRAS_API_KEY",
}

STRING_FIELDS = ("provider", "api_key", "default_model", "base_url", "log_file")
BOOL_FIELDS = ("use_conventional_commits", "auto_push", "always_log")


def _sanitize_string(value: str) -> str:
    """Strip control characters and shell metacharacters from a value."""
    if not value:
        return value

    value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", value)
    value = re.split(r"[;&|`$()]", value)[0]

    if len(value) > 1000:
        value = value[:1000]

    return value.strip()


def _is_safe_path(path: str) -> bool:
    """Check if a log path is relative and does not escape the working directory."""
    if not path:
        return False

    if ".." in path or path.startswith("/") or "\\" in path:
        return False

    if os.path.isabs(path):
        return False

    dangerous_patterns = [
        r"/etc/", r"/var/", r"/usr/", r"/bin/", r"/sbin/",
        r"C:\\Windows", r"C:\\System", r"C:\\Program",
    ]
    for pattern in dangerous_patterns:
        if re.search(pattern, path, re.IGNORECASE):
            return False

    return True


def _to_bool(value: str) -> bool:
    return value.lower() in ["true", "1", "yes", "on"]


def default_config_dir() -> Path:
    return Path.home()


class Config(BaseModel):
    """Configuration settings for gitmind.

    Values come from ``~/.gitmind.toml`` (section ``[gitmind]``), overridden
    by ``GITMIND_*`` environment variables. Command line options override
    both.
    """

    provider: str = Field(default="cerebras", description="LLM provider name")
    api_key: Optional[str] = Field(default=None, description="API key for the provider", repr=False)
    api_tier: APITier = Field(default=APITier.FREE, description="API tier: free or pro")
    default_model: str = Field(default="llama-3.3-70b", description="Model to request")
    base_url: Optional[str] = Field(default=None, description="Override the provider's API base URL")
    use_conventional_commits: bool = Field(
        default=False, description="Generate conventional commit titles"
    )
    protected_branches: List[str] = Field(
        default_factory=lambda: ["main", "master", "develop"],
        description="Branches that should not receive direct commits",
    )
    default_merge_strategy: MergeStrategy = Field(
        default=MergeStrategy.REGULAR, description="Merge strategy used when none is chosen"
    )
    auto_push: bool = Field(default=False, description="Push after committing")
    always_log: bool = Field(default=False, description="Always write a timestamped log file")
    log_file: Optional[str] = Field(default=None, description="Path to the operation log file")
    max_retries: int = Field(default=3, ge=1, le=10, description="Attempts per LLM request")

    @staticmethod
    def config_path(config_dir: Optional[Path] = None) -> Path:
        return (config_dir or default_config_dir()) / DEFAULT_CONFIG_FILENAME

    @staticmethod
    def _env_overrides() -> Dict[str, Any]:
        env_data: Dict[str, Any] = {}
        for env_var, field_name in ENV_MAPPING.items():
            if env_var not in os.environ:
                continue
            value: Any = os.environ[env_var]
            if field_name in STRING_FIELDS:
                value = _sanitize_string(value)
            elif field_name in BOOL_FIELDS:
                value = _to_bool(value)
            elif field_name == "protected_branches":
                value = [_sanitize_string(b) for b in value.split(",") if b.strip()]
            env_data[field_name] = value
        return env_data

    @classmethod
    def _sanitize_section(cls, section: Dict[str, Any]) -> Dict[str, Any]:
        section = {k: v for k, v in section.items() if k in cls.model_fields}
        for key in STRING_FIELDS:
            if isinstance(section.get(key), str):
                section[key] = _sanitize_string(section[key])
        if section.get("log_file") and not _is_safe_path(section["log_file"]):
            _console.print(
                f"[yellow]Warning: Unsafe log file path '{section['log_file']}', using default[/yellow]"
            )
            section["log_file"] = None
        return section

    @classmethod
    def load(cls, config_dir: Optional[Path] = None) -> "Config":
        """Load configuration from the config file and the environment.

        Args:
            config_dir: Directory holding the config file (defaults to home)

        Returns:
            Config: Configuration object; defaults when the file is missing
            or invalid
        """
        config_path = cls.config_path(config_dir)
        file_data: Dict[str, Any] = {}

        if config_path.exists():
            try:
                with config_path.open("rb") as f:
                    raw = tomli.load(f)
                file_data = cls._sanitize_section(raw.get(CONFIG_SECTION, raw))
            except (OSError, tomli.TOMLDecodeError) as e:
                _console.print(f"[yellow]Warning: Error reading config file: {e}[/yellow]")
                file_data = {}

        merged = {**file_data, **cls._env_overrides()}
        try:
            return cls(**merged)
        except ValidationError as e:
            _console.print(f"[yellow]Warning: Invalid configuration, using defaults: {e}[/yellow]")
            return cls()

    def save(self, config_dir: Optional[Path] = None) -> Path:
        """Save configuration to the config file.

        Returns:
            Path: Location of the written file
        """
        config_path = self.config_path(config_dir)
        config_dict = {k: v for k, v in self.model_dump(mode="json").items() if v is not None}

        if config_dict.get("log_file") and not _is_safe_path(config_dict["log_file"]):
            _console.print(
                f"[yellow]Warning: Unsafe log file path '{config_dict['log_file']}', not saving[/yellow]"
            )
            config_dict.pop("log_file")

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with config_path.open("wb") as f:
            tomli_w.dump({CONFIG_SECTION: config_dict}, f)
        config_path.chmod(0o600)
        return config_path

    def resolved_api_key(self) -> Optional[str]:
        """Return the configured key, falling back to the provider's own env var."""
        if self.api_key:
            return self.api_key
        env_var = PROVIDER_KEY_ENV_VARS.get(self.provider)
        if env_var and os.environ.get(env_var):
            return os.environ[env_var].strip()
        return None

    def api_key_value(self) -> Optional[APIKey]:
        """Build the :class:`APIKey` for the configured provider, if a key is set."""
        key = self.resolved_api_key()
        if not key:
            return None
        return APIKey(key=key, provider=self.provider, tier=self.api_tier)

    def get_log_file(self) -> Optional[Path]:
        """Get the path to the log file.

        If always_log is True, generates a timestamped log file name.
        Otherwise, returns the configured log_file path if set.
        """
        if self.always_log:
            timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
            return Path(f"gm_log-{timestamp}.log")
        if self.log_file and _is_safe_path(self.log_file):
            return Path(self.log_file)
        return None
