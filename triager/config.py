"""Configuration loading from YAML and environment.

Secrets (API keys, signing secret) are taken from environment variables or
from files (Docker secrets). Never put real keys in config files committed to
the repo.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _read_secret(env_key: str, file_env_key: str) -> str | None:
    """Read secret from env var or from file path in env (e.g. Docker
    secrets)."""
    value = _current_env.get(env_key)
    if value:
        return value.strip()
    file_path = _current_env.get(file_env_key)
    if file_path:
        return Path(file_path).read_text().strip()
    return None


def _is_placeholder(value: str | None) -> bool:
    return not value or value.startswith("${") or value.startswith("your-")


# Injected by load_config so properties can read env/file
_current_env: dict[str, str] = {}


class LinearConfig(BaseSettings):
    """Linear GraphQL API and webhook verification settings."""

    model_config = SettingsConfigDict(env_prefix="LINEAR_", extra="ignore")

    api_key: str | None = Field(default=None, description="Personal or app API key; use env or secret file")
    api_url: str = Field(default="https://api.linear.app/graphql", description="GraphQL endpoint")
    signing_secret: str | None = Field(default=None, description="Webhook signing secret")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")


class OpenAIConfig(BaseSettings):
    """Chat completions model settings."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_", extra="ignore")

    api_key: str | None = Field(default=None, description="API key; use env or secret file")
    api_url: str = Field(default="https://api.openai.com/v1/chat/completions", description="Endpoint URL")
    model: str = Field(default="gpt-4o-mini", description="Model name")
    temperature: float = Field(default=0.2, ge=0, le=2, description="Sampling temperature")
    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")


class TriageConfig(BaseSettings):
    """Triage behaviour: awaiting-info label, bot marker, retries."""

    model_config = SettingsConfigDict(env_prefix="TRIAGE_", extra="ignore")

    awaiting_info_label_id: str | None = Field(
        default=None, description="Label id whose presence means the issue waits for user input"
    )
    bot_marker: str = Field(default="<!-- bot -->", description="Invisible token appended to bot comments")
    completion_emoji: str = Field(default="✅", description="Reaction posted when triage completes")
    prompt: str | None = Field(default=None, description="System prompt override")
    prompt_file: str | None = Field(default=None, description="Path to a file with the system prompt override")
    max_attempts: int = Field(default=3, ge=1, le=10, description="Model call attempts before giving up")
    retry_delay_seconds: float = Field(default=1.0, ge=0, description="Base delay; attempt N waits N * delay")
    skip_own_issues: bool = Field(default=True, description="Ignore sub-issues the bot itself created")
    serialize_per_issue: bool = Field(default=True, description="Process events for one issue one at a time")


class KnowledgeBaseConfig(BaseSettings):
    """Where team rules and the label list are read from."""

    model_config = SettingsConfigDict(env_prefix="KB_", extra="ignore")

    directory: str = Field(default="kb", description="Directory holding one file per key")
    team_key: str = Field(default="team_rules.json", description="Key of the team routing rules document")
    label_key: str = Field(default="labels.json", description="Key of the authoritative label list")
    cache_ttl_seconds: float = Field(default=300.0, ge=0, description="Cache lifetime; 0 disables caching")


class StateConfig(BaseSettings):
    """Per-issue state records (.triager/issues/)."""

    model_config = SettingsConfigDict(env_prefix="STATE_", extra="ignore")

    enabled: bool = Field(default=True, description="Write per-issue state records")
    directory: str = Field(default=".triager/issues", description="Directory for YAML records")


class WebhookConfig(BaseSettings):
    """Webhook server settings."""

    model_config = SettingsConfigDict(env_prefix="WEBHOOK_", extra="ignore")

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8000, ge=0, le=65535, description="Bind port; 0 picks a free port")
    path: str = Field(default="/webhook/linear", description="Webhook URL path")
    enabled: bool = Field(default=True, description="Enable webhook server")
    insecure: bool = Field(
        default=False, description="Accept unsigned deliveries when no signing secret is configured (local testing)"
    )


class LoggingConfig(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOGGING_", extra="ignore")

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )


class AppConfig(BaseSettings):
    """Root application config from YAML + env."""

    model_config = SettingsConfigDict(extra="ignore")

    linear: LinearConfig = Field(default_factory=LinearConfig)
    openai: OpenAIConfig = Field(default_factory=OpenAIConfig)
    triage: TriageConfig = Field(default_factory=TriageConfig)
    knowledge_base: KnowledgeBaseConfig = Field(default_factory=KnowledgeBaseConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    webhook: WebhookConfig = Field(default_factory=WebhookConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def linear_api_key_resolved(self) -> str | None:
        """Resolve Linear API key from config, env or Docker secret file."""
        key = self.linear.api_key
        if not _is_placeholder(key):
            return key
        return _read_secret("LINEAR_API_KEY", "LINEAR_API_KEY_FILE")

    @property
    def openai_api_key_resolved(self) -> str | None:
        """Resolve OpenAI API key from config, env or Docker secret file."""
        key = self.openai.api_key
        if not _is_placeholder(key):
            return key
        return _read_secret("OPENAI_API_KEY", "OPENAI_API_KEY_FILE")

    @property
    def signing_secret_resolved(self) -> str:
        """Resolve webhook signing secret; empty string disables verification."""
        secret = self.linear.signing_secret
        if not _is_placeholder(secret):
            return secret or ""
        return _read_secret("LINEAR_SIGNING_SECRET", "LINEAR_SIGNING_SECRET_FILE") or ""

    @property
    def awaiting_info_label_resolved(self) -> str | None:
        """Awaiting-info label from config or the AWAITING_INFO_LABEL_ID env var."""
        label = self.triage.awaiting_info_label_id
        if not _is_placeholder(label):
            return label
        return _current_env.get("AWAITING_INFO_LABEL_ID") or None

    @property
    def system_prompt_override(self) -> str | None:
        """Prompt override: inline value wins over prompt_file."""
        if self.triage.prompt:
            return self.triage.prompt
        if self.triage.prompt_file:
            return Path(self.triage.prompt_file).read_text(encoding="utf-8")
        return None


def _substitute_env(value: Any) -> Any:
    """Replace ${VAR} and $VAR in strings with os.environ."""
    if isinstance(value, str):
        if value.startswith("${") and value.endswith("}"):
            key = value[2:-1].strip()
            return _current_env.get(key, value)
        if value.startswith("$") and not value.startswith("${"):
            key = value[1:].strip()
            return _current_env.get(key, value)
        return value
    if isinstance(value, dict):
        return {k: _substitute_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env(v) for v in value]
    return value


def load_config(config_path: Path | None = None) -> AppConfig:
    """Load config from YAML file and environment.

    Secrets: LINEAR_API_KEY, OPENAI_API_KEY, LINEAR_SIGNING_SECRET (or the
    matching *_FILE variables).
    """
    global _current_env
    import os

    _current_env = dict(os.environ)

    path = config_path or Path("config.yaml")
    if not path.is_file():
        return AppConfig()

    raw = yaml.safe_load(path.read_text()) or {}
    raw = _substitute_env(raw)

    return AppConfig(
        linear=LinearConfig(**(raw.get("linear") or {})),
        openai=OpenAIConfig(**(raw.get("openai") or {})),
        triage=TriageConfig(**(raw.get("triage") or {})),
        knowledge_base=KnowledgeBaseConfig(**(raw.get("knowledge_base") or {})),
        state=StateConfig(**(raw.get("state") or {})),
        webhook=WebhookConfig(**(raw.get("webhook") or {})),
        logging=LoggingConfig(**(raw.get("logging") or {})),
    )
