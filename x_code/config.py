"""Configuration management for X-Code."""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Paths
GLOBAL_DIR = Path("~/.xcode").expanduser()
DEFAULT_CONFIG_PATH = GLOBAL_DIR / "config.yaml"
LOCAL_CONFIG_FILENAME = "x-code.yaml"
PROJECT_DIR_NAME = ".x-code"


MODEL_ALIASES: dict[str, str] = {
    "sonnet": "anthropic:claude-sonnet-4-5",
    "opus": "anthropic:claude-opus-4-6",
    "haiku": "anthropic:claude-haiku-4-5",
    "gpt4": "openai:gpt-4.1",
    "gemini": "google:gemini-2.5-pro",
    "deepseek": "deepseek:deepseek-chat",
    "r1": "deepseek:deepseek-reasoner",
    "qwen": "alibaba:qwen-max",
    "glm": "zhipu:glm-4-plus",
    "kimi": "moonshotai:kimi-k2.5",
}

# First provider with a key in the environment wins.
PROVIDER_DETECTION_ORDER: list[tuple[str, str]] = [
    ("ANTHROPIC_API_KEY", "anthropic:claude-sonnet-4-5"),
    ("OPENAI_API_KEY", "openai:gpt-4.1"),
    ("DEEPSEEK_API_KEY", "deepseek:deepseek-chat"),
    ("ALIBABA_API_KEY", "alibaba:qwen-max"),
    ("GOOGLE_GENERATIVE_AI_API_KEY", "google:gemini-2.5-pro"),
    ("XAI_API_KEY", "xai:grok-3"),
    ("ZHIPU_API_KEY", "zhipu:glm-4-plus"),
    ("MOONSHOT_API_KEY", "moonshotai:kimi-k2.5"),
]


class ModelConfig(BaseModel):
    """Model configuration."""

    model: str = ""
    api_key: str = ""
    base_url: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    max_retries: int = 3


class AgentConfig(BaseModel):
    """Agent loop configuration."""

    max_turns: int = 100
    trust_mode: bool = False


class ContextConfig(BaseModel):
    """Context window configuration."""

    budget_ratio: float = 0.8
    keep_recent: int = 6
    max_tool_result_chars: int = 30000


class ShellToolConfig(BaseModel):
    """Shell tool configuration."""

    timeout: int = 30


class WebFetchToolConfig(BaseModel):
    """Web fetch tool configuration."""

    max_chars: int = 30000
    timeout: int = 15


class WebSearchToolConfig(BaseModel):
    """Web search tool configuration."""

    provider: str = "brave"
    api_key: str = ""
    base_url: str = "https://api.search.brave.com/res/v1/web/search"
    max_results: int = 5
    timeout: int = 20
    safesearch: str = "moderate"


class ToolsConfig(BaseModel):
    """Tools configuration."""

    shell: ShellToolConfig = Field(default_factory=ShellToolConfig)
    web_fetch: WebFetchToolConfig = Field(default_factory=WebFetchToolConfig)
    web_search: WebSearchToolConfig = Field(default_factory=WebSearchToolConfig)


class MemoryConfig(BaseModel):
    """Auto memory configuration."""

    max_age_days: int = 90
    max_prompt_lines: int = 200
    scan_project: bool = True


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for X-Code."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    context: ContextConfig = Field(default_factory=ContextConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="XCODE_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)

    @classmethod
    def load(cls, path: Path | str | None = None) -> "Config":
        """Load configuration; environment variables are applied by pydantic-settings."""
        return cls.from_yaml(path)

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path) if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        try:
            os.chmod(config_path, 0o600)
        except OSError:
            pass


def resolve_model_id(requested: str | None, config: Config | None = None) -> str | None:
    """Resolve an alias or full `provider:model` id, falling back to detected API keys.

    Precedence: explicit argument, `X_CODE_MODEL`, config file, then the first
    provider whose API key is present in the environment.
    """
    cfg = config or get_config()
    raw = (requested or os.environ.get("X_CODE_MODEL") or cfg.model.model or "").strip()
    if raw:
        return MODEL_ALIASES.get(raw, raw)

    for env_key, default_model in PROVIDER_DETECTION_ORDER:
        if os.environ.get(env_key):
            return default_model
    return None


def provider_of(model_id: str) -> str:
    """Return the provider prefix of a `provider:model` id."""
    return (model_id or "").split(":", 1)[0].strip().lower()


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
