"""Configuration loader for providers, routing, retrieval and the knowledge loop."""

import logging
import os
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_CLOSING = "如果您還有其他問題，歡迎隨時與我們聯繫。"
DEFAULT_TRANSITION = "關於您詢問的「{topic}」，以下是相關說明：\n\n"
DEFAULT_CLOSING_PHRASES = [
    "如果您還有其他問題",
    "如有其他問題",
    "歡迎隨時與我們聯繫",
    "歡迎隨時聯繫",
    "祝您",
    "感謝您的詢問",
    "let us know",
    "feel free to contact",
    "any other questions",
]


@dataclass
class ProviderConfig:
    """A generation backend the router can select."""

    provider_id: str
    kind: str = "openai_compatible"  # "openai_compatible" or "ollama"
    model_name: str = ""
    base_url: str | None = None
    api_key_env: str | None = None
    timeout: float = 60.0

    @property
    def api_key(self) -> str | None:
        return os.getenv(self.api_key_env) if self.api_key_env else None


@dataclass
class TierConfig:
    """Provider id per routing tier, most capable first."""

    premium: str = "claude"
    advanced: str = "openai"
    standard: str = "google"
    economy: str = "llama"


@dataclass
class RoutingConfig:
    auto_select: bool = True
    default_provider: str = "openai"
    tiers: TierConfig = field(default_factory=TierConfig)


@dataclass
class EmbeddingsConfig:
    provider: str = "mock"  # "remote" or "mock"
    model: str = "text-embedding-3-small"
    base_url: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    dimensions: int = 1536
    timeout: float = 30.0
    batch_size: int = 16


@dataclass
class RetrievalConfig:
    max_results: int = 5
    min_similarity: float = 0.7


@dataclass
class GenerationConfig:
    temperature: float = 0.7
    max_tokens: int = 1024
    history_window: int = 5
    history_fetch_limit: int = 10


@dataclass
class PostProcessingConfig:
    closing_phrases: list[str] = field(default_factory=lambda: list(DEFAULT_CLOSING_PHRASES))
    default_closing: str = DEFAULT_CLOSING
    transition_template: str = DEFAULT_TRANSITION


@dataclass
class ExtractionConfig:
    promotion_threshold: float = 0.7
    rephrase_similarity: float = 0.9
    temperature: float = 0.2
    max_tokens: int = 2048
    provider: str | None = None


@dataclass
class OrganizationConfig:
    max_tags: int = 5
    max_relations: int = 10
    neighbor_limit: int = 10
    temperature: float = 0.2
    max_tokens: int = 2048
    provider: str | None = None


@dataclass
class RetryConfig:
    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 8.0


@dataclass
class StorageConfig:
    sqlite_path: str = "./data/replyloop.db"


@dataclass
class LoggingConfig:
    level: str = "INFO"
    structured: bool = False
    file: str | None = None


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 9000
    cors_origins: list[str] = field(default_factory=lambda: ["*"])


@dataclass
class EngineConfig:
    """Root configuration object passed to every component at construction."""

    providers: list[ProviderConfig] = field(default_factory=list)
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    embeddings: EmbeddingsConfig = field(default_factory=EmbeddingsConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    post_processing: PostProcessingConfig = field(default_factory=PostProcessingConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    organization: OrganizationConfig = field(default_factory=OrganizationConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _build_section(cls, data: dict[str, Any] | None):
    """Build a (possibly nested) config dataclass from a YAML mapping.

    Unknown keys are ignored with a warning so old config files keep loading.
    """
    data = data or {}
    kwargs = {}
    known = {f.name: f for f in fields(cls)}

    for key, value in data.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key '{key}' in {cls.__name__}")
            continue
        default = known[key].default_factory() if callable(known[key].default_factory) else None
        if is_dataclass(default) and isinstance(value, dict):
            kwargs[key] = _build_section(type(default), value)
        else:
            kwargs[key] = value

    return cls(**kwargs)


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class ConfigLoader:
    """Loads engine configuration from YAML plus environment overrides."""

    def __init__(self, config_path: str | None = None, env_file: str | None = None):
        """Initialize configuration loader.

        Args:
            config_path: YAML config file (default: config/replyloop.yaml)
            env_file: Path to .env file (default: ./.env)
        """
        self.config_path = Path(config_path or os.getenv("REPLYLOOP_CONFIG", "config/replyloop.yaml"))
        self.env_file = Path(env_file or ".env")

        if self.env_file.exists():
            load_dotenv(self.env_file)
            logger.info(f"Loaded environment from {self.env_file}")
        else:
            logger.debug(f"Environment file not found: {self.env_file}")

    def load(self) -> EngineConfig:
        """Read the YAML file and apply environment overrides.

        Returns:
            Fully populated EngineConfig
        """
        raw = self._read_yaml()
        config = self.from_dict(raw)
        self._apply_env_overrides(config)
        logger.info(
            f"Loaded configuration: {len(config.providers)} providers, "
            f"auto_select={config.routing.auto_select}, default={config.routing.default_provider}"
        )
        return config

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> EngineConfig:
        """Build an EngineConfig from an already parsed mapping."""
        raw = dict(raw or {})
        providers = [ProviderConfig(**p) for p in raw.pop("providers", []) or []]
        config = _build_section(EngineConfig, raw)
        config.providers = providers
        return config

    def _read_yaml(self) -> dict[str, Any]:
        if not self.config_path.exists():
            logger.warning(f"Config file not found: {self.config_path}, using defaults")
            return {}

        with open(self.config_path, encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    def _apply_env_overrides(self, config: EngineConfig) -> None:
        """Environment variables win over the YAML file."""
        if os.getenv("AUTO_SELECT_MODEL") is not None:
            config.routing.auto_select = _env_bool(os.environ["AUTO_SELECT_MODEL"])
        if os.getenv("AI_PROVIDER"):
            config.routing.default_provider = os.environ["AI_PROVIDER"].lower()
        if os.getenv("SQLITE_DB_PATH"):
            config.storage.sqlite_path = os.environ["SQLITE_DB_PATH"]
        if os.getenv("EMBEDDINGS_PROVIDER"):
            config.embeddings.provider = os.environ["EMBEDDINGS_PROVIDER"].lower()
        if os.getenv("EMBEDDINGS_MODEL"):
            config.embeddings.model = os.environ["EMBEDDINGS_MODEL"]
        if os.getenv("LOG_LEVEL"):
            config.logging.level = os.environ["LOG_LEVEL"]
