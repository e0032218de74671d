"""Configuration loading and validation."""

import json
import os
from dataclasses import dataclass, field
from agent.exceptions import ConfigError


@dataclass
class ModelConfig:
    """Configuration for the chat model and its OpenAI-compatible endpoint."""
    model_name: str = "gpt-4.1-mini"
    base_url: str = "https://api.openai.com/v1"
    temperature: float | None = None
    api_key: str = ""


@dataclass
class ProviderSettings:
    """Configuration for LLM provider connectivity."""
    connect_timeout: float = 5.0
    read_timeout: float = 120.0
    max_retries: int = 3
    health_check_on_start: bool = True


@dataclass
class DataStoreConfig:
    """Configuration for the DynamoDB gateway."""
    region: str = "ap-southeast-1"
    endpoint_url: str | None = None
    partition_key: str = "PK"
    sort_key: str = "SK"
    default_limit: int = 100
    scan_forward: bool = True


@dataclass
class ToolExecutionConfig:
    """Configuration for tool execution behavior."""
    default_timeout: float = 30.0
    timeouts: dict[str, float] = field(default_factory=dict)


@dataclass
class TelemetryConfig:
    """Configuration for telemetry and metrics logging."""
    enabled: bool = False
    log_dir: str = "./data/metrics"


@dataclass
class AgentConfig:
    """Complete agent configuration."""
    chat_model: ModelConfig = field(default_factory=ModelConfig)
    provider: ProviderSettings = field(default_factory=ProviderSettings)
    datastore: DataStoreConfig = field(default_factory=DataStoreConfig)
    tool_execution: ToolExecutionConfig = field(default_factory=ToolExecutionConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    prompt_profile: str = "default"
    max_tool_rounds: int = 25
    data_dir: str = "data"
    log_dir: str = "data/logs"


def load_config(config_path: str = "config.json") -> AgentConfig:
    """Load configuration from JSON file with defaults and environment overrides."""
    if os.path.exists(config_path):
        try:
            with open(config_path, "r") as f:
                raw = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {config_path} must contain a JSON object")
    else:
        raw = {}

    data_dir = raw.get("data_dir", "data")
    if not isinstance(data_dir, str) or not data_dir.strip():
        raise ConfigError("data_dir must be a non-empty string")

    chat_model = _load_model_settings(raw.get("chat_model", {}))
    provider = _load_provider_settings(raw.get("provider", {}))
    datastore = _load_datastore_settings(raw.get("datastore", {}))
    tool_execution = _load_tool_execution_settings(raw.get("tool_execution", {}))
    telemetry = _load_telemetry_settings(raw.get("telemetry", {}), data_dir)

    _apply_env_overrides(chat_model, datastore)

    prompt_profile = raw.get("prompt_profile", "default")
    if not isinstance(prompt_profile, str) or not prompt_profile.strip():
        raise ConfigError("prompt_profile must be a non-empty string")

    max_tool_rounds = _coerce_int(raw.get("max_tool_rounds", 25), "max_tool_rounds", 1)

    log_dir = raw.get("log_dir", os.path.join(data_dir, "logs"))
    for d in [data_dir, log_dir, telemetry.log_dir]:
        os.makedirs(d, exist_ok=True)

    return AgentConfig(
        chat_model=chat_model,
        provider=provider,
        datastore=datastore,
        tool_execution=tool_execution,
        telemetry=telemetry,
        prompt_profile=prompt_profile.strip(),
        max_tool_rounds=max_tool_rounds,
        data_dir=data_dir,
        log_dir=log_dir,
    )


def _apply_env_overrides(chat_model: ModelConfig, datastore: DataStoreConfig) -> None:
    """Environment variables win over the config file."""
    api_key = os.getenv("OPENAI_API_KEY")
    if api_key:
        chat_model.api_key = api_key.strip()

    base_url = os.getenv("OPENAI_BASE_URL")
    if base_url:
        chat_model.base_url = base_url.strip()

    model_name = os.getenv("OPENAI_MODEL")
    if model_name:
        chat_model.model_name = model_name.strip()

    region = os.getenv("AWS_REGION")
    if region:
        datastore.region = region.strip()

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT_URL")
    if endpoint_url:
        datastore.endpoint_url = endpoint_url.strip()


def _load_model_settings(raw: dict) -> ModelConfig:
    """Parse and validate chat model settings."""
    if not isinstance(raw, dict):
        raise ConfigError("chat_model must be an object")

    model_name = raw.get("model_name", "gpt-4.1-mini")
    if not isinstance(model_name, str) or not model_name.strip():
        raise ConfigError("chat_model.model_name must be a non-empty string")

    base_url = raw.get("base_url", "https://api.openai.com/v1")
    if not isinstance(base_url, str) or not base_url.strip():
        raise ConfigError("chat_model.base_url must be a non-empty string")

    temperature = raw.get("temperature")
    if temperature is not None:
        temperature = _coerce_float(temperature, "chat_model.temperature", 0.0)

    api_key = raw.get("api_key", "")
    if not isinstance(api_key, str):
        raise ConfigError("chat_model.api_key must be a string")

    return ModelConfig(
        model_name=model_name.strip(),
        base_url=base_url.strip(),
        temperature=temperature,
        api_key=api_key.strip(),
    )


def _load_provider_settings(raw: dict) -> ProviderSettings:
    """Parse and validate provider connectivity settings."""
    if not isinstance(raw, dict):
        raise ConfigError("provider must be an object")

    connect_timeout = _coerce_float(raw.get("connect_timeout", 5.0), "provider.connect_timeout", 0.1)
    read_timeout = _coerce_float(raw.get("read_timeout", 120.0), "provider.read_timeout", 0.1)
    max_retries = _coerce_int(raw.get("max_retries", 3), "provider.max_retries", 1)

    health_check_on_start = raw.get("health_check_on_start", True)
    if not isinstance(health_check_on_start, bool):
        raise ConfigError("provider.health_check_on_start must be a boolean")

    return ProviderSettings(
        connect_timeout=connect_timeout,
        read_timeout=read_timeout,
        max_retries=max_retries,
        health_check_on_start=health_check_on_start,
    )


def _load_datastore_settings(raw: dict) -> DataStoreConfig:
    """Parse and validate DynamoDB settings."""
    if not isinstance(raw, dict):
        raise ConfigError("datastore must be an object")

    region = raw.get("region", "ap-southeast-1")
    if not isinstance(region, str) or not region.strip():
        raise ConfigError("datastore.region must be a non-empty string")

    endpoint_url = raw.get("endpoint_url")
    if endpoint_url is not None and (not isinstance(endpoint_url, str) or not endpoint_url.strip()):
        raise ConfigError("datastore.endpoint_url must be a non-empty string if provided")

    partition_key = raw.get("partition_key", "PK")
    if not isinstance(partition_key, str) or not partition_key.strip():
        raise ConfigError("datastore.partition_key must be a non-empty string")

    sort_key = raw.get("sort_key", "SK")
    if not isinstance(sort_key, str) or not sort_key.strip():
        raise ConfigError("datastore.sort_key must be a non-empty string")

    default_limit = _coerce_int(raw.get("default_limit", 100), "datastore.default_limit", 1)

    scan_forward = raw.get("scan_forward", True)
    if not isinstance(scan_forward, bool):
        raise ConfigError("datastore.scan_forward must be a boolean")

    return DataStoreConfig(
        region=region.strip(),
        endpoint_url=endpoint_url.strip() if isinstance(endpoint_url, str) else None,
        partition_key=partition_key.strip(),
        sort_key=sort_key.strip(),
        default_limit=default_limit,
        scan_forward=scan_forward,
    )


def _load_tool_execution_settings(raw: dict) -> ToolExecutionConfig:
    """Parse and validate tool execution settings."""
    if not isinstance(raw, dict):
        raise ConfigError("tool_execution must be an object")

    default_timeout = _coerce_float(
        raw.get("default_timeout", 30.0),
        "tool_execution.default_timeout",
        0.1,
    )

    timeouts_raw = raw.get("timeouts", {})
    if timeouts_raw is None:
        timeouts_raw = {}
    if not isinstance(timeouts_raw, dict):
        raise ConfigError("tool_execution.timeouts must be an object")

    timeouts: dict[str, float] = {}
    for key, value in timeouts_raw.items():
        if not isinstance(key, str):
            raise ConfigError("tool_execution.timeouts keys must be strings")
        timeouts[key] = _coerce_float(value, f"tool_execution.timeouts.{key}", 0.1)

    return ToolExecutionConfig(
        default_timeout=default_timeout,
        timeouts=timeouts,
    )


def _load_telemetry_settings(raw: dict, data_dir: str) -> TelemetryConfig:
    """Parse and validate telemetry settings."""
    if not isinstance(raw, dict):
        raise ConfigError("telemetry must be an object")

    enabled = raw.get("enabled", False)
    if not isinstance(enabled, bool):
        raise ConfigError("telemetry.enabled must be a boolean")

    log_dir = raw.get("log_dir", os.path.join(data_dir, "metrics"))
    if not isinstance(log_dir, str) or not log_dir.strip():
        raise ConfigError("telemetry.log_dir must be a non-empty string")

    return TelemetryConfig(enabled=enabled, log_dir=log_dir)


def _coerce_float(value: object, name: str, min_value: float) -> float:
    """Coerce config value to float with basic validation."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be a number")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be a number")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value


def _coerce_int(value: object, name: str, min_value: int) -> int:
    """Coerce config value to int with basic validation."""
    if isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer")
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{name} must be an integer")

    if value < min_value:
        raise ConfigError(f"{name} must be >= {min_value}")
    return value
