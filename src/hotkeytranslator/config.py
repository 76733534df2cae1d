"""Load translator settings from ``translators.toml``.

Example file::

    [gateway]
    port = 3000
    engines = ["google", "yandex"]

    [deepl]
    enabled = true
    port = 3001

    [openrouter]
    api_key_file = "openrouter_api_key.txt"

    [[openrouter.models]]
    model_id = "x-ai/grok-4-fast:free"
    display_name = "Grok"
    include_error_explanation = true

Every section and key is optional; missing values fall back to the defaults
below. An empty ``openrouter.models`` array also means the default models.
"""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from hotkeytranslator.translators.openrouter import OPENROUTER_BASE_URL, OpenRouterModel

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "translators.toml"
API_KEY_ENV = "OPENROUTER_API_KEY"
DEFAULT_API_KEY_FILE = "openrouter_api_key.txt"


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or is malformed."""


def default_models() -> list[OpenRouterModel]:
    return [
        OpenRouterModel(
            model_id="x-ai/grok-4-fast:free",
            display_name="Grok",
            include_error_explanation=True,
        ),
        OpenRouterModel(
            model_id="deepseek/deepseek-chat-v3.1:free",
            display_name="DeepSeek",
            strip_reasoning_tags=True,
        ),
    ]


@dataclass
class GatewaySettings:
    host: str = "127.0.0.1"
    port: int = 3000
    engines: list[str] = field(default_factory=lambda: ["google", "yandex"])
    timeout: float = 10.0


@dataclass
class DeepLSettings:
    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 3001
    timeout: float = 10.0


@dataclass
class OpenRouterSettings:
    base_url: str = OPENROUTER_BASE_URL
    api_key_file: str = DEFAULT_API_KEY_FILE
    timeout: float = 30.0
    explanation_language: str = "en"
    models: list[OpenRouterModel] = field(default_factory=default_models)


@dataclass
class CaptureSettings:
    copy_delay: float = 0.1


@dataclass
class DisplaySettings:
    pipe_name: str = "DotNetTranslatorPipe"


@dataclass
class Settings:
    gateway: GatewaySettings = field(default_factory=GatewaySettings)
    deepl: DeepLSettings = field(default_factory=DeepLSettings)
    openrouter: OpenRouterSettings = field(default_factory=OpenRouterSettings)
    capture: CaptureSettings = field(default_factory=CaptureSettings)
    display: DisplaySettings = field(default_factory=DisplaySettings)
    source: Path | None = None


def find_config_file(start: Path | None = None) -> Path | None:
    """Search *start* (default: cwd) and its parents for the config file."""
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Path | None = None) -> Settings:
    """Load settings from *path*, or from the discovered config file.

    An explicit path must exist and parse; otherwise ConfigError is raised.
    Without one, a missing file means built-in defaults.
    """
    if path is None:
        path = find_config_file()
        if path is None:
            logger.warning("Config file '%s' not found. Using default settings.", CONFIG_FILE_NAME)
            return Settings()

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}") from None
    except OSError as e:
        raise ConfigError(f"Failed to read '{path}': {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Failed to parse '{path}': {e}") from e

    settings = settings_from_dict(data)
    settings.source = Path(path)
    logger.info("Loaded settings from '%s'", path)
    return settings


def settings_from_dict(data: dict[str, Any]) -> Settings:
    """Build Settings from parsed TOML data."""
    gateway = _section(data, "gateway")
    deepl = _section(data, "deepl")
    openrouter = _section(data, "openrouter")
    capture = _section(data, "capture")
    display = _section(data, "display")

    defaults = Settings()
    engines = gateway.get("engines", defaults.gateway.engines)
    if not isinstance(engines, list) or not all(isinstance(e, str) for e in engines):
        raise ConfigError("gateway.engines must be a list of strings")

    return Settings(
        gateway=GatewaySettings(
            host=str(gateway.get("host", defaults.gateway.host)),
            port=_int(gateway, "port", defaults.gateway.port),
            engines=[e for e in engines if e.strip()],
            timeout=_float(gateway, "timeout", defaults.gateway.timeout),
        ),
        deepl=DeepLSettings(
            enabled=bool(deepl.get("enabled", defaults.deepl.enabled)),
            host=str(deepl.get("host", defaults.deepl.host)),
            port=_int(deepl, "port", defaults.deepl.port),
            timeout=_float(deepl, "timeout", defaults.deepl.timeout),
        ),
        openrouter=OpenRouterSettings(
            base_url=str(openrouter.get("base_url", defaults.openrouter.base_url)),
            api_key_file=str(openrouter.get("api_key_file", defaults.openrouter.api_key_file)),
            timeout=_float(openrouter, "timeout", defaults.openrouter.timeout),
            explanation_language=str(
                openrouter.get("explanation_language", defaults.openrouter.explanation_language)
            ),
            models=_models(openrouter),
        ),
        capture=CaptureSettings(
            copy_delay=_float(capture, "copy_delay", defaults.capture.copy_delay),
        ),
        display=DisplaySettings(
            pipe_name=str(display.get("pipe_name", defaults.display.pipe_name)),
        ),
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def _int(section: dict[str, Any], key: str, default: int) -> int:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{key} must be an integer, got {value!r}")
    return value


def _float(section: dict[str, Any], key: str, default: float) -> float:
    value = section.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{key} must be a number, got {value!r}")
    return float(value)


def _models(openrouter: dict[str, Any]) -> list[OpenRouterModel]:
    """Parse [[openrouter.models]], skipping invalid entries."""
    if "models" not in openrouter:
        return default_models()

    raw_models = openrouter["models"]
    if not isinstance(raw_models, list):
        raise ConfigError("openrouter.models must be an array of tables")
    if not raw_models:
        logger.warning("No OpenRouter models configured. Using defaults.")
        return default_models()

    models: list[OpenRouterModel] = []
    for raw in raw_models:
        if not isinstance(raw, dict):
            logger.warning("Skipping invalid OpenRouter model config: %r", raw)
            continue
        model_id = str(raw.get("model_id", "")).strip()
        display_name = str(raw.get("display_name", "")).strip()
        if not model_id or not display_name:
            logger.warning("Skipping invalid OpenRouter model config: %r", raw)
            continue

        extra = {}
        if "reasoning_start" in raw:
            extra["reasoning_start"] = str(raw["reasoning_start"])
        if "reasoning_end" in raw:
            extra["reasoning_end"] = str(raw["reasoning_end"])
        models.append(OpenRouterModel(
            model_id=model_id,
            display_name=display_name,
            include_error_explanation=bool(raw.get("include_error_explanation", False)),
            strip_reasoning_tags=bool(raw.get("strip_reasoning_tags", False)),
            **extra,
        ))

    logger.debug("Loaded %d OpenRouter model(s)", len(models))
    return models


def resolve_api_key(settings: Settings, explicit: str | None = None) -> str | None:
    """Find the OpenRouter API key.

    Order: explicit value (CLI option), the OPENROUTER_API_KEY environment
    variable, then the key file (relative paths are resolved next to the
    config file, or the working directory without one).
    """
    if explicit and explicit.strip():
        return explicit.strip()

    env_key = os.environ.get(API_KEY_ENV, "").strip()
    if env_key:
        return env_key

    key_path = Path(settings.openrouter.api_key_file).expanduser()
    if not key_path.is_absolute():
        base = settings.source.parent if settings.source is not None else Path.cwd()
        key_path = base / key_path
    try:
        key = key_path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning("Could not read API key file '%s': %s", key_path, e)
        return None
    return key or None
