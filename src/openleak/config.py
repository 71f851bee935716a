"""Configuration management for openleak.

This module handles the settings that locate the OpenClaw configuration file
and the OpenLeak proxy, and the load/merge/save cycle that patches the
OpenLeak provider into ``openclaw.json``.
"""

import copy
import json
import math
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

import json5

from openleak.logging import get_logger

logger = get_logger(__name__)

OPENLEAK_BASE_URL = "https://openleak.fun"
API_KEY_ENV_VAR = "OPENLEAK_API_KEY"
PROVIDER_NAME = "openleak"
MODEL_ID = "claude-sonnet-4-5"
PRIMARY_MODEL = f"{PROVIDER_NAME}/{MODEL_ID}"
MODEL_ALIAS = "OpenLeak (free Claude)"


def get_config_dir() -> Path:
    """Get the OpenClaw configuration directory path.

    Returns:
        Path to ~/.openclaw directory
    """
    return Path.home() / ".openclaw"


def get_default_config_path() -> Path:
    """Get the default OpenClaw configuration file path.

    Returns:
        Path to ~/.openclaw/openclaw.json
    """
    return get_config_dir() / "openclaw.json"


@dataclass
class SetupSettings:
    """Resolved locations and options for one setup run.

    Passed explicitly to every component so tests can point the run at a
    temporary config file or a local proxy.
    """

    config_path: Path = field(default_factory=get_default_config_path)
    base_url: str = OPENLEAK_BASE_URL
    env_var: str = API_KEY_ENV_VAR
    timeout: Optional[float] = None

    def __post_init__(self):
        self.config_path = Path(self.config_path).expanduser()
        self.base_url = self.base_url.rstrip("/")

    @property
    def anthropic_base_url(self) -> str:
        # Anthropic SDKs append /v1/messages themselves
        return self.base_url

    @property
    def openai_base_url(self) -> str:
        return f"{self.base_url}/v1"

    @property
    def messages_url(self) -> str:
        return f"{self.base_url}/v1/messages"

    @property
    def generate_key_url(self) -> str:
        return f"{self.base_url}/api/generate-key"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "SetupSettings":
        """Build settings from environment variables.

        Reads OPENCLAW_CONFIG_PATH and OPENLEAK_BASE_URL. Keyword overrides
        that are not None take precedence over the environment.

        Args:
            environ: Environment mapping (default: os.environ)
            **overrides: Explicit field values, e.g. from CLI flags

        Returns:
            SetupSettings instance
        """
        if environ is None:
            environ = os.environ

        values = {}
        if environ.get("OPENCLAW_CONFIG_PATH", "").strip():
            values["config_path"] = Path(environ["OPENCLAW_CONFIG_PATH"].strip())
        if environ.get("OPENLEAK_BASE_URL", "").strip():
            values["base_url"] = environ["OPENLEAK_BASE_URL"].strip()

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


def _reject_constant(name: str):
    # NaN and Infinity are JSON5 only, openclaw.json must stay strict JSON
    raise ValueError(f"non-JSON number {name}")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if math.isinf(value):
        raise ValueError(f"number out of range {text}")
    return value


def load_config(path: Path) -> Dict:
    """Load an OpenClaw configuration file.

    The file is parsed with json5, so ``//`` and ``/* */`` comments and
    trailing commas are accepted. A file that cannot be read or parsed is
    treated as empty: the run proceeds and the patch is written over it.

    Args:
        path: Path to openclaw.json

    Returns:
        Configuration dictionary ({} if missing or unparseable)
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No existing config at {path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json5.load(f, parse_constant=_reject_constant, parse_float=_parse_finite_float)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not parse existing {path.name}, it will be replaced by the OpenLeak settings ({e})")
        return {}

    if not isinstance(config, dict):
        logger.warning(f"Existing {path.name} is not a JSON object, it will be replaced by the OpenLeak settings")
        return {}

    logger.debug(f"Loaded {len(config)} top-level keys from {path}")
    return config


def deep_merge(target: Dict, source: Dict) -> Dict:
    """Recursively merge source into a deep copy of target.

    Nested dictionaries present on both sides are merged; any other value
    from source (scalars, lists) replaces the target value. The result shares
    no containers with either input, so editing it never touches them.

    Args:
        target: Existing configuration
        source: Patch to apply

    Returns:
        New merged dictionary
    """
    result = copy.deepcopy(target)
    _merge_into(result, source)
    return result


def _merge_into(target: Dict, source: Dict) -> None:
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge_into(target[key], value)
        else:
            target[key] = copy.deepcopy(value)


def save_config(config: Dict, path: Path) -> None:
    """Save configuration as pretty-printed JSON with chmod 600.

    Args:
        config: Configuration dictionary to save
        path: Destination file, parent directories are created as needed
    """
    path = Path(path)
    # Serialize first so a bad value fails before the old file is truncated
    text = json.dumps(config, indent=2, ensure_ascii=False, allow_nan=False) + "\n"

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)

    # Owner read/write only, the file holds the API key
    os.chmod(path, 0o600)

    logger.info(f"Configuration saved to {path}")


def build_provider_patch(api_key: str, settings: SetupSettings) -> Dict:
    """Build the OpenClaw settings that register OpenLeak as the provider.

    Args:
        api_key: OpenLeak API key
        settings: Settings for this run

    Returns:
        Patch dictionary to merge into openclaw.json
    """
    return {
        # Referenced from the provider block as ${OPENLEAK_API_KEY}
        "env": {
            settings.env_var: api_key,
        },
        "agents": {
            "defaults": {
                "model": {
                    "primary": PRIMARY_MODEL,
                    "fallbacks": [],
                },
                # Catalog entry so /model can list it
                "models": {
                    PRIMARY_MODEL: {
                        "alias": MODEL_ALIAS,
                    },
                },
            },
        },
        "models": {
            "mode": "merge",
            "providers": {
                PROVIDER_NAME: {
                    "baseUrl": settings.anthropic_base_url,
                    "apiKey": "${" + settings.env_var + "}",
                    "api": "anthropic-messages",
                    "models": [
                        {
                            "id": MODEL_ID,
                            "name": "Claude Sonnet 4.5 (via OpenLeak)",
                            "reasoning": False,
                            "input": ["text"],
                            "cost": {"input": 0, "output": 0, "cacheRead": 0, "cacheWrite": 0},
                            "contextWindow": 200000,
                            "maxTokens": 8192,
                        },
                    ],
                },
            },
        },
    }


def apply_provider_patch(api_key: str, settings: SetupSettings) -> Dict:
    """Load openclaw.json, merge the OpenLeak patch into it and write it back.

    Args:
        api_key: OpenLeak API key
        settings: Settings for this run

    Returns:
        The merged configuration that was written
    """
    existing = load_config(settings.config_path)
    merged = deep_merge(existing, build_provider_patch(api_key, settings))
    save_config(merged, settings.config_path)
    return merged
