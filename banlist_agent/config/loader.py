"""
Agent configuration file handling.

The config lives in a JSON file next to the server's other configuration.
Keys are matched case-insensitively and without regard to underscores, so
both ``ApiKey`` and ``api_key`` are accepted. A missing file is created
with defaults; an unreadable or invalid file falls back to defaults
without being overwritten.
"""

import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError

from banlist_agent.models.agent import AgentConfig

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = "sharedbanlist.json"


def _normalize_key(key: str) -> str:
    return key.replace("_", "").lower()


_FIELD_BY_KEY = {_normalize_key(name): name for name in AgentConfig.model_fields}


def parse_config(data: dict) -> AgentConfig:
    """Build an AgentConfig from loosely-keyed JSON data. Unknown keys are ignored."""
    fields = {}
    for key, value in data.items():
        name = _FIELD_BY_KEY.get(_normalize_key(str(key)))
        if name is None:
            logger.warning("Ignoring unknown config key: %s", key)
            continue
        fields[name] = value
    return AgentConfig(**fields)


def write_config(config: AgentConfig, path: Union[str, Path]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.model_dump(mode="json"), indent=2))


def load_or_create_config(path: Union[str, Path]) -> AgentConfig:
    """Load the agent config from ``path``, generating a default file if it doesn't exist."""
    path = Path(path)

    if not path.exists():
        logger.info("Config file not found at %s. Generating default config.", path)
        config = AgentConfig()
        try:
            write_config(config, path)
        except OSError as e:
            logger.error("Failed to generate config at %s: %s. Using default values.", path, e)
        return config

    try:
        data = json.loads(path.read_text())
    except (OSError, ValueError) as e:
        logger.error("Failed to read config at %s: %s. Using default values.", path, e)
        return AgentConfig()

    if not isinstance(data, dict):
        logger.error("Config at %s is not a JSON object. Using default values.", path)
        return AgentConfig()

    try:
        return parse_config(data)
    except ValidationError as e:
        logger.error("Invalid config at %s: %s. Using default values.", path, e)
        return AgentConfig()
