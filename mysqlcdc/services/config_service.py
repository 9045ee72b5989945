"""
Configuration service for MySQL CDC sessions
"""

import json
import yaml
from pathlib import Path
from typing import List

from ..exceptions import ConfigurationError
from ..models.config import CDCConfig
from .filter_service import known_event_names


class ConfigService:
    """Service for loading and checking CDC configuration files"""

    def __init__(self):
        self._config: CDCConfig = None

    def load_config(self, config_path: str) -> CDCConfig:
        """Load configuration from a JSON or YAML file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        suffix = config_path.suffix.lower()
        if suffix not in ('.json', '.yml', '.yaml'):
            raise ConfigurationError(f"Unsupported configuration format: {config_path.suffix}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_dict = json.load(f) if suffix == '.json' else yaml.safe_load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON configuration: {e}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML configuration: {e}")
        except OSError as e:
            raise ConfigurationError(f"Error reading configuration: {e}")

        self._config = CDCConfig.from_dict(config_dict)
        return self._config

    def get_config(self) -> CDCConfig:
        """Get current configuration"""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config

    def validate_config(self, config: CDCConfig) -> List[str]:
        """
        Find settings that load fine but are probably mistakes

        Event names are matched case-sensitively, so a misspelled name in
        include_events silently drops every event of that type.

        Returns:
            List of human readable warnings, empty if nothing looks wrong
        """
        warnings = []
        known = known_event_names()
        filters = config.filters

        for option, names in (('include_events', filters.include_events),
                              ('exclude_events', filters.exclude_events)):
            for name in sorted(names or ()):
                if name not in known:
                    warnings.append(f"{option}: unknown event name '{name}'")

        if filters.include_events is not None and not filters.include_events:
            warnings.append("include_events is empty, every event will be skipped")

        session = config.session
        if session.start_at_end and (session.filename is not None or session.position is not None):
            warnings.append("start_at_end is set, filename/position will be replaced by the binlog tail")
        if session.position is not None and session.filename is None:
            warnings.append("position is ignored without filename")

        return warnings
