# plms_diffusion/core/config.py
from typing import Dict, Any, List, Union
import copy
import json
import logging
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

class ConfigManager:
    """
    Manager for hierarchical configuration.

    Handles loading, merging, and validating scheduler configurations
    so a preset can be overridden by a file and then by call-site values.
    """

    @staticmethod
    def load_config(path: Union[str, Path]) -> Dict[str, Any]:
        """
        Load configuration from file.

        Args:
            path: Path to configuration file (JSON or YAML)

        Returns:
            Configuration dictionary
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, 'r') as f:
            if path.suffix.lower() in ['.json']:
                config = json.load(f)
            elif path.suffix.lower() in ['.yaml', '.yml']:
                config = yaml.safe_load(f)
            else:
                raise ValueError(f"Unsupported config format: {path.suffix}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError(f"Config file {path} must contain a mapping, got {type(config).__name__}")

        logger.debug(f"Loaded config from {path} with keys {sorted(config)}")
        return config

    @staticmethod
    def merge_configs(*configs) -> Dict[str, Any]:
        """
        Merge multiple configurations with later ones taking precedence.

        Args:
            *configs: Configurations to merge

        Returns:
            Merged configuration
        """
        result = {}

        for config in configs:
            result = ConfigManager._deep_merge(result, config)

        return result

    @staticmethod
    def _deep_merge(dict1: Dict[str, Any], dict2: Dict[str, Any]) -> Dict[str, Any]:
        """
        Deep merge two dictionaries.

        Args:
            dict1: Base dictionary
            dict2: Dictionary to merge (takes precedence)

        Returns:
            Merged dictionary
        """
        result = copy.deepcopy(dict1)

        for key, value in dict2.items():
            # If both values are dicts, merge them
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)

        return result

    @staticmethod
    def validate_config(config: Dict[str, Any], schema: Dict[str, Any]) -> List[str]:
        """
        Validate configuration against schema.

        Args:
            config: Configuration to validate
            schema: Schema definition, mapping field name to
                ``{"type": ..., "required": ..., "choices": [...]}``

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        type_map = {
            "string": str,
            "integer": int,
            "number": (int, float),
            "boolean": bool,
            "array": list,
            "object": dict
        }

        # Check required fields
        for key, field_schema in schema.items():
            if field_schema.get("required", False) and key not in config:
                errors.append(f"Missing required field: {key}")

        for key, value in config.items():
            if key not in schema:
                continue
            field_schema = schema[key]
            expected_type = field_schema.get("type")

            python_type = type_map.get(expected_type)
            # bool is an int subclass, don't let True pass as a step count
            if python_type and (not isinstance(value, python_type)
                                or (isinstance(value, bool) and expected_type in ("integer", "number"))):
                errors.append(f"Field {key} has wrong type: expected {expected_type}, got {type(value).__name__}")
                continue

            choices = field_schema.get("choices")
            if choices is not None and value not in choices:
                errors.append(f"Field {key} must be one of {choices}, got {value!r}")

        return errors
