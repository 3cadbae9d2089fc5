"""Parse configuration options and set them to be used throughout txisolate."""

import copy
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from txisolate.core import DEFAULTS_FILE
from txisolate.core.exceptions import ConfigError


ENV_VAR_PREFIX = "TXISOLATE__"
USER_CONFIG_FILE = Path.home() / ".txisolate.yaml"


def _load_yaml(filepath: Union[str, Path]) -> Dict[str, Any]:
    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class TxIsolateConfig:
    """Default config setup using YAML."""

    def __init__(self, filepath: str = "", dict_config: Optional[Dict] = None) -> None:
        """Txisolate config class.

        Args:
            filepath: a YAML file whose values are laid over the packaged defaults.
            dict_config: dictionary of values to override

        Config file priority:
            1. user specified file passed in
            2. environment variable TXISOLATE__CONFIG_FILE
            3. ~/.txisolate.yaml, when it exists
            4. default config file in core
        """
        if filepath:
            self._filepath = filepath
        else:
            self._filepath = os.getenv("TXISOLATE__CONFIG_FILE", "")
            if self._filepath == "" and USER_CONFIG_FILE.exists():
                self._filepath = str(USER_CONFIG_FILE)

        self._config = _load_yaml(DEFAULTS_FILE)
        if self._filepath:
            try:
                overrides = _load_yaml(self._filepath)
            except FileNotFoundError as exc:
                raise ConfigError(f"Config file {self._filepath} does not exist.") from exc
            self._config = self._merge_dicts(self._config, overrides)

        self._dict_config = dict_config

    @property
    def filepath(self) -> str:
        """The user config file in effect, or the packaged defaults."""
        return self._filepath or str(DEFAULTS_FILE)

    def _merge_dicts(self, base: Dict, override: Dict) -> Dict:
        """Utility function to merge two dictionaries."""
        for key, value in override.items():
            if isinstance(value, dict):
                base[key] = self._merge_dicts(base.get(key, {}) or {}, value)
            else:
                base[key] = value
        return base

    def _get_env_var_name(self, section: str, key: str) -> str:
        return f"{ENV_VAR_PREFIX}{section.upper()}__{key.upper()}"

    def _get_environment_variable(self, section: str, key: str) -> Optional[str]:
        # must have format TXISOLATE__{SECTION}__{KEY} (note double underscore)
        env_var = self._get_env_var_name(section, key)
        return os.environ.get(env_var)

    def _interpolate_env_vars(self, value: Any) -> Any:
        if isinstance(value, str):
            return os.path.expandvars(value)
        return value

    def _get_yaml_variable(self, section: str, key: str) -> Any:
        return (self._config.get(section) or {}).get(key)

    def _get_dict_config_variable(self, section: str, key: str) -> Any:
        if self._dict_config:
            return (self._dict_config.get(section) or {}).get(key)
        return None

    def get(self, section: str, key: str) -> Any:
        """Get the configuration value for the section and key. Raise if key not found.

        The order of precedence: dict_config > Environment Variable > YAML File.

        Args:
            section: the section of the yaml to search.
            key: the key within the section to retrieve

        Raises: ConfigError
        """
        val = self._get_dict_config_variable(section, key)
        if val is not None:
            return self._interpolate_env_vars(val)

        val = self._get_environment_variable(section, key)
        if val is not None:
            return val

        val = self._get_yaml_variable(section, key)
        if val is not None:
            return self._interpolate_env_vars(val)

        raise ConfigError(
            f'"{key}" key not found in "{section}" section of {self.filepath}. Fallback '
            f'option using environment var "{self._get_env_var_name(section, key)}" was not '
            "found."
        )

    def get_section(self, section: str) -> Dict[str, Any]:
        """Returns a dictionary of all key-value pairs in the given section.

        The order of precedence: dict_config > Environment Variable > YAML File.
        """
        section_dict = copy.deepcopy(self._config.get(section) or {})

        prefix = f"{ENV_VAR_PREFIX}{section.upper()}__"
        for env_key in os.environ.keys():
            if env_key.startswith(prefix):
                key = env_key[len(prefix) :].lower()
                section_dict[key] = os.environ[env_key]

        if self._dict_config:
            section_dict.update(self._dict_config.get(section) or {})

        return section_dict

    def get_section_coerced(self, section: str) -> Dict[str, Any]:
        """Like get_section, but string values from the environment are parsed as YAML.

        This lets TXISOLATE__DB__POOL='{size: 5}' arrive as a dict.
        """
        coerced = {}
        for key, value in self.get_section(section).items():
            if isinstance(value, str):
                try:
                    value = yaml.safe_load(value)
                except yaml.YAMLError:
                    pass
            coerced[key] = value
        return coerced

    def get_boolean(self, section: str, key: str) -> bool:
        """Get the configuration value for the section and key as bool.

        Raise if key not found.
        """
        val = str(self.get(section, key)).lower().strip()
        if val in ("t", "true", "1", "yes"):
            return True
        elif val in ("f", "false", "0", "no"):
            return False
        else:
            raise ConfigError(
                f'Failed to convert value to bool. Please check "{key}" key in "{section}" '
                f'section or environment var "{self._get_env_var_name(section, key)}". '
                f'Current value: "{val}".'
            )

    def get_int(self, section: str, key: str) -> int:
        """Get the configuration value for the section and key as int.

        Raise if key not found.
        """
        val = self.get(section, key)
        try:
            return int(val)
        except ValueError as exc:
            raise ConfigError(
                f'Failed to convert value to int. Please check "{key}" key in "{section}" '
                f'section or environment var "{self._get_env_var_name(section, key)}". '
                f'Current value: "{val}".'
            ) from exc

    def get_list(self, section: str, key: str) -> List[str]:
        """Get a whitespace separated value (or a YAML list) as a list of strings."""
        val = self.get(section, key)
        if isinstance(val, (list, tuple)):
            return [str(v) for v in val]
        return str(val).split()

    def set(self, section: str, key: str, val: Any) -> None:
        """Set the configuration value for the section/key."""
        if section not in self._config or self._config[section] is None:
            self._config[section] = {}
        self._config[section][key] = val

    def write(self, filepath: Union[str, Path] = "") -> Path:
        """Persist the current config to disk.

        The packaged defaults are never overwritten; without a user file the
        config goes to ~/.txisolate.yaml.
        """
        if not filepath:
            filepath = self._filepath or USER_CONFIG_FILE
        with open(filepath, "w", encoding="utf-8") as f:
            yaml.safe_dump(self._config, f)
        return Path(filepath)

    def as_dict(self) -> Dict[str, Any]:
        """Return a copy of the YAML layer of the configuration."""
        return copy.deepcopy(self._config)


# a singleton to hold txisolate config that enables testing
_txisolate_config: Optional[TxIsolateConfig] = None


def get_txisolate_config(config: Optional[TxIsolateConfig] = None) -> TxIsolateConfig:
    """Get the txisolate config. If no config is provided, defaults are used.

    Args:
        config: a config to install as the process-wide instance.
    """
    global _txisolate_config
    if config is not None:
        _txisolate_config = config
    elif _txisolate_config is None:
        _txisolate_config = TxIsolateConfig()
    return _txisolate_config
