"""
Configuration sources and providers.

A source describes where configuration comes from; building it yields a
provider, the loadable object exposing flattened key/value data. Nested
mappings and lists are flattened into ':'-delimited keys:

    {"Database": {"Hosts": ["a", "b"], "Port": 5432}}
        -> {"Database:Hosts:0": "a", "Database:Hosts:1": "b", "Database:Port": "5432"}

Supports:
- In-memory dictionaries
- JSON, YAML and INI files (required or optional, reloadable on change)
- Environment variables with an optional prefix ('__' maps to ':')
"""

import configparser
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from ..constants import ConfigKeys

logger = logging.getLogger(__name__)

ReloadListener = Callable[[], None]


def flatten(data: Any, prefix: str = "") -> Dict[str, str]:
    """Flatten nested mappings/lists into ':'-delimited string key/values."""
    result: Dict[str, str] = {}

    if isinstance(data, Mapping):
        items = ((str(key), value) for key, value in data.items())
    elif isinstance(data, (list, tuple)):
        items = ((str(index), value) for index, value in enumerate(data))
    else:
        if prefix:
            result[prefix] = _to_string(data)
        return result

    for key, value in items:
        path = f"{prefix}{ConfigKeys.DELIMITER}{key}" if prefix else key
        result.update(flatten(value, path))

    return result


def _to_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# PROVIDER INTERFACE
# =============================================================================

class ConfigurationProvider(ABC):
    """
    Loadable key/value configuration data.

    Subclasses implement load(); reads go through try_get/get/keys.
    """

    def __init__(self):
        self._data: Dict[str, str] = {}
        self._reload_listeners: List[ReloadListener] = []

    @abstractmethod
    def load(self) -> None:
        """(Re)load data from the backing store."""

    @property
    def data(self) -> Mapping[str, str]:
        return MappingProxyType(self._data)

    def try_get(self, key: str) -> Tuple[bool, Optional[str]]:
        if key in self._data:
            return True, self._data[key]
        return False, None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        found, value = self.try_get(key)
        return value if found else default

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def keys(self) -> List[str]:
        return list(self._data)

    def on_reload(self, listener: ReloadListener) -> None:
        """Register a callback invoked after the provider reloads on its own."""
        self._reload_listeners.append(listener)

    def _notify_reload(self) -> None:
        for listener in list(self._reload_listeners):
            listener()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._data)} keys)"


class ConfigurationSource(ABC):
    """Declarative description of a configuration provider."""

    @abstractmethod
    def build(self) -> ConfigurationProvider:
        """Create a new, not yet loaded, provider."""


# =============================================================================
# IN-MEMORY
# =============================================================================

class MemoryConfigurationProvider(ConfigurationProvider):
    """Provider over a dictionary supplied by the caller."""

    def __init__(self, initial_data: Mapping[str, Any]):
        super().__init__()
        self._initial_data = initial_data

    def load(self) -> None:
        self._data = flatten(self._initial_data)


@dataclass(eq=False)
class MemoryConfigurationSource(ConfigurationSource):
    data: Mapping[str, Any] = field(default_factory=dict)

    def build(self) -> MemoryConfigurationProvider:
        return MemoryConfigurationProvider(self.data)


# =============================================================================
# FILES
# =============================================================================

class FileConfigurationProvider(ConfigurationProvider):
    """Base provider for configuration files."""

    def __init__(self, path: Path, optional: bool = False):
        super().__init__()
        self.path = path
        self.optional = optional
        self._mtime: Optional[float] = None

    @abstractmethod
    def _parse(self, content: str) -> Any:
        """Parse file content into nested data."""

    def load(self) -> None:
        if not self.path.exists():
            if not self.optional:
                raise FileNotFoundError(f"Config file not found: {self.path}")
            logger.debug(f"Optional config file not found: {self.path}")
            self._data = {}
            self._mtime = None
            return

        self._mtime = self.path.stat().st_mtime
        parsed = self._parse(self.path.read_text(encoding="utf-8"))
        if parsed is None:
            parsed = {}
        if not isinstance(parsed, Mapping):
            raise ValueError(f"Config file must contain a mapping at the top level: {self.path}")
        self._data = flatten(parsed)
        logger.debug(f"Loaded {len(self._data)} keys from {self.path}")

    def reload_if_changed(self) -> bool:
        """
        Reload when the file's modification time changed since the last load.

        Reload listeners are notified after a successful reload.

        Returns:
            True if the file was reloaded
        """
        current = self.path.stat().st_mtime if self.path.exists() else None
        if current == self._mtime:
            return False

        logger.info(f"Config file changed, reloading: {self.path}")
        self.load()
        self._notify_reload()
        return True


class JsonConfigurationProvider(FileConfigurationProvider):
    def _parse(self, content: str) -> Any:
        return json.loads(content) if content.strip() else {}


class YamlConfigurationProvider(FileConfigurationProvider):
    def _parse(self, content: str) -> Any:
        return yaml.safe_load(content)


class IniConfigurationProvider(FileConfigurationProvider):
    def _parse(self, content: str) -> Any:
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        parser.read_string(content, source=str(self.path))
        return {s: dict(parser[s]) for s in parser.sections()}


@dataclass(eq=False)
class FileConfigurationSource(ConfigurationSource):
    path: Union[str, Path]
    optional: bool = False

    provider_class = None

    def build(self) -> FileConfigurationProvider:
        return self.provider_class(Path(self.path), optional=self.optional)


@dataclass(eq=False)
class JsonConfigurationSource(FileConfigurationSource):
    provider_class = JsonConfigurationProvider


@dataclass(eq=False)
class YamlConfigurationSource(FileConfigurationSource):
    provider_class = YamlConfigurationProvider


@dataclass(eq=False)
class IniConfigurationSource(FileConfigurationSource):
    provider_class = IniConfigurationProvider


# =============================================================================
# ENVIRONMENT VARIABLES
# =============================================================================

class EnvironmentVariablesConfigurationProvider(ConfigurationProvider):
    """
    Provider over os.environ.

    Only variables starting with `prefix` are kept (prefix removed). A double
    underscore is the hierarchy separator: APP_Database__Password -> Database:Password
    """

    def __init__(self, prefix: str = ""):
        super().__init__()
        self.prefix = prefix

    def load(self) -> None:
        data: Dict[str, str] = {}
        for key, value in os.environ.items():
            if not key.startswith(self.prefix):
                continue
            name = key[len(self.prefix):]
            if not name:
                continue
            data[name.replace(ConfigKeys.ENV_NESTING, ConfigKeys.DELIMITER)] = value
        self._data = data


@dataclass(eq=False)
class EnvironmentVariablesConfigurationSource(ConfigurationSource):
    prefix: str = ""

    def build(self) -> EnvironmentVariablesConfigurationProvider:
        return EnvironmentVariablesConfigurationProvider(self.prefix)
