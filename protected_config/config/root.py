"""
Configuration Root - the merged view over an ordered list of providers.

Later providers take precedence over earlier ones for duplicate keys.
"""

from typing import Dict, Iterator, List, Optional, Sequence

from ..constants import ConfigKeys
from .sources import ConfigurationProvider


class ConfigurationRoot:
    """Read-only merged configuration snapshot."""

    def __init__(self, providers: Sequence[ConfigurationProvider]):
        self._providers: List[ConfigurationProvider] = list(providers)

    @property
    def providers(self) -> List[ConfigurationProvider]:
        return list(self._providers)

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for provider in reversed(self._providers):
            found, value = provider.try_get(key)
            if found:
                return value
        return default

    def __getitem__(self, key: str) -> str:
        for provider in reversed(self._providers):
            found, value = provider.try_get(key)
            if found:
                return value
        raise KeyError(key)

    def __contains__(self, key: str) -> bool:
        return any(provider.try_get(key)[0] for provider in self._providers)

    def keys(self) -> List[str]:
        seen: Dict[str, None] = {}
        for provider in self._providers:
            for key in provider.keys():
                seen.setdefault(key, None)
        return list(seen)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.keys())

    def as_dict(self) -> Dict[str, str]:
        """Flattened key/value mapping, later providers overriding earlier ones."""
        merged: Dict[str, str] = {}
        for provider in self._providers:
            for key in provider.keys():
                found, value = provider.try_get(key)
                if found:
                    merged[key] = value
        return merged

    def get_section(self, section: str) -> Dict[str, str]:
        """
        Return the keys below `section` with the section prefix removed.

        get_section("Database") on {"Database:Password": "x"} -> {"Password": "x"}
        """
        prefix = f"{section}{ConfigKeys.DELIMITER}"
        return {
            key[len(prefix):]: value
            for key, value in self.as_dict().items()
            if key.startswith(prefix)
        }

    def reload(self) -> None:
        """Reload every provider in order; decorated providers decrypt again."""
        for provider in self._providers:
            provider.load()

    def __repr__(self) -> str:
        return f"ConfigurationRoot({len(self._providers)} providers)"
