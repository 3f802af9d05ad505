"""
Protected Configuration Builder.

Collects configuration sources and builds a ConfigurationRoot in which every
provider is transparently decrypted according to its effective protection
policy:

    builder = ProtectedConfigurationBuilder(
        configure=lambda dp: dp.persist_keys_to_file("config.key"),
    )
    builder.add_json_file("appsettings.json")
    builder.add_yaml_file("secrets.yaml").with_protection_options(key_number=2)
    builder.add_environment_variables(prefix="MYAPP_")
    config = builder.build()

    config["Database:Password"]

with_protection_options() always applies to the most recently added source.
"""

import itertools
import logging
from pathlib import Path
from typing import Any, List, Mapping, NamedTuple, Optional, Union

from ..constants import Patterns
from ..crypto.data_protection import DataProtectionProvider
from ..exceptions import ArgumentError
from .policy import ConfigureAction, PolicyRegistry, ProtectionPolicy
from .provider import ProtectedConfigurationProvider
from .root import ConfigurationRoot
from .sources import (
    ConfigurationProvider,
    ConfigurationSource,
    EnvironmentVariablesConfigurationSource,
    IniConfigurationSource,
    JsonConfigurationSource,
    MemoryConfigurationSource,
    YamlConfigurationSource,
)
from .token_pattern import TokenPattern

logger = logging.getLogger(__name__)


class _SourceEntry(NamedTuple):
    handle: int
    source: ConfigurationSource


class ProtectedConfigurationBuilder:
    """
    Configuration builder decrypting protected values of any source.

    The global protection policy is created from the constructor arguments;
    per-source overrides are merged over it field by field.
    """

    def __init__(
        self,
        protection_provider: Optional[DataProtectionProvider] = None,
        configure: Optional[ConfigureAction] = None,
        pattern: Optional[str] = None,
        purpose: Optional[str] = None,
        key_number: Optional[int] = None,
    ):
        """
        Args:
            protection_provider: Provider of data protectors (exclusive with configure)
            configure: Callback configuring a DataProtectionBuilder
            pattern: Token regular expression, defaults to Protected:{...}
            purpose: Purpose string for the global protector
            key_number: Numbered key for the global protector (exclusive with purpose)

        Raises:
            ArgumentError: neither a pattern nor a protector source was given,
                           or the arguments conflict
            ConfigurationError: pattern lacks the payload group
        """
        global_policy = ProtectionPolicy.create(
            pattern=pattern,
            protection_provider=protection_provider,
            configure=configure,
            purpose=purpose,
            key_number=key_number,
        )
        if global_policy.pattern is None:
            global_policy = ProtectionPolicy(
                pattern=TokenPattern(Patterns.PROTECTED),
                protector=global_policy.protector,
            )

        self._registry = PolicyRegistry(global_policy)
        self._sources: List[_SourceEntry] = []
        self._handles = itertools.count(1)

    @property
    def global_policy(self) -> ProtectionPolicy:
        return self._registry.global_policy

    @property
    def sources(self) -> List[ConfigurationSource]:
        return [entry.source for entry in self._sources]

    def add(self, source: ConfigurationSource) -> "ProtectedConfigurationBuilder":
        """Append a configuration source."""
        if source is None:
            raise ArgumentError("source must not be None")

        self._sources.append(_SourceEntry(next(self._handles), source))
        return self

    def with_protection_options(
        self,
        pattern: Optional[str] = None,
        protection_provider: Optional[DataProtectionProvider] = None,
        configure: Optional[ConfigureAction] = None,
        purpose: Optional[str] = None,
        key_number: Optional[int] = None,
    ) -> "ProtectedConfigurationBuilder":
        """
        Override the protection policy of the most recently added source.

        Fields not supplied (pattern or protector) are inherited from the
        global policy.

        Raises:
            ArgumentError: no source added yet, or invalid arguments
        """
        if not self._sources:
            raise ArgumentError("with_protection_options requires a previously added source")

        policy = ProtectionPolicy.create(
            pattern=pattern,
            protection_provider=protection_provider,
            configure=configure,
            purpose=purpose,
            key_number=key_number,
        )
        tail = self._sources[-1]
        self._registry.set_override(tail.handle, policy)
        logger.debug(f"Protection override registered for {type(tail.source).__name__}")
        return self

    # Convenience adders

    def add_in_memory(self, data: Mapping[str, Any]) -> "ProtectedConfigurationBuilder":
        return self.add(MemoryConfigurationSource(data))

    def add_json_file(self, path: Union[str, Path], optional: bool = False) -> "ProtectedConfigurationBuilder":
        return self.add(JsonConfigurationSource(path, optional=optional))

    def add_yaml_file(self, path: Union[str, Path], optional: bool = False) -> "ProtectedConfigurationBuilder":
        return self.add(YamlConfigurationSource(path, optional=optional))

    def add_ini_file(self, path: Union[str, Path], optional: bool = False) -> "ProtectedConfigurationBuilder":
        return self.add(IniConfigurationSource(path, optional=optional))

    def add_environment_variables(self, prefix: str = "") -> "ProtectedConfigurationBuilder":
        return self.add(EnvironmentVariablesConfigurationSource(prefix))

    def build(self) -> ConfigurationRoot:
        """
        Build and load every source in order.

        Each call rebuilds all sources. Overrides are moved from source
        handles to provider handles on a copy of the registry, so repeated
        builds see the same overrides.
        """
        registry = self._registry.copy()
        providers: List[ConfigurationProvider] = []

        for entry in self._sources:
            provider = entry.source.build()
            provider_handle = next(self._handles)
            registry.rekey(entry.handle, provider_handle)

            provider = self._decorate(provider, registry.resolve(provider_handle))
            provider.load()
            providers.append(provider)

        logger.debug(f"Built configuration from {len(providers)} providers")
        return ConfigurationRoot(providers)

    @staticmethod
    def _decorate(
        provider: ConfigurationProvider,
        policy: Optional[ProtectionPolicy],
    ) -> ConfigurationProvider:
        """Wrap `provider` when `policy` is valid, otherwise return it unchanged."""
        if policy is None or not policy.is_valid:
            logger.debug(f"No valid protection policy for {provider!r}, passing through")
            return provider
        return ProtectedConfigurationProvider(provider, policy)
