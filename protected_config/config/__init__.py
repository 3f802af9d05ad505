"""
Configuration Module for Protected Configuration.

Provides transparent decryption of configuration values:
- Token patterns locating encrypted spans inside values
- Protection policies with per-source overrides
- A builder decorating any configuration source with decryption
- JSON, YAML, INI, environment and in-memory sources
- Encryption of Protect:{...} tokens in existing files
"""

from .builder import ProtectedConfigurationBuilder
from .policy import PolicyRegistry, ProtectionPolicy, resolve_purpose
from .protect import (
    ConfigFormat,
    get_protection_status,
    protect_data,
    protect_file,
    protect_value,
)
from .provider import ProtectedConfigurationProvider
from .root import ConfigurationRoot
from .sources import (
    ConfigurationProvider,
    ConfigurationSource,
    EnvironmentVariablesConfigurationProvider,
    EnvironmentVariablesConfigurationSource,
    FileConfigurationProvider,
    IniConfigurationSource,
    JsonConfigurationSource,
    MemoryConfigurationProvider,
    MemoryConfigurationSource,
    YamlConfigurationSource,
    flatten,
)
from .token_pattern import TokenPattern

__all__ = [
    'ProtectedConfigurationBuilder',
    'ProtectedConfigurationProvider',
    'ConfigurationRoot',
    'ProtectionPolicy',
    'PolicyRegistry',
    'resolve_purpose',
    'TokenPattern',
    # Sources
    'ConfigurationProvider',
    'ConfigurationSource',
    'MemoryConfigurationProvider',
    'MemoryConfigurationSource',
    'FileConfigurationProvider',
    'JsonConfigurationSource',
    'YamlConfigurationSource',
    'IniConfigurationSource',
    'EnvironmentVariablesConfigurationProvider',
    'EnvironmentVariablesConfigurationSource',
    'flatten',
    # Protecting values
    'ConfigFormat',
    'protect_value',
    'protect_data',
    'protect_file',
    'get_protection_status',
]
