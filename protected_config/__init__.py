"""
Protected Configuration - transparent decryption of configuration values.

Secrets live encrypted inside otherwise plain configuration as
Protected:{<ciphertext>} tokens and are decrypted in memory at load time,
whatever source (file, environment, dictionary) they come from.
"""

from .config import (
    ConfigurationRoot,
    ProtectedConfigurationBuilder,
    ProtectedConfigurationProvider,
    ProtectionPolicy,
    TokenPattern,
    protect_file,
    protect_value,
)
from .crypto import (
    DataProtectionBuilder,
    DataProtectionProvider,
    DataProtector,
    FernetDataProtectionProvider,
    generate_master_key,
)
from .exceptions import (
    ArgumentError,
    ConfigurationError,
    DecryptionError,
    ProtectedConfigError,
)

__version__ = "1.0.0"

__all__ = [
    'ProtectedConfigurationBuilder',
    'ProtectedConfigurationProvider',
    'ConfigurationRoot',
    'ProtectionPolicy',
    'TokenPattern',
    'protect_file',
    'protect_value',
    'DataProtectionBuilder',
    'DataProtectionProvider',
    'DataProtector',
    'FernetDataProtectionProvider',
    'generate_master_key',
    'ProtectedConfigError',
    'ConfigurationError',
    'ArgumentError',
    'DecryptionError',
]
