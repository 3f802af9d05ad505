"""
Centralized Constants Module for Protected Configuration.

Consolidates the token syntax, purpose strings, key derivation parameters and
file permissions used throughout the package so they can be audited in one
place.

Some values can be overridden at import time through environment variables
prefixed with PROTECTED_CONFIG_. Invalid overrides are logged and ignored.

Usage:
    from protected_config.constants import Patterns, Purposes

    pattern = TokenPattern(Patterns.PROTECTED)
    purpose = Purposes.for_key_number(2)
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from .exceptions import ArgumentError

logger = logging.getLogger(__name__)

ENV_PREFIX = "PROTECTED_CONFIG_"


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDE UTILITIES
# =============================================================================

T = TypeVar('T')


def _env_override(
    env_var: str,
    default: T,
    converter: Callable[[str], T] = str,
    validator: Optional[Callable[[T], bool]] = None,
    min_value: Optional[T] = None,
) -> T:
    """Get a configuration value with environment variable override.

    Args:
        env_var: Environment variable name (will be prefixed with PROTECTED_CONFIG_)
        default: Default value if env var not set
        converter: Function to convert string to target type
        validator: Optional validation function
        min_value: Optional minimum allowed value

    Returns:
        Configured value (from env var if valid, otherwise default)
    """
    full_env_var = f"{ENV_PREFIX}{env_var}"
    env_value = os.environ.get(full_env_var)

    if env_value is None:
        return default

    try:
        converted = converter(env_value)

        if min_value is not None and converted < min_value:
            logger.warning(
                f"{full_env_var}={env_value} below minimum {min_value}, using default"
            )
            return default

        if validator is not None and not validator(converted):
            logger.warning(f"{full_env_var}={env_value} failed validation, using default")
            return default

        logger.info(f"Using {full_env_var}={converted} (override)")
        return converted

    except (ValueError, TypeError) as e:
        logger.warning(f"Invalid value for {full_env_var}: {e}, using default")
        return default


# =============================================================================
# PURPOSE STRINGS
# =============================================================================

@dataclass(frozen=True)
class Purposes:
    """
    Purpose strings used to scope data protectors.

    A purpose selects a distinct derived key: ciphertext produced under one
    purpose cannot be decrypted under another.
    """
    BASE: str = "ProtectedConfigurationBuilder"
    KEY_NUMBER_FORMAT: str = "Key{number}"
    DEFAULT_KEY_NUMBER: int = 1

    @classmethod
    def for_string(cls, purpose: str) -> str:
        """Scope a purpose below the base purpose (BASE.purpose)."""
        if not purpose:
            raise ArgumentError("purpose must be a non-empty string")
        return f"{cls.BASE}.{purpose}"

    @classmethod
    def for_key_number(cls, key_number: int) -> str:
        """Purpose for the numbered-key convention (BASE.Key<N>)."""
        return cls.for_string(cls.KEY_NUMBER_FORMAT.format(number=key_number))

    @classmethod
    def default(cls) -> str:
        """Purpose used when neither a purpose nor a key number is given (BASE.Key1)."""
        return cls.for_key_number(cls.DEFAULT_KEY_NUMBER)


# =============================================================================
# TOKEN SYNTAX
# =============================================================================

@dataclass(frozen=True)
class Patterns:
    """
    Token syntax recognized inside configuration values.

    PROTECTED matches encrypted tokens:   Protected:{<ciphertext>}
                                          Protected:{<qualifier>}:{<ciphertext>}
    PROTECT matches values to encrypt:    Protect:{<plaintext>}
                                          Protect:{<qualifier>}:{<plaintext>}
    """
    PAYLOAD_GROUP: str = "payload"
    QUALIFIER_GROUP: str = "purpose_qualifier"

    PROTECTED: str = (
        r"Protected(?::\{(?P<purpose_qualifier>[^{}]+)\})?"
        r":\{(?P<payload>.+?)\}"
    )
    PROTECT: str = (
        r"Protect(?::\{(?P<purpose_qualifier>[^{}]+)\})?"
        r":\{(?P<payload>.+?)\}"
    )
    PROTECTED_MARKER: str = "Protected"


# =============================================================================
# KEY DERIVATION
# =============================================================================

@dataclass(frozen=True)
class KeyDerivation:
    """Parameters for deriving per-purpose keys from a master key."""
    # HKDF output length, Fernet needs 32 bytes
    KEY_LENGTH: int = 32
    # Length of a urlsafe base64 encoded 32-byte Fernet key
    ENCODED_KEY_LENGTH: int = 44
    DEFAULT_APPLICATION_NAME: str = _env_override("APPLICATION_NAME", "protected-config")
    PURPOSE_SEPARATOR: str = "\x1f"


# =============================================================================
# CONFIGURATION KEYS
# =============================================================================

@dataclass(frozen=True)
class ConfigKeys:
    """Conventions for flattened configuration keys."""
    DELIMITER: str = ":"
    ENV_NESTING: str = "__"


# =============================================================================
# FILE PERMISSIONS
# =============================================================================

@dataclass(frozen=True)
class Permissions:
    """File permissions for key files and rewritten configuration files."""
    SECURE_FILE: int = 0o600
    MAX_BACKUPS: int = _env_override("MAX_BACKUPS", 3, int, min_value=0)
