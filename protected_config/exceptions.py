"""
Exception hierarchy for protected configuration.

All errors are raised synchronously at the point of failure and propagate
unwrapped to the caller:

- ConfigurationError: a token regular expression is unusable
- ArgumentError: an invalid combination of builder/policy arguments
- DecryptionError: the data protector rejected an encrypted payload
"""


class ProtectedConfigError(Exception):
    """Base class for all protected configuration errors."""


class ConfigurationError(ProtectedConfigError, ValueError):
    """Raised when a token pattern cannot be compiled or lacks the payload group."""


class ArgumentError(ProtectedConfigError, ValueError):
    """Raised for invalid argument combinations at configuration time."""


class DecryptionError(ProtectedConfigError):
    """
    Raised when an encrypted payload cannot be decrypted.

    Typical causes are malformed ciphertext, a wrong or rotated key, or a
    payload protected under a different purpose.
    """

    def __init__(self, message: str, purpose: str = ""):
        super().__init__(message)
        self.purpose = purpose
