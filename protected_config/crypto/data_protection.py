"""
Data Protection - purpose-scoped encryption for configuration values.

Provides:
- DataProtector / DataProtectionProvider interfaces consumed by the
  configuration layer
- A Fernet based implementation deriving one key per purpose chain with HKDF
- DataProtectionBuilder, the target of the `configure` callback accepted by
  ProtectedConfigurationBuilder and ProtectionPolicy.create()
- Key file loading/creation with secure permissions

Purposes isolate keys: a value protected under the purpose chain
("ProtectedConfigurationBuilder", "db") can only be unprotected by a protector
created with exactly the same chain and master key.
"""

import base64
import binascii
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..constants import KeyDerivation, Permissions
from ..exceptions import ArgumentError, DecryptionError

logger = logging.getLogger(__name__)

KeyMaterial = Union[str, bytes]


class DataProtector(ABC):
    """A purpose-scoped encryption capability."""

    @abstractmethod
    def protect(self, plaintext: str) -> str:
        """Encrypt plaintext and return a text-safe ciphertext."""

    @abstractmethod
    def unprotect(self, ciphertext: str) -> str:
        """Decrypt ciphertext; raises DecryptionError when it cannot."""

    @abstractmethod
    def create_protector(self, purpose: str) -> "DataProtector":
        """Return a protector for this protector's purposes extended by `purpose`."""


class DataProtectionProvider(ABC):
    """Factory of purpose-scoped data protectors."""

    @abstractmethod
    def create_protector(self, purpose: str) -> Optional[DataProtector]:
        """Return a protector bound to `purpose`."""


def generate_master_key() -> bytes:
    """Generate a new master key (urlsafe base64, Fernet format)."""
    return Fernet.generate_key()


def _decode_master_key(key: KeyMaterial) -> bytes:
    """Validate a Fernet-format master key and return its raw bytes."""
    if isinstance(key, str):
        key = key.encode("ascii")
    key = key.strip()

    try:
        raw = base64.urlsafe_b64decode(key)
    except (binascii.Error, ValueError):
        raise ArgumentError("Master key must be urlsafe base64 encoded") from None

    if len(raw) != KeyDerivation.KEY_LENGTH:
        raise ArgumentError(
            f"Master key must decode to {KeyDerivation.KEY_LENGTH} bytes, got {len(raw)}"
        )
    return raw


def load_or_create_key_file(key_file: Union[str, Path]) -> bytes:
    """
    Load the master key stored in `key_file`, creating it when missing.

    Args:
        key_file: Path of the key file

    Returns:
        The master key in Fernet format
    """
    key_path = Path(key_file)

    if key_path.exists():
        key_data = key_path.read_bytes().strip()
        if len(key_data) != KeyDerivation.ENCODED_KEY_LENGTH:
            raise ArgumentError(f"Invalid key file: {key_path}")
        _decode_master_key(key_data)
        logger.debug(f"Loaded master key from {key_path}")
        return key_data

    key_data = generate_master_key()
    key_path.parent.mkdir(parents=True, exist_ok=True)
    with open(key_path, 'wb') as f:
        f.write(key_data)
    os.chmod(key_path, Permissions.SECURE_FILE)
    logger.info(f"Generated new master key file: {key_path}")
    return key_data


class FernetDataProtectionProvider(DataProtectionProvider):
    """
    Data protection provider backed by Fernet (AES-128-CBC with HMAC-SHA256).

    Every purpose chain gets its own Fernet key, derived from the master key
    with HKDF-SHA256. The application name is mixed into the derivation so two
    applications sharing a master key stay isolated.
    """

    def __init__(
        self,
        master_key: KeyMaterial,
        application_name: str = KeyDerivation.DEFAULT_APPLICATION_NAME,
    ):
        self._master_key = _decode_master_key(master_key)
        self.application_name = application_name
        self._fernets: Dict[Tuple[str, ...], Fernet] = {}

    def create_protector(self, purpose: str) -> "FernetDataProtector":
        if not purpose:
            raise ArgumentError("purpose must be a non-empty string")
        return FernetDataProtector(self, (purpose,))

    def _fernet_for(self, purposes: Tuple[str, ...]) -> Fernet:
        fernet = self._fernets.get(purposes)
        if fernet is None:
            info = KeyDerivation.PURPOSE_SEPARATOR.join(
                (self.application_name,) + purposes
            ).encode("utf-8")
            hkdf = HKDF(
                algorithm=hashes.SHA256(),
                length=KeyDerivation.KEY_LENGTH,
                salt=None,
                info=info,
            )
            fernet = Fernet(base64.urlsafe_b64encode(hkdf.derive(self._master_key)))
            self._fernets[purposes] = fernet
        return fernet


class FernetDataProtector(DataProtector):
    """Protector bound to one purpose chain of a FernetDataProtectionProvider."""

    def __init__(self, provider: FernetDataProtectionProvider, purposes: Tuple[str, ...]):
        self._provider = provider
        self.purposes = purposes
        self._fernet = provider._fernet_for(purposes)

    def create_protector(self, purpose: str) -> "FernetDataProtector":
        if not purpose:
            raise ArgumentError("purpose must be a non-empty string")
        return FernetDataProtector(self._provider, self.purposes + (purpose,))

    def protect(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def unprotect(self, ciphertext: str) -> str:
        purpose = " > ".join(self.purposes)
        try:
            plaintext = self._fernet.decrypt(ciphertext.encode("utf-8"))
        except InvalidToken:
            raise DecryptionError(
                "Config decryption failed - key mismatch, wrong purpose or data corruption",
                purpose=purpose,
            ) from None

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError:
            raise DecryptionError("Decrypted value is not valid UTF-8", purpose=purpose) from None


class DataProtectionBuilder:
    """
    Collects data protection settings and builds a provider.

    Passed to `configure` callbacks:

        def configure(builder):
            builder.persist_keys_to_file("/etc/myapp/config.key")
            builder.set_application_name("myapp")
    """

    def __init__(self):
        self._master_key: Optional[KeyMaterial] = None
        self._key_file: Optional[Path] = None
        self._application_name = KeyDerivation.DEFAULT_APPLICATION_NAME

    def use_master_key(self, master_key: KeyMaterial) -> "DataProtectionBuilder":
        self._master_key = master_key
        return self

    def persist_keys_to_file(self, key_file: Union[str, Path]) -> "DataProtectionBuilder":
        self._key_file = Path(key_file)
        return self

    def set_application_name(self, application_name: str) -> "DataProtectionBuilder":
        if not application_name:
            raise ArgumentError("application_name must be a non-empty string")
        self._application_name = application_name
        return self

    def build(self) -> FernetDataProtectionProvider:
        if self._master_key is not None and self._key_file is not None:
            raise ArgumentError("use_master_key and persist_keys_to_file are mutually exclusive")

        if self._master_key is not None:
            master_key = self._master_key
        elif self._key_file is not None:
            master_key = load_or_create_key_file(self._key_file)
        else:
            logger.warning(
                "No master key configured - using an ephemeral key, "
                "protected values will not survive a restart"
            )
            master_key = generate_master_key()

        return FernetDataProtectionProvider(master_key, self._application_name)
