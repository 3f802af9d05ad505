"""
Protected Configuration Provider - decrypting decorator over any provider.

Wraps one built ConfigurationProvider by composition. On load it delegates to
the wrapped provider, then rewrites every string value, replacing each token
matched by the policy's pattern with the decrypted payload:

    "user=Protected:{db}:{gAAAA...}pass"  ->  "user=s3cretpass"

A token without a qualifier is decrypted by the policy's protector; a token
with a qualifier by protector.create_protector(qualifier). Values become
visible only once every value of the provider decrypted successfully.
"""

import logging
import re
from typing import Dict, Optional

from ..crypto.data_protection import DataProtector
from ..exceptions import ArgumentError
from .policy import ProtectionPolicy
from .sources import ConfigurationProvider

logger = logging.getLogger(__name__)


class ProtectedConfigurationProvider(ConfigurationProvider):
    """Decrypts protected tokens in the values of a wrapped provider."""

    def __init__(self, provider: ConfigurationProvider, policy: ProtectionPolicy):
        """
        Args:
            provider: Built provider to decorate
            policy: Effective, valid protection policy

        Raises:
            ArgumentError: provider missing or policy not valid
        """
        super().__init__()
        if provider is None:
            raise ArgumentError("provider must not be None")
        if policy is None or not policy.is_valid:
            raise ArgumentError("ProtectedConfigurationProvider requires a valid protection policy")

        self.provider = provider
        self.policy = policy
        self._sub_protectors: Dict[str, DataProtector] = {}

        provider.on_reload(self._on_provider_reload)

    def load(self) -> None:
        self.provider.load()
        self._decrypt_all()

    def set(self, key: str, value: str) -> None:
        # Decrypt before forwarding so a failure leaves both views untouched
        decrypted = self.decrypt_value(value) if value else value
        self.provider.set(key, value)
        self._data[key] = decrypted

    def decrypt_value(self, value: str) -> str:
        """Return `value` with every protected token replaced by its plaintext."""
        return self.policy.pattern.substitute(value, self._decrypt_match)

    def _on_provider_reload(self) -> None:
        logger.debug(f"Wrapped provider {self.provider!r} reloaded, decrypting again")
        self._decrypt_all()
        self._notify_reload()

    def _decrypt_all(self) -> None:
        decrypted: Dict[str, str] = {}
        replaced = 0

        for key in self.provider.keys():
            found, value = self.provider.try_get(key)
            if not found:
                continue
            if isinstance(value, str) and value:
                new_value = self.decrypt_value(value)
                if new_value != value:
                    replaced += 1
                value = new_value
            decrypted[key] = value

        # Commit only after every value decrypted
        self._data = decrypted
        logger.debug(f"Decrypted {replaced} protected values from {self.provider!r}")

    def _decrypt_match(self, match: re.Match) -> str:
        payload = match.group(self.policy.pattern.PAYLOAD_GROUP)
        qualifier = self.policy.pattern.qualifier_of(match)
        return self._protector_for(qualifier).unprotect(payload)

    def _protector_for(self, qualifier: Optional[str]) -> DataProtector:
        if qualifier is None:
            return self.policy.protector

        protector = self._sub_protectors.get(qualifier)
        if protector is None:
            protector = self.policy.protector.create_protector(qualifier)
            self._sub_protectors[qualifier] = protector
        return protector

    def __repr__(self) -> str:
        return f"ProtectedConfigurationProvider({self.provider!r})"
