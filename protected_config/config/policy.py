"""
Protection Policy and Policy Registry.

A ProtectionPolicy combines a TokenPattern with a purpose-scoped DataProtector.
The builder holds one global policy and, through a PolicyRegistry, optional
per-source overrides. The effective policy for a provider is the field-wise
merge of its override over the global policy.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Hashable, Optional, Union

from ..constants import Purposes
from ..crypto.data_protection import (
    DataProtectionBuilder,
    DataProtectionProvider,
    DataProtector,
)
from ..exceptions import ArgumentError
from .token_pattern import TokenPattern

logger = logging.getLogger(__name__)

ConfigureAction = Callable[[DataProtectionBuilder], None]


def resolve_purpose(purpose: Optional[str] = None, key_number: Optional[int] = None) -> str:
    """
    Derive the purpose string a protector is bound to.

    - key_number: numbered-key convention, "ProtectedConfigurationBuilder.Key<N>"
    - purpose: used as given
    - neither: the first numbered key, "ProtectedConfigurationBuilder.Key1"
    """
    if purpose is not None and key_number is not None:
        raise ArgumentError("purpose and key_number are mutually exclusive")

    if key_number is not None:
        return Purposes.for_key_number(key_number)
    if purpose is not None:
        if not purpose:
            raise ArgumentError("purpose must be a non-empty string")
        return purpose
    return Purposes.default()


def resolve_protection_provider(
    protection_provider: Optional[DataProtectionProvider] = None,
    configure: Optional[ConfigureAction] = None,
) -> Optional[DataProtectionProvider]:
    """Resolve exactly one of a ready provider or a configure callback into a provider."""
    if protection_provider is not None and configure is not None:
        raise ArgumentError("protection_provider and configure are mutually exclusive")

    if configure is not None:
        builder = DataProtectionBuilder()
        configure(builder)
        return builder.build()

    return protection_provider


@dataclass(frozen=True)
class ProtectionPolicy:
    """
    Immutable pairing of a token pattern and a bound data protector.

    Either field may be None on an override policy; the missing field is then
    inherited from the global policy by merge().
    """
    pattern: Optional[TokenPattern] = None
    protector: Optional[DataProtector] = None

    @classmethod
    def create(
        cls,
        pattern: Union[str, TokenPattern, None] = None,
        protection_provider: Optional[DataProtectionProvider] = None,
        configure: Optional[ConfigureAction] = None,
        purpose: Optional[str] = None,
        key_number: Optional[int] = None,
    ) -> "ProtectionPolicy":
        """
        Build a policy from user-facing arguments.

        Args:
            pattern: Token regular expression (or TokenPattern) to use
            protection_provider: Provider of data protectors (exclusive with configure)
            configure: Callback configuring a DataProtectionBuilder (exclusive
                       with protection_provider)
            purpose: Purpose string the protector is bound to
            key_number: Numbered key to bind to (exclusive with purpose)

        Raises:
            ArgumentError: invalid combination or no protector could be created
            ConfigurationError: pattern lacks the payload group
        """
        if not pattern and protection_provider is None and configure is None:
            raise ArgumentError(
                "Either pattern or protection_provider or configure must be supplied"
            )

        purpose_string = resolve_purpose(purpose, key_number)
        provider = resolve_protection_provider(protection_provider, configure)

        protector = None
        if provider is not None:
            protector = provider.create_protector(purpose_string)
            if protector is None:
                raise ArgumentError(
                    "Either protection_provider or configure must produce a data protector"
                )
            logger.debug(f"Bound data protector to purpose {purpose_string}")

        token_pattern = None
        if isinstance(pattern, TokenPattern):
            token_pattern = pattern
        elif pattern:
            token_pattern = TokenPattern(pattern)

        return cls(pattern=token_pattern, protector=protector)

    @property
    def is_valid(self) -> bool:
        return (
            self.protector is not None
            and self.pattern is not None
            and self.pattern.has_payload_group
        )

    @staticmethod
    def merge(
        global_policy: Optional["ProtectionPolicy"],
        local_policy: Optional["ProtectionPolicy"],
    ) -> Optional["ProtectionPolicy"]:
        """
        Merge a local override over the global policy, field by field.

        merge(G, None) is G, merge(None, L) is L. Otherwise each field of L
        that is set wins over the corresponding field of G.
        """
        if local_policy is None:
            return global_policy

        if global_policy is None:
            return local_policy

        return ProtectionPolicy(
            pattern=local_policy.pattern if local_policy.pattern is not None else global_policy.pattern,
            protector=local_policy.protector if local_policy.protector is not None else global_policy.protector,
        )


class PolicyRegistry:
    """
    Global policy plus per-handle overrides.

    Handles are opaque values issued by the builder: first the handle of a
    source (before build), then the handle of the provider it produced.
    """

    def __init__(self, global_policy: Optional[ProtectionPolicy]):
        self.global_policy = global_policy
        self._overrides: Dict[Hashable, ProtectionPolicy] = {}

    def __contains__(self, handle: Hashable) -> bool:
        return handle in self._overrides

    def __len__(self) -> int:
        return len(self._overrides)

    def set_override(self, handle: Hashable, policy: ProtectionPolicy) -> None:
        if policy is None:
            raise ArgumentError("policy must not be None")
        self._overrides[handle] = policy

    def get_override(self, handle: Hashable) -> Optional[ProtectionPolicy]:
        return self._overrides.get(handle)

    def rekey(self, old_handle: Hashable, new_handle: Hashable) -> None:
        """Move an override from old_handle to new_handle; no-op when absent."""
        policy = self._overrides.pop(old_handle, None)
        if policy is not None:
            self._overrides[new_handle] = policy

    def resolve(self, handle: Hashable) -> Optional[ProtectionPolicy]:
        """Return the effective policy for `handle`."""
        return ProtectionPolicy.merge(self.global_policy, self._overrides.get(handle))

    def copy(self) -> "PolicyRegistry":
        registry = PolicyRegistry(self.global_policy)
        registry._overrides = dict(self._overrides)
        return registry
