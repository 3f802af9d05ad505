"""
Token Pattern - locates encrypted spans inside configuration values.

A token pattern is a compiled regular expression with two named groups:
- `payload` (required): the ciphertext to decrypt
- `purpose_qualifier` (optional): a sub-purpose selecting a different key

Patterns operate on a single scalar string value at a time.
"""

import re
from typing import Callable, Iterator, Optional, Union

from ..constants import Patterns
from ..exceptions import ConfigurationError


class TokenPattern:
    """Immutable compiled token pattern."""

    PAYLOAD_GROUP = Patterns.PAYLOAD_GROUP
    QUALIFIER_GROUP = Patterns.QUALIFIER_GROUP

    __slots__ = ('_regex',)

    def __init__(self, pattern: Union[str, re.Pattern, None] = None):
        """
        Compile a token pattern.

        Args:
            pattern: Regular expression string or compiled pattern. Defaults to
                     the `Protected:{...}` syntax.

        Raises:
            ConfigurationError: if the pattern does not compile or lacks the
                                payload group
        """
        if pattern is None or pattern == "":
            pattern = Patterns.PROTECTED

        if isinstance(pattern, str):
            try:
                regex = re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid token pattern {pattern!r}: {e}") from e
        else:
            regex = pattern

        if self.PAYLOAD_GROUP not in regex.groupindex:
            raise ConfigurationError(
                f"Token pattern must contain a group named {self.PAYLOAD_GROUP}: {regex.pattern!r}"
            )

        object.__setattr__(self, '_regex', regex)

    def __setattr__(self, name, value):
        raise AttributeError("TokenPattern is immutable")

    def __repr__(self) -> str:
        return f"TokenPattern({self._regex.pattern!r})"

    def __eq__(self, other) -> bool:
        if not isinstance(other, TokenPattern):
            return NotImplemented
        return self._regex.pattern == other._regex.pattern and self._regex.flags == other._regex.flags

    def __hash__(self) -> int:
        return hash((self._regex.pattern, self._regex.flags))

    @property
    def regex(self) -> re.Pattern:
        return self._regex

    @property
    def pattern(self) -> str:
        return self._regex.pattern

    @property
    def has_payload_group(self) -> bool:
        return self.PAYLOAD_GROUP in self._regex.groupindex

    @property
    def has_qualifier_group(self) -> bool:
        return self.QUALIFIER_GROUP in self._regex.groupindex

    def qualifier_of(self, match: re.Match) -> Optional[str]:
        """Return the purpose qualifier captured by `match`, if any."""
        if not self.has_qualifier_group:
            return None
        return match.group(self.QUALIFIER_GROUP) or None

    def finditer(self, value: str) -> Iterator[re.Match]:
        return self._regex.finditer(value)

    def contains_token(self, value: str) -> bool:
        return self._regex.search(value) is not None

    def substitute(self, value: str, replace: Callable[[re.Match], str]) -> str:
        """
        Replace every token in `value` with `replace(match)`.

        Text outside the matches is preserved verbatim and in order. If
        `replace` raises, the exception propagates and nothing is returned.
        """
        return self._regex.sub(replace, value)
