"""Session-scoped derived context.

Facts are detected in raw user text by pluggable :class:`DetectionRule`
objects and remembered for the rest of the session. The store is
advisory: it only fills tool arguments the model left missing or empty,
and never overrides a value the model supplied.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

ADDRESS_KEY = "address"


@runtime_checkable
class DetectionRule(Protocol):
    """Detects one kind of fact in user text."""

    @property
    def key(self) -> str:
        """Name under which the detected fact is remembered."""
        ...

    def detect(self, text: str) -> str | None:
        """Return the first matching fact in ``text``, or None. Must be pure."""
        ...


class AddressRule:
    """Base58 wallet address: 32-44 characters over the Base58 alphabet."""

    min_length = 32
    max_length = 44

    def __init__(self, key: str = ADDRESS_KEY) -> None:
        self._key = key
        self._pattern = re.compile(
            rf"(?<![{BASE58_ALPHABET}])"
            rf"[{BASE58_ALPHABET}]{{{self.min_length},{self.max_length}}}"
            rf"(?![{BASE58_ALPHABET}])"
        )

    @property
    def key(self) -> str:
        return self._key

    def detect(self, text: str) -> str | None:
        for match in self._pattern.finditer(text):
            candidate = match.group(0)
            if self.is_valid(candidate):
                return candidate
        return None

    def is_valid(self, candidate: str) -> bool:
        return self.min_length <= len(candidate) <= self.max_length and all(
            c in BASE58_ALPHABET for c in candidate
        )


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ContextStore:
    """Facts remembered for one session.

    Args:
        rules: Detection rules, applied in order. Defaults to a single
            :class:`AddressRule`.
        enrichment: ``{tool_name: argument_key}`` table. For listed tools
            the remembered address fills the key when it is missing.
    """

    def __init__(
        self,
        rules: Sequence[DetectionRule] | None = None,
        enrichment: Mapping[str, str] | None = None,
    ) -> None:
        self._rules: tuple[DetectionRule, ...] = (
            tuple(rules) if rules is not None else (AddressRule(),)
        )
        self._enrichment: dict[str, str] = dict(enrichment or {})
        self._facts: dict[str, str] = {}

    # ── Detection ────────────────────────────────────────────────

    def observe(self, raw_text: str) -> str | None:
        """Detect an address in ``raw_text`` without storing it."""
        return self.detect_all(raw_text).get(ADDRESS_KEY)

    def detect_all(self, raw_text: str) -> dict[str, str]:
        """Run every rule over ``raw_text``; first rule per key wins."""
        found: dict[str, str] = {}
        for rule in self._rules:
            if rule.key in found:
                continue
            value = rule.detect(raw_text)
            if value is not None:
                found[rule.key] = value
        return found

    def observe_and_remember(self, raw_text: str) -> dict[str, str]:
        """Detect facts in ``raw_text`` and remember them.

        Returns:
            The facts detected in this text.
        """
        found = self.detect_all(raw_text)
        self._facts.update(found)
        return found

    # ── Facts ────────────────────────────────────────────────────

    @property
    def address(self) -> str | None:
        return self._facts.get(ADDRESS_KEY)

    @property
    def facts(self) -> dict[str, str]:
        return dict(self._facts)

    def remember(self, address: str) -> None:
        """Store or overwrite the session's known address."""
        self._facts[ADDRESS_KEY] = address

    def forget(self) -> None:
        """Clear the known address."""
        self._facts.pop(ADDRESS_KEY, None)

    # ── Enrichment ───────────────────────────────────────────────

    @property
    def enrichment(self) -> dict[str, str]:
        return dict(self._enrichment)

    def apply(self, tool_name: str, arguments: Mapping[str, Any]) -> dict[str, Any]:
        """Return ``arguments`` with the known address filled in.

        Only tools listed in the enrichment table are touched, and only
        when their mapped key is absent, None, or an empty string.
        The input mapping is never mutated.
        """
        enriched = dict(arguments)
        key = self._enrichment.get(tool_name)
        address = self.address
        if key is None or address is None:
            return enriched
        if _is_missing(enriched.get(key)):
            enriched[key] = address
        return enriched

    def prompt_suffix(self) -> str:
        """System prompt fragment describing what is known."""
        address = self.address
        if address is None:
            return ""
        return (
            "\n\n### SESSION CONTEXT:\n"
            f"- The user's wallet address is {address}. Use it whenever a tool "
            "needs the user's wallet address and the user has not given "
            "a different one."
        )
