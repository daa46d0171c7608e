"""
Authorization Matcher — lets non-owners make specific contract calls by shape.

A rule names an actor, a target contract and a message name, and may pin
some message fields to required values. A contract call matches a rule when
actor, contract and message name are equal and every pinned field is
present in the call with an equal value. Fields the rule does not pin are
ignored, so one rule covers a family of calls.

Rule identity is strict. Adding a rule whose full key (field list
included, compared as a set) already exists fails, and removal must name
that exact key. A removal request with a narrower field list does not
revoke a broader rule, even when the broader rule would still match.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

from spendguard.core.errors import AuthorizationExists, NoSuchAuthorization
from spendguard.core.schema import AuthorizationRule

logger = logging.getLogger(__name__)


@dataclass
class AuthorizationCheckResult:
    """Outcome of checking one contract call against a rule set."""

    matched: bool
    reason: str
    rule: AuthorizationRule | None = None

    @property
    def is_allowed(self) -> bool:
        return self.matched


def decode_payload(payload: str | bytes) -> tuple[str, dict[str, Any]] | None:
    """
    Split a contract call payload into (message name, fields).

    The payload must be a JSON object with exactly one top-level key whose
    value is an object. Anything else is not a named message and yields
    None.
    """
    try:
        value = json.loads(payload)
    except (TypeError, ValueError):
        return None
    if not isinstance(value, dict) or len(value) != 1:
        return None
    (name, fields), = value.items()
    if not isinstance(fields, dict):
        return None
    return name, fields


def _field_value(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


def matches(
    rule: AuthorizationRule,
    actor: str,
    contract: str,
    message_name: str,
    fields: dict[str, Any],
) -> bool:
    """Partial-constraint match: pinned fields must agree, the rest are ignored."""
    if (rule.actor, rule.contract, rule.message_name) != (actor, contract, message_name):
        return False
    for name, required in rule.fields or []:
        if name not in fields or _field_value(fields[name]) != required:
            return False
    return True


class AuthorizationMatcher:
    """
    The rule set, with strict-key bookkeeping and shape matching.

    Rules are kept in insertion order; the first matching rule is reported.
    """

    def __init__(self, rules: list[AuthorizationRule] | None = None) -> None:
        self.rules: list[AuthorizationRule] = list(rules or [])

    def _index_of(self, rule: AuthorizationRule) -> int | None:
        key = rule.key()
        for i, existing in enumerate(self.rules):
            if existing.key() == key:
                return i
        return None

    def add_rule(self, rule: AuthorizationRule) -> None:
        """
        Register a rule.

        Raises:
            AuthorizationExists: A rule with the identical full key exists.
        """
        if self._index_of(rule) is not None:
            raise AuthorizationExists()
        self.rules.append(rule)
        logger.info(
            "Authorization added: %s may call %s on %s (fields=%s)",
            rule.actor, rule.message_name, rule.contract, rule.fields,
        )

    def remove_rule(self, rule: AuthorizationRule) -> AuthorizationRule:
        """
        Remove the rule whose full key equals `rule`'s.

        Raises:
            NoSuchAuthorization: No stored rule has exactly this key.
        """
        index = self._index_of(rule)
        if index is None:
            raise NoSuchAuthorization()
        removed = self.rules.pop(index)
        logger.info(
            "Authorization removed: %s / %s / %s",
            removed.actor, removed.contract, removed.message_name,
        )
        return removed

    def find_match(
        self,
        actor: str,
        contract: str,
        message_name: str,
        fields: dict[str, Any],
        extra_rules: list[AuthorizationRule] | None = None,
    ) -> AuthorizationRule | None:
        for rule in [*self.rules, *(extra_rules or [])]:
            if matches(rule, actor, contract, message_name, fields):
                return rule
        return None

    def check(
        self,
        actor: str,
        contract: str,
        payload: str | bytes,
        extra_rules: list[AuthorizationRule] | None = None,
    ) -> AuthorizationCheckResult:
        """
        Check a raw contract call payload.

        `extra_rules` are rules carried by the actor's own permissioned
        address record; they are consulted after the global rule set.
        """
        decoded = decode_payload(payload)
        if decoded is None:
            return AuthorizationCheckResult(
                matched=False,
                reason=f"Payload for {contract} is not a named contract message",
            )
        message_name, fields = decoded
        rule = self.find_match(actor, contract, message_name, fields, extra_rules)
        if rule is None:
            return AuthorizationCheckResult(
                matched=False,
                reason=f"No rule lets {actor} call {message_name} on {contract}",
            )
        return AuthorizationCheckResult(
            matched=True,
            reason=f"Rule lets {actor} call {message_name} on {contract}",
            rule=rule,
        )

    def assert_authorized(
        self,
        actor: str,
        contract: str,
        payload: str | bytes,
        extra_rules: list[AuthorizationRule] | None = None,
    ) -> AuthorizationRule:
        """
        Raises:
            NoSuchAuthorization: No rule matches the call.
        """
        result = self.check(actor, contract, payload, extra_rules)
        if result.rule is None:
            logger.debug("Authorization denied: %s", result.reason)
            raise NoSuchAuthorization()
        return result.rule

    def list_rules(
        self,
        actor: str | None = None,
        contract: str | None = None,
        start_after: int | None = None,
        limit: int | None = None,
    ) -> list[AuthorizationRule]:
        """Rules filtered by actor and/or target contract, paged by position."""
        selected = [
            rule for rule in self.rules
            if (actor is None or rule.actor == actor)
            and (contract is None or rule.contract == contract)
        ]
        if start_after is not None:
            selected = selected[start_after + 1:]
        if limit is not None:
            selected = selected[:limit]
        return selected
