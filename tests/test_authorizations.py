"""
Tests for the Authorization Matcher.

Validates:
- Actor / contract / message name must all agree
- Partial field constraints (unpinned fields ignored)
- Strict-key add and remove
- Payload decoding
- Rule listing filters
"""

from __future__ import annotations

import json

import pytest

from spendguard.core.errors import AuthorizationExists, NoSuchAuthorization
from spendguard.core.schema import AuthorizationRule
from spendguard.governance.authorizations import (
    AuthorizationMatcher,
    decode_payload,
    matches,
)

ACTOR = "actor"
TARGET = "targetcontract"
MESSAGE = "test_fields_execute_msg"


def payload(recipient: str, strategy: str) -> str:
    return json.dumps({MESSAGE: {"recipient": recipient, "strategy": strategy}})


def rule(fields=None, actor=ACTOR, contract=TARGET, message_name=MESSAGE) -> AuthorizationRule:
    return AuthorizationRule(actor=actor, contract=contract, message_name=message_name, fields=fields)


class TestMatching:
    """Test shape matching of contract calls against a single rule."""

    def test_rule_without_fields_matches_any_fields(self):
        assert matches(rule(), ACTOR, TARGET, MESSAGE, {"anything": "goes"})

    def test_actor_must_match(self):
        assert not matches(rule(), "anyone", TARGET, MESSAGE, {})

    def test_contract_must_match(self):
        assert not matches(rule(), ACTOR, "badtargetcontract", MESSAGE, {})

    def test_message_name_must_match(self):
        assert not matches(rule(), ACTOR, TARGET, "other_msg", {})

    def test_single_pinned_field_ignores_other_fields(self):
        engage = rule([("strategy", "engage")])
        assert matches(engage, ACTOR, TARGET, MESSAGE, {"recipient": "picard", "strategy": "engage"})
        assert matches(engage, ACTOR, TARGET, MESSAGE, {"recipient": "riker", "strategy": "engage"})

    def test_all_pinned_fields_must_agree(self):
        picard_engage = rule([("recipient", "picard"), ("strategy", "engage")])
        assert matches(
            picard_engage, ACTOR, TARGET, MESSAGE, {"recipient": "picard", "strategy": "engage"}
        )
        assert not matches(
            picard_engage, ACTOR, TARGET, MESSAGE, {"recipient": "picard", "strategy": "assimilate"}
        )
        assert not matches(
            picard_engage, ACTOR, TARGET, MESSAGE, {"recipient": "riker", "strategy": "engage"}
        )

    def test_pinned_field_must_be_present(self):
        assert not matches(rule([("strategy", "engage")]), ACTOR, TARGET, MESSAGE, {"recipient": "picard"})

    def test_non_string_values_compare_as_compact_json(self):
        assert matches(rule([("count", "3")]), ACTOR, TARGET, MESSAGE, {"count": 3})
        assert matches(rule([("flag", "true")]), ACTOR, TARGET, MESSAGE, {"flag": True})
        assert not matches(rule([("count", "3")]), ACTOR, TARGET, MESSAGE, {"count": 4})


class TestDecodePayload:
    def test_named_message(self):
        assert decode_payload(payload("picard", "engage")) == (
            MESSAGE, {"recipient": "picard", "strategy": "engage"}
        )

    def test_bytes_payload(self):
        assert decode_payload(b'{"ping":{}}') == ("ping", {})

    @pytest.mark.parametrize(
        "raw",
        ["not json", "[]", '{"a":{},"b":{}}', '{"a":"scalar"}', "{}"],
    )
    def test_unnamed_payloads(self, raw):
        assert decode_payload(raw) is None


class TestAuthorizationMatcher:
    """Test rule bookkeeping and raw payload checks."""

    def setup_method(self):
        self.matcher = AuthorizationMatcher()

    def test_add_and_check(self):
        self.matcher.add_rule(rule([("strategy", "engage")]))
        result = self.matcher.check(ACTOR, TARGET, payload("riker", "engage"))
        assert result.is_allowed
        assert result.rule.fields == [("strategy", "engage")]

    def test_check_denies_non_matching(self):
        self.matcher.add_rule(rule([("strategy", "engage")]))
        result = self.matcher.check(ACTOR, TARGET, payload("picard", "assimilate"))
        assert not result.is_allowed
        assert result.rule is None

    def test_check_denies_unnamed_payload(self):
        self.matcher.add_rule(rule())
        assert not self.matcher.check(ACTOR, TARGET, '{"foo":"bar"}').is_allowed

    def test_duplicate_rule_rejected(self):
        self.matcher.add_rule(rule([("recipient", "picard"), ("strategy", "engage")]))
        with pytest.raises(AuthorizationExists):
            self.matcher.add_rule(rule([("strategy", "engage"), ("recipient", "picard")]))
        assert len(self.matcher.rules) == 1

    def test_rules_differing_only_in_fields_coexist(self):
        self.matcher.add_rule(rule())
        self.matcher.add_rule(rule([("strategy", "engage")]))
        assert len(self.matcher.rules) == 2

    def test_empty_field_list_is_same_key_as_none(self):
        self.matcher.add_rule(rule())
        with pytest.raises(AuthorizationExists):
            self.matcher.add_rule(rule([]))

    def test_remove_requires_exact_key(self):
        self.matcher.add_rule(rule([("recipient", "picard"), ("strategy", "engage")]))

        with pytest.raises(NoSuchAuthorization):
            self.matcher.remove_rule(rule())
        with pytest.raises(NoSuchAuthorization):
            self.matcher.remove_rule(rule([("strategy", "engage")]))
        assert len(self.matcher.rules) == 1

        self.matcher.remove_rule(rule([("recipient", "picard"), ("strategy", "engage")]))
        assert self.matcher.rules == []

    def test_remove_with_too_many_fields_fails(self):
        self.matcher.add_rule(rule([("strategy", "engage")]))
        with pytest.raises(NoSuchAuthorization):
            self.matcher.remove_rule(rule([("recipient", "picard"), ("strategy", "engage")]))

    def test_assert_authorized(self):
        self.matcher.add_rule(rule())
        assert self.matcher.assert_authorized(ACTOR, TARGET, payload("picard", "engage")).actor == ACTOR
        with pytest.raises(NoSuchAuthorization, match="Not an authorized action"):
            self.matcher.assert_authorized("anyone", TARGET, payload("picard", "engage"))

    def test_extra_rules_are_consulted(self):
        personal = [rule([("strategy", "engage")])]
        assert self.matcher.check(ACTOR, TARGET, payload("picard", "engage"), personal).is_allowed
        assert not self.matcher.check(ACTOR, TARGET, payload("picard", "engage")).is_allowed

    def test_list_rules_filters(self):
        self.matcher.add_rule(rule())
        self.matcher.add_rule(rule(actor="other"))
        self.matcher.add_rule(rule(contract="elsewhere"))
        assert len(self.matcher.list_rules()) == 3
        assert len(self.matcher.list_rules(actor=ACTOR)) == 2
        assert len(self.matcher.list_rules(contract=TARGET)) == 2
        assert len(self.matcher.list_rules(actor=ACTOR, contract=TARGET)) == 1
        assert len(self.matcher.list_rules(start_after=0, limit=1)) == 1
