"""Tests for ContextStore: address detection, memory, enrichment."""

from __future__ import annotations

import pytest

from pocket.session.context import (
    ADDRESS_KEY,
    AddressRule,
    ContextStore,
    DetectionRule,
)

# ── Detection ────────────────────────────────────────────────────


class TestAddressRule:
    def test_detects_address_in_sentence(self, wallet):
        assert AddressRule().detect(f"my address is {wallet}") == wallet

    def test_detects_32_char_address(self):
        address = "1" * 32
        assert AddressRule().detect(f"send to {address} now") == address

    def test_too_short_ignored(self):
        assert AddressRule().detect("short " + "A" * 31) is None

    def test_too_long_run_ignored(self):
        # A 45-char Base58 run is not an address, and no 44-char slice of
        # it should be picked out either.
        assert AddressRule().detect("x " + "A" * 45) is None

    def test_invalid_alphabet_breaks_match(self, wallet):
        # '0', 'O', 'I' and 'l' are not Base58.
        mangled = wallet[:20] + "0" + wallet[21:]
        assert AddressRule().detect(mangled) is None

    def test_punctuation_delimits(self, wallet):
        assert AddressRule().detect(f"wallet: {wallet}.") == wallet

    def test_first_of_two(self, wallet):
        other = "9" * 40
        assert AddressRule().detect(f"{wallet} and {other}") == wallet

    def test_no_address(self):
        assert AddressRule().detect("what is the price of SOL?") is None

    def test_satisfies_protocol(self):
        assert isinstance(AddressRule(), DetectionRule)


class TestObserve:
    def test_observe_is_pure(self, context, wallet):
        assert context.observe(f"my address is {wallet}") == wallet
        assert context.address is None

    def test_observe_and_remember(self, context, wallet):
        found = context.observe_and_remember(f"my address is {wallet}")
        assert found == {ADDRESS_KEY: wallet}
        assert context.address == wallet

    def test_later_address_replaces_earlier(self, context, wallet):
        context.observe_and_remember(f"my address is {wallet}")
        other = "9" * 40
        context.observe_and_remember(f"actually use {other}")
        assert context.address == other

    def test_text_without_address_keeps_memory(self, context, wallet):
        context.observe_and_remember(f"my address is {wallet}")
        assert context.observe_and_remember("what's my balance?") == {}
        assert context.address == wallet

    def test_custom_rules(self):
        class TickerRule:
            key = "ticker"

            def detect(self, text: str) -> str | None:
                return "SOL" if "SOL" in text else None

        store = ContextStore(rules=[TickerRule(), AddressRule()])
        assert store.observe_and_remember("price of SOL") == {"ticker": "SOL"}
        assert store.facts == {"ticker": "SOL"}


class TestFacts:
    def test_remember_and_forget(self, context, wallet):
        context.remember(wallet)
        assert context.address == wallet
        context.forget()
        assert context.address is None

    def test_forget_when_empty(self, context):
        context.forget()
        assert context.address is None

    def test_facts_is_copy(self, context, wallet):
        context.remember(wallet)
        context.facts[ADDRESS_KEY] = "tampered"
        assert context.address == wallet


# ── Enrichment ───────────────────────────────────────────────────


class TestApply:
    def test_fills_missing_owner(self, context, wallet):
        """Address from chat fills the missing owner of check-balance."""
        context.observe_and_remember(f"my address is {wallet}")
        assert context.apply("check-balance", {}) == {"owner": wallet}

    def test_uses_mapped_key_per_tool(self, context, wallet):
        context.remember(wallet)
        assert context.apply("check-token-balance", {"mint": "USDC"}) == {
            "mint": "USDC",
            "publicKey": wallet,
        }
        assert context.apply("prepare-swap", {"amount": 1})["source"] == wallet

    def test_never_overwrites_present_value(self, context, wallet):
        context.remember(wallet)
        args = {"owner": "SomeOtherAddress"}
        assert context.apply("check-balance", args) == {"owner": "SomeOtherAddress"}

    @pytest.mark.parametrize("empty", [None, "", "   "])
    def test_fills_empty_values(self, context, wallet, empty):
        context.remember(wallet)
        assert context.apply("check-balance", {"owner": empty}) == {"owner": wallet}

    def test_falsy_non_string_values_kept(self, context, wallet):
        store = ContextStore(enrichment={"t": "count"})
        store.remember(wallet)
        assert store.apply("t", {"count": 0}) == {"count": 0}

    def test_unlisted_tool_untouched(self, context, wallet):
        context.remember(wallet)
        assert context.apply("get-price", {"ticker": "SOL"}) == {"ticker": "SOL"}

    def test_no_address_no_change(self, context):
        assert context.apply("check-balance", {}) == {}

    def test_input_not_mutated(self, context, wallet):
        context.remember(wallet)
        args: dict[str, str] = {}
        result = context.apply("check-balance", args)
        assert args == {}
        assert result is not args

    def test_no_enrichment_table(self, wallet):
        store = ContextStore()
        store.remember(wallet)
        assert store.apply("check-balance", {}) == {}


class TestPromptSuffix:
    def test_empty_without_address(self, context):
        assert context.prompt_suffix() == ""

    def test_mentions_address(self, context, wallet):
        context.remember(wallet)
        suffix = context.prompt_suffix()
        assert "SESSION CONTEXT" in suffix
        assert wallet in suffix
