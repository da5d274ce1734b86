"""Tests for system prompt rendering."""

from __future__ import annotations

from pocket.config.schema import PromptConfig
from pocket.prompts import build_system_prompt, with_context
from pocket.session.context import ContextStore


class TestBuildSystemPrompt:
    def test_default_prompt(self):
        prompt = build_system_prompt(PromptConfig())
        assert "Send Pocket - Solana Wallet AI Agent" in prompt
        assert "SEND S1 team" in prompt
        assert "performing token swaps" in prompt
        assert "You **never sign transactions**" in prompt

    def test_names_substituted(self):
        config = PromptConfig(
            product_name="Acme Wallet",
            company_name="Acme",
            functionalities=["checking balances"],
        )
        prompt = build_system_prompt(config)
        assert "Acme Wallet" in prompt
        assert "Acme team" in prompt
        assert "**checking balances**" in prompt
        assert "{" not in prompt

    def test_override_used_verbatim(self):
        config = PromptConfig(system_prompt="Be brief.")
        assert build_system_prompt(config) == "Be brief."


class TestWithContext:
    def test_unchanged_without_address(self):
        assert with_context("BASE", ContextStore()) == "BASE"

    def test_address_appended(self, wallet):
        context = ContextStore()
        context.remember(wallet)
        prompt = with_context("BASE", context)
        assert prompt.startswith("BASE\n\n### SESSION CONTEXT:")
        assert wallet in prompt
