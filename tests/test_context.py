"""Tests for ollama_provider.context - context window sizing."""

import pytest

from ollama_provider.context import ContextDecision, estimate_tokens, optimize_context


class TestEstimateTokens:

    def test_rounds_up(self):
        assert estimate_tokens(10) == 4
        assert estimate_tokens(5) == 2
        assert estimate_tokens(1) == 1

    def test_zero_length(self):
        assert estimate_tokens(0) == 0


class TestFitsInLastWindow:
    """Estimate fits in the last requested window: never persist."""

    def test_short_input_at_default_sends_nothing(self):
        """last == default → no explicit size, backend default applies."""
        decision = optimize_context(10, 2048, 2048, 8192)
        assert decision == ContextDecision(requested_size=None, should_persist=False)

    def test_reuses_larger_last_window(self):
        """last > default → resend last window so the model is not reloaded smaller."""
        decision = optimize_context(10, 4096, 2048, 8192)
        assert decision == ContextDecision(requested_size=4096, should_persist=False)

    def test_boundary_estimate_equal_to_last(self):
        """5120 chars → exactly 2048 tokens, still fits."""
        decision = optimize_context(5120, 2048, 2048, 8192)
        assert decision.should_persist is False
        assert decision.requested_size is None

    @pytest.mark.parametrize("input_length", [0, 1, 1000, 5000, 5120])
    def test_never_persists_when_fitting(self, input_length):
        assert optimize_context(input_length, 2048, 2048, 8192).should_persist is False


class TestGrowth:
    """Estimate exceeds the last window: grow with a 20% buffer."""

    def test_capped_at_hard_limit(self):
        """100000 chars → 40000 tokens → 48000 buffered, capped at 8192."""
        decision = optimize_context(100000, 2048, 2048, 8192)
        assert decision == ContextDecision(requested_size=8192, should_persist=True)

    def test_buffer_above_estimate(self):
        """25000 chars → 10000 tokens → 12000 with buffer."""
        decision = optimize_context(25000, 2048, 2048, 131072)
        assert decision == ContextDecision(requested_size=12000, should_persist=True)

    def test_buffer_above_default_when_estimate_smaller(self):
        """Estimate below the default still grows from the default."""
        decision = optimize_context(3000, 1024, 2048, 8192)
        # max(1200, 2048) * 1.2 = 2457.6 → 2458
        assert decision == ContextDecision(requested_size=2458, should_persist=True)

    def test_unknown_hard_limit_means_no_cap(self):
        """hard_limit 0 must not collapse the target to 0."""
        decision = optimize_context(100000, 2048, 2048, 0)
        assert decision == ContextDecision(requested_size=48000, should_persist=True)

    def test_hard_limit_below_last_does_not_persist(self):
        """Target capped below the last window is sent but not remembered."""
        decision = optimize_context(100000, 8192, 2048, 4096)
        assert decision == ContextDecision(requested_size=4096, should_persist=False)

    def test_persisted_target_is_exact(self):
        decision = optimize_context(12500, 2048, 2048, 32768)
        # 5000 tokens * 1.2 = 6000
        assert decision.requested_size == 6000
        assert decision.should_persist is True
