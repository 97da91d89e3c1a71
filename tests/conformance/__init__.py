"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the portfolio ledger.

The tests are organized by invariant:
1. totals_derivation - Totals are always re-derived from holdings
2. cash_value_conservation - Trades move value between cash and holdings
3. activity_log_cap - The activity log is bounded and newest-first
4. persistence_round_trip - Stored portfolios decode to the same value
5. market_moves - Valuations scale uniformly and stay positive

These tests use hypothesis for property-based testing.
"""
