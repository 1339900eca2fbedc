"""
Unit tests for the report e-mail text.
"""

from claimflow.logics.snapshot_loader import calculate_stats
from claimflow.logics.email_builder import build_email_text, build_stat_block


class TestBuildEmailText:

    def test_without_yesterday(self):
        body = build_email_text("Solis", calculate_stats([("PEND", 29)]))

        assert body.startswith("Hello Teams,\n\nAttached is today's Daily Action Report for Solis.")
        assert "Number of total claims" not in body
        assert body.endswith("Please let me know if you have any questions.")

    def test_with_yesterday(self):
        today = calculate_stats([("PEND", 29), ("PEND", 31), ("ONHOLD", 5)])
        yesterday = calculate_stats([("PEND", 28)])
        body = build_email_text("CSH", today, yesterday)

        assert "Number of total claims pending: 2 (Yest. 1)" in body
        assert "CRITICAL (28-30 Days): 1 (Yest. 1)" in body
        assert "Backlog (31+ Days): 1 (Yest. 0)" in body
        assert "Number of total claims On Hold: 1 (Yest. 0)" in body
        assert "Number of total claims in Management Review: 0 (Yest. 0)" in body


class TestBuildStatBlock:

    def test_missing_state_counts_as_zero(self):
        block = build_stat_block("pending", "PEND", {}, {})

        assert block.splitlines() == [
            "Number of total claims pending: 0 (Yest. 0)",
            "CRITICAL (28-30 Days): 0 (Yest. 0)",
            "PRIORITY (21-27 Days): 0 (Yest. 0)",
            "Backlog (31+ Days): 0 (Yest. 0)",
            "Queue (0-20 Days): 0 (Yest. 0)",
        ]
