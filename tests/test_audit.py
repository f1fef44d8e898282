"""
Unit tests for the access audit log and block set.
"""

from fieldops.auth import AccessAuditLog, BlockSet, Outcome, Role


def _log(*entries, max_admin_events=1000):
    log = AccessAuditLog(max_admin_events=max_admin_events)
    for email, outcome in entries:
        log.record(email, email.split("@")[0], "10.0.0.1", outcome)
    return log


class TestList:
    """Test role-scoped listing."""

    def test_admin_sees_all_newest_first(self):
        log = _log(("a@x.mil", Outcome.OK), ("b@x.mil", Outcome.DENIED), ("c@x.mil", Outcome.OK))

        events = log.list(Role.ADMIN, "admin@x.mil")

        assert [e.email for e in events] == ["c@x.mil", "b@x.mil", "a@x.mil"]

    def test_admin_capped(self):
        log = _log(*[(f"u{i}@x.mil", Outcome.OK) for i in range(10)], max_admin_events=4)

        events = log.list(Role.ADMIN, "admin@x.mil")

        assert [e.email for e in events] == ["u9@x.mil", "u8@x.mil", "u7@x.mil", "u6@x.mil"]

    def test_limit_below_cap(self):
        log = _log(*[(f"u{i}@x.mil", Outcome.OK) for i in range(10)])

        assert len(log.list(Role.ADMIN, "admin@x.mil", limit=3)) == 3

    def test_standard_sees_only_own(self):
        log = _log(("a@x.mil", Outcome.OK), ("B@x.mil", Outcome.OK), ("a@x.mil", Outcome.DENIED))

        events = log.list(Role.STANDARD, "b@X.mil")

        assert [e.email for e in events] == ["B@x.mil"]


class TestBlock:
    """Test block, unblock and purge semantics."""

    def test_block_marks_history(self):
        log = _log(("a@x.mil", Outcome.OK), ("b@x.mil", Outcome.OK), ("A@x.mil", Outcome.DENIED))

        updated = log.block("a@x.mil")

        assert updated == 2
        assert log.is_blocked("A@X.MIL")
        by_email = [(e.email.lower(), e.outcome) for e in log.list(Role.ADMIN, "admin@x.mil")]
        assert by_email == [
            ("a@x.mil", Outcome.BLOCKED),
            ("b@x.mil", Outcome.OK),
            ("a@x.mil", Outcome.BLOCKED),
        ]

    def test_block_without_history(self):
        """Blocking an email with no events still blocks it."""
        log = AccessAuditLog()

        assert log.block("new@x.mil") == 0
        assert log.blocked_emails() == ["new@x.mil"]

    def test_delete_purges_but_keeps_block(self):
        """Purging history does not lift a block."""
        log = _log(("a@x.mil", Outcome.OK), ("b@x.mil", Outcome.OK), ("a@x.mil", Outcome.OK))
        log.block("a@x.mil")

        removed = log.delete("A@x.mil")

        assert removed == 2
        assert [e.email for e in log.list(Role.ADMIN, "admin@x.mil")] == ["b@x.mil"]
        assert log.is_blocked("a@x.mil")

    def test_unblock_keeps_history(self):
        log = _log(("a@x.mil", Outcome.OK))
        log.block("a@x.mil")

        assert log.unblock("a@x.mil") is True
        assert log.unblock("a@x.mil") is False
        assert not log.is_blocked("a@x.mil")
        assert log.list(Role.ADMIN, "admin@x.mil")[0].outcome is Outcome.BLOCKED

    def test_shared_block_set(self):
        """The log writes through to the block set it was given."""
        block_set = BlockSet()
        log = AccessAuditLog(block_set)

        log.block("a@x.mil")

        assert "A@x.mil" in block_set
        assert block_set.add("a@x.mil") is False
        assert block_set.discard("a@x.mil") is True
