"""
Concurrent access to the shared collections.
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from fieldops.auth import AuthorizedCaller, CredentialStore, Outcome, Role
from fieldops.errors import Blocked, DuplicateIdentity

THREADS = 8
PER_THREAD = 100


def _caller(i: int, role: Role = Role.STANDARD) -> AuthorizedCaller:
    return AuthorizedCaller(email=f"agent{i}@x.mil", name=f"Agent {i}", role=role)


REPORT = {"level": "ALTO", "operation": "Patrulla", "location": "Base", "description": "x"}


class TestCredentialStore:
    """Test concurrent registration."""

    def test_same_email_registers_once(self):
        store = CredentialStore()
        barrier = threading.Barrier(THREADS)

        def register(i):
            barrier.wait()
            try:
                store.register("Same@x.mil" if i % 2 else "same@X.mil", f"pw{i}", f"N{i}")
                return True
            except DuplicateIdentity:
                return False

        with ThreadPoolExecutor(THREADS) as pool:
            results = list(pool.map(register, range(THREADS)))

        assert results.count(True) == 1
        assert len(store) == 1

    def test_single_first_admin(self):
        store = CredentialStore(first_user_is_admin=True)
        barrier = threading.Barrier(THREADS)

        def register(i):
            barrier.wait()
            return store.register(f"u{i}@x.mil", "pw", f"U{i}")

        with ThreadPoolExecutor(THREADS) as pool:
            identities = list(pool.map(register, range(THREADS)))

        assert [i.role for i in identities].count(Role.ADMIN) == 1


class TestReportLedger:
    """Test concurrent submit and list."""

    def test_submit_while_listing(self, ctx):
        admin = _caller(99, Role.ADMIN)
        stop = threading.Event()
        leaks = []

        def submit(i):
            caller = _caller(i)
            for _ in range(PER_THREAD):
                ctx.reports.submit(caller, REPORT)

        def read(i):
            caller = _caller(i)
            while not stop.is_set():
                leaks.extend(r for r in ctx.reports.list(caller) if r.email != caller.email)
                ctx.reports.list(admin)

        readers = [threading.Thread(target=read, args=(i,)) for i in range(2)]
        for t in readers:
            t.start()
        with ThreadPoolExecutor(THREADS) as pool:
            list(pool.map(submit, range(THREADS)))
        stop.set()
        for t in readers:
            t.join()

        assert leaks == []
        assert len(ctx.reports) == THREADS * PER_THREAD
        ids = [r.report_id for r in ctx.reports.list(admin)]
        assert len(set(ids)) == THREADS * PER_THREAD
        assert ids == sorted(ids, reverse=True)


class TestPresence:
    """Test concurrent upserts."""

    def test_one_entry_per_email(self, ctx):
        agents = 4
        stop = threading.Event()
        duplicates = []

        def upsert(i):
            for n in range(PER_THREAD):
                ctx.presence.upsert(_caller(i % agents), n % 90, i)

        def read():
            while not stop.is_set():
                emails = [p.email for p in ctx.presence.list()]
                if len(emails) != len(set(emails)):
                    duplicates.append(emails)

        reader = threading.Thread(target=read)
        reader.start()
        with ThreadPoolExecutor(THREADS) as pool:
            list(pool.map(upsert, range(THREADS)))
        stop.set()
        reader.join()

        assert duplicates == []
        positions = ctx.presence.list()
        assert sorted(p.email for p in positions) == [f"agent{i}@x.mil" for i in range(agents)]


class TestAuditLog:
    """Test concurrent appends and blocks."""

    def test_appends_not_lost(self, ctx):
        def record(i):
            for _ in range(PER_THREAD):
                ctx.audit.record(f"agent{i}@x.mil", "", "10.0.0.1", Outcome.OK)

        with ThreadPoolExecutor(THREADS) as pool:
            list(pool.map(record, range(THREADS)))

        assert len(ctx.audit) == THREADS * PER_THREAD

    def test_block_during_appends_marks_history(self, ctx):
        """Every event recorded before block() returns ends up BLOCKED."""
        start = threading.Barrier(THREADS + 1)

        def record(_):
            start.wait()
            for _ in range(PER_THREAD):
                ctx.audit.record("agent0@x.mil", "", "10.0.0.1", Outcome.OK)

        with ThreadPoolExecutor(THREADS) as pool:
            futures = [pool.submit(record, i) for i in range(THREADS)]
            start.wait()
            updated = ctx.audit.block("agent0@x.mil")
            for f in futures:
                f.result()

        oldest_first = list(reversed(ctx.audit.list(Role.STANDARD, "agent0@x.mil")))
        assert all(e.outcome is Outcome.BLOCKED for e in oldest_first[:updated])
        assert len(ctx.audit) == THREADS * PER_THREAD

    def test_block_visible_to_other_thread(self, ctx, user):
        """An authorization starting after block() returns sees the block."""
        token, _ = ctx.users.login("user@x.mil", "pw2")
        blocked = threading.Event()
        result = {}

        def authorize():
            blocked.wait(timeout=5)
            try:
                ctx.guard.authorize(f"Bearer {token}")
                result["outcome"] = "allowed"
            except Blocked:
                result["outcome"] = "blocked"

        worker = threading.Thread(target=authorize)
        worker.start()
        ctx.audit.block("user@x.mil")
        blocked.set()
        worker.join(timeout=5)

        assert result == {"outcome": "blocked"}

    def test_authorize_during_block_unblock(self, ctx, user):
        """Concurrent checks only ever see allowed or blocked, never an error."""
        token, _ = ctx.users.login("user@x.mil", "pw2")
        stop = threading.Event()
        errors = []

        def authorize():
            while not stop.is_set():
                try:
                    ctx.guard.authorize(f"Bearer {token}")
                except Blocked:
                    pass
                except Exception as e:
                    errors.append(e)

        workers = [threading.Thread(target=authorize) for _ in range(4)]
        for w in workers:
            w.start()
        for _ in range(50):
            ctx.audit.block("user@x.mil")
            ctx.audit.unblock("user@x.mil")
        ctx.audit.block("user@x.mil")
        stop.set()
        for w in workers:
            w.join()

        assert errors == []
        with pytest.raises(Blocked):
            ctx.guard.authorize(f"Bearer {token}")
