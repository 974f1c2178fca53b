"""
Tests for in-memory stores, the SQLite settings store and per-user locking.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

import projection_service.settings_db as settings_db_module
from config.projection_config import get_config
from conftest import make_fragment
from projection_core.decision import Decision
from projection_core.regret import DecisionFeedback, FeedbackType
from projection_core.scoring import DecisionResult
from projection_core.parameters import UserAdaptiveSettings
from projection_core.vectors import Embedding
from projection_service.errors import ConcurrentModificationError, LockTimeoutError
from projection_service.locking import UserLockManager
from projection_service.settings_db import SettingsDB, SQLiteUserSettingsStore
from projection_service.settings_provider import UserSettingsProvider


class TestInMemoryEvidenceStore:

    @pytest.mark.asyncio
    async def test_sorted_by_similarity(self, evidence_store):
        await evidence_store.add(make_fragment([1.0, 1.0], fragment_id="diag"))
        await evidence_store.add(make_fragment([1.0, 0.0], fragment_id="exact"))
        await evidence_store.add(make_fragment([0.0, 1.0], fragment_id="orthogonal"))

        items = await evidence_store.find_similar("user-1", Embedding([1.0, 0.0]), 10)
        assert [item.id for item in items] == ["exact", "diag", "orthogonal"]
        assert items[0].similarity == 1.0
        assert items[2].similarity == 0.0

    @pytest.mark.asyncio
    async def test_negative_similarity_clipped(self, evidence_store):
        await evidence_store.add(make_fragment([-1.0, 0.0], fragment_id="opposite"))
        items = await evidence_store.find_similar("user-1", Embedding([1.0, 0.0]), 10)
        assert items[0].similarity == 0.0

    @pytest.mark.asyncio
    async def test_top_k(self, evidence_store):
        for i in range(5):
            await evidence_store.add(make_fragment([1.0, 0.1 * i]))
        assert len(await evidence_store.find_similar("user-1", Embedding([1.0, 0.0]), 3)) == 3
        assert await evidence_store.find_similar("user-1", Embedding([1.0, 0.0]), 0) == []

    @pytest.mark.asyncio
    async def test_soft_delete(self, evidence_store):
        await evidence_store.add(make_fragment([1.0, 0.0], fragment_id="f"))
        await evidence_store.delete("f")
        await evidence_store.delete("never-existed")
        assert await evidence_store.find_similar("user-1", Embedding([1.0, 0.0]), 10) == []


class TestInMemorySettingsStore:

    @pytest.mark.asyncio
    async def test_create_keeps_first(self, settings_store):
        first = await settings_store.create(UserAdaptiveSettings(user_id="u", lambda_=1.5))
        second = await settings_store.create(UserAdaptiveSettings(user_id="u", lambda_=0.7))
        assert first.lambda_ == second.lambda_ == 1.5

    @pytest.mark.asyncio
    async def test_version_check(self, settings_store):
        current = await settings_store.create(UserAdaptiveSettings(user_id="u"))
        await settings_store.save(current.with_lambda(1.1), expected_version=1)
        with pytest.raises(ConcurrentModificationError) as exc:
            await settings_store.save(current.with_lambda(1.2), expected_version=1)
        assert exc.value.actual_version == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_access(self, settings_store, test_config):
        provider = UserSettingsProvider(settings_store, test_config)
        results = await asyncio.gather(*[provider.get_settings("u") for _ in range(5)])
        assert all(r == results[0] for r in results)
        assert results[0].version == 1


class TestSQLiteSettingsStore:

    @pytest.fixture
    def db_path(self, tmp_path):
        return tmp_path / "nested" / "settings.db"

    @pytest.mark.asyncio
    async def test_round_trip(self, db_path):
        store = SQLiteUserSettingsStore(db_path)
        assert await store.get("u") is None

        created = await store.create(UserAdaptiveSettings(user_id="u", lambda_=1.2,
                                                          regret_prior=0.25))
        assert created.version == 1
        loaded = await store.get("u")
        assert loaded == created

    @pytest.mark.asyncio
    async def test_insert_if_absent(self, db_path):
        store = SQLiteUserSettingsStore(db_path)
        await store.create(UserAdaptiveSettings(user_id="u", lambda_=1.2))
        again = await store.create(UserAdaptiveSettings(user_id="u", lambda_=0.6))
        assert again.lambda_ == pytest.approx(1.2)

    @pytest.mark.asyncio
    async def test_optimistic_update(self, db_path):
        store = SQLiteUserSettingsStore(db_path)
        current = await store.create(UserAdaptiveSettings(user_id="u"))

        updated = await store.save(current.with_lambda(1.1), expected_version=1)
        assert updated.version == 2
        assert (await store.get("u")).lambda_ == pytest.approx(1.1)

        with pytest.raises(ConcurrentModificationError) as exc:
            await store.save(current.with_lambda(0.9), expected_version=1)
        assert exc.value.expected_version == 1
        assert exc.value.actual_version == 2

    @pytest.mark.asyncio
    async def test_update_missing_user(self, db_path):
        store = SQLiteUserSettingsStore(db_path)
        with pytest.raises(ConcurrentModificationError) as exc:
            await store.save(UserAdaptiveSettings(user_id="ghost", version=2), expected_version=1)
        assert exc.value.actual_version == 0

    def test_persists_across_instances(self, db_path):
        SettingsDB(db_path).insert_if_absent(UserAdaptiveSettings(user_id="u", lambda_=1.7))
        assert SettingsDB(db_path).load("u").lambda_ == pytest.approx(1.7)

    def test_health_check(self, db_path):
        db = SettingsDB(db_path)
        db.insert_if_absent(UserAdaptiveSettings(user_id="u"))
        health = db.health_check()
        assert health["backend"] == "sqlite"
        assert health["schema_version"] == SettingsDB.SCHEMA_VERSION
        assert health["integrity_check"] == "ok"
        assert health["user_count"] == 1

    @pytest.mark.asyncio
    async def test_path_from_config(self, tmp_path, monkeypatch):
        path = tmp_path / "from-env" / "settings.db"
        cfg = get_config({"PROJECTION_SETTINGS_DB_PATH": str(path)})
        monkeypatch.setattr(settings_db_module, "default_config", cfg)

        store = SQLiteUserSettingsStore()
        await store.create(UserAdaptiveSettings(user_id="u"))
        assert store.db.db_path == path
        assert path.exists()


class TestUserLockManager:

    @pytest.mark.asyncio
    async def test_serializes_same_user(self):
        locks = UserLockManager()
        active = 0
        peak = 0

        async def worker():
            nonlocal active, peak
            async with locks.acquire("u"):
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*[worker() for _ in range(5)])
        assert peak == 1

    @pytest.mark.asyncio
    async def test_different_users_independent(self):
        locks = UserLockManager(default_timeout=0.05)
        async with locks.acquire("u1"):
            async with locks.acquire("u2"):
                assert locks.is_locked("u1")
                assert locks.is_locked("u2")

    @pytest.mark.asyncio
    async def test_timeout(self):
        locks = UserLockManager()
        async with locks.acquire("u"):
            with pytest.raises(LockTimeoutError) as exc:
                async with locks.acquire("u", timeout=0.02):
                    pass
        assert exc.value.resource_id == "u"
        assert isinstance(exc.value, TimeoutError)

    @pytest.mark.asyncio
    async def test_idle_locks_dropped(self):
        locks = UserLockManager()
        async with locks.acquire("u"):
            pass
        assert not locks.is_locked("u")
        assert "u" not in locks._locks

    @pytest.mark.asyncio
    async def test_released_on_error(self):
        locks = UserLockManager()
        with pytest.raises(RuntimeError):
            async with locks.acquire("u"):
                raise RuntimeError("boom")
        async with locks.acquire("u", timeout=0.05):
            pass


class TestInMemoryDecisionStore:

    NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    async def add(self, store, decision_id, hours_ago, user_id="user-1"):
        result = DecisionResult(probability_a=0.5, probability_b=0.5,
                                regret_risk_a=0.35, regret_risk_b=0.35)
        await store.save(Decision(id=decision_id, user_id=user_id, title=decision_id,
                                  option_a="A", option_b="B", result=result,
                                  created_at=self.NOW - timedelta(hours=hours_ago)))

    @pytest.mark.asyncio
    async def test_list_newest_first(self, decision_store):
        for i, hours in enumerate([5, 1, 3]):
            await self.add(decision_store, f"d{i}", hours)
        await self.add(decision_store, "other", 0, user_id="user-2")

        page = await decision_store.list_decisions("user-1", limit=2, offset=0)
        assert [d.id for d in page] == ["d1", "d2"]
        rest = await decision_store.list_decisions("user-1", limit=2, offset=2)
        assert [d.id for d in rest] == ["d0"]
        assert await decision_store.count_decisions("user-1") == 3

    @pytest.mark.asyncio
    async def test_awaiting_feedback_window(self, decision_store):
        await self.add(decision_store, "fresh", 2)
        await self.add(decision_store, "due-late", 60)
        await self.add(decision_store, "due-early", 30)
        await self.add(decision_store, "answered", 40)
        await self.add(decision_store, "stale", 100)
        await decision_store.save_feedback(DecisionFeedback(
            id="fb", decision_id="answered", feedback_type=FeedbackType.NEUTRAL))

        pending = await decision_store.find_awaiting_feedback(
            "user-1",
            created_after=self.NOW - timedelta(hours=72),
            created_before=self.NOW - timedelta(hours=24),
        )
        assert [d.id for d in pending] == ["due-late", "due-early"]

    @pytest.mark.asyncio
    async def test_delete_feedback(self, decision_store):
        await self.add(decision_store, "d1", 1)
        await decision_store.save_feedback(DecisionFeedback(
            id="fb", decision_id="d1", feedback_type=FeedbackType.REGRET))
        await decision_store.delete_feedback("d1")
        await decision_store.delete_feedback("d1")
        assert await decision_store.get_feedback("d1") is None
        assert (await decision_store.get_feedback_stats("user-1")).total_with_feedback == 0
