"""Tests for checkpoint creation and retention."""

from datetime import timedelta

import pytest

from conftest import FakeClock
from toolgate.checkpoints.manager import CheckpointManager


class TestCreate:
    """Tests for automatic and manual checkpoints."""

    def test_auto_name_and_description(self, checkpoints, clock):
        checkpoint = checkpoints.create_auto("/proj/src/app.py", "snap-1")

        assert checkpoint.name == clock.now.astimezone().strftime("checkpoint-%Y%m%d-%H%M%S")
        assert checkpoint.description == "Auto: Write app.py"
        assert checkpoint.file_snapshots == {"/proj/src/app.py": "snap-1"}
        assert checkpoint.timestamp == clock.now

    def test_manual(self, checkpoints):
        checkpoint = checkpoints.create_manual(
            "before-refactor",
            "Everything under src",
            {"/proj/a.py": "snap-a", "/proj/b.py": "snap-b"},
        )

        assert checkpoints.get(checkpoint.id) is checkpoint
        assert len(checkpoint.file_snapshots) == 2

    def test_ids_are_unique(self, checkpoints):
        ids = {checkpoints.create_auto("/p/x", f"s{i}").id for i in range(20)}
        assert len(ids) == 20

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            CheckpointManager(max_checkpoints=0)

    def test_to_dict(self, checkpoints):
        data = checkpoints.create_auto("/p/x", "s").to_dict()

        assert set(data) == {"id", "name", "description", "timestamp", "file_snapshots"}


class TestRetention:
    """Tests for max-count and max-age pruning."""

    def test_count_limit_keeps_newest(self, checkpoints, clock):
        created = []
        for i in range(60):
            created.append(checkpoints.create_auto(f"/p/f{i}", f"s{i}"))
            clock.advance(seconds=1)

        assert len(checkpoints) == 50
        kept = {cp.id for cp in checkpoints.list()}
        assert kept == {cp.id for cp in created[10:]}

    def test_count_limit_breaks_ties_by_creation_order(self):
        manager = CheckpointManager(max_checkpoints=3, clock=FakeClock())
        created = [manager.create_auto(f"/p/f{i}", f"s{i}") for i in range(5)]

        assert [cp.id for cp in manager.list()] == [cp.id for cp in reversed(created[2:])]

    def test_max_age(self, checkpoints, clock):
        old = checkpoints.create_auto("/p/old", "s-old")
        clock.advance(days=7, seconds=1)
        fresh = checkpoints.create_auto("/p/new", "s-new")

        assert checkpoints.get(old.id) is None
        assert checkpoints.get(fresh.id) is fresh

    def test_exactly_max_age_is_kept(self, checkpoints, clock):
        old = checkpoints.create_auto("/p/old", "s-old")
        clock.advance(days=7)
        checkpoints.create_auto("/p/new", "s-new")

        assert checkpoints.get(old.id) is not None

    def test_limit_holds_after_every_create(self):
        clock = FakeClock()
        manager = CheckpointManager(max_checkpoints=5, clock=clock)
        for i in range(12):
            manager.create_auto(f"/p/{i}", f"s{i}")
            clock.advance(milliseconds=10)
            assert len(manager) <= 5

    def test_pruned_checkpoints_reported(self):
        removed = []
        manager = CheckpointManager(max_checkpoints=2, clock=FakeClock(), on_removed=removed.extend)
        first = manager.create_auto("/p/a", "s1")
        manager.create_auto("/p/b", "s2")
        manager.create_auto("/p/c", "s3")

        assert removed == [first]
        assert manager.referenced_snapshots() == {"s2", "s3"}

    def test_deleted_checkpoint_reported(self, checkpoints):
        removed = []
        checkpoints.on_removed = removed.extend
        checkpoint = checkpoints.create_auto("/p/a", "s1")

        checkpoints.delete(checkpoint.id)
        checkpoints.delete(checkpoint.id)

        assert removed == [checkpoint]
        assert checkpoints.referenced_snapshots() == set()


class TestQueries:
    """Tests for listing, deleting and snapshot merging."""

    def test_list_newest_first(self, checkpoints, clock):
        first = checkpoints.create_auto("/p/a", "s1")
        clock.advance(minutes=1)
        second = checkpoints.create_auto("/p/b", "s2")

        assert checkpoints.list() == [second, first]

    def test_delete(self, checkpoints):
        checkpoint = checkpoints.create_auto("/p/a", "s1")

        assert checkpoints.delete(checkpoint.id) is True
        assert checkpoints.delete(checkpoint.id) is False
        assert checkpoints.get(checkpoint.id) is None

    def test_get_missing(self, checkpoints):
        assert checkpoints.get("nope") is None

    def test_snapshots_since(self, checkpoints, clock):
        checkpoints.create_auto("/p/a", "s1")
        clock.advance(minutes=1)
        cutoff = clock.now
        checkpoints.create_auto("/p/b", "s2")
        clock.advance(minutes=1)
        checkpoints.create_auto("/p/b", "s3")

        assert checkpoints.get_snapshots_since(cutoff) == {"/p/b": "s3"}
        assert checkpoints.get_snapshots_since(cutoff + timedelta(days=1)) == {}
