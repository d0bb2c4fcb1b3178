import fcntl
from datetime import timedelta

import pytest

from prepdeck.db.lock import file_lock, lock_path_for
from prepdeck.db.sqlite import SQLiteStorage
from prepdeck.errors import DuplicateIdError, NotFoundError, StorageError
from prepdeck.services.repository import ContentRepository


def _try_exclusive(path) -> bool:
    with open(lock_path_for(path), "a+") as f:
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        return True


class TestPersistence:
    def test_reopen_sees_same_entries_and_states(self, tmp_path, make_entry, scheduler, now):
        repo = ContentRepository.open(tmp_path)
        for entry_id in ("beh-2", "beh-1", "tech-1"):
            repo.add(make_entry(entry_id), now=now)
        scheduler.grade(repo, "beh-1", "good", now=now)
        scheduler.grade(repo, "beh-1", "hard", now=now + timedelta(days=1))
        repo.update("tech-1", {"category": "domain-technical", "tags": ["go"]})
        repo.remove("beh-2")

        reopened = ContentRepository.open(tmp_path)

        assert reopened.items() == repo.items()
        assert [e.id for e in reopened.list()] == ["beh-1", "tech-1"]
        assert reopened.get("tech-1").tags == ["go"]
        assert reopened.state("beh-1").review_count == 2

    def test_insertion_order_survives_removal(self, tmp_path, make_entry):
        repo = ContentRepository.open(tmp_path)
        repo.add(make_entry("a"))
        repo.add(make_entry("b"))
        repo.remove("b")
        repo.add(make_entry("c"))
        assert [e.id for e in ContentRepository.open(tmp_path).list()] == ["a", "c"]

    def test_failed_state_write_keeps_memory_and_allows_retry(
        self, sqlite_repo, make_entry, scheduler, now, monkeypatch
    ):
        sqlite_repo.add(make_entry(), now=now)
        before = sqlite_repo.state("beh-1")

        def broken(entry_id, step):
            raise StorageError("disk full", entry_id=entry_id)

        monkeypatch.setattr(sqlite_repo.storage, "update_state", broken)
        with pytest.raises(StorageError):
            scheduler.grade(sqlite_repo, "beh-1", "good", now=now)
        assert sqlite_repo.state("beh-1") == before

        monkeypatch.undo()
        scheduler.grade(sqlite_repo, "beh-1", "good", now=now)
        assert sqlite_repo.state("beh-1").review_count == 1

    def test_unopenable_database_raises_storage_error(self, tmp_path):
        (tmp_path / "deck.db").mkdir()
        with pytest.raises(StorageError):
            SQLiteStorage(tmp_path / "deck.db").init()


class TestTwoSessions:
    """Two repositories opened on the same data directory, as two terminals would."""

    def test_add_of_id_stored_elsewhere_is_duplicate(self, tmp_path, make_entry, now):
        stale = ContentRepository.open(tmp_path)
        ContentRepository.open(tmp_path).add(make_entry(), now=now)

        with pytest.raises(DuplicateIdError) as exc_info:
            stale.add(make_entry(), now=now)
        assert exc_info.value.entry_id == "beh-1"
        assert len(stale) == 0

    def test_stale_grade_builds_on_other_session_reviews(self, tmp_path, make_entry, scheduler, now):
        ContentRepository.open(tmp_path).add(make_entry("x"), now=now)
        stale = ContentRepository.open(tmp_path)
        other = ContentRepository.open(tmp_path)
        scheduler.grade(other, "x", "good", now=now)
        scheduler.grade(other, "x", "good", now=now + timedelta(days=1))

        result = scheduler.grade(stale, "x", "good", now=now + timedelta(days=4))

        assert result.interval_days == pytest.approx(6.25)
        state = ContentRepository.open(tmp_path).state("x")
        assert state.review_count == 3
        assert state.consecutive_successes == 3
        assert stale.state("x") == state

    def test_grade_of_entry_removed_elsewhere_is_not_found(self, tmp_path, make_entry, scheduler, now):
        stale = ContentRepository.open(tmp_path)
        stale.add(make_entry(), now=now)
        ContentRepository.open(tmp_path).remove("beh-1")

        with pytest.raises(NotFoundError):
            scheduler.grade(stale, "beh-1", "good", now=now)
        assert "beh-1" not in stale
        assert len(ContentRepository.open(tmp_path)) == 0


class TestFileLock:
    def test_lock_held_inside_block(self, tmp_path):
        path = tmp_path / "deck.db"
        with file_lock(path):
            assert not _try_exclusive(path)
        assert _try_exclusive(path)

    def test_lock_released_on_error(self, tmp_path):
        path = tmp_path / "deck.db"
        with pytest.raises(RuntimeError):
            with file_lock(path):
                raise RuntimeError("boom")
        assert _try_exclusive(path)

    def test_shared_locks_coexist(self, tmp_path):
        path = tmp_path / "deck.db"
        with file_lock(path, shared=True):
            with file_lock(path, shared=True):
                pass
