"""
Tests for the deletion audit ledger.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from sandwich_ops.soft_delete import DeletionAudit, DeletionAuditEntry
from sandwich_ops.soft_delete.models import DeletionSummary, decode_cursor, encode_cursor


@pytest.fixture
def drivers(service, storage):
    """Five drivers, all soft deleted in id order."""
    rows = [storage.create_record("drivers", name=f"Driver {n}") for n in range(5)]
    for row in rows:
        service.soft_delete("drivers", row.id, "admin-1", f"left #{row.id}")
    return rows


class TestHistory:
    """Test filtering and ordering."""

    def test_newest_first(self, service, drivers):
        history = service.get_deletion_history()
        assert [e.record_id for e in history] == [str(d.id) for d in reversed(drivers)]

    def test_filter_by_table(self, service, drivers, host):
        service.soft_delete("hosts", host.id)

        assert len(service.get_deletion_history("drivers")) == 5
        hosts = service.get_deletion_history("hosts")
        assert [e.record_id for e in hosts] == [str(host.id)]

    def test_filter_by_record(self, service, drivers):
        history = service.get_deletion_history("drivers", str(drivers[2].id))
        assert len(history) == 1
        assert history[0].deletion_reason == f"left #{drivers[2].id}"

    def test_filter_by_record_across_tables(self, service, drivers, host):
        """A record id alone matches every table with that id."""
        service.soft_delete("hosts", host.id)
        tables = {e.table_name for e in service.get_deletion_history(record_id=str(host.id))}
        assert tables == {"drivers", "hosts"}

    def test_empty_ledger(self, service):
        assert service.get_deletion_history() == []
        assert service.get_deletion_history("hosts", "1") == []

    def test_get_audit_entry(self, service, drivers):
        newest = service.get_deletion_history()[0]
        entry = service.get_audit_entry(newest.id)
        assert entry == newest
        assert service.get_audit_entry(10_000) is None


class TestPagination:
    """Test keyset pagination."""

    def test_pages_cover_history_once(self, service, drivers):
        seen = []
        cursor = None
        pages = 0
        while True:
            page = service.get_deletion_history_page(limit=2, cursor=cursor)
            seen.extend(e.id for e in page.entries)
            pages += 1
            cursor = page.next_cursor
            if cursor is None:
                break

        assert pages == 3
        assert seen == [e.id for e in service.get_deletion_history()]

    def test_last_page_has_no_cursor(self, service, drivers):
        page = service.get_deletion_history_page(limit=5)
        assert len(page.entries) == 5
        assert page.next_cursor is None

    def test_new_deletions_do_not_shift_pages(self, service, storage, drivers):
        first = service.get_deletion_history_page(limit=2)

        late = storage.create_record("drivers", name="Late")
        service.soft_delete("drivers", late.id)

        second = service.get_deletion_history_page(limit=2, cursor=first.next_cursor)
        expected = [e.id for e in service.get_deletion_history()[3:5]]
        assert [e.id for e in second.entries] == expected

    def test_default_page_size(self, service, drivers):
        page = service.get_deletion_history_page()
        assert len(page.entries) == 5

    def test_filtered_pages(self, service, drivers, host):
        service.soft_delete("hosts", host.id)
        page = service.get_deletion_history_page(table_name="drivers", limit=10)
        assert {e.table_name for e in page.entries} == {"drivers"}

    def test_invalid_cursor(self, service):
        with pytest.raises(ValueError, match="Invalid history cursor"):
            service.get_deletion_history_page(cursor="not-a-cursor")

    def test_invalid_limit(self, service):
        with pytest.raises(ValueError):
            service.ledger.history_page(None, limit=0)

    def test_cursor_encoding(self):
        at = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
        assert decode_cursor(encode_cursor(at, 17)) == (at, 17)


class TestSummary:
    """Test ledger statistics."""

    def test_summary_counts(self, service, storage, drivers, host):
        service.soft_delete("hosts", host.id, "admin-2")
        service.restore_record("drivers", drivers[0].id, "admin-1")
        service.permanently_delete_record("drivers", drivers[1].id)

        summary = service.summarize_deletions()

        assert summary.total_deletions == 6
        assert summary.restored == 1
        assert summary.purged == 1
        assert summary.restorable == 4
        assert summary.by_table == {"drivers": 5, "hosts": 1}
        assert summary.by_actor == {"admin-1": 5, "admin-2": 1}

    def test_empty_summary(self, service):
        assert service.summarize_deletions() == DeletionSummary()


class TestAuditTable:
    """Test the deletion_audit table itself."""

    def test_restore_columns_move_together(self, session_factory):
        """restored_at without restored_by violates the check constraint."""
        with pytest.raises(IntegrityError):
            with session_factory.begin() as session:
                session.add(
                    DeletionAudit(
                        table_name="hosts",
                        record_id="1",
                        deleted_at=datetime.now(timezone.utc),
                        deleted_by="admin-1",
                        restored_at=datetime.now(timezone.utc),
                    )
                )

    def test_log_format(self):
        entry = DeletionAuditEntry(
            id=1,
            table_name="hosts",
            record_id="7",
            deleted_at=datetime(2024, 5, 1, 12, 0),
            deleted_by="admin-1",
            deletion_reason="duplicate entry",
            can_restore=False,
        )
        line = entry.to_log_format()
        assert "ACTOR=admin-1" in line
        assert "RECORD=hosts:7" in line
        assert "REASON='duplicate entry'" in line
        assert line.endswith("PURGED")
        assert entry.is_restored is False
