"""
Tests for the admin surface.
"""

from datetime import date
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from sandwich_ops.access_control import User
from sandwich_ops.admin import (
    UNAVAILABLE_MESSAGE,
    ActionStatus,
    AdminService,
    create_admin_service,
)
from sandwich_ops.config import OpsConfig
from sandwich_ops.soft_delete import UnknownTableError


@pytest.fixture
def admin_user():
    return User.with_role("admin-1", "admin")


@pytest.fixture
def super_admin():
    return User.with_role("root-1", "super_admin")


@pytest.fixture
def volunteer():
    return User.with_role("vol-1", "volunteer")


class TestAdminMutations:
    """Test how outcomes are reported."""

    def test_delete_completed(self, admin, admin_user, host):
        result = admin.delete_record(admin_user, "hosts", host.id, reason="duplicate entry")

        assert result.status == ActionStatus.COMPLETED
        assert result.ok
        assert result.table_name == "hosts"
        assert result.record_id == str(host.id)
        assert result.message == f"Deleted hosts record {host.id}"

        entry = admin.deletion_history(admin_user, table_name="hosts")[0]
        assert entry.deleted_by == "admin-1"

    def test_delete_twice_is_no_change(self, admin, admin_user, host):
        admin.delete_record(admin_user, "hosts", host.id)
        result = admin.delete_record(admin_user, "hosts", host.id)

        assert result.status == ActionStatus.NO_CHANGE
        assert result.ok
        assert result.message == ""

    def test_blocked_delete_reports_reason(self, admin, admin_user, storage, host):
        storage.create_record(
            "sandwich_collections",
            collection_date=date(2024, 4, 6),
            host_name=host.name,
            individual_sandwiches=80,
        )

        result = admin.delete_record(admin_user, "hosts", host.id)

        assert result.status == ActionStatus.BLOCKED
        assert not result.ok
        assert "1 associated collection records" in result.message
        assert storage.get_host_by_id(host.id) is not None

    def test_cascade_used_for_policy_tables(self, admin, admin_user, storage, host):
        storage.create_record("host_contacts", host_id=host.id, name="Pat")

        admin.delete_record(admin_user, "hosts", host.id)

        assert storage.get_host_contacts(host.id) == []
        assert len(admin.deletion_history(admin_user)) == 2

    def test_storage_fault_is_unavailable(self, admin, admin_user, caplog):
        error = OperationalError("UPDATE", {}, Exception("database is locked"))

        with patch.object(admin.service, "soft_delete", side_effect=error):
            result = admin.delete_record(admin_user, "drivers", 1)

        assert result.status == ActionStatus.UNAVAILABLE
        assert result.message == UNAVAILABLE_MESSAGE
        assert "Failed to delete drivers:1" in caplog.text

    def test_restore_and_purge(self, admin, admin_user, super_admin, storage, host):
        admin.delete_record(admin_user, "hosts", host.id)

        restored = admin.restore_record(admin_user, "hosts", host.id)
        assert restored.status == ActionStatus.COMPLETED
        assert restored.message == f"Restored hosts record {host.id}"

        admin.delete_record(admin_user, "hosts", host.id)
        purged = admin.purge_record(super_admin, "hosts", host.id)
        assert purged.status == ActionStatus.COMPLETED
        assert admin.purge_record(super_admin, "hosts", host.id).status == ActionStatus.NO_CHANGE

    def test_purge_live_record_is_no_change(self, admin, super_admin, storage, host):
        result = admin.purge_record(super_admin, "hosts", host.id)
        assert result.status == ActionStatus.NO_CHANGE
        assert storage.get_host_by_id(host.id) is not None

    def test_bulk_delete(self, admin, admin_user, storage):
        live = storage.create_record("drivers", name="Dana")
        gone = storage.create_record("drivers", name="Eli")
        admin.delete_record(admin_user, "drivers", gone.id)

        result = admin.bulk_delete(admin_user, "drivers", [live.id, gone.id, 999])

        assert result.status == ActionStatus.COMPLETED
        assert result.bulk.success == 1
        assert result.bulk.failed == 2
        assert result.message == "Deleted 1 of 3 records"

    def test_bulk_delete_nothing_deleted(self, admin, admin_user):
        result = admin.bulk_delete(admin_user, "drivers", [998, 999])
        assert result.status == ActionStatus.NO_CHANGE

    def test_bulk_delete_blocked_host(self, admin, admin_user, storage, host):
        """Bulk deletes honour the same blockers as single deletes."""
        storage.create_record(
            "sandwich_collections",
            collection_date=date(2024, 4, 6),
            host_name=host.name,
            individual_sandwiches=80,
        )

        result = admin.bulk_delete(admin_user, "hosts", [host.id])

        assert result.status == ActionStatus.BLOCKED
        assert not result.ok
        assert result.bulk.success == 0
        assert result.bulk.failed == 1
        assert "1 associated collection records" in result.bulk.errors[0]
        assert storage.get_host_by_id(host.id) is not None
        assert admin.deletion_history(admin_user) == []

    def test_bulk_delete_cascades(self, admin, admin_user, storage, host):
        storage.create_record("host_contacts", host_id=host.id, name="Pat")
        blocked = storage.create_record("hosts", name="Uptown Library")
        storage.create_record(
            "sandwich_collections",
            collection_date=date(2024, 4, 6),
            host_name="Uptown Library",
            individual_sandwiches=40,
        )

        result = admin.bulk_delete(admin_user, "hosts", [host.id, blocked.id])

        assert result.status == ActionStatus.COMPLETED
        assert result.message == "Deleted 1 of 2 records"
        assert len(result.bulk.errors) == 1
        assert storage.get_host_contacts(host.id) == []
        assert storage.get_host_by_id(blocked.id) is not None

    def test_unknown_table(self, admin, admin_user):
        with pytest.raises(UnknownTableError):
            admin.delete_record(admin_user, "sandwiches", 1)


class TestAdminPermissions:
    """Test role checks on the admin surface."""

    def test_volunteer_cannot_delete(self, admin, volunteer, host):
        with pytest.raises(PermissionError):
            admin.delete_record(volunteer, "hosts", host.id)

    def test_volunteer_cannot_view_history(self, admin, volunteer):
        with pytest.raises(PermissionError):
            admin.deletion_history(volunteer)

    def test_admin_cannot_purge(self, admin, admin_user, storage, host):
        admin.delete_record(admin_user, "hosts", host.id)

        with pytest.raises(PermissionError):
            admin.purge_record(admin_user, "hosts", host.id)

        assert admin.restore_record(admin_user, "hosts", host.id).status == ActionStatus.COMPLETED

    def test_reads_for_admins(self, admin, admin_user, host):
        admin.delete_record(admin_user, "hosts", host.id)

        page = admin.history_page(admin_user, limit=10)
        assert len(page.entries) == 1
        assert admin.deletion_summary(admin_user).total_deletions == 1
        assert admin.audit_entry(admin_user, page.entries[0].id).record_id == str(host.id)
        assert [row.id for row in admin.deleted_records(admin_user, "hosts")] == [host.id]


class TestFactory:
    """Test wiring from configuration."""

    def test_create_admin_service(self, tmp_path):
        from sandwich_ops.database import create_db_engine, init_db

        url = f"sqlite:///{tmp_path / 'ops.db'}"
        init_db(create_db_engine(url))

        admin = create_admin_service(OpsConfig(database_url=url, default_actor_id="cron"))

        assert isinstance(admin, AdminService)
        assert "hosts" in admin.service.registry
        assert admin.service.config.default_actor_id == "cron"
        host = admin.storage.create_record("hosts", name="Uptown Library")
        assert admin.service.soft_delete("hosts", host.id) is True
        assert admin.service.get_deletion_history()[0].deleted_by == "cron"
