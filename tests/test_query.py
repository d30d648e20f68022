"""
Tests for the live-only query convention and the storage read paths.
"""

from datetime import date

import pytest
from sqlalchemy import select

from sandwich_ops.entities import Host
from sandwich_ops.soft_delete import SoftDeleteQuery, VisibilityMode, apply_visibility


@pytest.fixture
def hosts(service, storage):
    """Three hosts, one of them tombstoned."""
    active = storage.create_record("hosts", name="Alpha Church", status="active")
    inactive = storage.create_record("hosts", name="Beta School", status="inactive")
    gone = storage.create_record("hosts", name="Gamma Hall", status="active")
    service.soft_delete("hosts", gone.id, "admin-1")
    return active, inactive, gone


class TestVisibility:
    """Test visibility modes."""

    def test_live_is_default(self, storage, hosts):
        active, inactive, gone = hosts
        ids = [h.id for h in storage.list_records("hosts")]
        assert ids == [active.id, inactive.id]

    def test_with_deleted(self, storage, hosts):
        ids = {h.id for h in storage.list_records("hosts", VisibilityMode.WITH_DELETED)}
        assert ids == {h.id for h in hosts}

    def test_only_deleted(self, storage, hosts):
        rows = storage.list_records("hosts", VisibilityMode.ONLY_DELETED)
        assert [h.name for h in rows] == ["Gamma Hall"]

    def test_mode_from_string(self, storage, hosts):
        assert len(storage.list_records("hosts", "only_deleted")) == 1

    def test_get_record_modes(self, storage, hosts):
        gone = hosts[2]
        assert storage.get_record("hosts", gone.id) is None
        assert storage.get_record("hosts", gone.id, VisibilityMode.WITH_DELETED).name == "Gamma Hall"
        assert storage.get_record("hosts", hosts[0].id, VisibilityMode.ONLY_DELETED) is None

    def test_statement_predicates(self):
        """Tombstoned rows are told apart by an explicit NULL test."""
        live = str(SoftDeleteQuery(Host).statement())
        deleted = str(SoftDeleteQuery(Host).only_deleted().statement())
        everything = str(SoftDeleteQuery(Host).with_deleted().statement())

        assert "hosts.deleted_at IS NULL" in live
        assert "hosts.deleted_at IS NOT NULL" in deleted
        assert "deleted_at IS" not in everything

    def test_apply_visibility(self):
        stmt = apply_visibility(select(Host), Host, VisibilityMode.ONLY_DELETED)
        assert "deleted_at IS NOT NULL" in str(stmt)

    def test_builder_criteria_and_order(self):
        stmt = str(
            SoftDeleteQuery(Host)
            .where(Host.status == "active")
            .order_by(Host.name)
            .statement()
        )
        assert "hosts.status" in stmt
        assert "ORDER BY hosts.name" in stmt


class TestReadPaths:
    """Every named read path hides tombstoned rows."""

    def test_users(self, service, storage):
        storage.create_record("users", id="u1", display_name="Ann")
        storage.create_record("users", id="u2", display_name="Bo", is_active=False)
        storage.create_record("users", id="u3", display_name="Cy")
        service.soft_delete("users", "u3")

        assert [u.id for u in storage.get_users()] == ["u1", "u2"]
        assert [u.id for u in storage.get_active_users()] == ["u1"]
        assert storage.get_user_by_id("u1").display_name == "Ann"
        assert storage.get_user_by_id("u3") is None

    def test_projects_and_tasks(self, service, storage):
        live = storage.create_record("projects", title="Drive", status="active")
        done = storage.create_record("projects", title="Old", status="completed")
        gone = storage.create_record("projects", title="Gone", status="active")
        service.soft_delete("projects", gone.id)

        assert {p.id for p in storage.get_projects()} == {live.id, done.id}
        assert [p.id for p in storage.get_active_projects()] == [live.id]
        assert storage.get_project_by_id(gone.id) is None
        assert storage.get_project_by_id(live.id).title == "Drive"

        second = storage.create_record("project_tasks", project_id=live.id, title="B", sort_order=2)
        first = storage.create_record("project_tasks", project_id=live.id, title="A", sort_order=1)
        dropped = storage.create_record("project_tasks", project_id=live.id, title="C", sort_order=0)
        service.soft_delete("project_tasks", dropped.id)

        assert [t.id for t in storage.get_project_tasks(live.id)] == [first.id, second.id]

    def test_messages(self, service, storage):
        kept = storage.create_record("messages", conversation_id=5, content="hello")
        gone = storage.create_record("messages", conversation_id=5, content="oops")
        storage.create_record("messages", conversation_id=6, content="elsewhere")
        service.soft_delete("messages", gone.id)

        assert [m.id for m in storage.get_messages(5)] == [kept.id]

    def test_sandwich_collections(self, service, storage):
        rows = [
            storage.create_record(
                "sandwich_collections",
                collection_date=date(2024, 1, day),
                host_name="Alpha Church",
                individual_sandwiches=day * 10,
            )
            for day in range(1, 5)
        ]
        service.soft_delete("sandwich_collections", rows[0].id)

        everything = storage.get_all_sandwich_collections()
        assert {c.id for c in everything} == {r.id for r in rows[1:]}

        first_page = storage.get_sandwich_collections(limit=2)
        second_page = storage.get_sandwich_collections(limit=2, offset=2)
        assert len(first_page) == 2
        assert len(second_page) == 1
        assert {c.id for c in first_page + second_page} == {r.id for r in rows[1:]}

    def test_hosts(self, storage, hosts):
        active, inactive, gone = hosts
        assert [h.name for h in storage.get_hosts()] == ["Alpha Church", "Beta School"]
        assert [h.name for h in storage.get_active_hosts()] == ["Alpha Church"]
        assert storage.get_host_by_id(gone.id) is None

    def test_host_contacts(self, service, storage, host):
        kept = storage.create_record("host_contacts", host_id=host.id, name="Pat")
        gone = storage.create_record("host_contacts", host_id=host.id, name="Sam")
        service.soft_delete("host_contacts", gone.id)

        assert [c.id for c in storage.get_host_contacts(host.id)] == [kept.id]

    def test_drivers(self, service, storage):
        storage.create_record("drivers", name="Ann")
        storage.create_record("drivers", name="Bo", is_active=False)
        gone = storage.create_record("drivers", name="Cy")
        service.soft_delete("drivers", gone.id)

        assert [d.name for d in storage.get_drivers()] == ["Ann", "Bo"]
        assert [d.name for d in storage.get_active_drivers()] == ["Ann"]

    def test_recipients(self, service, storage):
        storage.create_record("recipients", name="Food Bank")
        storage.create_record("recipients", name="Shelter", status="inactive")
        gone = storage.create_record("recipients", name="Pantry")
        service.soft_delete("recipients", gone.id)

        assert [r.name for r in storage.get_recipients()] == ["Food Bank", "Shelter"]
        assert [r.name for r in storage.get_active_recipients()] == ["Food Bank"]

    def test_contacts_and_meetings(self, service, storage):
        storage.create_record("contacts", name="Ann")
        contact = storage.create_record("contacts", name="Bo")
        storage.create_record("meetings", title="Kickoff", meeting_date=date(2024, 2, 1))
        meeting = storage.create_record("meetings", title="Review", meeting_date=date(2024, 3, 1))
        service.soft_delete("contacts", contact.id)
        service.soft_delete("meetings", meeting.id)

        assert [c.name for c in storage.get_contacts()] == ["Ann"]
        assert [m.title for m in storage.get_meetings()] == ["Kickoff"]

    def test_suggestions_and_responses(self, service, storage):
        suggestion = storage.create_record("suggestions", title="More routes")
        gone = storage.create_record("suggestions", title="Less routes")
        kept = storage.create_record(
            "suggestion_responses", suggestion_id=suggestion.id, message="Yes"
        )
        dropped = storage.create_record(
            "suggestion_responses", suggestion_id=suggestion.id, message="No"
        )
        service.soft_delete("suggestions", gone.id)
        service.soft_delete("suggestion_responses", dropped.id)

        assert [s.id for s in storage.get_suggestions()] == [suggestion.id]
        assert [r.id for r in storage.get_suggestion_responses(suggestion.id)] == [kept.id]


class TestUpdates:
    """Updates only touch live rows."""

    def test_update_live_row(self, storage, host):
        updated = storage.update_record("hosts", host.id, notes="Side door")
        assert updated.notes == "Side door"
        assert updated.updated_at is not None

    def test_update_tombstoned_row(self, service, storage, host):
        service.soft_delete("hosts", host.id)

        assert storage.update_record("hosts", host.id, notes="Side door") is None
        row = storage.get_record("hosts", host.id, VisibilityMode.WITH_DELETED)
        assert row.notes is None

    def test_update_missing_row(self, storage):
        assert storage.update_record("hosts", 999, notes="x") is None
