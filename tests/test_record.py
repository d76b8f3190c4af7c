"""
Records (models/base.py)

Tests Record options, save routing and dirty diffing, delete policies,
finders, hydration, events and value helpers against a recording
adapter.
"""

import pytest

from tabula.faults import QueryFault, RecordStateFault, UnknownOperationFault
from tabula.models import Event, EventHandler, Field, HardDelete, Record, SoftDelete
from tabula.models.base import ModelRegistry
from tabula.models.query import RecordQuery
from tabula.models.sql_builder import QueryBuilder


class Member(Record):
    id = Field()
    name = Field(default="")
    email = Field()
    created = Field()

    class Meta:
        table = "members"
        skip_insert_on = ["created"]


class Article(Record):
    id = Field()
    title = Field()
    deleted = Field(default=0)

    class Meta:
        table = "articles"
        soft_delete = SoftDelete({"deleted": 1})


class Ticket(Record):
    code = Field()
    state = Field(db_column="status")

    class Meta:
        unique_key = "code"


class Audited(Record):
    id = Field()
    name = Field()

    class Meta:
        table = "audited"
        trigger_events = True


def member_row(**overrides):
    row = {"id": 1, "name": "A", "email": "a@example.com", "created": "2024-01-01"}
    row.update(overrides)
    return row


# ============================================================================
# Options
# ============================================================================

class TestOptions:

    def test_table_name(self):
        assert Member.get_table_name() == "members"
        assert Ticket.get_table_name() == "ticket"

    def test_unique_key(self):
        assert Member.get_unique_key() == "id"
        assert Ticket.get_unique_key() == "code"

    def test_delete_policy(self):
        assert Member._meta.delete_policy == HardDelete()
        assert Article._meta.delete_policy == SoftDelete({"deleted": 1})

    def test_registered(self):
        assert ModelRegistry.get("Member") is Member

    def test_skip_lists(self):
        record = Member()
        assert record.skip_insert_on() == ["created"]
        assert record.skip_update_on() == ["id"]

    def test_defaults(self):
        record = Member()
        assert record.name == ""
        assert record.id is None
        assert record.is_loaded_from_store is False


# ============================================================================
# Save
# ============================================================================

class TestSave:

    def test_insert_assigns_generated_id(self, fake_db, adapter):
        adapter.next_id = 7
        member = Member(name="Ann", email="ann@example.com", created="now")

        assert member.save() is True
        assert member.id == 7
        assert adapter.statements == [
            ("INSERT INTO members (`name`, `email`) VALUES (?, ?)", ["Ann", "ann@example.com"]),
        ]
        assert member.is_dirty() is False

    def test_record_with_key_value_routes_to_update(self, fake_db, adapter):
        ticket = Ticket(code="T-1", state="open")
        assert ticket.save()
        assert adapter.statements == [
            ("UPDATE `ticket`  SET `status` = ? WHERE `code` = ?", ["open", "T-1"]),
        ]

    def test_unchanged_record_skips_store(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        assert member.save() is True
        assert adapter.statements == []

    def test_dirty_update_sends_changed_fields(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        member.name = "B"

        assert member.save() is True
        assert adapter.statements == [
            ("UPDATE `members`  SET `name` = ? WHERE `id` = ?", ["B", 1]),
        ]
        assert member.original_state["name"] == "B"
        assert member.dirty_fields() == {}

    def test_full_update(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        assert member.save(dirty_update=False) is True
        sql, params = adapter.statements[0]
        assert sql == "UPDATE `members`  SET `name` = ?, `email` = ?, `created` = ? WHERE `id` = ?"
        assert params == ["A", "a@example.com", "2024-01-01", 1]

    def test_update_never_sets_unique_key(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        member.id = 99
        member.name = "Z"
        member.save()
        assert adapter.statements[0] == (
            "UPDATE `members`  SET `name` = ? WHERE `id` = ?",
            ["Z", 1],
        )

    def test_failed_update_keeps_original_state(self, fake_db, adapter):
        adapter.fail_on = "UPDATE"
        member = Member.load_from_row(member_row())
        member.name = "B"

        assert member.save() is False
        assert member.original_state["name"] == "A"
        assert member.dirty_fields() == {"name": "B"}
        assert isinstance(fake_db.last_error, QueryFault)
        assert fake_db.last_error.sql.startswith("UPDATE `members`")

    def test_failed_insert_returns_false(self, fake_db, adapter):
        adapter.fail_on = "INSERT"
        member = Member(name="Ann")
        assert member.save() is False
        assert member.id is None


# ============================================================================
# Delete
# ============================================================================

class TestDelete:

    def test_hard_delete(self, fake_db, adapter):
        member = Member.load_from_row(member_row(id=3))
        assert member.delete() is True
        assert adapter.statements == [("DELETE FROM `members` WHERE `id` = ?", [3])]

    def test_delete_requires_key(self, fake_db, adapter):
        assert Member(name="x").delete() is False
        assert adapter.statements == []

    def test_soft_delete(self, fake_db, adapter):
        article = Article.load_from_row({"id": 5, "title": "t", "deleted": 0})
        assert article.delete() is True
        assert adapter.statements == [("UPDATE `articles`  SET `deleted` = ? WHERE `id` = ?", [1, 5])]
        assert article.deleted == 1
        assert article.is_dirty() is False

    def test_soft_delete_keeps_unsaved_edits_dirty(self, fake_db, adapter):
        article = Article.load_from_row({"id": 1, "title": "old", "deleted": 0})
        article.title = "new"

        assert article.delete() is True
        assert article.original_state == {"id": 1, "title": "old", "deleted": 1}
        assert article.dirty_fields() == {"title": "new"}

        assert article.save() is True
        assert adapter.statements[-1] == ("UPDATE `articles`  SET `title` = ? WHERE `id` = ?", ["new", 1])

    def test_delete_after_key_only_change_targets_stored_row(self, fake_db, adapter):
        member = Member.load_from_row(member_row(id=1))
        member.id = 2

        assert member.save() is True
        assert adapter.statements == []
        assert member.original_state["id"] == 1

        assert member.delete() is True
        assert adapter.statements == [("DELETE FROM `members` WHERE `id` = ?", [1])]

    def test_delete_failure(self, fake_db, adapter):
        adapter.fail_on = "DELETE"
        member = Member.load_from_row(member_row())
        assert member.delete() is False

    def test_update_all_and_delete_all(self, fake_db, adapter):
        assert Member.update_all({"name": "bar"}, "id=1") is True
        assert Member.delete_all("id=1") is True
        assert adapter.statements == [
            ("UPDATE `members`  SET `name` = ? WHERE id=1", ["bar"]),
            ("DELETE FROM `members` WHERE id=1", []),
        ]


# ============================================================================
# Finders
# ============================================================================

class TestFinders:

    def test_find(self, fake_db, adapter):
        adapter.respond(member_row(id=4, name="Dee"))
        member = Member.find(4)

        assert adapter.statements == [("SELECT * FROM `members` WHERE `id` = ? LIMIT 1", [4])]
        assert member.id == 4
        assert member.name == "Dee"
        assert member.is_loaded_from_store is True
        assert member.is_dirty() is False

    def test_find_missing_is_none(self, fake_db, adapter):
        assert Member.find(1) is None

    def test_find_with_query(self, fake_db, adapter):
        adapter.respond(member_row())
        query = QueryBuilder().where("email", "a@example.com")
        assert Member.find(query).email == "a@example.com"
        assert adapter.statements[0][0] == "SELECT * FROM `members` WHERE `email` = ? LIMIT 1"

    def test_find_all(self, fake_db, adapter):
        adapter.respond(member_row(id=1), member_row(id=2, name="B"))
        members = Member.find_all()
        assert [m.id for m in members] == [1, 2]
        assert all(m.is_loaded_from_store for m in members)
        assert adapter.statements == [("SELECT * FROM `members`", [])]

    def test_all_with_explicit_database(self, adapter):
        from tabula.db.engine import Database

        db = Database("sqlite:///:memory:", adapter=adapter)
        adapter.respond(member_row())
        members = Member.all(db=db)
        assert len(members) == 1
        assert members[0].bound_database is db

    def test_select_chain(self, fake_db, adapter):
        adapter.respond(member_row())
        members = Member.select().where("name", "LIKE", "A%").order_by("name").limit(5).all()
        assert len(members) == 1
        assert adapter.statements[0] == (
            "SELECT * FROM `members` WHERE `name` LIKE ? ORDER BY name ASC LIMIT 5",
            ["A%"],
        )

    def test_select_unknown_operation(self):
        query = Member.select()
        with pytest.raises(UnknownOperationFault) as info:
            query.frobnicate("x")
        assert info.value.operation == "frobnicate"

    def test_select_returns_record_query(self):
        assert isinstance(Member.select(), RecordQuery)
        assert Member.select().get_sql() == "SELECT * FROM `members`"

    def test_reload(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        adapter.respond(member_row(name="Fresh"))
        fresh = member.reload()
        assert fresh is not member
        assert fresh.name == "Fresh"

    def test_refresh_in_place(self, fake_db, adapter):
        member = Member.load_from_row(member_row())
        member.name = "local"
        adapter.respond(member_row(name="stored"))
        assert member.refresh() is True
        assert member.name == "stored"
        assert member.is_dirty() is False

    def test_refresh_requires_key(self, fake_db):
        with pytest.raises(RecordStateFault):
            Member().refresh()


# ============================================================================
# Hydration and values
# ============================================================================

class TestValues:

    def test_load_from_row_snapshots(self):
        member = Member.load_from_row(member_row())
        assert member.original_state == member.to_row()

    def test_db_column_mapping(self):
        ticket = Ticket.load_from_row({"code": "T-9", "status": "closed"})
        assert ticket.state == "closed"
        assert ticket.to_row() == {"code": "T-9", "status": "closed"}

    def test_extra_columns(self):
        member = Member.load_from_row(member_row(post_count=3))
        assert member.post_count == 3
        assert "post_count" not in member.to_row()
        with pytest.raises(AttributeError):
            member.missing

    def test_set_and_get_values(self):
        member = Member()
        member.set_values({"name": "N", "email": "n@example.com"})
        assert member.get_values()["email"] == "n@example.com"

    def test_filter_update_fields(self):
        member = Member()
        assert member.filter_update_fields({"id": 1, "name": "x"}) == {"name": "x"}

    def test_to_dict(self):
        member = Member.load_from_row(member_row(extra="e"))
        assert member.to_dict() == {
            "id": 1,
            "name": "A",
            "email": "a@example.com",
            "created": "2024-01-01",
            "extra": "e",
        }

    def test_unique_id(self):
        assert Member.load_from_row(member_row(id=8)).get_unique_id() == ("id", 8)
        assert repr(Member(id=8)) == "<Member id=8>"


# ============================================================================
# Events
# ============================================================================

class TestEvents:

    def test_disabled_by_default(self, fake_db):
        calls = []
        member = Member(name="x")
        member.register_event("before_save", lambda record: calls.append(record))
        member.save()
        assert calls == []
        assert member.is_trigger_event() is False

    def test_set_trigger_event(self):
        member = Member()
        member.set_trigger_event(True)
        assert member.is_trigger_event() is True

    def test_insert_event_order(self, fake_db):
        calls = []
        member = Member(name="x")
        member.set_trigger_event(True)
        for event in Event:
            member.register_event(event, lambda record, e=event: calls.append(e.value))
        member.save()
        assert calls == ["before_save", "before_insert", "after_insert", "after_save"]

    def test_update_event_order(self, fake_db):
        calls = []
        member = Member.load_from_row(member_row())
        member.set_trigger_event(True)
        member.set_events({e: (lambda record, e=e: calls.append(e.value)) for e in Event})
        member.name = "changed"
        member.save()
        assert calls == ["before_save", "before_update", "after_update", "after_save"]

    def test_after_insert_sees_generated_id(self, fake_db, adapter):
        adapter.next_id = 42
        seen = []
        record = Audited(name="a")
        record.register_event(Event.AFTER_INSERT, lambda r: seen.append(r.id))
        record.save()
        assert seen == [42]

    def test_handler_object(self):
        class Recorder(EventHandler):
            def __init__(self):
                self.records = []

            def handle(self, record):
                self.records.append(record)

        recorder = Recorder()
        record = Audited()
        record.register_event("after_save", recorder)
        record.trigger_event("after_save")
        assert recorder.records == [record]

    def test_later_registration_replaces(self):
        calls = []
        record = Audited()
        record.register_event("before_save", lambda r: calls.append("first"))
        record.register_event("before_save", lambda r: calls.append("second"))
        record.trigger_event("before_save")
        assert calls == ["second"]

    def test_load_events(self):
        calls = []

        class Loaded(Record):
            id = Field()

            class Meta:
                table = "loaded"
                trigger_events = True
                events = {
                    "before_load": lambda r: calls.append(("before", r.id)),
                    "after_load": lambda r: calls.append(("after", r.id)),
                }

        Loaded.load_from_row({"id": 3})
        assert calls == [("before", None), ("after", 3)]

    def test_failed_save_skips_after_events(self, fake_db, adapter):
        adapter.fail_on = "INSERT"
        calls = []
        record = Audited(name="a")
        record.set_events({
            "before_save": lambda r: calls.append("before_save"),
            "after_save": lambda r: calls.append("after_save"),
        })
        assert record.save() is False
        assert calls == ["before_save"]

    def test_invalid_handler(self):
        with pytest.raises(TypeError):
            Audited().register_event("after_save", 42)
