"""Tests for InMemoryAttributeStore."""

from datetime import timedelta
from uuid import uuid4

import pytest

from profilefields.db.errors import ConflictError, NotFoundError
from profilefields.enums import AttributeStatus, ChangeType, OrderDirection
from profilefields.models import (
    AttributeGroup,
    AttributeValue,
    DefinitionQuery,
    HistoryRecord,
    PendingPurge,
)
from profilefields.models.definition import utc_now
from profilefields.store import WriteBatch
from profilefields.stores import InMemoryAttributeStore


@pytest.fixture
def store() -> InMemoryAttributeStore:
    """Create a fresh store for each test."""
    return InMemoryAttributeStore()


class TestDefinitionOperations:
    """Tests for definition CRUD operations."""

    async def test_insert_and_get(self, store, make_definition):
        """Should save and retrieve a definition by id and name."""
        definition = make_definition(name="eye_color")
        definition_id = await store.insert_definition(definition)

        by_id = await store.get_definition(definition_id)
        by_name = await store.get_definition_by_name("eye_color")
        assert by_id is not None
        assert by_id.name == "eye_color"
        assert by_name is not None
        assert by_name.id == definition_id

    async def test_get_nonexistent(self, store):
        assert await store.get_definition(uuid4()) is None
        assert await store.get_definition_by_name("missing") is None

    async def test_returns_copies(self, store, make_definition):
        """Mutating a returned model should not change stored state."""
        definition = make_definition()
        await store.insert_definition(definition)
        fetched = await store.get_definition(definition.id)
        fetched.label = "Changed"

        again = await store.get_definition(definition.id)
        assert again.label == "Test Field"

    async def test_duplicate_name_conflicts(self, store, make_definition):
        await store.insert_definition(make_definition(name="eye_color"))
        with pytest.raises(ConflictError) as exc_info:
            await store.insert_definition(make_definition(name="eye_color"))
        assert exc_info.value.constraint == "attribute_definitions_name_key"

    async def test_duplicate_id_conflicts(self, store, make_definition):
        definition = make_definition(name="eye_color")
        await store.insert_definition(definition)
        clone = definition.model_copy(update={"name": "hair_color"})
        with pytest.raises(ConflictError):
            await store.insert_definition(clone)

    async def test_update(self, store, make_definition):
        definition = make_definition()
        await store.insert_definition(definition)
        await store.update_definition(definition.model_copy(update={"label": "Renamed"}))

        fetched = await store.get_definition(definition.id)
        assert fetched.label == "Renamed"

    async def test_update_missing_raises(self, store, make_definition):
        with pytest.raises(NotFoundError):
            await store.update_definition(make_definition())

    async def test_update_to_taken_name_conflicts(self, store, make_definition):
        first = make_definition(name="eye_color")
        second = make_definition(name="hair_color")
        await store.insert_definition(first)
        await store.insert_definition(second)
        with pytest.raises(ConflictError):
            await store.update_definition(second.model_copy(update={"name": "eye_color"}))

    async def test_delete_removes_values_and_purge(self, store, make_definition):
        """Deleting a definition cascades to its values and pending purge."""
        definition = make_definition()
        await store.insert_definition(definition)
        principal_id = uuid4()
        await store.upsert_value(
            AttributeValue(principal_id=principal_id, definition_id=definition.id, value="x")
        )
        await store.save_purge(
            PendingPurge(
                definition_id=definition.id,
                definition_name=definition.name,
                snapshot={},
                usage_count=1,
                due_at=utc_now(),
            )
        )

        assert await store.delete_definition(definition.id)
        assert await store.get_value(principal_id, definition.id) is None
        assert await store.get_purge(definition.id) is None
        assert not await store.delete_definition(definition.id)

    async def test_max_order_per_group(self, store, make_definition):
        await store.insert_definition(make_definition(name="one", order=10))
        await store.insert_definition(make_definition(name="two", order=30))
        await store.insert_definition(make_definition(name="three", order=50, group="prefs"))

        assert await store.max_order("basic") == 30
        assert await store.max_order("prefs") == 50
        assert await store.max_order("empty") is None

    async def test_status_counts_include_every_status(self, store, make_definition):
        await store.insert_definition(make_definition(name="one"))
        await store.insert_definition(make_definition(name="two", status=AttributeStatus.DRAFT))

        counts = await store.status_counts()
        assert counts[AttributeStatus.ACTIVE] == 1
        assert counts[AttributeStatus.DRAFT] == 1
        assert counts[AttributeStatus.ARCHIVED] == 0
        assert set(counts) == set(AttributeStatus)


class TestQueryDefinitions:
    """Tests for filtering, ordering and pagination."""

    @pytest.fixture
    async def populated(self, store, make_definition):
        await store.insert_definition(make_definition(name="eye_color", label="Eye Color", order=20))
        await store.insert_definition(
            make_definition(name="hair_color", label="Hair Color", order=10, kind="select",
                            options={"choices": {"brown": "Brown"}})
        )
        await store.insert_definition(
            make_definition(name="nickname", label="Nickname", order=30,
                            status=AttributeStatus.INACTIVE)
        )
        return store

    async def test_default_order(self, populated):
        rows = await populated.query_definitions(DefinitionQuery())
        assert [d.name for d in rows] == ["hair_color", "eye_color", "nickname"]

    async def test_descending_by_name(self, populated):
        query = DefinitionQuery(order_by="name", direction=OrderDirection.DESC)
        rows = await populated.query_definitions(query)
        assert [d.name for d in rows] == ["nickname", "hair_color", "eye_color"]

    async def test_status_filter(self, populated):
        query = DefinitionQuery(statuses=(AttributeStatus.ACTIVE,))
        rows = await populated.query_definitions(query)
        assert {d.name for d in rows} == {"eye_color", "hair_color"}

    async def test_search_matches_label(self, populated):
        """Search is a case-insensitive substring of name or label."""
        rows = await populated.query_definitions(DefinitionQuery(search="COLOR"))
        assert len(rows) == 2

    async def test_kind_filter(self, populated):
        rows = await populated.query_definitions(DefinitionQuery(kind="select"))
        assert [d.name for d in rows] == ["hair_color"]

    async def test_pagination_and_count(self, populated):
        query = DefinitionQuery(limit=1, offset=1)
        rows = await populated.query_definitions(query)
        assert [d.name for d in rows] == ["eye_color"]
        assert await populated.count_definitions(query) == 3


class TestApplyBatch:
    """Tests for atomic batch writes."""

    async def test_applies_all_changes(self, store, make_definition):
        existing = make_definition(name="eye_color")
        await store.insert_definition(existing)
        new = make_definition(name="hair_color")
        batch = WriteBatch(
            inserts=[new],
            updates=[existing.model_copy(update={"label": "Eyes"})],
            groups=[AttributeGroup(name="basic", label="Basic")],
            values=[AttributeValue(principal_id=uuid4(), definition_id=new.id, value="brown")],
        )
        await store.apply_batch(batch)

        assert (await store.get_definition(existing.id)).label == "Eyes"
        assert await store.get_definition(new.id) is not None
        assert await store.get_group("basic") is not None
        assert await store.usage_count(new.id) == 1

    async def test_duplicate_name_rolls_back_everything(self, store, make_definition):
        """A conflict anywhere in the batch leaves the store untouched."""
        await store.insert_definition(make_definition(name="eye_color"))
        batch = WriteBatch(
            inserts=[make_definition(name="hair_color"), make_definition(name="eye_color")],
            groups=[AttributeGroup(name="basic", label="Basic")],
        )
        with pytest.raises(ConflictError):
            await store.apply_batch(batch)

        assert await store.get_definition_by_name("hair_color") is None
        assert await store.list_groups() == []

    async def test_missing_update_rolls_back(self, store, make_definition):
        batch = WriteBatch(
            inserts=[make_definition(name="hair_color")],
            updates=[make_definition(name="ghost")],
        )
        with pytest.raises(NotFoundError):
            await store.apply_batch(batch)
        assert await store.get_definition_by_name("hair_color") is None

    async def test_value_for_unknown_definition(self, store):
        batch = WriteBatch(
            values=[AttributeValue(principal_id=uuid4(), definition_id=uuid4(), value=1)]
        )
        with pytest.raises(NotFoundError):
            await store.apply_batch(batch)

    def test_empty_batch(self):
        assert WriteBatch().is_empty


class TestValueOperations:
    """Tests for per-principal values."""

    async def test_upsert_replaces(self, store, make_definition):
        definition = make_definition()
        await store.insert_definition(definition)
        principal_id = uuid4()
        await store.upsert_value(
            AttributeValue(principal_id=principal_id, definition_id=definition.id, value="a")
        )
        await store.upsert_value(
            AttributeValue(principal_id=principal_id, definition_id=definition.id, value="b")
        )

        assert (await store.get_value(principal_id, definition.id)).value == "b"
        assert await store.usage_count(definition.id) == 1

    async def test_upsert_unknown_definition(self, store):
        with pytest.raises(NotFoundError):
            await store.upsert_value(
                AttributeValue(principal_id=uuid4(), definition_id=uuid4(), value="a")
            )

    async def test_list_by_principal_and_definition(self, store, make_definition):
        first = make_definition(name="eye_color")
        second = make_definition(name="hair_color")
        await store.insert_definition(first)
        await store.insert_definition(second)
        alice, bob = uuid4(), uuid4()
        for principal_id in (alice, bob):
            await store.upsert_value(
                AttributeValue(principal_id=principal_id, definition_id=first.id, value="x")
            )
        await store.upsert_value(
            AttributeValue(principal_id=alice, definition_id=second.id, value="y")
        )

        assert len(await store.list_values(alice)) == 2
        assert len(await store.list_values_for_definition(first.id)) == 2
        assert await store.usage_count(first.id) == 2

    async def test_delete_value(self, store, make_definition):
        definition = make_definition()
        await store.insert_definition(definition)
        principal_id = uuid4()
        await store.upsert_value(
            AttributeValue(principal_id=principal_id, definition_id=definition.id, value="a")
        )
        assert await store.delete_value(principal_id, definition.id)
        assert not await store.delete_value(principal_id, definition.id)


class TestGroupOperations:
    async def test_list_sorted_by_order_then_name(self, store):
        await store.save_group(AttributeGroup(name="prefs", label="Preferences", order=2))
        await store.save_group(AttributeGroup(name="basic", label="Basic", order=1))
        await store.save_group(AttributeGroup(name="about", label="About", order=2))

        assert [g.name for g in await store.list_groups()] == ["basic", "about", "prefs"]

    async def test_delete_group(self, store):
        await store.save_group(AttributeGroup(name="basic", label="Basic"))
        assert await store.delete_group("basic")
        assert await store.get_group("basic") is None
        assert not await store.delete_group("basic")


class TestHistoryAndPurges:
    """Tests for the audit trail and purge schedule."""

    async def test_history_newest_first(self, store):
        definition_id = uuid4()
        for change_type in (ChangeType.CREATED, ChangeType.UPDATED):
            await store.append_history(
                HistoryRecord(definition_id=definition_id, change_type=change_type)
            )
        await store.append_history(
            HistoryRecord(definition_id=uuid4(), change_type=ChangeType.CREATED)
        )

        records = await store.list_history(definition_id)
        assert [r.change_type for r in records] == [ChangeType.UPDATED, ChangeType.CREATED]
        assert len(await store.list_history(definition_id, limit=1)) == 1

    async def test_due_purges(self, store):
        now = utc_now()
        due = PendingPurge(
            definition_id=uuid4(),
            definition_name="old",
            snapshot={},
            usage_count=3,
            due_at=now - timedelta(days=1),
        )
        later = PendingPurge(
            definition_id=uuid4(),
            definition_name="newer",
            snapshot={},
            usage_count=1,
            due_at=now + timedelta(days=10),
        )
        await store.save_purge(due)
        await store.save_purge(later)

        assert [p.definition_name for p in await store.list_due_purges(now)] == ["old"]
        assert await store.delete_purge(due.definition_id)
        assert await store.list_due_purges(now) == []

    async def test_clear(self, store, make_definition):
        await store.insert_definition(make_definition())
        store.clear()
        assert await store.count_definitions(DefinitionQuery()) == 0
