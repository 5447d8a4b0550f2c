"""
Tests for the async Repository operations against SQLite (aiosqlite).

The async variants must select, order and report success exactly like the
blocking ones, so several tests compare both paths directly.
"""

from itertools import product

import pytest
from sqlalchemy.exc import IntegrityError, SAWarning
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from entity_repository.repositories import AsyncDataContext, include, order_by
from tests.conftest import ItemRepository
from tests.models import Category, Item


class TrackingAsyncContext(AsyncDataContext):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.closed = False

    async def close(self) -> None:
        await super().close()
        self.closed = True


class TrackingAsyncRepository(ItemRepository):
    def __init__(self, session_factory, async_session_factory):
        super().__init__(session_factory, async_session_factory)
        self.contexts = []

    def get_async_data_context(self) -> AsyncDataContext:
        context = TrackingAsyncContext(session_factory=self.async_session_factory)
        self.contexts.append(context)
        return context


class FixedCountAsyncContext(AsyncDataContext):
    def __init__(self, count, **kwargs):
        super().__init__(**kwargs)
        self.count = count

    async def save_changes(self) -> int:
        await self.session.rollback()
        return self.count


class TestAllAsync:
    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "use_predicate,use_sort,skip,take",
        list(product([False, True], [False, True], [None, 1], [None, 2])),
    )
    async def test_matches_blocking_variant(
        self, async_repo, seeded, use_predicate, use_sort, skip, take
    ):
        """
        Arrange: Five seeded items
        Act: List through both execution modes with the same modifiers
        Assert: Identical ids in identical order
        """
        kwargs = dict(
            predicate=(Item.price > 10) if use_predicate else None,
            sort=order_by(Item.name.desc()) if use_sort else None,
            skip=skip,
            take=take,
        )

        rows = await async_repo.all_async(**kwargs)

        assert [item.id for item in rows] == [item.id for item in async_repo.all(**kwargs)]

    @pytest.mark.anyio
    async def test_sort_desc_skip_one_take_one(self, async_repo):
        await async_repo.create_async(
            Item(id=1, name="a"), Item(id=2, name="b"), Item(id=3, name="c")
        )

        rows = await async_repo.all_async(sort=order_by(Item.name.desc()), skip=1, take=1)

        assert [(item.id, item.name) for item in rows] == [(2, "b")]

    @pytest.mark.anyio
    async def test_include_loads_relation_before_close(self, async_repo, seeded):
        rows = await async_repo.all_async(
            include(selectinload(Item.category)),
            predicate=Item.category_id.is_not(None),
            sort=order_by(Item.id),
        )

        assert [item.category.name for item in rows] == ["tools", "toys", "tools", "toys"]

    @pytest.mark.anyio
    async def test_negative_skip_rejected(self, async_repo):
        with pytest.raises(ValueError):
            await async_repo.all_async(skip=-5)


class TestAnyAsync:
    @pytest.mark.anyio
    async def test_empty_table(self, async_repo):
        assert await async_repo.any_async() is False

    @pytest.mark.anyio
    async def test_predicate(self, async_repo, seeded):
        assert await async_repo.any_async(predicate=Item.price == 30) is True
        assert await async_repo.any_async(predicate=Item.price > 1000) is False

    @pytest.mark.anyio
    async def test_join_include(self, async_repo, seeded):
        toys = lambda q: q.join(Item.category).where(Category.name == "toys")  # noqa: E731

        assert await async_repo.any_async(toys, predicate=Item.name == "e") is True
        assert await async_repo.any_async(toys, predicate=Item.name == "a") is False


class TestGetAsync:
    @pytest.mark.anyio
    async def test_returns_first_match(self, async_repo, seeded):
        item = await async_repo.get_async(Item.price > 10)

        assert item.id == async_repo.get(Item.price > 10).id == 2

    @pytest.mark.anyio
    async def test_no_match_returns_none(self, async_repo, seeded):
        assert await async_repo.get_async(Item.name == "zzz") is None

    @pytest.mark.anyio
    async def test_include_loads_relation(self, async_repo, seeded):
        item = await async_repo.get_async(Item.id == 3, include(selectinload(Item.category)))

        assert item.category.name == "tools"


class TestMutationsAsync:
    @pytest.mark.anyio
    async def test_create_round_trip(self, async_repo, seeded):
        created = await async_repo.create_async(
            Item(id=10, name="x", price=1), Item(id=11, name="y", price=2)
        )

        ids = [item.id for item in await async_repo.all_async()]
        assert created is True
        assert {10, 11} <= set(ids)

    @pytest.mark.anyio
    async def test_create_nothing_is_success(self, async_repo):
        assert await async_repo.create_async() is True

    @pytest.mark.anyio
    async def test_create_duplicate_propagates(self, async_repo, seeded):
        with pytest.raises(IntegrityError):
            await async_repo.create_async(Item(id=1, name="dup", price=1))

    @pytest.mark.anyio
    async def test_create_detached_existing_entity_propagates(self, async_repo, seeded):
        item = await async_repo.get_async(Item.id == 1)

        with pytest.raises(IntegrityError):
            await async_repo.create_async(item)

    @pytest.mark.anyio
    @pytest.mark.parametrize("count,expected", [(1, True), (0, False)])
    async def test_success_compares_persisted_count(
        self, session_factory, async_session_factory, count, expected
    ):
        class FixedCountRepository(ItemRepository):
            def get_async_data_context(self):
                return FixedCountAsyncContext(count, session_factory=self.async_session_factory)

        repo = FixedCountRepository(session_factory, async_session_factory)

        assert await repo.create_async(Item(id=4, name="d")) is expected

    @pytest.mark.anyio
    async def test_update_then_get_returns_new_values(self, async_repo, seeded):
        item = await async_repo.get_async(Item.id == 5)
        item.name = "eee"

        assert await async_repo.update_async(item) is True

        reloaded = await async_repo.get_async(Item.id == 5)
        assert reloaded.name == "eee"

    @pytest.mark.anyio
    async def test_update_transient_entity_resets_unset_columns(self, async_repo, seeded):
        assert await async_repo.update_async(Item(id=3, name="replaced")) is True

        reloaded = await async_repo.get_async(Item.id == 3)
        assert (reloaded.name, reloaded.price, reloaded.category_id) == ("replaced", 0, None)

    @pytest.mark.anyio
    async def test_update_missing_row_propagates(self, async_repo, seeded):
        with pytest.raises(StaleDataError):
            await async_repo.update_async(Item(id=99, name="ghost", price=1))

    @pytest.mark.anyio
    async def test_delete_then_any_is_false(self, async_repo, seeded):
        item = await async_repo.get_async(Item.id == 4)

        assert await async_repo.delete_async(item) is True
        assert await async_repo.any_async(predicate=Item.id == 4) is False

    @pytest.mark.anyio
    async def test_delete_transient_entity_with_key(self, async_repo, seeded):
        assert await async_repo.delete_async(Item(id=1)) is True
        assert await async_repo.get_async(Item.id == 1) is None

    @pytest.mark.anyio
    async def test_delete_already_deleted_entity_reports_failure(self, async_repo, seeded):
        """
        Arrange: An item deleted in an earlier call
        Act: Delete the same item again
        Assert: The store matches no row, so the call reports False
        """
        item = await async_repo.get_async(Item.id == 4)
        assert await async_repo.delete_async(item) is True

        with pytest.warns(SAWarning, match="0 were matched"):
            assert await async_repo.delete_async(item) is False


class TestAsyncContextLifecycle:
    @pytest.mark.anyio
    async def test_each_call_closes_its_context(
        self, session_factory, async_session_factory, seeded
    ):
        repo = TrackingAsyncRepository(session_factory, async_session_factory)

        await repo.all_async()
        await repo.any_async()
        await repo.get_async(Item.id == 404)

        assert len(repo.contexts) == 3
        assert all(context.closed for context in repo.contexts)

    @pytest.mark.anyio
    async def test_closed_on_store_failure(self, session_factory, async_session_factory, seeded):
        repo = TrackingAsyncRepository(session_factory, async_session_factory)

        with pytest.raises(IntegrityError):
            await repo.create_async(Item(id=2, name="dup", price=1))

        assert repo.contexts[0].closed
