"""Unit tests for the category service and category cache."""

import pytest

from taskhub.core.errors import CategoryProtectedError
from taskhub.core.kv_store import InMemoryKeyValueStore
from taskhub.domain.category import IMPORTANT, PERSONAL, SHOPPING, UNCATEGORIZED, WORK, Category, CategoryColor
from taskhub.domain.codec import decode_categories, encode_categories
from taskhub.domain.profile import Profile
from taskhub.services.category_service import CategoryCache, CategoryService
from taskhub.services.profile_partition import categories_key, filter_key
from tests.unit.mocks import FakeMonotonic, make_category, make_task


@pytest.fixture
def service(kv: InMemoryKeyValueStore, monotonic: FakeMonotonic) -> CategoryService:
    return CategoryService(kv, cache_ttl_seconds=5, cache_clock=monotonic)


@pytest.mark.unit
class TestCategoryCache:
    def test_lookup_after_rebuild_is_a_hit(self, monotonic: FakeMonotonic) -> None:
        categories = [make_category("A"), make_category("B")]
        cache = CategoryCache(lambda: categories, ttl_seconds=5, clock=monotonic)
        cache.rebuild()

        assert cache.lookup(categories[1].id).name == "B"
        assert cache.scans == 0

    def test_expired_entry_is_repopulated_by_single_scan(self, monotonic: FakeMonotonic) -> None:
        categories = [make_category("A"), make_category("B")]
        cache = CategoryCache(lambda: categories, ttl_seconds=5, clock=monotonic)
        cache.rebuild()
        monotonic.advance(6)

        assert cache.lookup(categories[0].id).name == "A"
        assert cache.lookup(categories[0].id).name == "A"
        assert cache.scans == 1

    def test_unknown_and_none_resolve_to_uncategorized(self, monotonic: FakeMonotonic) -> None:
        cache = CategoryCache(list, ttl_seconds=5, clock=monotonic)

        assert cache.lookup("missing") is None
        assert cache.resolve("missing") == UNCATEGORIZED
        assert cache.resolve(None) == UNCATEGORIZED


@pytest.mark.unit
class TestLoad:
    async def test_first_run_seeds_profile_builtins(self, service: CategoryService, kv: InMemoryKeyValueStore) -> None:
        result = await service.load(Profile.PERSONAL)

        assert [c.id for c in result.categories] == [c.id for c in Profile.PERSONAL.default_categories]
        assert result.seeded == [c.name for c in Profile.PERSONAL.default_categories]
        assert decode_categories(await kv.get(categories_key(Profile.PERSONAL))) == result.categories

    async def test_missing_builtins_are_added_without_touching_custom(
        self, service: CategoryService, kv: InMemoryKeyValueStore
    ) -> None:
        garden = make_category("Garden")
        await kv.set(categories_key(Profile.PERSONAL), encode_categories([garden, PERSONAL]))

        result = await service.load(Profile.PERSONAL)

        assert result.categories[0] == garden
        assert SHOPPING.name in result.seeded
        assert PERSONAL.name not in result.seeded

    async def test_builtin_with_wrong_id_is_repaired(self, service: CategoryService, kv: InMemoryKeyValueStore) -> None:
        stray = Category(id="random-id", name="Shopping", color=SHOPPING.color)
        await kv.set(categories_key(Profile.PERSONAL), encode_categories([stray]))

        result = await service.load(Profile.PERSONAL)

        assert result.id_remap == {"random-id": SHOPPING.id}
        assert service.lookup(SHOPPING.id).name == "Shopping"
        assert service.lookup("random-id") is None

    async def test_custom_category_with_builtin_name_is_kept(
        self, service: CategoryService, kv: InMemoryKeyValueStore
    ) -> None:
        custom = make_category("Shopping")
        await kv.set(categories_key(Profile.PERSONAL), encode_categories([custom]))

        result = await service.load(Profile.PERSONAL)

        assert result.id_remap == {}
        assert service.lookup(custom.id) is not None

    async def test_corrupt_payload_reseeds(self, service: CategoryService, kv: InMemoryKeyValueStore) -> None:
        await kv.set(categories_key(Profile.PERSONAL), "garbage")

        result = await service.load(Profile.PERSONAL)

        assert len(result.categories) == len(Profile.PERSONAL.default_categories)

    async def test_work_profile_has_work_builtins(self, service: CategoryService) -> None:
        result = await service.load(Profile.WORK)

        assert WORK.id in {c.id for c in result.categories}
        assert PERSONAL.id not in {c.id for c in result.categories}


@pytest.mark.unit
class TestMutations:
    async def test_create_custom(self, service: CategoryService) -> None:
        await service.load()

        category = await service.create_custom("  Garden ", CategoryColor.GREEN)

        assert category.name == "Garden"
        assert category.is_custom is True
        assert service.lookup(category.id) == category

    async def test_create_custom_rejects_blank_name(self, service: CategoryService) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            await service.create_custom("  ", CategoryColor.GREEN)

    async def test_rename_is_visible_immediately(self, service: CategoryService) -> None:
        await service.load()
        category = await service.create_custom("Garden", CategoryColor.GREEN)

        await service.update(category.model_copy(update={"name": "Yard"}))

        assert service.lookup(category.id).name == "Yard"

    async def test_update_unknown_raises(self, service: CategoryService) -> None:
        await service.load()

        with pytest.raises(KeyError):
            await service.update(make_category("Ghost"))

    async def test_delete_builtin_refused(self, service: CategoryService) -> None:
        await service.load()

        with pytest.raises(CategoryProtectedError):
            await service.delete(IMPORTANT.id)

    async def test_delete_custom_clears_selected_filter(
        self, service: CategoryService, kv: InMemoryKeyValueStore
    ) -> None:
        await service.load()
        category = await service.create_custom("Garden", CategoryColor.GREEN)
        await service.set_selected_filter(category.id)

        await service.delete(category.id)

        assert service.lookup(category.id) is None
        assert service.selected_filter is None
        assert await kv.get(filter_key(Profile.PERSONAL)) is None


@pytest.mark.unit
class TestQueries:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Buy milk at the store", "Shopping"),
            ("Dentist appointment", "Health"),
            ("Read a book on Rust", "Learning"),
            ("Renew passport", "Travel"),
            ("Water the plants", None),
        ],
    )
    async def test_suggest_category(self, service: CategoryService, title: str, expected: str | None) -> None:
        await service.load(Profile.PERSONAL)

        suggestion = service.suggest_category(title)

        assert (suggestion.name if suggestion else None) == expected

    def test_task_counts(self) -> None:
        tasks = [
            make_task(category_id="a"),
            make_task(category_id="a", is_completed=True),
            make_task(),
        ]

        assert CategoryService.task_count("a", tasks) == 2
        assert CategoryService.completed_task_count("a", tasks) == 1
        assert CategoryService.task_count(None, tasks) == 1

    async def test_selected_filter_persists_per_profile(self, kv: InMemoryKeyValueStore) -> None:
        service = CategoryService(kv)
        await service.load(Profile.PERSONAL)
        await service.set_selected_filter(SHOPPING.id)

        reloaded = CategoryService(kv)
        await reloaded.load(Profile.PERSONAL)
        assert reloaded.selected_filter == SHOPPING.id

        await reloaded.load(Profile.WORK)
        assert reloaded.selected_filter is None
