"""Test suite for CategoryService.

Tests cover:
- Creation and level derivation
- Renames, moves and the level cascade
- Delete guards
- Batch re-sorting
- Read paths (list, tree, roots, children)
"""

from decimal import Decimal
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from mall.core.exceptions import (
    CategoryNotFoundError,
    CycleDetectedError,
    DepthExceededError,
    DuplicateSiblingError,
    EmptyNameError,
    HasChildrenError,
    HasProductsError,
    NameTooLongError,
    ParentNotFoundError,
    SelfParentError,
    SortOutOfRangeError,
)
from mall.models import CategoryStatus, Product
from mall.repositories.category_repository import CategoryRepository
from mall.schemas.category import CategoryListParams
from mall.services.category_service import PRODUCT_PREVIEW_LIMIT, CategoryService


# ============================================================================
# TESTS: CREATE
# ============================================================================

class TestCreateCategory:
    """Tests for CategoryService.create."""

    async def test_three_levels_then_depth_exceeded(self, service: CategoryService, assert_consistent):
        root = await service.create(name="Electronics")
        assert root.level == 1
        assert root.parent_id is None

        phones = await service.create(name="Phones", parent_id=root.id)
        assert phones.level == 2

        smartphones = await service.create(name="Smartphones", parent_id=phones.id)
        assert smartphones.level == 3

        with pytest.raises(DepthExceededError):
            await service.create(name="Android", parent_id=smartphones.id)

        await assert_consistent()

    async def test_defaults(self, service: CategoryService):
        category = await service.create(name="Books")

        assert category.sort == 0
        assert category.status == CategoryStatus.ENABLED
        assert category.created_at is not None
        assert category.updated_at is not None
        assert category.children == []

    async def test_name_is_trimmed(self, service: CategoryService):
        category = await service.create(name="  Books  ")
        assert category.name == "Books"

    async def test_loads_parent(self, service: CategoryService, electronics_tree: dict):
        category = await service.create(name="Tablets", parent_id=electronics_tree["Electronics"])

        assert category.parent.id == electronics_tree["Electronics"]
        assert category.parent.name == "Electronics"

    @pytest.mark.parametrize(
        "kwargs, error",
        [
            ({"name": "   "}, EmptyNameError),
            ({"name": "x" * 51}, NameTooLongError),
            ({"name": "Books", "sort": -1}, SortOutOfRangeError),
            ({"name": "Books", "sort": 10000}, SortOutOfRangeError),
        ],
    )
    async def test_input_validation(self, service: CategoryService, kwargs, error):
        with pytest.raises(error):
            await service.create(**kwargs)

    async def test_parent_not_found(self, service: CategoryService):
        with pytest.raises(ParentNotFoundError):
            await service.create(name="Orphan", parent_id=uuid4())

    async def test_duplicate_sibling(self, service: CategoryService, electronics_tree: dict):
        with pytest.raises(DuplicateSiblingError):
            await service.create(name="Phones", parent_id=electronics_tree["Electronics"])

    async def test_duplicate_sibling_ignores_status(self, service: CategoryService):
        await service.create(name="Seasonal", status=CategoryStatus.DISABLED)

        with pytest.raises(DuplicateSiblingError):
            await service.create(name="Seasonal")

    async def test_same_name_under_different_parents(self, service: CategoryService):
        men = await service.create(name="Men")
        women = await service.create(name="Women")

        a = await service.create(name="Shoes", parent_id=men.id)
        b = await service.create(name="Shoes", parent_id=women.id)

        assert a.id != b.id


# ============================================================================
# TESTS: UPDATE
# ============================================================================

class TestUpdateCategory:
    """Tests for CategoryService.update."""

    async def test_rename_duplicate_then_success(self, service: CategoryService):
        root = await service.create(name="Food")
        fruit = await service.create(name="Fruit", parent_id=root.id)
        await service.create(name="Vegetables", parent_id=root.id)
        fruit_id = fruit.id

        with pytest.raises(DuplicateSiblingError):
            await service.update(fruit_id, {"name": "Vegetables"})

        updated = await service.update(fruit_id, {"name": "Snacks"})
        assert updated.name == "Snacks"

    async def test_rename_to_own_name_is_allowed(self, service: CategoryService, electronics_tree: dict):
        updated = await service.update(electronics_tree["Phones"], {"name": "Phones", "sort": 5})

        assert updated.name == "Phones"
        assert updated.sort == 5

    async def test_move_under_descendant_is_cycle(self, service: CategoryService):
        r = await service.create(name="R")
        a = await service.create(name="A", parent_id=r.id)
        b = await service.create(name="B", parent_id=a.id)
        r_id, a_id, b_id = r.id, a.id, b.id

        with pytest.raises(CycleDetectedError):
            await service.update(a_id, {"parent_id": b_id})

        a = await service.get_by_id(a_id)
        assert a.parent_id == r_id
        assert a.level == 2

    async def test_move_to_self(self, service: CategoryService, electronics_tree: dict):
        phones_id = electronics_tree["Phones"]

        with pytest.raises(SelfParentError):
            await service.update(phones_id, {"parent_id": phones_id})

    async def test_move_to_root_cascades_levels(self, service: CategoryService, assert_consistent):
        r = await service.create(name="R")
        a = await service.create(name="A", parent_id=r.id)
        c = await service.create(name="C", parent_id=a.id)
        a_id, c_id = a.id, c.id

        moved = await service.update(a_id, {"parent_id": None})

        assert moved.parent_id is None
        assert moved.level == 1
        assert [child.id for child in moved.children] == [c_id]
        c = await service.get_by_id(c_id)
        assert c.level == 2
        await assert_consistent()

    async def test_move_root_under_root_cascades(self, service: CategoryService, assert_consistent):
        home = await service.create(name="Home")
        kitchen = await service.create(name="Kitchen")
        pans = await service.create(name="Pans", parent_id=kitchen.id)

        moved = await service.update(kitchen.id, {"parent_id": home.id})

        assert moved.level == 2
        assert (await service.get_by_id(pans.id)).level == 3
        await assert_consistent()

    async def test_move_between_parents_at_same_level(self, service: CategoryService, assert_consistent):
        r1 = await service.create(name="R1")
        r2 = await service.create(name="R2")
        a = await service.create(name="A", parent_id=r1.id)
        b = await service.create(name="B", parent_id=a.id)

        moved = await service.update(a.id, {"parent_id": r2.id})

        assert moved.parent_id == r2.id
        assert moved.level == 2
        assert (await service.get_by_id(b.id)).level == 3
        await assert_consistent()

    async def test_failed_cascade_rolls_back_the_move(
        self,
        repository: CategoryRepository,
        service: CategoryService,
        assert_consistent,
    ):
        r1 = await service.create(name="R1")
        a = await service.create(name="A", parent_id=r1.id)
        b = await service.create(name="B", parent_id=a.id)
        r1_id, a_id, b_id = r1.id, a.id, b.id

        real_update_levels = repository.update_levels
        calls = []

        async def fail_on_second_call(ids, level):
            calls.append(level)
            if len(calls) == 2:
                raise RuntimeError("connection lost")
            return await real_update_levels(ids, level)

        with patch.object(repository, "update_levels", new=AsyncMock(side_effect=fail_on_second_call)):
            with pytest.raises(RuntimeError):
                await service.update(a_id, {"parent_id": None})

        assert calls == [1, 2]
        a = await service.get_by_id(a_id)
        assert a.parent_id == r1_id
        assert a.level == 2
        assert (await service.get_by_id(b_id)).level == 3
        await assert_consistent()

    async def test_move_rejected_when_subtree_would_be_too_deep(self, service: CategoryService):
        r1 = await service.create(name="R1")
        a = await service.create(name="A", parent_id=r1.id)
        await service.create(name="B", parent_id=a.id)
        r2 = await service.create(name="R2")
        d = await service.create(name="D", parent_id=r2.id)
        a_id, r1_id, d_id = a.id, r1.id, d.id

        # A would land on level 3 and its child B on level 4
        with pytest.raises(DepthExceededError):
            await service.update(a_id, {"parent_id": d_id})

        a = await service.get_by_id(a_id)
        assert a.parent_id == r1_id
        assert a.level == 2

    async def test_move_under_level_three_parent(self, service: CategoryService, electronics_tree: dict):
        other = await service.create(name="Other")

        with pytest.raises(DepthExceededError):
            await service.update(other.id, {"parent_id": electronics_tree["Smartphones"]})

    async def test_move_to_missing_parent(self, service: CategoryService, electronics_tree: dict):
        with pytest.raises(ParentNotFoundError):
            await service.update(electronics_tree["Phones"], {"parent_id": uuid4()})

    async def test_move_into_name_clash(self, service: CategoryService):
        men = await service.create(name="Men")
        women = await service.create(name="Women")
        await service.create(name="Shoes", parent_id=men.id)
        women_shoes = await service.create(name="Shoes", parent_id=women.id)

        with pytest.raises(DuplicateSiblingError):
            await service.update(women_shoes.id, {"parent_id": men.id})

    async def test_move_and_rename_together(self, service: CategoryService):
        men = await service.create(name="Men")
        women = await service.create(name="Women")
        await service.create(name="Shoes", parent_id=men.id)
        women_shoes = await service.create(name="Shoes", parent_id=women.id)

        moved = await service.update(women_shoes.id, {"parent_id": men.id, "name": "Sneakers"})

        assert moved.parent_id == men.id
        assert moved.name == "Sneakers"

    async def test_same_parent_is_not_a_move(self, service: CategoryService, electronics_tree: dict):
        updated = await service.update(
            electronics_tree["Phones"],
            {"parent_id": electronics_tree["Electronics"], "sort": 3},
        )

        assert updated.level == 2
        assert updated.sort == 3

    async def test_status_toggles_freely(self, service: CategoryService, electronics_tree: dict):
        phones_id = electronics_tree["Phones"]

        disabled = await service.update(phones_id, {"status": CategoryStatus.DISABLED})
        assert disabled.status == CategoryStatus.DISABLED

        enabled = await service.update(phones_id, {"status": CategoryStatus.ENABLED})
        assert enabled.status == CategoryStatus.ENABLED

    async def test_updated_at_advances(self, service: CategoryService, electronics_tree: dict):
        before = (await service.get_by_id(electronics_tree["Phones"])).updated_at

        updated = await service.update(electronics_tree["Phones"], {"sort": 9})

        assert updated.updated_at >= before

    async def test_level_is_not_settable(self, service: CategoryService, electronics_tree: dict):
        updated = await service.update(electronics_tree["Phones"], {"level": 1, "sort": 2})

        assert updated.level == 2

    async def test_invalid_fields(self, service: CategoryService, electronics_tree: dict):
        phones_id = electronics_tree["Phones"]

        with pytest.raises(EmptyNameError):
            await service.update(phones_id, {"name": ""})
        with pytest.raises(SortOutOfRangeError):
            await service.update(phones_id, {"sort": 10000})

    async def test_not_found(self, service: CategoryService):
        with pytest.raises(CategoryNotFoundError):
            await service.update(uuid4(), {"name": "Ghost"})


# ============================================================================
# TESTS: DELETE
# ============================================================================

class TestDeleteCategory:
    """Tests for CategoryService.delete."""

    async def test_delete_leaf(self, service: CategoryService, electronics_tree: dict):
        smartphones_id = electronics_tree["Smartphones"]

        await service.delete(smartphones_id)

        with pytest.raises(CategoryNotFoundError):
            await service.get_by_id(smartphones_id)

    async def test_delete_with_children(self, service: CategoryService, electronics_tree: dict):
        phones_id = electronics_tree["Phones"]

        with pytest.raises(HasChildrenError) as exc:
            await service.delete(phones_id)

        assert exc.value.count == 1
        assert (await service.get_by_id(phones_id)).name == "Phones"

    async def test_delete_with_products(
        self,
        test_db: AsyncSession,
        service: CategoryService,
        electronics_tree: dict,
    ):
        smartphones_id = electronics_tree["Smartphones"]
        test_db.add(Product(name="Phone X", price=Decimal("999.00"), category_id=smartphones_id))
        await test_db.commit()

        with pytest.raises(HasProductsError):
            await service.delete(smartphones_id)

        assert (await service.get_by_id(smartphones_id)).level == 3

    async def test_delete_missing(self, service: CategoryService):
        with pytest.raises(CategoryNotFoundError):
            await service.delete(uuid4())


# ============================================================================
# TESTS: BATCH SORT
# ============================================================================

class TestUpdateSortBatch:
    """Tests for CategoryService.update_sort_batch."""

    async def test_applies_all(self, service: CategoryService):
        a = await service.create(name="A", sort=1)
        b = await service.create(name="B", sort=2)

        applied = await service.update_sort_batch([
            (a.id, 20),
            (b.id, 10),
        ])

        assert applied == 2
        assert (await service.get_by_id(a.id)).sort == 20
        assert (await service.get_by_id(b.id)).sort == 10

    async def test_repeated_id_keeps_last_sort(self, service: CategoryService):
        a = await service.create(name="A", sort=1)

        await service.update_sort_batch([(a.id, 5), (a.id, 7)])

        assert (await service.get_by_id(a.id)).sort == 7

    async def test_invalid_entry_rejects_whole_batch(self, service: CategoryService):
        x = await service.create(name="X", sort=1)
        y = await service.create(name="Y", sort=2)

        with pytest.raises(SortOutOfRangeError):
            await service.update_sort_batch([
                (x.id, 10),
                (y.id, -5),
            ])

        assert (await service.get_by_id(x.id)).sort == 1
        assert (await service.get_by_id(y.id)).sort == 2

    async def test_middle_entry_invalid(self, service: CategoryService):
        categories = [await service.create(name=f"C{i}", sort=i) for i in range(5)]
        ids = [c.id for c in categories]
        items = [(category_id, 100 + i) for i, category_id in enumerate(ids)]
        items[2] = (ids[2], -1)

        with pytest.raises(SortOutOfRangeError):
            await service.update_sort_batch(items)

        for i, category_id in enumerate(ids):
            assert (await service.get_by_id(category_id)).sort == i

    async def test_unknown_id_rejects_whole_batch(self, service: CategoryService):
        a = await service.create(name="A", sort=1)
        a_id = a.id

        with pytest.raises(CategoryNotFoundError):
            await service.update_sort_batch([
                (a_id, 50),
                (uuid4(), 60),
            ])

        assert (await service.get_by_id(a_id)).sort == 1


# ============================================================================
# TESTS: READ PATHS
# ============================================================================

class TestCategoryReads:
    """Tests for list, tree, roots and children queries."""

    async def test_get_by_id_not_found(self, service: CategoryService):
        with pytest.raises(CategoryNotFoundError):
            await service.get_by_id(uuid4())

    async def test_get_by_id_loads_relations(self, service: CategoryService, electronics_tree: dict):
        phones = await service.get_by_id(electronics_tree["Phones"])

        assert phones.parent.name == "Electronics"
        assert [c.name for c in phones.children] == ["Smartphones"]

    async def test_get_list_with_pagination(self, service: CategoryService):
        for i in range(5):
            await service.create(name=f"Root {i}", sort=i)

        categories, total = await service.get_list(CategoryListParams(page=1, size=2))

        assert total == 5
        assert [c.name for c in categories] == ["Root 0", "Root 1"]

        categories, _ = await service.get_list(CategoryListParams(page=3, size=2))
        assert [c.name for c in categories] == ["Root 4"]

    async def test_get_list_filters(self, service: CategoryService, electronics_tree: dict):
        await service.create(name="Books", status=CategoryStatus.DISABLED)

        by_level, total = await service.get_list(CategoryListParams(level=2))
        assert total == 1
        assert by_level[0].name == "Phones"

        by_parent, _ = await service.get_list(CategoryListParams(parent_id=electronics_tree["Phones"]))
        assert [c.name for c in by_parent] == ["Smartphones"]

        disabled, _ = await service.get_list(CategoryListParams(status=CategoryStatus.DISABLED))
        assert [c.name for c in disabled] == ["Books"]

        by_keyword, _ = await service.get_list(CategoryListParams(keyword="phone"))
        assert {c.name for c in by_keyword} == {"Phones", "Smartphones"}

    @pytest.mark.parametrize(
        "keyword, expected",
        [
            ("%", ["50% off"]),
            ("_", ["top_10"]),
            ("0%", ["50% off"]),
            ("PHONE", ["Phones"]),
        ],
    )
    async def test_get_list_keyword_is_literal(self, service: CategoryService, keyword: str, expected: list):
        for name in ["Phones", "50% off", "top_10"]:
            await service.create(name=name)

        categories, total = await service.get_list(CategoryListParams(keyword=keyword))

        assert [c.name for c in categories] == expected
        assert total == len(expected)

    async def test_get_list_sorting(self, service: CategoryService):
        for name in ["Beta", "Alpha", "Gamma"]:
            await service.create(name=name)

        categories, _ = await service.get_list(CategoryListParams(sort_by="name", sort_order="desc"))

        assert [c.name for c in categories] == ["Gamma", "Beta", "Alpha"]

    def test_list_params_clamp_paging(self):
        params = CategoryListParams(page=0, size=500)

        assert params.page == 1
        assert params.size == 20

    async def test_get_tree(self, service: CategoryService, electronics_tree: dict):
        await service.create(name="Books", sort=2)
        await service.create(name="Audio", parent_id=electronics_tree["Electronics"], sort=0)

        tree = await service.get_tree()

        assert [n.name for n in tree] == ["Electronics", "Books"]
        assert [n.name for n in tree[0].children] == ["Audio", "Phones"]
        assert [n.name for n in tree[0].children[1].children] == ["Smartphones"]

    async def test_get_tree_status_filter_drops_hidden_branches(
        self,
        service: CategoryService,
        electronics_tree: dict,
    ):
        await service.update(electronics_tree["Phones"], {"status": CategoryStatus.DISABLED})

        tree = await service.get_tree(CategoryStatus.ENABLED)

        assert [n.name for n in tree] == ["Electronics"]
        # Smartphones is enabled but its parent is not
        assert tree[0].children == []

    async def test_get_root_categories(self, service: CategoryService, electronics_tree: dict):
        await service.create(name="Hidden", status=CategoryStatus.DISABLED)
        await service.create(
            name="Tablets",
            parent_id=electronics_tree["Electronics"],
            status=CategoryStatus.DISABLED,
        )

        roots = await service.get_root_categories()

        assert [r.name for r in roots] == ["Electronics"]
        assert [c.name for c in roots[0].children] == ["Phones"]
        assert roots[0].children[0].children == []

    async def test_get_child_categories(self, service: CategoryService):
        root = await service.create(name="Root")
        await service.create(name="Second", parent_id=root.id, sort=2)
        await service.create(name="First", parent_id=root.id, sort=1)

        children = await service.get_child_categories(root.id)

        assert [c.name for c in children] == ["First", "Second"]
        assert all(c.parent.id == root.id for c in children)

    async def test_get_product_counts(
        self,
        test_db: AsyncSession,
        service: CategoryService,
        electronics_tree: dict,
    ):
        smartphones_id = electronics_tree["Smartphones"]
        test_db.add_all([
            Product(name="Phone X", price=Decimal("999.00"), category_id=smartphones_id),
            Product(name="Phone Y", price=Decimal("499.00"), category_id=smartphones_id),
        ])
        await test_db.commit()

        counts = await service.get_product_counts([smartphones_id, electronics_tree["Phones"]])

        assert counts == {smartphones_id: 2}

    async def test_get_product_preview(
        self,
        test_db: AsyncSession,
        service: CategoryService,
        electronics_tree: dict,
    ):
        smartphones_id = electronics_tree["Smartphones"]
        test_db.add_all([
            Product(name=f"Phone {i}", price=Decimal("100.00"), category_id=smartphones_id)
            for i in range(PRODUCT_PREVIEW_LIMIT + 2)
        ])
        test_db.add(Product(name="Case", price=Decimal("9.90"), category_id=electronics_tree["Phones"]))
        await test_db.commit()

        preview = await service.get_product_preview(smartphones_id)

        assert len(preview) == PRODUCT_PREVIEW_LIMIT
        assert all(p.category_id == smartphones_id for p in preview)
        assert await service.get_product_preview(electronics_tree["Electronics"]) == []


# ============================================================================
# TESTS: INVARIANTS ACROSS MIXED OPERATIONS
# ============================================================================

class TestHierarchyInvariants:
    """Run a sequence of moves, some rejected, and check the whole table."""

    async def test_invariants_hold_after_mixed_operations(self, service: CategoryService, assert_consistent):
        fruit = await service.create(name="Fruit")
        imported = await service.create(name="Imported", parent_id=fruit.id)
        apples = await service.create(name="Apples", parent_id=imported.id)
        veg = await service.create(name="Vegetables")
        leafy = await service.create(name="Leafy", parent_id=veg.id)
        ids = {c.name: c.id for c in [fruit, imported, apples, veg, leafy]}

        await service.update(ids["Imported"], {"parent_id": None})
        await service.update(ids["Vegetables"], {"parent_id": ids["Imported"]})

        for changes, error in [
            ({"parent_id": ids["Leafy"]}, CycleDetectedError),
            ({"parent_id": ids["Imported"]}, SelfParentError),
            ({"parent_id": ids["Fruit"]}, DepthExceededError),
        ]:
            with pytest.raises(error):
                await service.update(ids["Imported"], changes)

        await service.update(ids["Apples"], {"parent_id": ids["Fruit"]})
        await service.delete(ids["Leafy"])

        await assert_consistent()
        tree = await service.get_tree()
        assert {n.name for n in tree} == {"Fruit", "Imported"}
