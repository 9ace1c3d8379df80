"""Tests for the ModuleStore: seeding, toggles, reorder, custom widgets and overrides."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import OperationalError

from statboard.models import CustomWidget, DashboardModule
from statboard.widgets import store as store_mod
from statboard.widgets.catalog import CATALOG, WidgetDescriptor
from statboard.widgets.contracts import (
    Category,
    CustomWidgetDefinition,
    Temporality,
    WidgetConfigOverride,
    WidgetSize,
)
from statboard.widgets.reconcile import ReorderError
from statboard.widgets.store import ModuleStore, ModuleStoreError, UnknownModuleError


def _definition(**overrides):
    data = {
        "name": "Ready repairs",
        "description": "Cases waiting for pickup",
        "original_prompt": "How many repairs are ready?",
        "ai_interpretation": {"intent": "count ready cases"},
        "widget_type": "kpi",
        "data_source": "sav_cases",
        "data_config": {
            "table": "sav_cases",
            "filters": [
                {"column": "tenant_id", "operator": "eq", "value": "{shop_id}"},
                {"column": "status", "operator": "eq", "value": "ready"},
            ],
            "aggregations": [{"function": "count", "column": "id", "alias": "total"}],
        },
        "display_config": {"size": "small", "color": "#2563eb"},
    }
    data.update(overrides)
    return CustomWidgetDefinition.model_validate(data)


class TestSeeding:

    @pytest.mark.asyncio
    async def test_first_read_seeds_catalog(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        modules = await store.list_modules("shop-a")

        assert [m.id for m in modules] == [d.id for d in CATALOG]
        assert [m.order for m in modules] == [d.default_order for d in CATALOG]
        assert all(m.enabled for m in modules)
        assert modules[0].category is Category.DASHBOARD

    @pytest.mark.asyncio
    async def test_seeding_happens_once(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        await store.list_modules("shop-a")
        await store.set_enabled("shop-a", "kpi-revenue", False)

        modules = await store.list_modules("shop-a")
        assert len(modules) == len(CATALOG)
        assert not next(m for m in modules if m.id == "kpi-revenue").enabled

    @pytest.mark.asyncio
    async def test_new_catalog_entries_go_last(self, session_factory, monkeypatch):
        store = ModuleStore(db_session_factory=session_factory)
        await store.list_modules("shop-a")

        extra = WidgetDescriptor(
            id="repair-backlog",
            name="Repair backlog",
            description="Open cases by age",
            category=Category.STANDARD,
            default_order=0,
        )
        monkeypatch.setattr(store_mod, "CATALOG", CATALOG + (extra,))

        modules = await store.list_modules("shop-a")
        assert modules[-1].id == "repair-backlog"
        assert modules[-1].order == len(CATALOG)

    @pytest.mark.asyncio
    async def test_tenants_are_isolated(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        await store.set_enabled("shop-a", "finance-kpis", False)

        other = await store.list_modules("shop-b")
        assert next(m for m in other if m.id == "finance-kpis").enabled


class TestToggleAndReorder:

    @pytest.mark.asyncio
    async def test_toggle_keeps_order(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        before = {m.id: m.order for m in await store.list_modules("shop-a")}

        module = await store.set_enabled("shop-a", "storage-usage", False)
        assert module.enabled is False
        assert module.order == before["storage-usage"]

        after = {m.id: m.order for m in await store.list_modules("shop-a")}
        assert after == before

    @pytest.mark.asyncio
    async def test_toggle_unknown(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        with pytest.raises(UnknownModuleError):
            await store.set_enabled("shop-a", "no-such-widget", True)

    @pytest.mark.asyncio
    async def test_reorder_replaces_full_ordering(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        modules = await store.list_modules("shop-a")

        result = await store.reorder("shop-a", list(reversed(modules)))

        assert [m.id for m in result] == [m.id for m in reversed(modules)]
        assert [m.order for m in result] == list(range(len(modules)))
        assert [m.id for m in await store.list_modules("shop-a")] == [m.id for m in result]

    @pytest.mark.asyncio
    async def test_reorder_requires_every_module(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        modules = await store.list_modules("shop-a")
        with pytest.raises(ReorderError, match="missing"):
            await store.reorder("shop-a", modules[1:])

    @pytest.mark.asyncio
    async def test_reorder_rejects_repeats(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        modules = await store.list_modules("shop-a")
        with pytest.raises(ReorderError, match="repeated"):
            await store.reorder("shop-a", modules + [modules[0]])


class TestCustomWidgets:

    @pytest.mark.asyncio
    async def test_create_appends_enabled_module(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        module = await store.upsert_custom_widget("shop-a", _definition())

        assert module.id == f"custom-{module.custom_widget_id}"
        assert module.is_custom
        assert module.enabled
        assert module.category is Category.STANDARD
        assert module.size is WidgetSize.SMALL
        assert module.order == len(CATALOG)
        assert module.revision == 1

        modules = await store.list_modules("shop-a")
        assert modules[-1].id == module.id

    @pytest.mark.asyncio
    async def test_definition_round_trips(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        definition = _definition()
        created = await store.upsert_custom_widget("shop-a", definition)

        loaded = await store.get_module("shop-a", created.id)
        assert loaded.original_prompt == definition.original_prompt
        assert loaded.ai_interpretation == {"intent": "count ready cases"}
        assert loaded.data_config == definition.data_config
        assert loaded.display_config == {"size": "small", "color": "#2563eb"}
        assert loaded.data_source == "sav_cases"

    @pytest.mark.asyncio
    async def test_update_bumps_revision(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())

        updated = await store.upsert_custom_widget(
            "shop-a",
            _definition(name="Ready repairs (week)", widget_type="table"),
            created.custom_widget_id,
        )
        assert updated.id == created.id
        assert updated.order == created.order
        assert updated.revision == 2
        assert updated.name == "Ready repairs (week)"

    @pytest.mark.asyncio
    async def test_update_unknown(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        with pytest.raises(UnknownModuleError):
            await store.upsert_custom_widget("shop-a", _definition(), "deadbeef")

    @pytest.mark.asyncio
    async def test_toggle_custom_updates_widget_flag(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())

        module = await store.set_enabled("shop-a", created.id, False)
        assert module.enabled is False
        assert module.data_config == created.data_config

        async with session_factory() as session:
            widget = await session.get(CustomWidget, created.custom_widget_id)
            assert widget.enabled is False

    @pytest.mark.asyncio
    async def test_delete_cascades(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())
        await store.set_override("shop-a", created.id, WidgetConfigOverride(temporality="yearly"))

        await store.delete_custom_widget("shop-a", created.custom_widget_id)

        ids = [m.id for m in await store.list_modules("shop-a")]
        assert created.id not in ids
        assert await store.get_override("shop-a", created.id) is None
        assert await store.list_custom_widgets("shop-a") == []

    @pytest.mark.asyncio
    async def test_create_persists_every_definition_field(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition(data_source=None))

        async with session_factory() as session:
            widget = await session.get(CustomWidget, created.custom_widget_id)
            assert widget.name == "Ready repairs"
            assert widget.original_prompt == "How many repairs are ready?"
            assert widget.widget_type == "kpi"
            assert widget.data_source == "sav_cases"
            assert widget.data_config_json
            assert widget.enabled is True

    @pytest.mark.asyncio
    async def test_create_disabled(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition(enabled=False))
        assert created.enabled is False
        assert not (await store.get_module("shop-a", created.id)).enabled

    @pytest.mark.asyncio
    async def test_update_without_enabled_keeps_state(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())
        await store.set_enabled("shop-a", created.id, False)

        updated = await store.upsert_custom_widget(
            "shop-a", _definition(name="Ready repairs (renamed)"), created.custom_widget_id
        )

        assert updated.enabled is False
        assert not (await store.get_module("shop-a", created.id)).enabled
        async with session_factory() as session:
            widget = await session.get(CustomWidget, created.custom_widget_id)
            assert widget.enabled is False

    @pytest.mark.asyncio
    async def test_update_with_enabled_applies_it(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())
        await store.set_enabled("shop-a", created.id, False)

        updated = await store.upsert_custom_widget(
            "shop-a", _definition(enabled=True), created.custom_widget_id
        )
        assert updated.enabled is True

    @pytest.mark.asyncio
    async def test_widget_deleted_outside_the_store(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())

        async with session_factory() as session:
            await session.execute(delete(CustomWidget).where(CustomWidget.id == created.custom_widget_id))
            await session.commit()

        modules = await store.list_modules("shop-a")
        assert created.id not in [m.id for m in modules]
        result = await store.reorder("shop-a", list(reversed(modules)))
        assert [m.id for m in result] == [m.id for m in reversed(modules)]

    @pytest.mark.asyncio
    async def test_orphan_module_row_is_removed(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        await store.list_modules("shop-a")
        async with session_factory() as session:
            session.add(DashboardModule(
                tenant_id="shop-a",
                module_id="custom-gone",
                display_order=99,
                is_custom=True,
                custom_widget_id=None,
            ))
            await session.commit()

        modules = await store.list_modules("shop-a")
        assert "custom-gone" not in [m.id for m in modules]
        await store.reorder("shop-a", list(reversed(modules)))

        async with session_factory() as session:
            rows = (await session.execute(
                select(DashboardModule).where(DashboardModule.module_id == "custom-gone")
            )).scalars().all()
            assert rows == []


    @pytest.mark.asyncio
    async def test_delete_other_tenants_widget(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        created = await store.upsert_custom_widget("shop-a", _definition())
        with pytest.raises(UnknownModuleError):
            await store.delete_custom_widget("shop-b", created.custom_widget_id)

    @pytest.mark.asyncio
    async def test_list_custom_widgets(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        await store.upsert_custom_widget("shop-a", _definition())
        await store.upsert_custom_widget("shop-a", _definition(name="Parts low on stock"))

        customs = await store.list_custom_widgets("shop-a")
        assert [m.name for m in customs] == ["Ready repairs", "Parts low on stock"]
        assert await store.list_custom_widgets("shop-b") == []


class TestOverrides:

    @pytest.mark.asyncio
    async def test_absent_by_default(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        assert await store.get_override("shop-a", "kpi-revenue") is None

    @pytest.mark.asyncio
    async def test_upsert_and_reset(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        await store.set_override(
            "shop-a",
            "kpi-revenue",
            WidgetConfigOverride(temporality=Temporality.QUARTERLY, status_filter=["ready"]),
        )
        await store.set_override(
            "shop-a",
            "kpi-revenue",
            WidgetConfigOverride(temporality=Temporality.YEARLY, status_filter=["ready"], type_filter=[]),
        )

        override = await store.get_override("shop-a", "kpi-revenue")
        assert override.temporality is Temporality.YEARLY
        assert override.status_filter == ["ready"]
        assert override.type_filter is None

        await store.delete_override("shop-a", "kpi-revenue")
        assert await store.get_override("shop-a", "kpi-revenue") is None

    @pytest.mark.asyncio
    async def test_override_does_not_touch_module(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        before = await store.get_module("shop-a", "top-devices")
        await store.set_override("shop-a", "top-devices", WidgetConfigOverride())
        assert await store.get_module("shop-a", "top-devices") == before

    @pytest.mark.asyncio
    async def test_override_unknown_module(self, session_factory):
        store = ModuleStore(db_session_factory=session_factory)
        with pytest.raises(UnknownModuleError):
            await store.set_override("shop-a", "ghost", WidgetConfigOverride())


class TestFailures:

    @pytest.mark.asyncio
    async def test_sqlalchemy_errors_are_wrapped(self):
        mock_session = AsyncMock()
        mock_session.__aenter__ = AsyncMock(return_value=mock_session)
        mock_session.__aexit__ = AsyncMock(return_value=False)
        mock_session.execute = AsyncMock(
            side_effect=OperationalError("SELECT", {}, Exception("database is locked"))
        )
        store = ModuleStore(db_session_factory=MagicMock(return_value=mock_session))

        with pytest.raises(ModuleStoreError, match="OperationalError"):
            await store.list_modules("shop-a")
        with pytest.raises(ModuleStoreError):
            await store.set_enabled("shop-a", "kpi-revenue", False)
