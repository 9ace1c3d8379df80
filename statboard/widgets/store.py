"""Per-tenant persisted module list (the module configuration store).

Builtin modules are seeded from the catalog on first read and are only ever
toggled. Custom modules live and die with their custom widget. Every public
method is one transaction; SQLAlchemy failures surface as ModuleStoreError.
"""

import json
import uuid
from typing import Optional, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError

from ..models.custom_widget import CustomWidget
from ..models.dashboard_module import DashboardModule
from ..models.widget_configuration import WidgetConfiguration
from ..utils.logging import get_logger
from .catalog import CATALOG, get_descriptor
from .contracts import (
    Category,
    CustomWidgetDataConfig,
    CustomWidgetDefinition,
    Module,
    WidgetConfigOverride,
    WidgetSize,
)
from .reconcile import ReorderError

logger = get_logger("widgets.store")

CUSTOM_MODULE_PREFIX = "custom-"


class ModuleStoreError(RuntimeError):
    """The persistence layer failed; ``fallback_modules`` is the last good list."""

    def __init__(self, message: str, fallback_modules: Optional[list[Module]] = None):
        super().__init__(message)
        self.fallback_modules = fallback_modules


class UnknownModuleError(LookupError):
    """No module or custom widget with that id exists for the tenant."""


def custom_module_id(custom_widget_id: str) -> str:
    return f"{CUSTOM_MODULE_PREFIX}{custom_widget_id}"


def _loads(raw: Optional[str]):
    return json.loads(raw) if raw else None


def _size_from(display_config: Optional[dict]) -> WidgetSize:
    raw = (display_config or {}).get("size")
    try:
        return WidgetSize(raw)
    except ValueError:
        return WidgetSize.MEDIUM


class ModuleStore:
    """Async store over dashboard_modules, custom_widgets and widget_configurations."""

    def __init__(self, db_session_factory=None):
        self._db_session_factory = db_session_factory

    # ------------------------------------------------------------------
    # Row <-> Module
    # ------------------------------------------------------------------

    @staticmethod
    def _to_module(row: DashboardModule, widget: Optional[CustomWidget] = None) -> Module:
        if row.is_custom and widget is not None:
            display_config = _loads(widget.display_config_json) or {}
            return Module(
                id=row.module_id,
                name=widget.name,
                description=widget.description or "",
                category=Category.STANDARD,
                size=_size_from(display_config),
                enabled=row.enabled,
                order=row.display_order,
                is_custom=True,
                custom_widget_id=widget.id,
                original_prompt=widget.original_prompt,
                ai_interpretation=_loads(widget.ai_interpretation_json),
                widget_type=widget.widget_type,
                chart_type=widget.chart_type,
                data_source=widget.data_source,
                data_config=CustomWidgetDataConfig.model_validate(
                    json.loads(widget.data_config_json)
                ),
                display_config=display_config,
                revision=widget.revision,
            )

        descriptor = get_descriptor(row.module_id)
        if descriptor is None:
            # Catalog entry retired in a later release; keep the row visible by id
            return Module(id=row.module_id, name=row.module_id, enabled=row.enabled, order=row.display_order)
        return Module(
            id=row.module_id,
            name=descriptor.name,
            description=descriptor.description,
            category=descriptor.category,
            size=descriptor.default_size,
            enabled=row.enabled,
            order=row.display_order,
        )

    async def _rows(self, session, tenant_id: str) -> list[DashboardModule]:
        result = await session.execute(
            select(DashboardModule)
            .where(DashboardModule.tenant_id == tenant_id)
            .order_by(DashboardModule.display_order, DashboardModule.id)
        )
        return list(result.scalars().all())

    async def _widgets(self, session, tenant_id: str) -> dict[str, CustomWidget]:
        result = await session.execute(
            select(CustomWidget).where(CustomWidget.tenant_id == tenant_id)
        )
        return {w.id: w for w in result.scalars().all()}

    async def _seed_missing(self, session, tenant_id: str, rows: Sequence[DashboardModule]) -> int:
        """Insert catalog builtins the tenant has no row for yet."""
        existing = {r.module_id for r in rows}
        missing = [d for d in CATALOG if d.id not in existing]
        if not missing:
            return 0
        first_access = not rows
        next_order = max((r.display_order for r in rows), default=-1) + 1
        for offset, descriptor in enumerate(missing):
            session.add(DashboardModule(
                tenant_id=tenant_id,
                module_id=descriptor.id,
                enabled=descriptor.default_enabled,
                display_order=descriptor.default_order if first_access else next_order + offset,
                is_custom=False,
            ))
        await session.flush()
        logger.info("builtin_modules_seeded", tenant=tenant_id, count=len(missing), first_access=first_access)
        return len(missing)

    async def _load(self, session, tenant_id: str) -> list[Module]:
        rows = await self._rows(session, tenant_id)
        if await self._seed_missing(session, tenant_id, rows):
            rows = await self._rows(session, tenant_id)
        widgets = await self._widgets(session, tenant_id)
        modules = []
        orphans = 0
        for row in rows:
            widget = widgets.get(row.custom_widget_id) if row.is_custom else None
            if row.is_custom and widget is None:
                # Widget deleted outside this store; the module goes with it
                logger.warning("orphan_custom_module_removed", tenant=tenant_id, module_id=row.module_id)
                await session.delete(row)
                orphans += 1
                continue
            modules.append(self._to_module(row, widget))
        if orphans:
            await session.flush()
        return modules

    # ------------------------------------------------------------------
    # Modules
    # ------------------------------------------------------------------

    async def list_modules(self, tenant_id: str) -> list[Module]:
        """All modules of a tenant sorted by (order, insertion)."""
        try:
            async with self._db_session_factory() as session:
                modules = await self._load(session, tenant_id)
                await session.commit()
                return modules
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to read modules: {e.__class__.__name__}") from e

    async def get_module(self, tenant_id: str, module_id: str) -> Module:
        for module in await self.list_modules(tenant_id):
            if module.id == module_id:
                return module
        raise UnknownModuleError(f"Module {module_id!r} not found")

    async def set_enabled(self, tenant_id: str, module_id: str, enabled: bool) -> Module:
        """Toggle one module. Order and custom widget definition are untouched."""
        try:
            async with self._db_session_factory() as session:
                await self._load(session, tenant_id)
                row = (await session.execute(
                    select(DashboardModule).where(
                        DashboardModule.tenant_id == tenant_id,
                        DashboardModule.module_id == module_id,
                    )
                )).scalar_one_or_none()
                if row is None:
                    raise UnknownModuleError(f"Module {module_id!r} not found")

                row.enabled = enabled
                widget = None
                if row.is_custom:
                    widget = await session.get(CustomWidget, row.custom_widget_id)
                    if widget is not None:
                        widget.enabled = enabled
                await session.commit()
                module = self._to_module(row, widget)
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to toggle module: {e.__class__.__name__}") from e

        logger.info("module_toggled", tenant=tenant_id, module_id=module_id, enabled=enabled)
        return module

    async def reorder(self, tenant_id: str, modules: Sequence[Module]) -> list[Module]:
        """Replace the whole ordering: list index becomes the new order.

        Last write wins; ``modules`` must hold every module id exactly once.
        """
        ids = [m.id for m in modules]
        if len(set(ids)) != len(ids):
            raise ReorderError("Module ordering contains repeated ids")
        try:
            async with self._db_session_factory() as session:
                await self._load(session, tenant_id)
                rows = await self._rows(session, tenant_id)
                by_id = {r.module_id: r for r in rows}
                if set(by_id) != set(ids):
                    missing = sorted(set(by_id) - set(ids))
                    unknown = sorted(set(ids) - set(by_id))
                    raise ReorderError(
                        f"Ordering must list every module exactly once "
                        f"(missing={missing}, unknown={unknown})"
                    )
                for index, module_id in enumerate(ids):
                    by_id[module_id].display_order = index
                await session.commit()
                result = await self._load(session, tenant_id)
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to reorder modules: {e.__class__.__name__}") from e

        logger.info("modules_reordered", tenant=tenant_id, count=len(ids))
        return result

    # ------------------------------------------------------------------
    # Custom widgets
    # ------------------------------------------------------------------

    @staticmethod
    def _apply_definition(widget: CustomWidget, definition: CustomWidgetDefinition) -> None:
        widget.name = definition.name
        widget.description = definition.description
        widget.original_prompt = definition.original_prompt
        widget.ai_interpretation_json = (
            json.dumps(definition.ai_interpretation)
            if definition.ai_interpretation is not None else None
        )
        widget.widget_type = definition.widget_type.value
        widget.chart_type = definition.chart_type
        widget.data_source = definition.data_source or definition.data_config.table
        widget.data_config_json = json.dumps(definition.data_config.model_dump(mode="json"))
        widget.display_config_json = json.dumps(definition.display_config or {})

    async def list_custom_widgets(self, tenant_id: str) -> list[Module]:
        return [m for m in await self.list_modules(tenant_id) if m.is_custom]

    async def upsert_custom_widget(
        self,
        tenant_id: str,
        definition: CustomWidgetDefinition,
        custom_widget_id: Optional[str] = None,
    ) -> Module:
        """Create a custom widget (and its module) or update an existing one.

        ``definition.enabled`` left unset keeps the current state on update
        and means enabled on create.
        """
        try:
            async with self._db_session_factory() as session:
                existing_rows = await self._rows(session, tenant_id)
                await self._seed_missing(session, tenant_id, existing_rows)

                if custom_widget_id is None:
                    max_order = (await session.execute(
                        select(func.max(DashboardModule.display_order))
                        .where(DashboardModule.tenant_id == tenant_id)
                    )).scalar_one_or_none()
                    enabled = True if definition.enabled is None else definition.enabled
                    widget = CustomWidget(id=uuid.uuid4().hex, tenant_id=tenant_id, revision=1)
                    self._apply_definition(widget, definition)
                    widget.enabled = enabled
                    session.add(widget)
                    await session.flush()
                    row = DashboardModule(
                        tenant_id=tenant_id,
                        module_id=custom_module_id(widget.id),
                        enabled=enabled,
                        display_order=(max_order if max_order is not None else -1) + 1,
                        is_custom=True,
                        custom_widget_id=widget.id,
                    )
                    session.add(row)
                    created = True
                else:
                    widget = (await session.execute(
                        select(CustomWidget).where(
                            CustomWidget.id == custom_widget_id,
                            CustomWidget.tenant_id == tenant_id,
                        )
                    )).scalar_one_or_none()
                    if widget is None:
                        raise UnknownModuleError(f"Custom widget {custom_widget_id!r} not found")
                    row = (await session.execute(
                        select(DashboardModule).where(
                            DashboardModule.tenant_id == tenant_id,
                            DashboardModule.custom_widget_id == widget.id,
                        )
                    )).scalar_one()
                    self._apply_definition(widget, definition)
                    widget.revision = (widget.revision or 0) + 1
                    if definition.enabled is not None:
                        widget.enabled = definition.enabled
                        row.enabled = definition.enabled
                    created = False

                await session.flush()
                module = self._to_module(row, widget)
                await session.commit()
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to save custom widget: {e.__class__.__name__}") from e

        logger.info(
            "custom_widget_saved",
            tenant=tenant_id,
            custom_widget_id=module.custom_widget_id,
            created=created,
            revision=module.revision,
        )
        return module

    async def delete_custom_widget(self, tenant_id: str, custom_widget_id: str) -> None:
        """Delete a custom widget together with its module and override."""
        try:
            async with self._db_session_factory() as session:
                widget = (await session.execute(
                    select(CustomWidget).where(
                        CustomWidget.id == custom_widget_id,
                        CustomWidget.tenant_id == tenant_id,
                    )
                )).scalar_one_or_none()
                if widget is None:
                    raise UnknownModuleError(f"Custom widget {custom_widget_id!r} not found")

                await session.execute(
                    delete(WidgetConfiguration).where(
                        WidgetConfiguration.tenant_id == tenant_id,
                        WidgetConfiguration.module_id == custom_module_id(custom_widget_id),
                    )
                )
                await session.execute(
                    delete(DashboardModule).where(
                        DashboardModule.tenant_id == tenant_id,
                        DashboardModule.custom_widget_id == custom_widget_id,
                    )
                )
                await session.delete(widget)
                await session.commit()
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to delete custom widget: {e.__class__.__name__}") from e

        logger.info("custom_widget_deleted", tenant=tenant_id, custom_widget_id=custom_widget_id)

    # ------------------------------------------------------------------
    # Overrides
    # ------------------------------------------------------------------

    async def _module_exists(self, session, tenant_id: str, module_id: str) -> bool:
        modules = await self._load(session, tenant_id)
        return any(m.id == module_id for m in modules)

    async def get_override(self, tenant_id: str, module_id: str) -> Optional[WidgetConfigOverride]:
        try:
            async with self._db_session_factory() as session:
                row = (await session.execute(
                    select(WidgetConfiguration).where(
                        WidgetConfiguration.tenant_id == tenant_id,
                        WidgetConfiguration.module_id == module_id,
                    )
                )).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to read widget configuration: {e.__class__.__name__}") from e
        if row is None:
            return None
        return WidgetConfigOverride(
            temporality=row.temporality,
            status_filter=_loads(row.status_filter_json),
            type_filter=_loads(row.type_filter_json),
        )

    async def set_override(
        self, tenant_id: str, module_id: str, override: WidgetConfigOverride
    ) -> WidgetConfigOverride:
        """Upsert the configuration override of one module."""
        try:
            async with self._db_session_factory() as session:
                if not await self._module_exists(session, tenant_id, module_id):
                    raise UnknownModuleError(f"Module {module_id!r} not found")
                row = (await session.execute(
                    select(WidgetConfiguration).where(
                        WidgetConfiguration.tenant_id == tenant_id,
                        WidgetConfiguration.module_id == module_id,
                    )
                )).scalar_one_or_none()
                if row is None:
                    row = WidgetConfiguration(tenant_id=tenant_id, module_id=module_id)
                    session.add(row)
                row.temporality = override.temporality.value
                row.status_filter_json = (
                    json.dumps(override.status_filter) if override.status_filter else None
                )
                row.type_filter_json = (
                    json.dumps(override.type_filter) if override.type_filter else None
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to save widget configuration: {e.__class__.__name__}") from e

        logger.info("widget_override_saved", tenant=tenant_id, module_id=module_id,
                    temporality=override.temporality.value)
        return override

    async def delete_override(self, tenant_id: str, module_id: str) -> None:
        try:
            async with self._db_session_factory() as session:
                await session.execute(
                    delete(WidgetConfiguration).where(
                        WidgetConfiguration.tenant_id == tenant_id,
                        WidgetConfiguration.module_id == module_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise ModuleStoreError(f"Failed to delete widget configuration: {e.__class__.__name__}") from e
