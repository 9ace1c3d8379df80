"""Dashboard Service — the facade the HTTP layer calls.

Applies the error policy: module reads fail soft to the last known-good list
(or catalog defaults), writes fail loud with that list attached, and
descriptor errors become an ``error`` field on the render payload.
"""

from typing import Optional, Sequence

from .catalog import default_modules, is_builtin
from .contracts import (
    CustomWidgetDefinition,
    Module,
    RenderData,
    RenderMode,
    RenderResult,
    WidgetConfigOverride,
)
from .interpreter import DataBindingInterpreter, classify
from .reconcile import ALL_VIEW, ModuleView, reorder_visible, sort_modules
from .record_store import WidgetQueryError
from .store import ModuleStore, ModuleStoreError
from ..utils.logging import get_logger

logger = get_logger("widgets.service")


class BuiltinModuleError(ValueError):
    """Raised when custom-widget data is requested for a builtin module."""


class DashboardService:
    def __init__(self, store: ModuleStore, interpreter: DataBindingInterpreter):
        self._store = store
        self._interpreter = interpreter
        self._last_good: dict[str, list[Module]] = {}

    @property
    def store(self) -> ModuleStore:
        return self._store

    def last_known_good(self, tenant_id: str) -> list[Module]:
        """Last successfully read or written list, else the catalog defaults."""
        cached = self._last_good.get(tenant_id)
        if cached is not None:
            return list(cached)
        return default_modules()

    def _remember(self, tenant_id: str, modules: Sequence[Module]) -> list[Module]:
        self._last_good[tenant_id] = list(modules)
        return list(modules)

    def _write_failed(self, tenant_id: str, action: str, exc: ModuleStoreError) -> ModuleStoreError:
        logger.error("module_write_failed", tenant=tenant_id, action=action, error=str(exc))
        return ModuleStoreError(
            f"{action} not applied: {exc}",
            fallback_modules=self.last_known_good(tenant_id),
        )

    # ── Modules ──

    async def get_modules(self, tenant_id: str) -> list[Module]:
        """Merged, sorted module list. Never raises on store failure."""
        try:
            modules = await self._store.list_modules(tenant_id)
        except ModuleStoreError as e:
            fallback = self.last_known_good(tenant_id)
            logger.error(
                "module_read_failed",
                tenant=tenant_id,
                error=str(e),
                fallback_count=len(fallback),
            )
            return fallback
        return self._remember(tenant_id, sort_modules(modules))

    async def on_reorder(
        self,
        tenant_id: str,
        visible_ids: Sequence[str],
        from_index: int,
        to_index: int,
        view: ModuleView = ALL_VIEW,
    ) -> list[Module]:
        """Apply one drag inside ``view`` and persist the full new ordering."""
        try:
            current = sort_modules(await self._store.list_modules(tenant_id))
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Reorder", e) from e

        updated = reorder_visible(current, visible_ids, from_index, to_index, view)
        if [m.id for m in updated] == [m.id for m in current]:
            logger.debug("reorder_noop", tenant=tenant_id, view=view.name)
            return self._remember(tenant_id, current)

        try:
            persisted = await self._store.reorder(tenant_id, updated)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Reorder", e) from e
        return self._remember(tenant_id, persisted)

    async def on_toggle(self, tenant_id: str, module_id: str, enabled: bool) -> Module:
        try:
            module = await self._store.set_enabled(tenant_id, module_id, enabled)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Toggle", e) from e

        cached = self._last_good.get(tenant_id)
        if cached is not None:
            self._last_good[tenant_id] = [module if m.id == module_id else m for m in cached]
        return module

    # ── Custom widget data ──

    async def render_data_for(self, tenant_id: str, module_id: str) -> RenderData:
        """Resolve and shape a custom module's data. Re-queries every call."""
        if is_builtin(module_id):
            raise BuiltinModuleError(
                f"Module {module_id!r} is a builtin widget; its data is not descriptor-driven"
            )
        try:
            module = await self._store.get_module(tenant_id, module_id)
        except ModuleStoreError as e:
            logger.error("custom_widget_read_failed", tenant=tenant_id, module_id=module_id, error=str(e))
            cached = next((m for m in self.last_known_good(tenant_id) if m.id == module_id), None)
            mode = (
                classify(cached.widget_type, cached.chart_type)
                if cached is not None and cached.is_custom else RenderMode.UNSUPPORTED
            )
            return self._render_error(module_id, cached.revision if cached else None, mode, str(e))
        if not module.is_custom or module.data_config is None:
            raise BuiltinModuleError(f"Module {module_id!r} has no data descriptor")

        mode = classify(module.widget_type, module.chart_type)
        try:
            rows = await self._interpreter.resolve(module.data_config, tenant_id)
        except WidgetQueryError as e:
            logger.warning(
                "custom_widget_query_failed",
                tenant=tenant_id,
                module_id=module_id,
                error=str(e),
            )
            return self._render_error(module_id, module.revision, mode, str(e))

        result = self._interpreter.present(rows, module.widget_type, module.chart_type)
        return RenderData(
            module_id=module_id,
            revision=module.revision or 1,
            render_mode=result.mode,
            rows=rows,
            result=result,
        )

    @staticmethod
    def _render_error(module_id: str, revision: Optional[int], mode: RenderMode, error: str) -> RenderData:
        return RenderData(
            module_id=module_id,
            revision=revision or 1,
            render_mode=mode,
            rows=[],
            result=RenderResult(mode=mode, empty=True),
            error=error,
        )

    async def validate_definition(self, tenant_id: str, definition: CustomWidgetDefinition) -> None:
        """Dry-run a descriptor so a bad one is rejected before it is stored."""
        dry_run = definition.data_config.model_copy(update={"limit": 1})
        await self._interpreter.resolve(dry_run, tenant_id)
        if classify(definition.widget_type, definition.chart_type) is RenderMode.UNSUPPORTED:
            raise WidgetQueryError(
                f"Unsupported chart type {definition.chart_type!r} for a chart widget"
            )

    # ── Custom widget CRUD ──

    async def list_custom_widgets(self, tenant_id: str) -> list[Module]:
        """Custom modules only; fails soft like :meth:`get_modules`."""
        return [m for m in await self.get_modules(tenant_id) if m.is_custom]

    async def create_custom_widget(self, tenant_id: str, definition: CustomWidgetDefinition) -> Module:
        await self.validate_definition(tenant_id, definition)
        try:
            module = await self._store.upsert_custom_widget(tenant_id, definition)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Custom widget creation", e) from e
        await self.get_modules(tenant_id)
        return module

    async def update_custom_widget(
        self, tenant_id: str, custom_widget_id: str, definition: CustomWidgetDefinition
    ) -> Module:
        await self.validate_definition(tenant_id, definition)
        try:
            module = await self._store.upsert_custom_widget(tenant_id, definition, custom_widget_id)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Custom widget update", e) from e
        await self.get_modules(tenant_id)
        return module

    async def delete_custom_widget(self, tenant_id: str, custom_widget_id: str) -> None:
        try:
            await self._store.delete_custom_widget(tenant_id, custom_widget_id)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Custom widget deletion", e) from e
        await self.get_modules(tenant_id)

    # ── Overrides ──

    async def get_override(self, tenant_id: str, module_id: str) -> Optional[WidgetConfigOverride]:
        """Stored override, or None when absent or unreadable (defaults apply)."""
        try:
            return await self._store.get_override(tenant_id, module_id)
        except ModuleStoreError as e:
            logger.error("widget_override_read_failed", tenant=tenant_id, module_id=module_id, error=str(e))
            return None

    async def set_override(
        self, tenant_id: str, module_id: str, override: WidgetConfigOverride
    ) -> WidgetConfigOverride:
        try:
            return await self._store.set_override(tenant_id, module_id, override)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Widget configuration", e) from e

    async def delete_override(self, tenant_id: str, module_id: str) -> None:
        try:
            await self._store.delete_override(tenant_id, module_id)
        except ModuleStoreError as e:
            raise self._write_failed(tenant_id, "Widget configuration reset", e) from e
