"""Dashboard module routes — list, reorder, toggle, custom data and overrides."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ...dependencies import get_current_tenant, get_dashboard_service
from ...widgets.contracts import Module, RenderData, WidgetConfigOverride
from ...widgets.reconcile import VIEWS, get_view

router = APIRouter(prefix="/modules", tags=["modules"])


class ReorderRequest(BaseModel):
    visible_ids: list[str]
    from_index: int = Field(ge=0)
    to_index: int = Field(ge=0)
    view: str = "all"


class ModuleToggleRequest(BaseModel):
    enabled: bool


@router.get("/", response_model=list[Module])
async def list_modules(
    view: Optional[str] = Query(default=None, description=f"One of {sorted(VIEWS)}"),
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """All modules in display order, or only those a view shows."""
    modules = await service.get_modules(tenant_id)
    if view is None:
        return modules
    return get_view(view).visible(modules)


@router.post("/reorder", response_model=list[Module])
async def reorder_modules(
    body: ReorderRequest,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Apply one drag within a view; returns the full reconciled list."""
    return await service.on_reorder(
        tenant_id,
        body.visible_ids,
        body.from_index,
        body.to_index,
        get_view(body.view),
    )


@router.post("/{module_id}/toggle", response_model=Module)
async def toggle_module(
    module_id: str,
    body: ModuleToggleRequest,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Enable or disable a module."""
    return await service.on_toggle(tenant_id, module_id, body.enabled)


@router.get("/{module_id}/data", response_model=RenderData)
async def get_module_data(
    module_id: str,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Resolve a custom module's descriptor. Descriptor errors come back in ``error``."""
    return await service.render_data_for(tenant_id, module_id)


@router.get("/{module_id}/override", response_model=Optional[WidgetConfigOverride])
async def get_module_override(
    module_id: str,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    return await service.get_override(tenant_id, module_id)


@router.put("/{module_id}/override", response_model=WidgetConfigOverride)
async def set_module_override(
    module_id: str,
    body: WidgetConfigOverride,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    return await service.set_override(tenant_id, module_id, body)


@router.delete("/{module_id}/override", status_code=204)
async def delete_module_override(
    module_id: str,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Reset a module's configuration to defaults."""
    await service.delete_override(tenant_id, module_id)
