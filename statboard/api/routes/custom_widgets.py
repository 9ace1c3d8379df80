"""Endpoints the widget-authoring flow calls."""

from fastapi import APIRouter, Depends

from ...dependencies import get_current_tenant, get_dashboard_service
from ...widgets.contracts import CustomWidgetDefinition, Module

router = APIRouter(prefix="/custom-widgets", tags=["custom-widgets"])


@router.get("/", response_model=list[Module])
async def list_custom_widgets(
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    return await service.list_custom_widgets(tenant_id)


@router.post("/", response_model=Module, status_code=201)
async def create_custom_widget(
    body: CustomWidgetDefinition,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Store a new custom widget after a dry run of its descriptor."""
    return await service.create_custom_widget(tenant_id, body)


@router.put("/{custom_widget_id}", response_model=Module)
async def update_custom_widget(
    custom_widget_id: str,
    body: CustomWidgetDefinition,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    return await service.update_custom_widget(tenant_id, custom_widget_id, body)


@router.delete("/{custom_widget_id}", status_code=204)
async def delete_custom_widget(
    custom_widget_id: str,
    tenant_id: str = Depends(get_current_tenant),
    service=Depends(get_dashboard_service),
):
    """Delete a custom widget, its module and its configuration override."""
    await service.delete_custom_widget(tenant_id, custom_widget_id)
