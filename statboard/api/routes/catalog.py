"""Builtin widget catalog route."""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from ...dependencies import get_current_tenant
from ...widgets.catalog import CATALOG

router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.get("/")
async def get_catalog(_tenant_id: str = Depends(get_current_tenant)):
    """Every builtin widget descriptor in default position order."""
    return [asdict(d) for d in CATALOG]
