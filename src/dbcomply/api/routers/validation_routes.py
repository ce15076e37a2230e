from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends

from dbcomply.api.deps import get_service
from dbcomply.api.schemas import ClearCacheResult
from dbcomply.core.validation import ComplianceService

router = APIRouter(prefix="/api/validation", tags=["validation"])


@router.get("/overview", summary="Overall and per-environment compliance")
def overview(service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.overview()


@router.get("/catalog-compliance", summary="Compliance per catalog")
def catalog_compliance(service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.catalog_compliance()


@router.get("/violations", summary="Non-compliant assets")
def violations(service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.violations()


@router.post("/validate-all", summary="Validate every discovered asset")
def validate_all(service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.validate_all()


@router.post("/validate/{asset_id}", summary="Validate one asset")
def validate(asset_id: str, service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.validate(asset_id).to_dict()


@router.post(
    "/clear-cache",
    response_model=ClearCacheResult,
    response_model_by_alias=True,
    summary="Clear validation and catalog caches",
)
def clear_cache(service: ComplianceService = Depends(get_service)) -> ClearCacheResult:
    return ClearCacheResult(entries_removed=service.clear_cache())
