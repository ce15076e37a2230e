from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from dbcomply.api.deps import get_service
from dbcomply.core.validation import ComplianceService

router = APIRouter(tags=["meta"])


@router.get("/health", summary="Liveness check")
def health() -> Dict[str, Any]:
    return {
        "status": "ok",
        "service": "dbcomply",
        "at": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/api/environments", summary="Configured environments")
def environments(service: ComplianceService = Depends(get_service)) -> List[Dict[str, Any]]:
    return [env.to_dict() for env in service.environments()]
