from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from dbcomply.api.deps import get_service
from dbcomply.api.schemas import DiscoveryAccepted, ShareCountsRequest
from dbcomply.core.validation import ComplianceService

router = APIRouter(prefix="/api/delta-sharing", tags=["delta-sharing"])
logger = logging.getLogger("dbcomply.api.sharing")


@router.get("/loading-status", summary="Discovery progress per environment")
def loading_status(service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return {env_id: p.to_dict() for env_id, p in service.loading_status().items()}


@router.post("/discover", status_code=202, response_model=DiscoveryAccepted)
def discover(
    env: Optional[str] = Query(None, description="Environment id; all when omitted"),
    service: ComplianceService = Depends(get_service),
) -> DiscoveryAccepted:
    """
    Start discovery in the background (or join the running one) and return
    immediately. Poll /loading-status for progress.
    """
    started = service.start_discovery(env)
    logger.info("Discovery requested for %s", ", ".join(started) or "no environments")
    return DiscoveryAccepted(environments=list(started))


@router.get("/tables", summary="All discovered assets")
def tables(
    wait: bool = Query(False, description="Block until discovery completes"),
    service: ComplianceService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return [a.to_dict() for a in service.assets(wait=wait)]


@router.get("/tables/{table_id}", summary="Remote details of one table")
def table(table_id: str, service: ComplianceService = Depends(get_service)) -> Dict[str, Any]:
    return service.table(table_id)


@router.get("/tables/{env_id}/{share_name}", summary="Assets of one share")
def share_tables(
    env_id: str,
    share_name: str,
    service: ComplianceService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return [a.to_dict() for a in service.share_assets(env_id, share_name)]


@router.get("/shares", summary="Provided and consumed shares with compliance")
def shares(
    env: Optional[str] = Query(None, description="Environment id; all when omitted"),
    wait: bool = Query(False, description="Block until discovery completes"),
    service: ComplianceService = Depends(get_service),
) -> List[Dict[str, Any]]:
    return service.shares(env, wait=wait)


@router.post("/shares/asset-counts", summary="Object counts of specific shares")
def share_asset_counts(
    body: ShareCountsRequest,
    service: ComplianceService = Depends(get_service),
) -> Dict[str, int]:
    if body.share_names is None:
        raise ValueError("shareNames array is required")
    return service.share_asset_counts(body.env_id, body.share_names)
