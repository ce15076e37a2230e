from __future__ import annotations

from fastapi import Request

from dbcomply.core.validation import ComplianceService


def get_service(request: Request) -> ComplianceService:
    return request.app.state.service
