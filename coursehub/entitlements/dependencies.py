"""FastAPI dependencies for entitlement checks."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import EntitlementService


async def get_entitlement_service(request: Request) -> EntitlementService:
    """Get entitlement service from app state."""
    service = getattr(request.app.state, "entitlement_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Entitlement service not available",
        )
    return service


EntitlementServiceDep = Annotated[EntitlementService, Depends(get_entitlement_service)]
