"""FastAPI dependencies for enrollments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import EnrollmentService


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state."""
    service = getattr(request.app.state, "enrollment_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Enrollment service not available",
        )
    return service


EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]
