"""Liveness endpoint."""
from fastapi import APIRouter

router = APIRouter()


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """Liveness check for load balancers and Twilio console tests."""
    return {"status": "healthy", "service": "phone-relay"}
