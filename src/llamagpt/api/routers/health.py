"""Health check router

Provides health check endpoints for monitoring and service discovery.

Endpoints:
- GET /health: Service health status and metadata
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from ...config import get_settings
from ...service import ConversationService
from ..contracts import HealthResponse
from ..deps import get_conversation_service

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: Annotated[ConversationService, Depends(get_conversation_service)],
) -> HealthResponse:
    """API health check"""
    return HealthResponse(
        status="healthy",
        service=get_settings().app_name,
        cache_entries=len(service.cache),
    )
