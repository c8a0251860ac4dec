from fastapi import APIRouter

from default_registry import serializers, util

router = APIRouter()


@router.get(
    "/health",
    tags=[util.Tags.meta],
)
async def health() -> serializers.HealthResponse:
    return serializers.HealthResponse()
