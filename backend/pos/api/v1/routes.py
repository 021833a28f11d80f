from fastapi import APIRouter

from pos.api.v1 import coupon_selection
from pos.api.v1 import coupons
from pos.core.config import settings

api_router = APIRouter()

api_router.include_router(coupons.router)
api_router.include_router(coupon_selection.router)


@api_router.get("/health", tags=["health"])
def healthcheck() -> dict[str, str]:
    return {"status": "ok", "version": settings.app_version}
