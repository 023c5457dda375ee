from fastapi import APIRouter

from lending_os.api.v1.routers import allocations, commitments, funds, health, lenders, loans

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(lenders.router)
api_router.include_router(loans.router)
api_router.include_router(funds.router)
api_router.include_router(commitments.router)
api_router.include_router(allocations.router)

__all__ = ["api_router"]
