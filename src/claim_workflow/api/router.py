from fastapi import APIRouter

from claim_workflow.api.endpoints import checker, claimant, common, documents, reviewer

api_router = APIRouter()

api_router.include_router(claimant.router)
api_router.include_router(reviewer.router)
api_router.include_router(checker.router)
api_router.include_router(documents.router)
api_router.include_router(common.router)

__all__ = ["api_router"]
