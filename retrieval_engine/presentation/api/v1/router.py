"""V1 API router — aggregates all v1 endpoint routers."""

from fastapi import APIRouter

from retrieval_engine.presentation.api.v1.documents_controller import router as documents_router
from retrieval_engine.presentation.api.v1.endpoints.health import router as health_router
from retrieval_engine.presentation.api.v1.jobs_controller import router as jobs_router

router = APIRouter(prefix="/v1")
router.include_router(health_router)
router.include_router(documents_router)
router.include_router(jobs_router)
