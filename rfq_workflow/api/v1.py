"""Centralized v1 API router — all module routers are included here."""

from fastapi import APIRouter

from rfq_workflow.modules.workflow.router import router as workflow_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(workflow_router)
