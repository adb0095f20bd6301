"""API router for v1 endpoints."""

from fastapi import APIRouter

from cardy.api import artifacts, chat, context, documents, jira, projects, search

router = APIRouter()

router.include_router(projects.router, prefix="/projects", tags=["projects"])

# Upload, listing and processing share the /projects and /documents prefixes
router.include_router(documents.router, tags=["documents"])

router.include_router(search.router, tags=["search"])

router.include_router(chat.router, tags=["chat"])

router.include_router(artifacts.router, prefix="/artifacts", tags=["artifacts"])

router.include_router(context.router, prefix="/context", tags=["context"])

router.include_router(jira.router, prefix="/jira", tags=["jira"])
