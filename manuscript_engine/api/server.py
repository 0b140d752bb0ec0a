"""
Manuscript Engine: HTTP API Server
==================================

Thin FastAPI surface over one VersionGraph.

Endpoints:
- GET  /api/v1/branches                       -> branches + current branch
- POST /api/v1/branches                       -> create_branch
- POST /api/v1/branches/{id}/switch           -> switch_branch
- GET  /api/v1/branches/{id}/merge-preview    -> preview_merge
- GET  /api/v1/versions                       -> version summaries
- POST /api/v1/versions                       -> create_version
- GET  /api/v1/versions/{id}[/issues|/pace]   -> version and its analysis
- POST /api/v1/versions/{id}/rollback         -> rollback
- POST /api/v1/preview                        -> preview_reorder
- GET  /api/v1/diff                           -> diff
- GET  /api/v1/suggest-order                  -> suggest_order

Usage:
    MANUSCRIPT_ENGINE_CHAPTERS=chapters.json uvicorn manuscript_engine.api.server:app
"""

from contextlib import asynccontextmanager
from typing import List, Optional
import logging
import os

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from ..config import CHAPTERS_FILE_ENV, EngineConfig, StorageConfig
from ..contracts.base import EngineError, ErrorCode
from ..contracts.serialization import load_chapter_catalog, to_jsonable
from ..graph import VersionGraph
from ..observability import init_logging
from ..storage import create_backend
from .mapper import map_branch, map_commit, map_version, map_version_summary

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    ErrorCode.INVALID_ORDER: 422,
    ErrorCode.UNKNOWN_VERSION: 404,
    ErrorCode.UNKNOWN_BRANCH: 404,
    ErrorCode.UNKNOWN_CHAPTER: 404,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.DEPENDENCY_CYCLE: 409,
    ErrorCode.PERSIST_FAILED: 503,
}


# =============================================================================
# REQUEST MODELS
# =============================================================================

class OrderRequest(BaseModel):
    order: List[str]


class CreateVersionRequest(BaseModel):
    order: List[str]
    name: str
    description: str = ""


class CreateBranchRequest(BaseModel):
    name: str
    description: str = ""
    purpose: str = "experiment"


# =============================================================================
# INFRASTRUCTURE SETUP
# =============================================================================

def build_graph_from_env() -> VersionGraph:
    """Load the chapter catalog and restore the graph from configured storage."""
    chapters_path = os.environ.get(CHAPTERS_FILE_ENV)
    if not chapters_path:
        raise RuntimeError(f"{CHAPTERS_FILE_ENV} must point at a chapter catalog")
    chapters = load_chapter_catalog(chapters_path)
    storage = StorageConfig.from_env()
    config = EngineConfig(storage=storage)
    logger.info(
        "Loading %d chapter(s) from %s (%s storage)",
        len(chapters), chapters_path, storage.backend_type
    )
    return VersionGraph.restore(chapters.values(), create_backend(storage), config=config)


def _engine_error(e: EngineError) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_CODE.get(e.error.code, 400),
        detail={"code": e.error.code.name, "message": e.error.message},
    )


def _graph(request: Request) -> VersionGraph:
    graph = request.app.state.graph
    if graph is None:
        raise HTTPException(status_code=503, detail="Version graph not initialized")
    return graph


def create_app(graph: Optional[VersionGraph] = None) -> FastAPI:
    """Build the API around an injected graph, or one loaded from the environment."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init_logging()
        if app.state.graph is None:
            app.state.graph = build_graph_from_env()
        logger.info("Version graph ready on branch %s", app.state.graph.current_branch.name)
        yield
        logger.info("Shutting down manuscript engine API")

    app = FastAPI(
        title="Manuscript Engine API",
        version="0.1.0",
        description="Chapter-order version control and consistency analysis",
        lifespan=lifespan,
    )
    app.state.graph = graph

    # =========================================================================
    # ENDPOINTS
    # =========================================================================

    @app.get("/health")
    async def health_check(request: Request):
        g = _graph(request)
        return {
            "status": "online",
            "current_branch": g.current_branch.branch_id,
            "versions": len(g.versions()),
        }

    @app.get("/api/v1/branches")
    async def list_branches(request: Request):
        g = _graph(request)
        return {
            "current_branch_id": g.current_branch.branch_id,
            "branches": [map_branch(b) for b in g.branches()],
        }

    @app.post("/api/v1/branches", status_code=201)
    async def create_branch(body: CreateBranchRequest, request: Request):
        try:
            branch = _graph(request).create_branch(body.name, body.description, body.purpose)
        except EngineError as e:
            raise _engine_error(e)
        return map_branch(branch)

    @app.post("/api/v1/branches/{branch_id}/switch")
    async def switch_branch(branch_id: str, request: Request):
        try:
            branch = _graph(request).switch_branch(branch_id)
        except EngineError as e:
            raise _engine_error(e)
        return map_branch(branch)

    @app.get("/api/v1/branches/{branch_id}/merge-preview")
    async def merge_preview(branch_id: str, request: Request):
        try:
            preview = _graph(request).preview_merge(branch_id)
        except EngineError as e:
            raise _engine_error(e)
        return to_jsonable(preview)

    @app.get("/api/v1/versions")
    async def list_versions(request: Request):
        g = _graph(request)
        current = g.current_version
        return {
            "current_version_id": current.version_id if current else None,
            "versions": [map_version_summary(v) for v in g.versions()],
        }

    @app.post("/api/v1/versions", status_code=201)
    async def create_version(body: CreateVersionRequest, request: Request):
        try:
            commit = _graph(request).create_version(body.order, body.name, body.description)
        except EngineError as e:
            raise _engine_error(e)
        return map_commit(commit)

    @app.get("/api/v1/versions/{version_id}")
    async def get_version(version_id: str, request: Request):
        try:
            version = _graph(request).get_version(version_id)
        except EngineError as e:
            raise _engine_error(e)
        return map_version(version)

    @app.get("/api/v1/versions/{version_id}/issues")
    async def get_issues(version_id: str, request: Request):
        try:
            issues = _graph(request).get_consistency_issues(version_id)
        except EngineError as e:
            raise _engine_error(e)
        return {"version_id": version_id, "issues": to_jsonable(issues)}

    @app.get("/api/v1/versions/{version_id}/pace")
    async def get_pace(version_id: str, request: Request):
        try:
            pace = _graph(request).get_pace_analysis(version_id)
        except EngineError as e:
            raise _engine_error(e)
        return to_jsonable(pace)

    @app.post("/api/v1/versions/{version_id}/rollback", status_code=201)
    async def rollback(version_id: str, request: Request):
        try:
            commit = _graph(request).rollback(version_id)
        except EngineError as e:
            raise _engine_error(e)
        return map_commit(commit)

    @app.post("/api/v1/preview")
    async def preview_reorder(body: OrderRequest, request: Request):
        try:
            diff = _graph(request).preview_reorder(body.order)
        except EngineError as e:
            raise _engine_error(e)
        return to_jsonable(diff)

    @app.get("/api/v1/diff")
    async def diff_versions(
        request: Request,
        from_id: str = Query(..., description="Source version"),
        to_id: str = Query(..., description="Target version"),
    ):
        try:
            diff = _graph(request).diff(from_id, to_id)
        except EngineError as e:
            raise _engine_error(e)
        return to_jsonable(diff)

    @app.get("/api/v1/suggest-order")
    async def suggest_order(request: Request):
        try:
            order = _graph(request).suggest_order()
        except EngineError as e:
            raise _engine_error(e)
        return {"order": list(order)}

    return app


app = create_app()
