"""
Relationships API router.

Exposes the bounded proximity-ranked query, the actor-scoped query and the
small lookup endpoints the visualization client uses.
"""

from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from kgprox.errors import QueryValidationError, RebuildError, SnapshotNotReadyError
from kgprox.models import ActorRelationshipsResult, RelationshipsResult
from kgprox.service import QueryService

from ..service_factory import get_manager, get_service

router = APIRouter(prefix="/api", tags=["Relationships"])


class RebuildResponse(BaseModel):
    """Outcome of a rebuild request."""

    version: int = Field(description="Version of the snapshot now being served")
    facts: int = Field(description="Deduplicated facts in the snapshot")
    entities: int = Field(description="Canonical entities in the graph")
    principal_found: bool = Field(description="Whether the principal is in the graph")


def _query_params(
    limit: Optional[str] = Query(default=None, description="Maximum number of facts (1..max)"),
    clusters: Optional[str] = Query(default=None, description="Comma-separated tag cluster ids"),
    categories: Optional[str] = Query(default=None, description="Comma-separated document categories"),
    yearMin: Optional[str] = Query(default=None, description="Earliest year, inclusive"),  # noqa: N803
    yearMax: Optional[str] = Query(default=None, description="Latest year, inclusive"),  # noqa: N803
    includeUndated: Optional[str] = Query(default=None, description="Whether undated facts pass a date filter"),  # noqa: N803
    keywords: Optional[str] = Query(default=None, description="Comma-separated keywords (any may match)"),
    maxHops: Optional[str] = Query(default=None, description="Maximum relevance distance, or 'any'"),  # noqa: N803
) -> dict[str, Optional[str]]:
    return {
        "limit": limit,
        "clusters": clusters,
        "categories": categories,
        "yearMin": yearMin,
        "yearMax": yearMax,
        "includeUndated": includeUndated,
        "keywords": keywords,
        "maxHops": maxHops,
    }


def _bad_request(e: QueryValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail={"error": str(e), "field": e.field, "reason": e.reason})


def _not_ready() -> HTTPException:
    return HTTPException(status_code=503, detail="Snapshot not built yet")


@router.get(
    "/relationships",
    response_model=RelationshipsResult,
    response_model_by_alias=True,
    summary="Facts ranked by proximity to the principal",
    description="""
Return at most `limit` facts, closest to the principal entity first.

`countBeforeFilter` is the number of facts considered, `countBeforeTruncation`
the number that passed the filters. Their difference from the returned list
tells "nothing matched" apart from "too much matched".
""",
)
async def get_relationships(
    params: dict = Depends(_query_params),
    service: QueryService = Depends(get_service),
) -> RelationshipsResult:
    try:
        return service.relationships(params)
    except QueryValidationError as e:
        raise _bad_request(e) from e
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get(
    "/actor/{name}/relationships",
    response_model=ActorRelationshipsResult,
    response_model_by_alias=True,
    summary="All facts for an entity and its aliases",
)
async def get_actor_relationships(
    name: str,
    params: dict = Depends(_query_params),
    service: QueryService = Depends(get_service),
) -> ActorRelationshipsResult:
    try:
        return service.actor_relationships(name, params)
    except QueryValidationError as e:
        raise _bad_request(e) from e
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get("/actors", summary="Most connected canonical actors")
async def get_actors(
    limit: int = Query(default=100, ge=1, le=1000),
    service: QueryService = Depends(get_service),
) -> list[dict[str, Any]]:
    try:
        return service.top_actors(limit)
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get("/search", summary="Search canonical actors by name")
async def search_actors(
    q: Optional[str] = Query(default=None, description="Substring to look for (case-insensitive)"),
    limit: int = Query(default=20, ge=1, le=100),
    service: QueryService = Depends(get_service),
) -> list[dict[str, Any]]:
    try:
        return service.search_actors(q, limit)
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get("/entity/{name}/distance", summary="Hop distance of an entity from the principal")
async def get_entity_distance(
    name: str,
    service: QueryService = Depends(get_service),
) -> dict[str, Any]:
    try:
        return service.entity_distance(name)
    except QueryValidationError as e:
        raise _bad_request(e) from e
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get("/stats", summary="Corpus totals")
async def get_stats(service: QueryService = Depends(get_service)) -> dict[str, Any]:
    try:
        return service.stats()
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.get("/tag-clusters", summary="Tag cluster metadata")
async def get_tag_clusters(service: QueryService = Depends(get_service)) -> list[dict[str, Any]]:
    try:
        return service.tag_clusters()
    except SnapshotNotReadyError as e:
        raise _not_ready() from e


@router.post("/rebuild", response_model=RebuildResponse, summary="Rebuild the snapshot")
async def post_rebuild() -> RebuildResponse:
    """Rebuild on a worker thread; concurrent requests share one rebuild."""
    manager = get_manager()
    try:
        snapshot = await run_in_threadpool(manager.rebuild)
    except RebuildError as e:
        raise HTTPException(status_code=409, detail=f"Rebuild failed, previous snapshot still active: {e}") from e
    return RebuildResponse(
        version=snapshot.version,
        facts=len(snapshot.facts),
        entities=snapshot.graph.node_count,
        principal_found=snapshot.principal_found,
    )
