"""
Thread history endpoints.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Path, Query

from api.dependencies import Threads
from api.middleware.auth import CurrentUser
from api.middleware.exception_handlers import ThreadNotFoundError
from models.schemas.base import PaginationMeta, SuccessResponse
from models.schemas.threads import RenameThreadRequest, ThreadDetail, ThreadListResponse, ThreadSummary

router = APIRouter()

ThreadIdPath = Annotated[
    str,
    Path(..., description="Thread identifier", examples=["thr_1a2b3c4d5e6f7a8b"], min_length=1, max_length=100),
]


@router.get("", response_model=ThreadListResponse, summary="List threads")
async def list_threads(
    user: CurrentUser,
    threads: Threads,
    offset: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int, Query(ge=1, le=100)] = 50,
) -> ThreadListResponse:
    """Threads of the current user, most recently updated first."""
    found, total = await threads.list(user.id, limit=limit, offset=offset)
    return ThreadListResponse(
        threads=[ThreadSummary.from_thread(t) for t in found],
        pagination=PaginationMeta.build(total, offset, limit),
    )


@router.get("/{thread_id}", response_model=ThreadDetail, summary="Get a thread with its messages")
async def get_thread(user: CurrentUser, threads: Threads, thread_id: ThreadIdPath) -> ThreadDetail:
    thread = await threads.get(user.id, thread_id)
    if thread is None:
        raise ThreadNotFoundError(thread_id)
    return ThreadDetail.from_thread(thread)


@router.patch("/{thread_id}", response_model=ThreadSummary, summary="Rename a thread")
async def rename_thread(
    user: CurrentUser,
    threads: Threads,
    thread_id: ThreadIdPath,
    body: RenameThreadRequest,
) -> ThreadSummary:
    thread = await threads.rename(user.id, thread_id, body.name)
    if thread is None:
        raise ThreadNotFoundError(thread_id)
    return ThreadSummary.from_thread(thread)


@router.delete("/{thread_id}", response_model=SuccessResponse, summary="Delete a thread")
async def delete_thread(user: CurrentUser, threads: Threads, thread_id: ThreadIdPath) -> SuccessResponse:
    if not await threads.delete(user.id, thread_id):
        raise ThreadNotFoundError(thread_id)
    return SuccessResponse(message="Thread deleted")
