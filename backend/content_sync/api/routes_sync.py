"""Sync session transport: start a named step and stream its output."""

from __future__ import annotations

from typing import Iterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse, StreamingResponse

from content_sync.api.dependencies import get_runner
from content_sync.core.errors import RunnerBusyError, UnknownStepError
from content_sync.models.dto import CancelResponse, SyncBusyResponse, SyncRequest
from content_sync.sync.runner import SyncRunner, SyncSession

router = APIRouter()


@router.post(
    "/sync",
    summary="Run a sync command and stream its output",
    responses={409: {"model": SyncBusyResponse}},
)
async def run_sync(request: SyncRequest, runner: SyncRunner = Depends(get_runner)):
    try:
        session = runner.start(request.command)
    except UnknownStepError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except RunnerBusyError as exc:
        body = SyncBusyResponse(error=str(exc), active_step=exc.active_step)
        return JSONResponse(status_code=409, content=body.model_dump())
    return StreamingResponse(
        _stream(session),
        media_type="text/plain; charset=utf-8",
        headers={"X-Sync-Run-Id": session.run_id, "Cache-Control": "no-cache"},
    )


@router.post("/sync/cancel", response_model=CancelResponse, summary="Cancel the running sync command")
async def cancel_sync(runner: SyncRunner = Depends(get_runner)) -> CancelResponse:
    return CancelResponse(cancelled=runner.cancel())


@router.get("/sync/commands", response_model=list[str], summary="List available sync commands")
async def list_commands(runner: SyncRunner = Depends(get_runner)) -> list[str]:
    return runner.step_names


def _stream(session: SyncSession) -> Iterator[str]:
    for line in session.lines():
        yield f"{line}\n"


__all__ = ["router"]
