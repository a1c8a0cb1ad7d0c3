"""Event intake for the dashboard and run status lookup."""

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from ...workflows import Engine
from ..schemas import EventAccepted, EventRequest, RunStatus

router = APIRouter()


def get_engine(request: Request) -> Engine:
    return request.app.state.engine


@router.post("/events", response_model=EventAccepted, status_code=202)
def send_event(
    payload: EventRequest,
    background_tasks: BackgroundTasks,
    engine: Engine = Depends(get_engine),
):
    """Record runs for the event and execute them after the response."""
    run_ids = engine.dispatch(payload.name, payload.data)
    if run_ids:
        background_tasks.add_task(engine.process, run_ids)
    return EventAccepted(name=payload.name, run_ids=run_ids)


@router.get("/runs/{run_id}", response_model=RunStatus)
def get_run(run_id: str, engine: Engine = Depends(get_engine)):
    run = engine.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail="Run not found")
    return run
