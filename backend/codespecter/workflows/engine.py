"""Durable step-based workflow engine.

A workflow is a plain function decorated with :func:`workflow`. Its body
calls ``ctx.step.run(name, fn, ...)`` for every side effect; the JSON
result of each named step is committed to the ``workflow_steps`` table
before the body continues. When a run is retried or resumed after a
crash, the body executes again from the top and completed steps return
their stored result instead of running twice.

Retry policy per run:

- ``NonRetriableError``: the run fails immediately.
- ``RestartRunError``: memoized steps are discarded, then retried.
- anything else: retried with exponential backoff, reusing memoized steps.
"""

from __future__ import annotations

import json
import logging
import threading
import time
import uuid
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError

from ..config import workflow_settings
from ..db.models import WorkflowRun, WorkflowStep
from ..errors import NonRetriableError, RestartRunError
from .leases import LeaseManager

logger = logging.getLogger(__name__)

RUNNING = "running"
COMPLETED = "completed"
FAILED = "failed"


@dataclass
class Event:
    name: str
    data: Any


@dataclass
class WorkflowFunction:
    id: str
    event: str
    handler: Callable[["RunContext"], Any]
    retries: int = 0
    concurrency: Optional[int] = None
    lease_key: Optional[Callable[[Any], Optional[str]]] = None

    def __call__(self, ctx: "RunContext") -> Any:
        return self.handler(ctx)


def workflow(
    id: str,
    event: str,
    retries: int = 0,
    concurrency: Optional[int] = None,
    lease_key: Optional[Callable[[Any], Optional[str]]] = None,
) -> Callable[[Callable], WorkflowFunction]:
    """Declare a workflow function triggered by ``event``.

    ``lease_key`` maps the event data to a lease name (or None); runs
    with the same key never execute at the same time.
    """

    def decorator(fn: Callable) -> WorkflowFunction:
        return WorkflowFunction(
            id=id,
            event=event,
            handler=fn,
            retries=retries,
            concurrency=concurrency,
            lease_key=lease_key,
        )

    return decorator


def _json_roundtrip(value: Any) -> Any:
    """What a replay would return; also rejects non-serializable step output."""
    return json.loads(json.dumps(value))


class Step:
    """Memoizing step runner bound to one execution of a run."""

    def __init__(
        self,
        run_id: str,
        session_factory,
        sleeper: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        on_complete: Optional[Callable[[], Any]] = None,
    ):
        self.run_id = run_id
        self.session_factory = session_factory
        self.sleeper = sleeper
        self.clock = clock
        self.on_complete = on_complete
        self._seen: Set[str] = set()

    def _claim(self, name: str) -> None:
        if name in self._seen:
            raise ValueError(f"Duplicate step name '{name}' in run {self.run_id}")
        self._seen.add(name)

    def _load(self, name: str) -> Tuple[bool, Any]:
        with self.session_factory() as db:
            row = (
                db.query(WorkflowStep)
                .filter(WorkflowStep.run_id == self.run_id, WorkflowStep.name == name)
                .first()
            )
            if row is None:
                return False, None
            return True, json.loads(row.output)

    def _save(self, name: str, value: Any) -> None:
        with self.session_factory() as db:
            db.add(WorkflowStep(run_id=self.run_id, name=name, output=json.dumps(value)))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                raise RuntimeError(f"Step '{name}' of run {self.run_id} was recorded concurrently")

    def run(self, name: str, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Execute ``fn`` once per run; later executions return the stored result."""
        self._claim(name)
        found, value = self._load(name)
        if found:
            logger.debug(f"Replaying step {name} of run {self.run_id}")
            return value

        logger.debug(f"Running step {name} of run {self.run_id}")
        value = _json_roundtrip(fn(*args, **kwargs))
        self._save(name, value)
        if self.on_complete:
            self.on_complete()
        return value

    def sleep(self, name: str, seconds: float) -> None:
        """Durable sleep: the wake-up time survives retries and restarts."""
        self._claim(name)
        found, value = self._load(name)
        if found:
            wake_at = float(value["wake_at"])
        else:
            wake_at = self.clock() + seconds
            self._save(name, {"wake_at": wake_at})
        remaining = wake_at - self.clock()
        if remaining > 0:
            self.sleeper(remaining)


@dataclass
class RunContext:
    run_id: str
    event: Event
    step: Step
    services: Any
    attempt: int = 0
    function_id: str = ""
    extra: Dict[str, Any] = field(default_factory=dict)


class Engine:
    """Creates, executes and resumes workflow runs."""

    def __init__(
        self,
        session_factory,
        services: Any = None,
        functions: Iterable[WorkflowFunction] = (),
        cfg: Optional[Dict] = None,
        sleeper: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self.services = services
        if cfg is None:
            cfg = getattr(services, "cfg", None) or {}
        self.cfg = cfg
        self.sleeper = sleeper
        self.clock = clock

        workflows_cfg = cfg.get("workflows", {})
        self.retry_backoff_seconds = float(workflows_cfg.get("retry_backoff_seconds", 1.0))
        self.leases = LeaseManager(
            session_factory,
            ttl_seconds=float(workflows_cfg.get("lease_ttl_seconds", 900)),
            wait_seconds=float(workflows_cfg.get("lease_wait_seconds", 600)),
            poll_seconds=float(workflows_cfg.get("lease_poll_seconds", 2)),
            clock=clock,
            sleeper=sleeper,
        )

        self._functions: Dict[str, WorkflowFunction] = {}
        self._semaphores: Dict[str, threading.BoundedSemaphore] = {}
        for fn in functions:
            self.register(fn)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, fn: WorkflowFunction) -> None:
        self._functions[fn.id] = fn
        concurrency = workflow_settings(self.cfg, fn.id).get("concurrency", fn.concurrency)
        if concurrency:
            self._semaphores[fn.id] = threading.BoundedSemaphore(int(concurrency))

    def functions_for(self, event_name: str) -> List[WorkflowFunction]:
        return [fn for fn in self._functions.values() if fn.event == event_name]

    def _retries(self, fn: WorkflowFunction) -> int:
        return int(workflow_settings(self.cfg, fn.id).get("retries", fn.retries))

    # ------------------------------------------------------------------
    # Run records
    # ------------------------------------------------------------------

    def _create_run(self, fn: WorkflowFunction, event_name: str, data: Any, run_id: Optional[str] = None) -> str:
        run_id = run_id or str(uuid.uuid4())
        with self.session_factory() as db:
            db.add(
                WorkflowRun(
                    id=run_id,
                    function_id=fn.id,
                    event_name=event_name,
                    event_data=json.dumps(data),
                    status=RUNNING,
                    attempts=0,
                )
            )
            db.commit()
        return run_id

    def _begin_attempt(self, run_id: str) -> int:
        with self.session_factory() as db:
            run = db.get(WorkflowRun, run_id)
            attempt = run.attempts or 0
            run.attempts = attempt + 1
            db.commit()
        return attempt

    def _clear_steps(self, run_id: str) -> None:
        with self.session_factory() as db:
            db.query(WorkflowStep).filter(WorkflowStep.run_id == run_id).delete(synchronize_session=False)
            db.commit()

    def _finish(self, run_id: str, status: str, result: Any = None, error: Optional[str] = None) -> None:
        self._clear_steps(run_id)
        with self.session_factory() as db:
            run = db.get(WorkflowRun, run_id)
            run.status = status
            run.result = json.dumps(result) if status == COMPLETED else None
            run.error = error
            db.commit()

    def get_run(self, run_id: str) -> Optional[Dict[str, Any]]:
        with self.session_factory() as db:
            run = db.get(WorkflowRun, run_id)
            if run is None:
                return None
            return {
                "id": run.id,
                "function_id": run.function_id,
                "event_name": run.event_name,
                "status": run.status,
                "attempts": run.attempts,
                "result": json.loads(run.result) if run.result else None,
                "error": run.error,
            }

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _call(self, fn: WorkflowFunction, run_id: str, event: Event, attempt: int,
              on_step: Optional[Callable[[], Any]]) -> Any:
        step = Step(run_id, self.session_factory, sleeper=self.sleeper, clock=self.clock, on_complete=on_step)
        ctx = RunContext(
            run_id=run_id,
            event=event,
            step=step,
            services=self.services,
            attempt=attempt,
            function_id=fn.id,
        )
        return _json_roundtrip(fn(ctx))

    def _execute(self, fn: WorkflowFunction, run_id: str, event: Event) -> Any:
        retries = self._retries(fn)
        try:
            lease_key = fn.lease_key(event.data) if fn.lease_key else None
        except (KeyError, TypeError) as e:
            error = NonRetriableError(f"Event data of {fn.id} has no lease key: {e!r}")
            logger.error(f"Run {run_id} of {fn.id} failed permanently: {error}")
            self._finish(run_id, FAILED, error=f"{type(error).__name__}: {error}")
            raise error from e
        semaphore = self._semaphores.get(fn.id)

        with semaphore or nullcontext():
            while True:
                attempt = self._begin_attempt(run_id)
                try:
                    if lease_key:
                        with self.leases.hold(lease_key, run_id):
                            result = self._call(
                                fn, run_id, event, attempt,
                                on_step=lambda: self.leases.renew(lease_key, run_id),
                            )
                    else:
                        result = self._call(fn, run_id, event, attempt, on_step=None)
                except NonRetriableError as e:
                    logger.error(f"Run {run_id} of {fn.id} failed permanently: {e}")
                    self._finish(run_id, FAILED, error=f"{type(e).__name__}: {e}")
                    raise
                except Exception as e:
                    if attempt >= retries:
                        logger.error(f"Run {run_id} of {fn.id} failed after {attempt + 1} attempts: {e}")
                        self._finish(run_id, FAILED, error=f"{type(e).__name__}: {e}")
                        raise
                    if isinstance(e, RestartRunError):
                        self._clear_steps(run_id)
                    delay = self.retry_backoff_seconds * (2 ** attempt)
                    logger.warning(
                        f"Run {run_id} of {fn.id} failed on attempt {attempt + 1}/{retries + 1}: {e}. "
                        f"Retrying in {delay:.1f}s"
                    )
                    self.sleeper(delay)
                    continue

                self._finish(run_id, COMPLETED, result=result)
                logger.info(f"Run {run_id} of {fn.id} completed")
                return result

    def invoke(self, fn: WorkflowFunction, data: Any, run_id: Optional[str] = None) -> Any:
        """Run one workflow to completion and return its result; failures raise."""
        if fn.id not in self._functions:
            self.register(fn)
        run_id = self._create_run(fn, fn.event, data, run_id=run_id)
        return self._execute(fn, run_id, Event(fn.event, data))

    def dispatch(self, name: str, data: Any) -> List[str]:
        """Record one run per matching workflow (per element for list payloads).

        The runs are not executed; pass the ids to :meth:`process`.
        """
        payloads = data if isinstance(data, list) else [data]
        functions = self.functions_for(name)
        if not functions:
            logger.warning(f"No workflow registered for event {name}")
        return [
            self._create_run(fn, name, payload)
            for fn in functions
            for payload in payloads
        ]

    def resume(self, run_id: str) -> Any:
        """Continue a run left ``running``; completed steps are not repeated."""
        with self.session_factory() as db:
            run = db.get(WorkflowRun, run_id)
            if run is None:
                raise KeyError(f"Unknown run {run_id}")
            if run.status != RUNNING:
                raise ValueError(f"Run {run_id} is already {run.status}")
            function_id, event_name, data = run.function_id, run.event_name, json.loads(run.event_data)
        fn = self._functions.get(function_id)
        if fn is None:
            raise KeyError(f"No workflow registered with id {function_id}")
        return self._execute(fn, run_id, Event(event_name, data))

    def process(self, run_ids: Iterable[str]) -> None:
        """Execute runs, logging instead of raising their failures."""
        for run_id in run_ids:
            try:
                self.resume(run_id)
            except Exception as e:
                logger.error(f"Run {run_id} did not complete: {e}")

    def send(self, name: str, data: Any) -> List[str]:
        """Dispatch an event and execute the resulting runs in this thread."""
        run_ids = self.dispatch(name, data)
        self.process(run_ids)
        return run_ids

    def resume_pending(self) -> List[str]:
        with self.session_factory() as db:
            run_ids = [
                run_id for (run_id,) in db.query(WorkflowRun.id).filter(WorkflowRun.status == RUNNING).all()
            ]
        if run_ids:
            logger.info(f"Resuming {len(run_ids)} pending runs")
        self.process(run_ids)
        return run_ids
