"""Database-backed leases serializing runs that touch the same repository."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..db.models import Lease
from ..errors import LeaseUnavailableError

logger = logging.getLogger(__name__)


class LeaseManager:
    """Per-key mutual exclusion that holds across processes sharing a database.

    A lease expires ``ttl_seconds`` after it was last acquired or renewed;
    an expired lease can be taken over by another holder.
    """

    def __init__(
        self,
        session_factory,
        ttl_seconds: float = 900,
        wait_seconds: float = 600,
        poll_seconds: float = 2,
        clock: Callable[[], float] = time.time,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self.wait_seconds = wait_seconds
        self.poll_seconds = poll_seconds
        self.clock = clock
        self.sleeper = sleeper

    def acquire(self, key: str, holder: str) -> bool:
        now = self.clock()
        expires_at = now + self.ttl_seconds
        with self.session_factory() as db:
            updated = (
                db.query(Lease)
                .filter(Lease.key == key, or_(Lease.expires_at <= now, Lease.holder == holder))
                .update({"holder": holder, "expires_at": expires_at}, synchronize_session=False)
            )
            if updated == 1:
                db.commit()
                return True

            db.add(Lease(key=key, holder=holder, expires_at=expires_at))
            try:
                db.commit()
            except IntegrityError:
                # Someone else holds an unexpired lease
                db.rollback()
                return False
            return True

    def renew(self, key: str, holder: str) -> bool:
        with self.session_factory() as db:
            updated = (
                db.query(Lease)
                .filter(Lease.key == key, Lease.holder == holder)
                .update({"expires_at": self.clock() + self.ttl_seconds}, synchronize_session=False)
            )
            db.commit()
        if updated != 1:
            logger.warning(f"Lease {key} is no longer held by {holder}")
        return updated == 1

    def release(self, key: str, holder: str) -> None:
        with self.session_factory() as db:
            db.query(Lease).filter(Lease.key == key, Lease.holder == holder).delete(synchronize_session=False)
            db.commit()

    @contextmanager
    def hold(self, key: str, holder: str) -> Iterator[None]:
        """Wait for the lease, hold it for the block, then release it."""
        deadline = self.clock() + self.wait_seconds
        while not self.acquire(key, holder):
            if self.clock() >= deadline:
                raise LeaseUnavailableError(f"Lease {key} still held after waiting {self.wait_seconds}s")
            logger.info(f"Waiting for lease {key}")
            self.sleeper(self.poll_seconds)
        logger.debug(f"Acquired lease {key} for {holder}")
        try:
            yield
        finally:
            self.release(key, holder)
