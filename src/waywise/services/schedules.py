"""Schedule parsing and storage."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import Callable

from ..models.domain import Schedule, utc_now
from ..persistence.repositories import ScheduleRepository
from .parsing.base import ScheduleParser

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(
        self,
        parser: ScheduleParser,
        repository: ScheduleRepository,
        *,
        ttl_seconds: int = 3600,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.parser = parser
        self.repository = repository
        self.ttl = timedelta(seconds=ttl_seconds)
        self.clock = clock

    def parse_and_store(self, text: str, timezone: str, owner_id: str) -> Schedule:
        """Parse free text into a schedule owned by ``owner_id`` and persist it."""
        parsed = self.parser.parse(text, timezone)
        created_at = self.clock()
        schedule = Schedule(
            schedule_id=str(uuid.uuid4()),
            owner_id=owner_id,
            original_text=text,
            timezone=timezone,
            destinations=parsed.destinations,
            ambiguities=parsed.ambiguities,
            created_at=created_at,
            expires_at=created_at + self.ttl,
        )
        self.repository.add(schedule)
        logger.info(
            f"Stored schedule {schedule.schedule_id} with {len(schedule.destinations)} destinations "
            f"(parser={getattr(self.parser, 'name', 'unknown')})"
        )
        return schedule
