"""
Working-hours preferences lifecycle.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from ..adapters.records import PolicyRecord
from ..domain.models import WorkingHoursPolicy, default_policy
from .protocols import SchedulingStoreProtocol

logger = logging.getLogger(__name__)


class PreferencesService:
    """
    Creates a therapist's policy on first use and replaces it wholesale on save.

    Working hours are never patched field by field: every save carries the
    full weekday map.
    """

    def __init__(self, store: SchedulingStoreProtocol, *, timezone: str = "America/New_York"):
        self._store = store
        self._timezone = timezone

    async def get_or_create_policy(self, therapist_id: str) -> WorkingHoursPolicy:
        policy = await self._store.get_policy(therapist_id)
        if policy is not None:
            return policy

        logger.info("Creating default working hours for therapist %s", therapist_id)
        return await self._store.save_policy(therapist_id, default_policy(self._timezone))

    async def replace_policy(self, therapist_id: str, settings: Mapping[str, Any]) -> WorkingHoursPolicy:
        """
        Validate a complete settings payload and store it.

        Raises:
            InvalidInterval: If a weekday does not open before it closes
            ValueError: If any other field is malformed
        """
        record = PolicyRecord.model_validate({"timezone": self._timezone, **settings})
        policy = record.to_domain()
        return await self._store.save_policy(therapist_id, policy)
