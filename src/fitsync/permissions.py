"""Activity-recognition permission gate.

Wraps the provider's permission prompt so callers only ever see a boolean.
Denials, dismissals and platform errors all collapse to False.
"""

from __future__ import annotations

import logging

from src.fitsync.base import FitnessProvider
from src.fitsync.config_loader import PermissionConfig

logger = logging.getLogger("fitsync.permissions")


class PermissionGate:
    """Request the activity-recognition permission once per call."""

    def __init__(self, provider: FitnessProvider, config: PermissionConfig) -> None:
        self._provider = provider
        self._config = config

    async def request_activity_permission(self) -> bool:
        """Prompt for the permission and return True only on explicit grant.

        Never raises.  No retries: a False result is final for this attempt.
        """
        try:
            granted = await self._provider.request_permission(
                self._config.name, self._config.rationale
            )
        except Exception as exc:
            logger.warning("Permission request for %s failed: %s", self._config.name, exc)
            return False

        if granted is not True:
            logger.warning("Permission %s denied (result=%r)", self._config.name, granted)
            return False

        logger.info("Permission %s granted", self._config.name)
        return True
