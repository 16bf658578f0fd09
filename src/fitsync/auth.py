"""Authorization session against the fitness provider."""

from __future__ import annotations

import logging

from src.fitsync.base import AuthError, AuthorizationState, FitnessProvider, MetricKind

logger = logging.getLogger("fitsync.auth")


class AuthSession:
    """Hold the authorization state for one provider connection.

    The state moves to AUTHORIZED only after a successful handshake and
    back to UNAUTHORIZED only on ``disconnect()``.
    """

    def __init__(self, provider: FitnessProvider) -> None:
        self._provider = provider
        self._state = AuthorizationState.UNAUTHORIZED
        self._scopes: frozenset[MetricKind] = frozenset()

    @property
    def state(self) -> AuthorizationState:
        return self._state

    @property
    def is_authorized(self) -> bool:
        return self._state is AuthorizationState.AUTHORIZED

    @property
    def scopes(self) -> frozenset[MetricKind]:
        """Metric kinds granted by the last successful handshake."""
        return self._scopes

    async def authorize(self, scopes: set[MetricKind]) -> None:
        """Perform the provider handshake for read access to ``scopes``.

        A no-op if already authorized.

        Args:
            scopes: Metric kinds that need read access.

        Raises:
            AuthError: If the provider denies access or the handshake fails.
        """
        if self.is_authorized:
            logger.debug("Already authorized with %s", self._provider.DISPLAY_NAME)
            return

        requested = sorted(k.value for k in scopes)
        logger.info("Authorizing with %s for %s", self._provider.DISPLAY_NAME, requested)

        try:
            result = await self._provider.authorize(set(scopes))
        except Exception as exc:
            logger.error("Authorization error from %s: %s", self._provider.DISPLAY_NAME, exc)
            raise AuthError(f"authorization failed: {exc}") from exc

        if not result.success:
            logger.warning(
                "Authorization denied by %s: %s",
                self._provider.DISPLAY_NAME, result.message or "no reason given",
            )
            raise AuthError(f"authorization denied: {result.message or 'no reason given'}")

        self._state = AuthorizationState.AUTHORIZED
        self._scopes = frozenset(scopes)
        logger.info("Authorization with %s successful", self._provider.DISPLAY_NAME)

    async def disconnect(self) -> None:
        """Release the provider session.  Safe to call when never authorized."""
        if not self.is_authorized:
            return

        try:
            await self._provider.disconnect()
        except Exception as exc:
            logger.warning("Disconnect from %s failed: %s", self._provider.DISPLAY_NAME, exc)
        finally:
            self._state = AuthorizationState.UNAUTHORIZED
            self._scopes = frozenset()
        logger.info("Disconnected from %s", self._provider.DISPLAY_NAME)
