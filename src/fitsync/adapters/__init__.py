"""Fitness provider adapters for fitsync.

Each adapter implements the FitnessProvider ABC and handles:
- The platform permission prompt (or grants when the provider has none)
- The OAuth authorization handshake for per-metric read scopes
- Fetching raw samples for a metric over a time window
- Releasing the provider session on disconnect

Available adapters:
    GoogleFitProvider — Google Fit REST API (OAuth2 refresh token)
"""

from src.fitsync.adapters.google_fit import GoogleFitProvider

__all__ = [
    "GoogleFitProvider",
]

# Registry: source_id → provider class
PROVIDER_REGISTRY: dict[str, type] = {
    "google_fit": GoogleFitProvider,
}


def get_provider(source_id: str) -> "type":
    """Return the provider class for a given source slug.

    Args:
        source_id: e.g. 'google_fit'

    Returns:
        The provider class (not an instance).

    Raises:
        KeyError: If the source_id is not registered.
    """
    if source_id not in PROVIDER_REGISTRY:
        raise KeyError(
            f"No provider registered for source '{source_id}'. "
            f"Available: {list(PROVIDER_REGISTRY)}"
        )
    return PROVIDER_REGISTRY[source_id]
