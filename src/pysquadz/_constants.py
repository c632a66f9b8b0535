"""Internal constants shared across the library."""

DEFAULT_BASE_URL = "http://localhost:8080"
USER_AGENT = "pysquadz"

LOCATIONS_ENDPOINT = "/api/v1/locations"
SQUAD_LOCATIONS_ENDPOINT = "/api/v1/squads/{squad_id}/locations"

DEFAULT_POLL_INTERVAL: float = 5.0
DEFAULT_STALE_THRESHOLD: float = 30.0
DEFAULT_REQUEST_TIMEOUT: float = 10.0

#: Map center used until the local member shows up in a snapshot (San Francisco).
DEFAULT_CENTER: tuple[float, float] = (37.7749, -122.4194)

# ------------------------------------------------------------------
# Marker rendering hints
# ------------------------------------------------------------------

SELF_COLOR = "#3b82f6"
STALE_COLOR = "#6b7280"
ACTIVE_COLOR = "#10b981"

SELF_MARKER_SIZE = 20
MEMBER_MARKER_SIZE = 16

#: m/s -> km/h
MS_TO_KMH = 3.6
