"""Internal constants shared across the library."""

USER_AGENT = "panodrive/1.0"
NOT_SET_LABEL = "Not set"

# ------------------------------------------------------------------
# Geometry
# ------------------------------------------------------------------

EARTH_RADIUS_M = 6_371_000.0
# Encoded polylines store coordinates as integers scaled by 10**5.
POLYLINE_PRECISION = 5
# Cache keys round coordinates to about one metre.
CACHE_KEY_DECIMALS = 5

# ------------------------------------------------------------------
# Pre-cache
# ------------------------------------------------------------------

MIN_LOOKAHEAD = 1
MAX_LOOKAHEAD = 20
TILE_URL_TEMPLATE = "https://streetviewpixels-pa.googleapis.com/v1/tile?panoid={identifier}&x={x}&y={y}&zoom={zoom}"

# ------------------------------------------------------------------
# Playback speeds  (slowest first; speed_up/slow_down walk this order)
# ------------------------------------------------------------------

SPEED_ORDER: tuple[str, ...] = ("walking", "cycling", "driving", "flying")

DEFAULT_SPEED_INTERVALS_MS: dict[str, int] = {
    "walking": 2500,
    "cycling": 1200,
    "driving": 600,
    "flying": 250,
}
