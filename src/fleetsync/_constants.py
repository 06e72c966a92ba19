"""Internal constants shared across the library."""

BASE_URL = "https://my.geotab.com/apiv1"
USER_AGENT = "fleetsync/1"

#: ``path`` value returned by Authenticate when the session lives on the
#: server that handled the login.
THIS_SERVER = "ThisServer"

# ------------------------------------------------------------------
# Remote type names used in Get / GetFeed
# ------------------------------------------------------------------

DEVICE_TYPE_NAME = "Device"
LOG_RECORD_TYPE_NAME = "LogRecord"
STATUS_DATA_TYPE_NAME = "StatusData"
ODOMETER_DIAGNOSTIC_ID = "DiagnosticOdometerId"

# ------------------------------------------------------------------
# JSON-RPC error names
# ------------------------------------------------------------------

AUTH_ERROR_NAMES: frozenset[str] = frozenset(
    {
        "InvalidUserException",
        "SessionExpiredException",
    }
)
SESSION_EXPIRED_ERROR_NAMES: frozenset[str] = frozenset({"SessionExpiredException"})
QUOTA_ERROR_NAMES: frozenset[str] = frozenset({"OverLimitException"})

AUTH_HTTP_STATUSES: frozenset[int] = frozenset({401, 403})
QUOTA_HTTP_STATUSES: frozenset[int] = frozenset({429})

# ------------------------------------------------------------------
# Output
# ------------------------------------------------------------------

CSV_HEADER: tuple[str, ...] = (
    "Vehicle ID",
    "Timestamp",
    "VIN",
    "Name",
    "Latitude",
    "Longitude",
    "Speed",
    "Odometer",
)
