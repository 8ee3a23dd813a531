"""Application constants."""

USER_AGENT = "au-electoral-boundaries/0.3 (+research; contact: configured-email)"
COMMANDS = (
    "prepare",
    "correspondence",
    "allocation",
)
BOUNDARY_LEVELS = ("CED", "SA1", "MB", "POA", "SED")
BOUNDARY_TYPES = ("allocation", "correspondence")
MIN_REF_DATE = 2011
MAX_REF_DATE = 2024
SA1_VINTAGES = (2011, 2016, 2021)
DEFAULT_RATIO_TOLERANCE = 0.01
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "event",
    "status",
    "source",
    "rows_in",
    "rows_out",
    "count",
    "error_code",
    "message",
)
