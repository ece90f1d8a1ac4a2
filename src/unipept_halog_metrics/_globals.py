import collections
import re

# Positions of the fields in a single data line of halog output.
# An `error_count_column` of None means the errors are derived as `total - ok_count_column`.
_HalogColumnLayout = collections.namedtuple(
    "HalogColumnLayout",
    ["delimiter", "key_column", "total_count_column", "error_count_column", "ok_count_column", "average_column"],
)

# `halog -srv`: #srv_name 1xx 2xx 3xx 4xx 5xx other tot_req req_ok pct_ok avg_ct avg_rt
SERVER_STATISTICS_LAYOUT = _HalogColumnLayout(
    delimiter=None,
    key_column=0,
    total_count_column=7,
    error_count_column=None,
    ok_count_column=8,
    average_column=11,
)

# `halog -u`: #req err ttot tavg oktot okavg bavg btot src
URL_STATISTICS_LAYOUT = _HalogColumnLayout(
    delimiter=None,
    key_column=8,
    total_count_column=0,
    error_count_column=1,
    ok_count_column=None,
    average_column=3,
)

DEFAULT_SERVER_STATISTICS_ARGUMENTS = ("-s", "-1", "-H", "-srv")
DEFAULT_URL_STATISTICS_ARGUMENTS = ("-s", "-1", "-H", "-u")

_ISO_TIMESTAMP_REGEX = re.compile(
    pattern=r"^(?P<moment>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?P<fraction>\.\d+)?(?P<offset>Z|z|[+\-]\d{2}:?\d{2})?$"
)
_TIMEZONE_OFFSET_REGEX = re.compile(pattern=r"^[+\-]\d{2}:?\d{2}$")

_GRAPHITE_UNSAFE_CHARACTER_REGEX = re.compile(pattern=r"[^A-Za-z0-9_\-]")

# HAProxy logs captured request headers as `{header1|header2}` in front of the request line
_CAPTURED_HEADERS_REGEX = re.compile(pattern=r"\{([^}]*)\}")

_BROWSER_SIGNATURE_REGEXES = (
    re.compile(pattern=r"chrome|chromium|crios"),
    re.compile(pattern=r"firefox|fxios"),
    re.compile(pattern=r"safari"),
    re.compile(pattern=r"\bopr\b"),
    re.compile(pattern=r"\bedg"),
)

ENDPOINT_STATISTICS_TABLE = "endpoint_stats"
NODE_STATISTICS_TABLE = "node_stats"
SOURCE_STATISTICS_TABLE = "source_stats"
_KNOWN_TABLES = (ENDPOINT_STATISTICS_TABLE, NODE_STATISTICS_TABLE, SOURCE_STATISTICS_TABLE)

# The column holding the group key of each table
_TABLE_TO_KEY_COLUMN = {
    ENDPOINT_STATISTICS_TABLE: "endpoint",
    NODE_STATISTICS_TABLE: "node",
    SOURCE_STATISTICS_TABLE: "source",
}
