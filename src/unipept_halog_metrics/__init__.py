"""
Unipept HAProxy metrics
=======================

Aggregation of the statistics that `halog` extracts from the HAProxy logs in front of the Unipept API.

Two tools are built on the same aggregation engine:

- `unipept_halog_live` runs every few seconds and reports, per backend node, the cumulative number of requests
  and the average response time over the last minute to Graphite.
- `unipept_halog_collect` runs once a day and replaces the per-endpoint, per-node and per-traffic-source
  statistics of one calendar date in an SQL database.

Every run is a single read -> aggregate -> write cycle; nothing is kept in memory between runs.
"""

from ._config import UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH, load_configuration
from ._buffered_text_reader import BufferedTextReader
from ._exceptions import HalogMetricsError, ParseError, SinkConnectionError, SinkWriteError, ToolExecutionError
from ._globals import (
    ENDPOINT_STATISTICS_TABLE,
    NODE_STATISTICS_TABLE,
    SERVER_STATISTICS_LAYOUT,
    SOURCE_STATISTICS_TABLE,
    URL_STATISTICS_LAYOUT,
)
from ._log_window_filter import filter_recent_log_file, filter_recent_log_lines, parse_log_line_timestamp
from ._halog_summarizer import HalogSummarizer, Summarizer, strip_header_and_status_lines
from ._columnar_aggregator import (
    RunningStat,
    aggregate_halog_rows,
    node_name_from_server_field,
    normalize_endpoint_path,
    running_stats_to_data_frame,
)
from ._user_agent_classifier import (
    UserAgentClass,
    classify_user_agent,
    count_requests_by_user_agent_class,
    count_user_agents,
    parse_user_agent_counts,
)
from ._graphite_sink import MetricRecord, format_metric_lines, publish_to_graphite, sanitize_graphite_segment
from ._database_sink import DatedRow, connect_to_database, initialize_schema, replace_day
from ._live_exporter import export_live_metrics
from ._daily_collector import (
    collect_daily_statistics,
    dated_rows_to_data_frame,
    resolve_collection_date,
    running_stats_to_dated_rows,
)

__all__ = [
    "UNIPEPT_HALOG_METRICS_BASE_FOLDER_PATH",
    "load_configuration",
    "BufferedTextReader",
    "HalogMetricsError",
    "ParseError",
    "SinkConnectionError",
    "SinkWriteError",
    "ToolExecutionError",
    "ENDPOINT_STATISTICS_TABLE",
    "NODE_STATISTICS_TABLE",
    "SERVER_STATISTICS_LAYOUT",
    "SOURCE_STATISTICS_TABLE",
    "URL_STATISTICS_LAYOUT",
    "filter_recent_log_file",
    "filter_recent_log_lines",
    "parse_log_line_timestamp",
    "HalogSummarizer",
    "Summarizer",
    "strip_header_and_status_lines",
    "RunningStat",
    "aggregate_halog_rows",
    "node_name_from_server_field",
    "normalize_endpoint_path",
    "running_stats_to_data_frame",
    "UserAgentClass",
    "classify_user_agent",
    "count_requests_by_user_agent_class",
    "count_user_agents",
    "parse_user_agent_counts",
    "MetricRecord",
    "format_metric_lines",
    "publish_to_graphite",
    "sanitize_graphite_segment",
    "DatedRow",
    "connect_to_database",
    "initialize_schema",
    "replace_day",
    "export_live_metrics",
    "collect_daily_statistics",
    "dated_rows_to_data_frame",
    "resolve_collection_date",
    "running_stats_to_dated_rows",
]
