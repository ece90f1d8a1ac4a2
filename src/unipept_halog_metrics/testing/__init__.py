"""Helpers for testing the exporter and collector without halog, Graphite or a production database."""

from ._helpers import (
    CannedSummarizer,
    make_haproxy_log_line,
    make_server_statistics_output,
    make_url_statistics_output,
)

__all__ = [
    "CannedSummarizer",
    "make_haproxy_log_line",
    "make_server_statistics_output",
    "make_url_statistics_output",
]
