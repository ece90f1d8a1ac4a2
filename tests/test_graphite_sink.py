import socket
import time

import pytest

import unipept_halog_metrics
from unipept_halog_metrics import MetricRecord


@pytest.mark.parametrize(
    "segment, expected_segment",
    [("selma", "selma"), ("node-1_a", "node-1_a"), ("selma.ugent.be", "selma_ugent_be"), ("<STATS>", "_STATS_")],
)
def test_sanitize_graphite_segment(segment: str, expected_segment: str) -> None:
    assert unipept_halog_metrics.sanitize_graphite_segment(segment=segment) == expected_segment


def test_format_metric_lines() -> None:
    metric_records = [
        MetricRecord(path="halog_live.unipeptapi.selma.request_count", value=20),
        MetricRecord(path="halog_live.unipeptapi.selma.avg_response_time", value=3.5),
    ]

    payload = unipept_halog_metrics.format_metric_lines(metric_records=metric_records, timestamp=1761041284)

    expected_payload = (
        "halog_live.unipeptapi.selma.request_count 20 1761041284\n"
        "halog_live.unipeptapi.selma.avg_response_time 3.5 1761041284\n"
    )
    assert payload == expected_payload


def test_publish_to_graphite(carbon_receiver) -> None:
    port, received_payloads, receiver_thread = carbon_receiver
    metric_records = [
        MetricRecord(path="halog_live.unipeptapi.selma.request_count", value=20),
        MetricRecord(path="halog_live.unipeptapi.patty.request_count", value=5),
        MetricRecord(path="halog_live.unipeptapi.selma.avg_response_time", value=3.0),
    ]

    before = int(time.time())
    is_published = unipept_halog_metrics.publish_to_graphite(host="127.0.0.1", port=port, metric_records=metric_records)
    after = int(time.time())
    receiver_thread.join(timeout=5)

    assert is_published is True
    assert len(received_payloads) == 1

    received_lines = received_payloads[0].splitlines()
    assert received_payloads[0].endswith("\n")
    assert [line.split(" ")[:2] for line in received_lines] == [
        ["halog_live.unipeptapi.selma.request_count", "20"],
        ["halog_live.unipeptapi.patty.request_count", "5"],
        ["halog_live.unipeptapi.selma.avg_response_time", "3.0"],
    ]

    timestamps = {int(line.split(" ")[2]) for line in received_lines}
    assert len(timestamps) == 1
    assert before <= timestamps.pop() <= after


def test_publish_nothing_opens_no_connection(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail_to_connect(*args, **kwargs):
        raise AssertionError("No connection should be opened for an empty batch.")

    monkeypatch.setattr(socket, "create_connection", _fail_to_connect)

    is_published = unipept_halog_metrics.publish_to_graphite(host="127.0.0.1", port=2003, metric_records=[])

    assert is_published is True


def test_publish_to_unreachable_graphite() -> None:
    # Reserve a free port and release it again, so that nothing is listening on it
    with socket.create_server(address=("127.0.0.1", 0)) as reserved_socket:
        port = reserved_socket.getsockname()[1]

    is_published = unipept_halog_metrics.publish_to_graphite(
        host="127.0.0.1",
        port=port,
        metric_records=[MetricRecord(path="halog_live.unipeptapi.selma.request_count", value=1)],
        timeout_in_seconds=2.0,
        task_id="test_unreachable_graphite",
    )

    assert is_published is False


@pytest.mark.parametrize("port", [0, 65536])
def test_publish_to_graphite_invalid_port(port: int) -> None:
    metric_records = [MetricRecord(path="halog_live.unipeptapi.selma.request_count", value=4)]

    with pytest.raises(ValueError, match="port"):
        unipept_halog_metrics.publish_to_graphite(host="127.0.0.1", port=port, metric_records=metric_records)


def test_publish_to_graphite_is_keyword_only() -> None:
    with pytest.raises(ValueError, match="positional"):
        unipept_halog_metrics.publish_to_graphite("127.0.0.1", 2003, [])
