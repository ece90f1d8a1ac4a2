import datetime

import pytest

import unipept_halog_metrics
from unipept_halog_metrics import UserAgentClass
from unipept_halog_metrics.testing import make_haproxy_log_line


@pytest.mark.parametrize(
    "user_agent, expected_class",
    [
        (
            "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118.0 "
            "Electron/27.0 unipeptdesktop/1.2",
            UserAgentClass.DESKTOP,
        ),
        ("Mozilla/5.0 UnipeptDesktop/2.0.1", UserAgentClass.DESKTOP),
        ("unipept-cli/0.9", UserAgentClass.CLI),
        ("Unipept CLI - unipept 4.0.1", UserAgentClass.CLI),
        (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/118",
            UserAgentClass.WEB,
        ),
        ("Mozilla/5.0 (X11; Linux x86_64; rv:131.0) Gecko/20100101 Firefox/131.0", UserAgentClass.WEB),
        (
            "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 Version/17.0 Safari/604.1",
            UserAgentClass.WEB,
        ),
        ("Mozilla/5.0 (iPhone) AppleWebKit/605.1.15 FxiOS/131.0 Mobile/15E148", UserAgentClass.WEB),
        ("Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 OPR/113.0", UserAgentClass.WEB),
        ("Mozilla/5.0 (Windows NT 10.0) AppleWebKit/537.36 Edg/129.0", UserAgentClass.WEB),
        ("curl/8.0", UserAgentClass.OTHER),
        ("python-requests/2.32.3", UserAgentClass.OTHER),
        ("", UserAgentClass.OTHER),
    ],
)
def test_classify_user_agent(user_agent: str, expected_class: UserAgentClass) -> None:
    assert unipept_halog_metrics.classify_user_agent(user_agent=user_agent) == expected_class


def test_user_agent_class_values() -> None:
    assert [str(user_agent_class) for user_agent_class in UserAgentClass] == ["desktop", "cli", "web", "other"]


def test_count_user_agents() -> None:
    timestamp = datetime.datetime(year=2025, month=10, day=21, hour=10, tzinfo=datetime.timezone.utc)
    log_lines = [
        make_haproxy_log_line(timestamp=timestamp, user_agent="curl/8.0"),
        make_haproxy_log_line(timestamp=timestamp, user_agent="unipept-cli/0.9"),
        make_haproxy_log_line(timestamp=timestamp, user_agent="curl/8.0"),
        "2025-10-21T10:00:00Z lb haproxy[1]: Connect from 10.0.0.1:51234 to 10.0.0.2:443 (unipept_frontend/TCP)",
        make_haproxy_log_line(timestamp=timestamp, user_agent="curl/8.0"),
    ]

    user_agent_counts = unipept_halog_metrics.count_user_agents(log_lines=log_lines)

    assert user_agent_counts == [(3, "curl/8.0"), (1, "unipept-cli/0.9")]


def test_count_user_agents_of_multiple_captured_headers() -> None:
    log_lines = [
        "2025-10-21T10:00:00Z lb haproxy[1]: ... {api.unipept.ugent.be|curl/8.0} {text/plain} \"GET / HTTP/1.1\"",
        "2025-10-21T10:00:01Z lb haproxy[1]: ... {api.unipept.ugent.be} \"GET / HTTP/1.1\"",
    ]

    user_agent_counts = unipept_halog_metrics.count_user_agents(log_lines=log_lines, captured_header_index=1)

    assert user_agent_counts == [(1, "curl/8.0")]


def test_parse_user_agent_counts() -> None:
    lines = [
        "     12 Mozilla/5.0 (X11; Linux x86_64) Firefox/131.0",
        "      3 unipept-cli/0.9",
        "",
        "   many curl/8.0",
        "      1",
    ]

    user_agent_counts = unipept_halog_metrics.parse_user_agent_counts(lines=lines, task_id="test_user_agent_counts")

    expected_user_agent_counts = [
        (12, "Mozilla/5.0 (X11; Linux x86_64) Firefox/131.0"),
        (3, "unipept-cli/0.9"),
        (1, ""),
    ]
    assert user_agent_counts == expected_user_agent_counts


def test_count_requests_by_user_agent_class() -> None:
    user_agent_counts = [
        (5, "Mozilla/5.0 Chrome/118 unipeptdesktop/1.2"),
        (7, "unipept-cli/0.9"),
        (11, "Mozilla/5.0 Chrome/118"),
        (13, "Mozilla/5.0 Firefox/131.0"),
        (2, "curl/8.0"),
    ]

    requests_by_class = unipept_halog_metrics.count_requests_by_user_agent_class(user_agent_counts=user_agent_counts)

    assert requests_by_class == {
        UserAgentClass.DESKTOP: 5,
        UserAgentClass.CLI: 7,
        UserAgentClass.WEB: 24,
        UserAgentClass.OTHER: 2,
    }


def test_count_requests_by_user_agent_class_without_requests() -> None:
    requests_by_class = unipept_halog_metrics.count_requests_by_user_agent_class(user_agent_counts=[])

    assert requests_by_class == {user_agent_class: 0 for user_agent_class in UserAgentClass}
