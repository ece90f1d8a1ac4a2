"""Classification of requests by the kind of client that sent them, based on the User-Agent header."""

import collections
import enum
from collections.abc import Iterable

from ._error_collection import _collect_error
from ._globals import _BROWSER_SIGNATURE_REGEXES, _CAPTURED_HEADERS_REGEX


class UserAgentClass(enum.StrEnum):
    DESKTOP = "desktop"
    CLI = "cli"
    WEB = "web"
    OTHER = "other"


def classify_user_agent(user_agent: str) -> UserAgentClass:
    """
    Determine the kind of client from its User-Agent string.

    The Unipept Desktop application embeds a browser engine, so its User-Agent also contains browser tokens;
    the Unipept-specific checks therefore come first.
    """
    lowered_user_agent = user_agent.lower()

    if "unipeptdesktop" in lowered_user_agent:
        return UserAgentClass.DESKTOP
    if "unipept cli" in lowered_user_agent or "unipept-cli" in lowered_user_agent:
        return UserAgentClass.CLI
    if any(regex.search(lowered_user_agent) is not None for regex in _BROWSER_SIGNATURE_REGEXES):
        return UserAgentClass.WEB

    return UserAgentClass.OTHER


def count_user_agents(log_lines: Iterable[str], captured_header_index: int = 0) -> list[tuple[int, str]]:
    """
    Count identical User-Agent strings in HAProxy log lines.

    HAProxy writes captured request headers as `{header_1|header_2|...}`; the User-Agent is expected at
    `captured_header_index` of the first such block. Lines without captured headers are ignored.

    Returns
    -------
    list of (count, user agent) tuples
        Ordered from the most to the least frequent User-Agent.
    """
    user_agent_counter = collections.Counter()
    for log_line in log_lines:
        match = _CAPTURED_HEADERS_REGEX.search(log_line)
        if match is None:
            continue

        captured_headers = match.group(1).split("|")
        if captured_header_index >= len(captured_headers):
            continue

        user_agent_counter[captured_headers[captured_header_index].strip()] += 1

    return [(count, user_agent) for user_agent, count in user_agent_counter.most_common()]


def parse_user_agent_counts(lines: Iterable[str], task_id: str | None = None) -> list[tuple[int, str]]:
    """Parse lines shaped like the output of `uniq -c`, i.e. `<count> <user agent>`, skipping malformed ones."""
    user_agent_counts = []
    for line in lines:
        if line.strip() == "":
            continue

        split_line = line.strip().split(maxsplit=1)
        count = split_line[0]
        if not count.isdigit():
            message = f"Unable to parse user agent count from line '{line}'."
            _collect_error(message=message, error_type="row", task_id=task_id)
            continue

        user_agent = split_line[1] if len(split_line) > 1 else ""
        user_agent_counts.append((int(count), user_agent))

    return user_agent_counts


def count_requests_by_user_agent_class(user_agent_counts: Iterable[tuple[int, str]]) -> dict[UserAgentClass, int]:
    """Sum the request counts of each kind of client; every class is present, even without requests."""
    requests_by_class = {user_agent_class: 0 for user_agent_class in UserAgentClass}
    for count, user_agent in user_agent_counts:
        requests_by_class[classify_user_agent(user_agent=user_agent)] += count

    return requests_by_class
