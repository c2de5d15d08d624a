"""Bounded log retrieval with device-side filtering and client-side classification."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from aaabridge.common.results import Result
from aaabridge.core.models import LogEvent
from aaabridge.core.normalize import normalize_log_row
from aaabridge.mikrotik.classify import classify_aaa, classify_nat
from aaabridge.mikrotik.client import DeviceClient
from aaabridge.mikrotik.commands import LogQuery

MAX_LOG_COUNT = 1000
DEFAULT_LOG_COUNT = 100
NAT_TOPICS: tuple[str, ...] = ("firewall",)
ACCESS_TOPICS: tuple[str, ...] = ("radius", "ppp", "hotspot")
CLASSIFIERS = ("nat", "aaa")
AUTH_STATUS_KEYWORDS = {
    "accept": ("accept", "login", "authenticated"),
    "reject": ("reject", "deny", "failed"),
}


def classify_event(event: LogEvent, kind: str) -> LogEvent:
    """Attach the ``nat`` or ``aaa`` payload extracted from the event message."""

    if kind == "nat":
        event.nat = classify_nat(event.message)
    else:
        event.aaa = classify_aaa(event.message)
    return event


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


@dataclass(slots=True)
class LogPredicate:
    """Builder for the device ``where`` expression.

    Substring clauses and time clauses are each joined with ``&&``; when both
    groups are present each is parenthesized before being combined.
    """

    message_clauses: list[str] = field(default_factory=list)
    time_clauses: list[str] = field(default_factory=list)

    def contains(self, text: str | None) -> "LogPredicate":
        if text:
            self.message_clauses.append(f"message~{_quote(text)}")
        return self

    def any_contains(self, *texts: str) -> "LogPredicate":
        clauses = [f"message~{_quote(text)}" for text in texts if text]
        if len(clauses) == 1:
            self.message_clauses.append(clauses[0])
        elif clauses:
            self.message_clauses.append(f"({' || '.join(clauses)})")
        return self

    def since(self, timestamp: str | None) -> "LogPredicate":
        if timestamp:
            self.time_clauses.append(f"time>={_quote(timestamp)}")
        return self

    def until(self, timestamp: str | None) -> "LogPredicate":
        if timestamp:
            self.time_clauses.append(f"time<={_quote(timestamp)}")
        return self

    def build(self) -> str:
        groups = [" && ".join(clauses) for clauses in (self.message_clauses, self.time_clauses) if clauses]
        if len(groups) == 2:
            return f"({groups[0]}) && ({groups[1]})"
        return groups[0] if groups else ""


def check_count(count: int) -> str | None:
    """Return a rejection message for an out-of-range line count, else ``None``."""

    if isinstance(count, bool) or not isinstance(count, int):
        return "Count must be an integer"
    if count < 1:
        return "Count must be at least 1"
    if count > MAX_LOG_COUNT:
        return f"Count cannot exceed {MAX_LOG_COUNT} logs"
    return None


class LogReader:
    """Fetch device log lines and turn them into :class:`LogEvent` records."""

    def __init__(self, client: DeviceClient, logger: logging.Logger | None = None) -> None:
        self.client = client
        self.logger = logger or logging.getLogger(__name__)

    def fetch_logs(
        self,
        topics: Sequence[str] = (),
        predicate: LogPredicate | str | None = None,
        count: int = DEFAULT_LOG_COUNT,
        kind: str | None = None,
    ) -> Result:
        """Return up to ``count`` log events matching ``topics`` and ``predicate``.

        ``kind`` selects the structured payload (``"nat"`` or ``"aaa"``) attached
        to every event; lines that match no pattern are still returned.
        """

        if kind is not None and kind not in CLASSIFIERS:
            return Result.failure(f"Unknown log kind '{kind}'", error_kind="validation")
        rejection = check_count(count)
        if rejection:
            self.logger.warning("log query rejected count=%s", count, extra=self.client.log_extra)
            return Result.failure(rejection, error_kind="validation")

        where = predicate.build() if isinstance(predicate, LogPredicate) else predicate
        result = self.client.run(LogQuery(count=count, topics=tuple(topics), where=where or None))
        if not result.success:
            return result

        events = [self._to_event(row, kind) for row in result.data]
        self.logger.debug(
            "log query topics=%s where=%s lines=%d",
            ",".join(topics) or "-",
            where or "-",
            len(events),
            extra=self.client.log_extra,
        )
        return Result.ok(f"Retrieved {len(events)} log entries", data=events)

    def fetch_nat_logs(
        self,
        count: int = DEFAULT_LOG_COUNT,
        source_ip: str | None = None,
        destination_ip: str | None = None,
        protocol: str | None = None,
        action: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> Result:
        predicate = (
            LogPredicate()
            .contains(source_ip)
            .contains(destination_ip)
            .contains(protocol)
            .contains(action)
            .since(start)
            .until(end)
        )
        result = self.fetch_logs(NAT_TOPICS, predicate, count, kind="nat")
        if result.success:
            result.message = f"Retrieved {len(result.data)} NAT log entries"
        return result

    def fetch_access_logs(
        self,
        count: int = DEFAULT_LOG_COUNT,
        username: str | None = None,
        client_ip: str | None = None,
        auth_status: str | None = None,
        start: str | None = None,
        end: str | None = None,
    ) -> Result:
        predicate = LogPredicate().contains(username).contains(client_ip)
        if auth_status:
            keywords = AUTH_STATUS_KEYWORDS.get(auth_status)
            if keywords is None:
                return Result.failure(
                    f"Invalid auth status '{auth_status}'. Allowed values: accept, reject", error_kind="validation"
                )
            predicate.any_contains(*keywords)
        predicate.since(start).until(end)

        result = self.fetch_logs(ACCESS_TOPICS, predicate, count, kind="aaa")
        if result.success:
            result.message = f"Retrieved {len(result.data)} access request log entries"
        return result

    def _to_event(self, row: dict[str, str], kind: str | None) -> LogEvent:
        event = normalize_log_row(row)
        if kind is None:
            return event
        event = classify_event(event, kind)
        if not event.classified:
            self.logger.debug("log line unclassified id=%s", event.id or "-", extra=self.client.log_extra)
        return event

