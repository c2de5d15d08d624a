"""Result envelopes returned by every operation, plus batch summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


def _serialize(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_serialize(item) for item in value]
    if isinstance(value, dict):
        return {key: _serialize(item) for key, item in value.items()}
    return value


@dataclass(slots=True)
class Result:
    """Uniform ``{success, message, data?, error?}`` envelope."""

    success: bool
    message: str
    data: Any = None
    error: str | None = None
    error_kind: str | None = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "Result":
        return cls(success=True, message=message, data=data)

    @classmethod
    def failure(cls, message: str, error: str | None = None, error_kind: str | None = None) -> "Result":
        return cls(success=False, message=message, error=error or message, error_kind=error_kind)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"success": self.success, "message": self.message}
        if self.data is not None:
            payload["data"] = _serialize(self.data)
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class SyncResult:
    """Outcome of synchronizing a single subscriber."""

    success: bool
    message: str
    created: int = 0
    updated: int = 0
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failed(cls, message: str, error: str) -> "SyncResult":
        return cls(success=False, message=message, errors=[error])

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "created": self.created,
            "updated": self.updated,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class BatchItem:
    """Per-subscriber outcome inside a batch."""

    subscriber: str
    success: bool
    message: str
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "subscriber": self.subscriber,
            "success": self.success,
            "message": self.message,
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class BatchResult:
    """Summary of a batch synchronization."""

    service_type: str
    total: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    results: list[BatchItem] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.errors == 0

    @property
    def message(self) -> str:
        return (
            f"Bulk sync completed: {self.created} created, {self.updated} updated, {self.errors} errors"
        )

    @property
    def error_messages(self) -> list[str]:
        return [f"{item.subscriber}: {item.message}" for item in self.results if not item.success]

    def to_dict(self) -> dict[str, object]:
        return {
            "success": self.success,
            "message": self.message,
            "service_type": self.service_type,
            "total": self.total,
            "created": self.created,
            "updated": self.updated,
            "errors": self.errors,
            "error_messages": self.error_messages,
            "results": [item.to_dict() for item in self.results],
        }


class BatchSummaryBuilder:
    """Accumulate per-subscriber outcomes into a :class:`BatchResult`."""

    def __init__(self, *, service_type: str) -> None:
        self._result = BatchResult(service_type=service_type)

    def add_missing_package(self, subscriber: str, package_name: str) -> None:
        message = f"Package {package_name} not found"
        self._add(BatchItem(subscriber=subscriber, success=False, message=message, errors=[message]))

    def add_sync(self, subscriber: str, outcome: SyncResult) -> None:
        self._add(
            BatchItem(
                subscriber=subscriber,
                success=outcome.success,
                message=outcome.message,
                errors=list(outcome.errors),
            )
        )
        if outcome.success:
            self._result.created += outcome.created
            self._result.updated += outcome.updated

    def _add(self, item: BatchItem) -> None:
        self._result.results.append(item)
        self._result.total += 1
        if not item.success:
            self._result.errors += 1

    def build(self) -> BatchResult:
        return self._result

