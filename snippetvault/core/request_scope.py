"""Per-request memo for the idempotence guard.

Some transport bindings invoke the write path more than once for a single
logical submission. The caller passes the same ``RequestScope`` to each
invocation; a repeat returns the first result without re-checking the rate
limiter or re-appending history.
"""

from __future__ import annotations

import uuid
from typing import Any


class RequestScope:
    """Short-lived memo keyed by ``(resource, key)``.

    Parameters
    ----------
    correlation_id:
        Opaque token identifying the logical request. Generated if omitted.
    """

    def __init__(self, correlation_id: str | None = None) -> None:
        self.correlation_id = correlation_id or uuid.uuid4().hex
        self._results: dict[tuple[str, str], Any] = {}
        self._admitted: set[str] = set()

    def recall(self, resource: str, key: str) -> Any | None:
        return self._results.get((resource, key))

    def remember(self, resource: str, key: str, result: Any) -> None:
        self._results[(resource, key)] = result

    def is_admitted(self, bucket: str) -> bool:
        """Whether *bucket* already passed the rate gate in this request."""
        return bucket in self._admitted

    def admit(self, bucket: str) -> None:
        self._admitted.add(bucket)

    def __repr__(self) -> str:
        return f"RequestScope({self.correlation_id!r}, processed={len(self._results)})"
