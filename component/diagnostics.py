"""
Diagnostics sink for non-fatal notices (deprecated property usage).

Each notice id is reported once per sink; repeats are dropped. The reconciler
and component share one sink per chart instance.
"""

from __future__ import annotations

from dataclasses import dataclass

from .logging import get_logger, tagged

# Notice ids
DEPRECATED_CHART_OPTIONS = "deprecated.chartOptions"
DEPRECATED_MARGIN_PREFIX = "deprecated.margin-prefix"


@dataclass(frozen=True)
class Notice:
    id: str
    message: str


class Diagnostics:
    """Collects notices, de-duplicated by id, and logs each one as a warning."""

    def __init__(self) -> None:
        self._seen: set[str] = set()
        self.notices: list[Notice] = []

    def warn_once(self, notice_id: str, message: str) -> bool:
        """Record *message* under *notice_id* unless already seen.

        Returns:
            True if the notice was emitted, False if it was a repeat.
        """
        if notice_id in self._seen:
            return False
        self._seen.add(notice_id)
        self.notices.append(Notice(notice_id, message))
        get_logger().warning(message, extra=tagged("deprecation"))
        return True

    def seen(self, notice_id: str) -> bool:
        return notice_id in self._seen

    def reset(self) -> None:
        self._seen.clear()
        self.notices.clear()
