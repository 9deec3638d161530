"""Best-effort notifications about lifecycle changes.

Engines call ``dispatch`` only after their transaction has committed. A
failing notifier is logged and otherwise ignored: the transition stands.
"""

from typing import Any, Optional

from loguru import logger


class Notifier:
    """Receives lifecycle events. Delivery (email, push) is up to subclasses."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        raise NotImplementedError


class LogNotifier(Notifier):
    """Writes each event to the log."""

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("Notification {}: {}", event, payload)


class RecordingNotifier(Notifier):
    """Keeps events in memory, for tests and dry runs."""

    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, Any]]] = []

    def notify(self, event: str, payload: dict[str, Any]) -> None:
        self.events.append((event, payload))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


def dispatch(notifier: Optional[Notifier], event: str, **payload: Any) -> None:
    """Send an event, swallowing and logging delivery failures."""
    if notifier is None:
        return
    try:
        notifier.notify(event, payload)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Notification {} failed: {!r}", event, exc)
