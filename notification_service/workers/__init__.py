"""Background worker task definitions.

- notifications/: notification creation and per-delivery processing

For task infrastructure (broker), see `infra/tasks/`.

Task definitions are registered with the broker on import.
"""

from __future__ import annotations

__all__: list[str] = []
