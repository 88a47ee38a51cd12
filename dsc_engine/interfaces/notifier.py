"""Channel the risk monitor reports positions through."""
from typing import Protocol


class Notifier(Protocol):
    """Delivers position reports; implementations return False on failure."""

    async def send_alert(self, message: str, subject: str = "") -> bool:
        """Warn about a liquidatable or low-health-factor position."""
        ...

    async def send_log(self, message: str, silent: bool = True) -> bool:
        """Post the per-position health report written on every scan."""
        ...
