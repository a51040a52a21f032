"""
Single-flight run token for periodic work.

A pass acquires the token before it starts and releases it when it
finishes. A trigger that finds the token held is dropped rather than
queued, so at most one pass talks to the RPC endpoint at a time.
"""


class SingleFlight:
    """Non-blocking run token for a single event loop."""

    def __init__(self, name: str = "task"):
        self.name = name
        self._held = False
        self.dropped = 0

    @property
    def busy(self) -> bool:
        return self._held

    def try_acquire(self) -> bool:
        """Take the token if it is free; never waits."""
        if self._held:
            self.dropped += 1
            return False
        self._held = True
        return True

    def release(self) -> None:
        if not self._held:
            raise RuntimeError(f"{self.name}: release() without acquire()")
        self._held = False
