"""
Visibility-timeout backoff for failed messages.

A failed message is not deleted. Instead its visibility timeout is pushed out
proportionally to how often the queue has already delivered it, so poison
messages come back less and less often.
"""

from sqs_listener.listener.config import MAX_VISIBILITY_TIMEOUT_SECONDS


def visibility_backoff(
    base_seconds: int,
    receive_count: int,
    max_seconds: int = MAX_VISIBILITY_TIMEOUT_SECONDS,
) -> int:
    """
    Compute the next visibility timeout for a failed message.

    Computes: min(base * (receive_count + 1), max_seconds).

    Args:
        base_seconds: Base visibility timeout from configuration
        receive_count: Times the queue has delivered the message so far
        max_seconds: Upper bound accepted by the queue (12h for SQS)

    Returns:
        Timeout in whole seconds
    """
    receive_count = max(receive_count, 0)
    return max(0, min(base_seconds * (receive_count + 1), max_seconds))


class VisibilityBackoff:
    """
    Bound backoff calculator used by the retry scheduler.

    Usage:
        backoff = VisibilityBackoff(base_seconds=30)
        backoff.timeout_for(receive_count=1)  # 60
    """

    def __init__(
        self,
        base_seconds: int,
        max_seconds: int = MAX_VISIBILITY_TIMEOUT_SECONDS,
    ):
        self.base_seconds = base_seconds
        self.max_seconds = max_seconds

    def timeout_for(self, receive_count: int) -> int:
        """Timeout for a message delivered receive_count times."""
        return visibility_backoff(self.base_seconds, receive_count, self.max_seconds)
