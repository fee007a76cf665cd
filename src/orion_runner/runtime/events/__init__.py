from .broadcaster import ProgressBroadcaster, QueueSubscriber, Subscription

__all__ = ["ProgressBroadcaster", "QueueSubscriber", "Subscription"]
