from ranobe.dispatch.cancellation import CancellationToken
from ranobe.dispatch.dispatcher import Dispatcher, SegmentStateError

__all__ = ["CancellationToken", "Dispatcher", "SegmentStateError"]
