"""
Dispatch error taxonomy.

Per-item errors (``ReferenceMissingError``, ``CallRecordError`` and the
provider's ``CallProviderError``) fail a single queue item. Invocation-level
errors (``CapacityCheckError``, ``QueueSelectionError``) abort the whole
invocation.
"""

from callqueue.shared.exceptions import AppError


class DispatchError(AppError):
    pass


class ReferenceMissingError(DispatchError):
    """The queue item's lead or agent no longer exists."""


class CallRecordError(DispatchError):
    """The local call record could not be written."""


class CapacityCheckError(DispatchError):
    """Active calls could not be counted; nothing may be dispatched."""


class QueueSelectionError(DispatchError):
    """Pending items could not be read."""
