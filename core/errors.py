# core/errors.py
"""
Error taxonomy for the classifier store.
One job: give every failure a type, a model identity, and a cause.
"""

from typing import Optional


class ClassifierStoreError(Exception):
    """Base class for all classifier store failures"""


class StoreError(ClassifierStoreError):
    """Connectivity, SQL execution, or commit/rollback failure"""

    def __init__(self, message: str, model_id: Optional[int] = None,
                 operation: Optional[str] = None):
        super().__init__(message)
        self.model_id = model_id
        self.operation = operation


class EncodingError(ClassifierStoreError):
    """Payload could not be serialized or compressed"""


class DecodingError(ClassifierStoreError):
    """Stored bytes could not be decompressed or deserialized into a payload"""


class OperationError(ClassifierStoreError):
    """
    Operation-level failure carrying the model identity and underlying cause.

    Subclasses name the operation that failed.
    """
    operation = 'operation'

    def __init__(self, model_id: int, cause: Optional[BaseException] = None,
                 message: Optional[str] = None):
        self.model_id = model_id
        self.cause = cause
        if message is None:
            message = f"Couldn't {self.operation} classifier {model_id}: {cause}"
        super().__init__(message)


class CheckoutError(OperationError):
    operation = 'check out'


class CheckinError(OperationError):
    operation = 'check in'


class ReadError(OperationError):
    operation = 'read'


class LockTimeoutError(ClassifierStoreError):
    """The per-model update lock could not be acquired in time"""

    def __init__(self, key: str, timeout: Optional[float]):
        super().__init__(f"Timed out after {timeout}s waiting for lock '{key}'")
        self.key = key
        self.timeout = timeout
