# core/payload.py
"""
Payload types exchanged between the classifier store and its callers.
One job: describe what gets persisted, what gets checked out, and what reads return.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Protocol


class Trainer(Protocol):
    """Incremental trainer the store can derive a classifier from"""

    def get_classifier(self) -> Any:
        ...


TrainerFactory = Callable[[Any], Trainer]
PipelineFactory = Callable[[], Any]


@dataclass
class TrainedPayload:
    """
    Everything persisted for one model identity.

    The trainer and pipe travel together: the pipe's alphabets define the
    feature space the trainer's counts are expressed in.
    """
    model: Any
    trainer: Any
    pipe: Any


@dataclass
class CheckoutHandle:
    """Live trainer and pipe for one in-flight exclusive update"""
    model_id: int
    trainer: Any
    pipe: Any
    bootstrapped: bool = False
    recovered: bool = False
    checked_in: bool = False

    @property
    def is_fresh(self) -> bool:
        """True when this checkout started training from scratch"""
        return self.bootstrapped or self.recovered


class SnapshotStatus(Enum):
    """Result of a lockless read"""
    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"


@dataclass
class ClassifierSnapshot:
    """Last committed classifier for a model identity, if any"""
    model_id: int
    status: SnapshotStatus
    model: Optional[Any] = None

    @property
    def available(self) -> bool:
        return self.status == SnapshotStatus.AVAILABLE

    @classmethod
    def not_available(cls, model_id: int) -> 'ClassifierSnapshot':
        # No row and a row without payload both land here
        return cls(model_id=model_id, status=SnapshotStatus.NOT_AVAILABLE)

    @classmethod
    def of(cls, model_id: int, model: Any) -> 'ClassifierSnapshot':
        return cls(model_id=model_id, status=SnapshotStatus.AVAILABLE, model=model)
