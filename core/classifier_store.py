# core/classifier_store.py
"""
Checkout/checkin protocol for persisted classifiers.
One job: load a trainer for exclusive update, persist it back, and serve
lockless reads of the last committed classifier.

This module performs no locking of its own. Two concurrent checkouts of the
same model identity will both succeed and diverge; callers that update
concurrently must serialize on the model identity (see core.classifier_access).
"""

from functools import partial
from typing import Any, Optional

from core.codec import PayloadCodec
from core.database import ClassifierDatabase
from core.errors import (CheckinError, CheckoutError, DecodingError,
                         ReadError, StoreError)
from core.payload import (CheckoutHandle, ClassifierSnapshot, PipelineFactory,
                          TrainedPayload, TrainerFactory)
from models.document_pipeline import create_conversion_pipeline
from models.naive_bayes import NaiveBayesTrainer
from utils.config import QuillConfig, get_config


class ClassifierStore:
    """Exclusive checkout/checkin and lockless reads over the classifier table"""

    def __init__(self, database: ClassifierDatabase,
                 codec: Optional[PayloadCodec] = None,
                 trainer_factory: Optional[TrainerFactory] = None,
                 pipeline_factory: Optional[PipelineFactory] = None):
        """
        Initialize store

        Args:
            database: Classifier table access
            codec: Payload codec (default gzip level 6)
            trainer_factory: Callable taking a fresh pipe, returning a fresh trainer
            pipeline_factory: Zero-argument callable returning a fresh pipeline
        """
        self.db = database
        self.codec = codec or PayloadCodec()
        self.trainer_factory = trainer_factory or NaiveBayesTrainer
        self.pipeline_factory = pipeline_factory or create_conversion_pipeline

    def checkout(self, model_id: int) -> CheckoutHandle:
        """
        Load the trainer and pipe for an exclusive update

        A missing row is bootstrapped; a row without payload means an earlier
        session never checked in, and training restarts from scratch.

        Args:
            model_id: Model identity

        Returns:
            Handle exposing the live trainer and pipe

        Raises:
            CheckoutError: on any failure, including the trainer or pipeline factories
        """
        try:
            record, transaction = self.db.begin_exclusive_session(model_id)
            with transaction:
                if record.has_payload:
                    payload = self.codec.decode(record.payload)
                    handle = CheckoutHandle(model_id, payload.trainer, payload.pipe)
                else:
                    if record.bootstrapped:
                        print(f"🆕 Bootstrapped classifier {model_id}")
                    else:
                        print(f"⚠️ Classifier {model_id} has no trained payload - "
                              f"last training session did not complete, starting fresh")
                    trainer, pipe = self._fresh_trainer()
                    handle = CheckoutHandle(model_id, trainer, pipe,
                                            bootstrapped=record.bootstrapped,
                                            recovered=not record.bootstrapped)

                # Commit even when nothing changed so the bootstrap row is durable
                transaction.commit()

        except Exception as e:
            raise CheckoutError(model_id, e) from e

        return handle

    def checkin(self, handle: CheckoutHandle) -> None:
        """
        Persist an updated trainer, its pipe, and the classifier derived from it

        Args:
            handle: Handle returned by checkout()

        Raises:
            CheckinError: on any failure; the previous payload stays authoritative
        """
        model_id = handle.model_id
        if handle.checked_in:
            raise CheckinError(model_id, message=f"Classifier {model_id} handle was already checked in")

        try:
            model = handle.trainer.get_classifier()
            encoded = self.codec.encode(TrainedPayload(model=model, trainer=handle.trainer, pipe=handle.pipe))

            transaction = self.db.begin_transaction(model_id, 'checkin')
            with transaction:
                self.db.commit_session(transaction, model_id, encoded)

        except Exception as e:
            raise CheckinError(model_id, e) from e

        handle.checked_in = True
        print(f"✅ Checked in classifier {model_id} ({len(encoded):,} bytes)")

    def read(self, model_id: int) -> ClassifierSnapshot:
        """
        Lockless read of the last committed classifier

        Never waits on an in-flight checkout; may return a snapshot that is
        about to be superseded.

        Args:
            model_id: Model identity

        Returns:
            Snapshot, NOT_AVAILABLE if the model is unknown or never trained
        """
        try:
            data = self.db.read_snapshot(model_id)
            if data is None:
                return ClassifierSnapshot.not_available(model_id)
            payload = self.codec.decode(data)
        except (StoreError, DecodingError) as e:
            raise ReadError(model_id, e) from e

        return ClassifierSnapshot.of(model_id, payload.model)

    def get_classifier(self, model_id: int) -> Optional[Any]:
        """Last committed classifier, or None if not available"""
        return self.read(model_id).model

    def _fresh_trainer(self):
        pipe = self.pipeline_factory()
        return self.trainer_factory(pipe), pipe


def build_store(config: Optional[QuillConfig] = None,
                database_url: Optional[str] = None) -> ClassifierStore:
    """
    Wire a ClassifierStore from configuration

    Args:
        config: Configuration (global config by default)
        database_url: Overrides config.database_url

    Returns:
        Ready-to-use store
    """
    config = config or get_config()
    database = ClassifierDatabase(database_url or config.database_url,
                                  table_name=config.table_name,
                                  connect_timeout=config.connect_timeout)
    database.create_tables()

    return ClassifierStore(
        database,
        codec=PayloadCodec(config.compression_level),
        trainer_factory=partial(NaiveBayesTrainer, smoothing=config.smoothing),
        pipeline_factory=partial(create_conversion_pipeline,
                                 labels=config.labels,
                                 extra_stopwords=config.extra_stopwords,
                                 min_token_length=config.min_token_length)
    )
