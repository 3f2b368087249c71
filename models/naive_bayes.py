# models/naive_bayes.py
"""
Incremental multinomial Naive Bayes for Quill classifiers.
One job: accumulate labeled counts and derive classifiers from them.
"""

import copy
import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Tuple, Union

from models.document_pipeline import DocumentPipeline, Instance


@dataclass
class Classification:
    """Classification result"""
    label: str
    confidence: float
    scores: Dict[str, float]


class NaiveBayesClassifier:
    """Frozen Naive Bayes classifier derived from a trainer's counts"""

    def __init__(self, pipe: DocumentPipeline, smoothing: float,
                 label_documents: Dict[int, int],
                 feature_counts: Dict[int, Dict[int, int]],
                 label_tokens: Dict[int, int],
                 document_count: int):
        self.pipe = pipe
        self.smoothing = smoothing
        self.label_documents = label_documents
        self.feature_counts = feature_counts
        self.label_tokens = label_tokens
        self.document_count = document_count
        self.label_names = pipe.labels
        self.vocabulary_size = pipe.vocabulary_size

    @property
    def labels(self) -> List[str]:
        return list(self.label_names)

    def classify(self, document: Union[str, Instance]) -> Classification:
        """
        Classify raw text or a prepared instance

        Args:
            document: Raw text (converted without growing the alphabets) or Instance

        Returns:
            Best label, its posterior probability, and all label posteriors
        """
        if not self.label_names:
            raise ValueError("Classifier has no labels - train it first")

        if isinstance(document, str):
            instance = self.pipe.to_instance(document, grow=False)
        else:
            instance = document

        log_scores = [self._log_score(label, instance) for label in range(len(self.label_names))]

        # log-sum-exp normalization
        peak = max(log_scores)
        total = sum(math.exp(score - peak) for score in log_scores)
        posteriors = [math.exp(score - peak) / total for score in log_scores]

        scores = {name: posteriors[index] for index, name in enumerate(self.label_names)}
        best = max(range(len(posteriors)), key=posteriors.__getitem__)
        return Classification(label=self.label_names[best], confidence=posteriors[best], scores=scores)

    def _log_score(self, label: int, instance: Instance) -> float:
        alpha = self.smoothing
        label_count = len(self.label_names)
        score = math.log((self.label_documents.get(label, 0) + alpha) /
                         (self.document_count + alpha * label_count))

        counts = self.feature_counts.get(label, {})
        denominator = self.label_tokens.get(label, 0) + alpha * max(self.vocabulary_size, 1)
        for feature, occurrences in instance.features.items():
            # Features added to the alphabet after this classifier was derived are ignored
            if feature >= self.vocabulary_size:
                continue
            score += occurrences * math.log((counts.get(feature, 0) + alpha) / denominator)
        return score


class NaiveBayesTrainer:
    """Incremental Naive Bayes trainer"""

    def __init__(self, pipe: DocumentPipeline, smoothing: float = 1.0):
        """
        Initialize trainer

        Args:
            pipe: Pipeline whose alphabets index this trainer's counts
            smoothing: Laplace smoothing constant
        """
        if smoothing <= 0:
            raise ValueError(f"smoothing must be positive, got {smoothing}")
        self.pipe = pipe
        self.smoothing = smoothing
        self.label_documents: Dict[int, int] = {}
        self.feature_counts: Dict[int, Dict[int, int]] = {}
        self.label_tokens: Dict[int, int] = {}
        self.document_count = 0

    @property
    def is_fresh(self) -> bool:
        return self.document_count == 0

    def train_documents(self, documents: Iterable[Tuple[str, str]]) -> NaiveBayesClassifier:
        """Convert (text, label) pairs through the pipeline and train on them"""
        return self.train(self.pipe.instances(documents))

    def train(self, instances: Iterable[Instance]) -> NaiveBayesClassifier:
        """
        Add labeled instances to the counts

        Args:
            instances: Instances produced by the bound pipeline

        Returns:
            Classifier reflecting everything trained so far
        """
        for instance in instances:
            if instance.label is None:
                raise ValueError("Cannot train on an unlabeled instance")

            label = instance.label
            self.label_documents[label] = self.label_documents.get(label, 0) + 1
            counts = self.feature_counts.setdefault(label, {})
            for feature, occurrences in instance.features.items():
                counts[feature] = counts.get(feature, 0) + occurrences
            self.label_tokens[label] = self.label_tokens.get(label, 0) + instance.token_count
            self.document_count += 1

        return self.get_classifier()

    def get_classifier(self) -> NaiveBayesClassifier:
        """Derive a classifier from a copy of the current counts"""
        return NaiveBayesClassifier(
            pipe=self.pipe,
            smoothing=self.smoothing,
            label_documents=dict(self.label_documents),
            feature_counts=copy.deepcopy(self.feature_counts),
            label_tokens=dict(self.label_tokens),
            document_count=self.document_count
        )
