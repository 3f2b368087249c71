# models/document_pipeline.py
"""
Document conversion pipeline for Quill classifiers.
One job: turn raw text (and an optional label) into feature-count instances.

The pipeline owns the feature and label alphabets, so it must be persisted
alongside the trainer whose counts are indexed by them.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

TOKEN_PATTERN = re.compile(r"[^\W\d_]+(?:['\-][^\W\d_]+)*")

ENGLISH_STOPWORDS = frozenset("""
a about above after again against all am an and any are as at be because been
before being below between both but by can could did do does doing down during
each few for from further had has have having he her here hers herself him
himself his how i if in into is it its itself just me more most my myself no nor
not now of off on once only or other our ours ourselves out over own same she
should so some such than that the their theirs them themselves then there these
they this those through to too under until up very was we were what when where
which while who whom why will with would you your yours yourself yourselves
""".split())


class Alphabet:
    """Growable bidirectional mapping between entries and integer indices"""

    def __init__(self, entries: Iterable[str] = ()):
        self._index: Dict[str, int] = {}
        self._entries: List[str] = []
        for entry in entries:
            self.lookup(entry)

    def lookup(self, entry: str, grow: bool = True) -> Optional[int]:
        """Index of entry, adding it when allowed; None if unknown and not added"""
        index = self._index.get(entry)
        if index is None and grow:
            index = len(self._entries)
            self._index[entry] = index
            self._entries.append(entry)
        return index

    def entry(self, index: int) -> str:
        return self._entries[index]

    def entries(self) -> List[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry: str) -> bool:
        return entry in self._index


@dataclass
class Instance:
    """Feature counts for one document, with an optional label index"""
    features: Dict[int, int] = field(default_factory=dict)
    label: Optional[int] = None

    @property
    def token_count(self) -> int:
        return sum(self.features.values())


class DocumentPipeline:
    """Tokenize, normalize, filter stopwords, and index documents"""

    def __init__(self, labels: Iterable[str] = (), extra_stopwords: Iterable[str] = (),
                 min_token_length: int = 2):
        """
        Initialize pipeline

        Args:
            labels: Labels to declare up front (gives a uniform prior before training)
            extra_stopwords: Stopwords in addition to the built-in English list
            min_token_length: Shorter tokens are dropped
        """
        self.feature_alphabet = Alphabet()
        self.label_alphabet = Alphabet(labels)
        self.stopwords = ENGLISH_STOPWORDS | {word.lower() for word in extra_stopwords}
        self.min_token_length = min_token_length

    def tokenize(self, text: str) -> List[str]:
        """Lowercased, stopword-filtered tokens"""
        tokens = []
        for match in TOKEN_PATTERN.finditer(text.lower()):
            token = match.group(0)
            if len(token) < self.min_token_length or token in self.stopwords:
                continue
            tokens.append(token)
        return tokens

    def to_instance(self, text: str, label: Optional[str] = None, grow: bool = True) -> Instance:
        """
        Convert one document to an instance

        Args:
            text: Raw document text
            label: Optional label name
            grow: Add unseen tokens/labels to the alphabets (training) or drop them (classifying)

        Returns:
            Instance with feature counts keyed by feature index
        """
        features: Dict[int, int] = {}
        for token in self.tokenize(text):
            index = self.feature_alphabet.lookup(token, grow=grow)
            if index is not None:
                features[index] = features.get(index, 0) + 1

        label_index = None
        if label is not None:
            label_index = self.label_alphabet.lookup(label, grow=grow)
            if label_index is None:
                raise ValueError(f"Unknown label: {label!r}")

        return Instance(features=features, label=label_index)

    def instances(self, documents: Iterable[Tuple[str, str]]) -> Iterator[Instance]:
        """Convert (text, label) pairs to labeled instances"""
        for text, label in documents:
            yield self.to_instance(text, label)

    @property
    def labels(self) -> List[str]:
        return self.label_alphabet.entries()

    @property
    def vocabulary_size(self) -> int:
        return len(self.feature_alphabet)


def create_conversion_pipeline(labels: Iterable[str] = (), extra_stopwords: Iterable[str] = (),
                               min_token_length: int = 2) -> DocumentPipeline:
    """Build a fresh document pipeline"""
    return DocumentPipeline(labels=labels, extra_stopwords=extra_stopwords,
                            min_token_length=min_token_length)
