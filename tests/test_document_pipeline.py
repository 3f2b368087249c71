"""Tests for document conversion and alphabets."""

import pytest

from models.document_pipeline import Alphabet, DocumentPipeline, create_conversion_pipeline


class TestAlphabet:

    def test_lookup_grows(self):
        alphabet = Alphabet()

        assert alphabet.lookup("goal") == 0
        assert alphabet.lookup("match") == 1
        assert alphabet.lookup("goal") == 0
        assert len(alphabet) == 2
        assert alphabet.entry(1) == "match"
        assert "goal" in alphabet

    def test_lookup_without_growth(self):
        alphabet = Alphabet(["goal"])

        assert alphabet.lookup("match", grow=False) is None
        assert len(alphabet) == 1


class TestTokenize:

    def test_lowercases_and_drops_stopwords(self):
        pipe = DocumentPipeline()

        assert pipe.tokenize("The Striker SCORED in the Match") == ["striker", "scored", "match"]

    def test_keeps_internal_apostrophes_and_hyphens(self):
        pipe = DocumentPipeline()

        assert pipe.tokenize("A state-of-the-art stadium's roof") == ["state-of-the-art", "stadium's", "roof"]

    def test_drops_numbers_and_short_tokens(self):
        pipe = DocumentPipeline(min_token_length=3)

        assert pipe.tokenize("Won 3-1 at ox park") == ["won", "park"]

    def test_extra_stopwords(self):
        pipe = DocumentPipeline(extra_stopwords=["Striker"])

        assert pipe.tokenize("striker scored") == ["scored"]

    def test_unicode_letters(self):
        pipe = DocumentPipeline()

        assert pipe.tokenize("Müller erzielte ein Tor") == ["müller", "erzielte", "ein", "tor"]


class TestInstances:

    def test_counts_features_and_label(self):
        pipe = DocumentPipeline(labels=["sports"])

        instance = pipe.to_instance("goal goal match", label="sports")

        goal = pipe.feature_alphabet.lookup("goal", grow=False)
        match = pipe.feature_alphabet.lookup("match", grow=False)
        assert instance.features == {goal: 2, match: 1}
        assert instance.label == 0
        assert instance.token_count == 3

    def test_classification_does_not_grow_alphabets(self):
        pipe = DocumentPipeline()
        pipe.to_instance("goal match", label="sports")

        instance = pipe.to_instance("goal referee", grow=False)

        assert list(instance.features.values()) == [1]
        assert "referee" not in pipe.feature_alphabet
        assert instance.label is None

    def test_unknown_label_without_growth(self):
        pipe = DocumentPipeline(labels=["sports"])

        with pytest.raises(ValueError, match="Unknown label"):
            pipe.to_instance("senate vote", label="politics", grow=False)

    def test_instances_from_pairs(self):
        pipe = create_conversion_pipeline()

        instances = list(pipe.instances([("goal scored", "sports"), ("senate vote", "politics")]))

        assert [instance.label for instance in instances] == [0, 1]
        assert pipe.labels == ["sports", "politics"]
        assert pipe.vocabulary_size == 4

    def test_declared_labels_come_first(self):
        pipe = create_conversion_pipeline(labels=["politics", "sports"])
        pipe.to_instance("goal", label="sports")

        assert pipe.labels == ["politics", "sports"]
