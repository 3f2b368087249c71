"""Shared fixtures for classifier store tests."""

import sqlite3
from functools import partial

import pytest

import core.database
import utils.config
from core.classifier_store import ClassifierStore
from core.codec import PayloadCodec
from core.database import ClassifierDatabase
from models.document_pipeline import create_conversion_pipeline
from models.naive_bayes import NaiveBayesTrainer


SPORTS_DOCUMENTS = [
    ("The striker scored twice as the home team won the football match", "sports"),
    ("A late goal in extra time sent the fans home happy after the cup final", "sports"),
    ("The tennis champion won the championship in straight sets", "sports"),
]

POLITICS_DOCUMENTS = [
    ("The senate passed the budget bill after a long parliamentary debate", "politics"),
    ("The minister resigned after the election results were announced", "politics"),
    ("Voters elected a new mayor and the council approved the budget", "politics"),
]

LABELS = ("sports", "politics")


class FailingCommitConnection(sqlite3.Connection):
    """SQLite connection whose commit always fails, after statements have run"""

    def commit(self):
        raise sqlite3.OperationalError("disk I/O error (simulated)")


class FakePostgresCursor:
    """Just enough of a psycopg2 cursor for the classifier queries"""

    def __init__(self, server):
        self.server = server
        self.rowcount = -1
        self._row = None

    def execute(self, query, params=()):
        self.server.executed.append((query, params))
        self._row, self.rowcount = self.server.respond(query, params)

    def fetchone(self):
        return self._row


class FakePostgresConnection:

    def __init__(self, server):
        self.server = server
        self.autocommit = False
        self.commits = 0
        self.rollbacks = 0
        self.closed = False

    def cursor(self):
        return FakePostgresCursor(self.server)

    def commit(self):
        self.commits += 1

    def rollback(self):
        self.rollbacks += 1

    def close(self):
        self.closed = True


class FakePostgresServer:
    """Stands in for psycopg2.connect; rows hold payloads by id, bytea comes back as memoryview"""

    def __init__(self):
        self.rows = {}
        self.connect_calls = []
        self.connections = []
        self.executed = []

    def connect(self, dsn, **kwargs):
        self.connect_calls.append((dsn, kwargs))
        conn = FakePostgresConnection(self)
        self.connections.append(conn)
        return conn

    def respond(self, query, params):
        statement = query.strip()
        if statement.startswith("SELECT version()"):
            return ("PostgreSQL 16.2",), 1
        if statement.startswith("SELECT payload"):
            model_id = params[0]
            if model_id not in self.rows:
                return None, 0
            payload = self.rows[model_id]
            return (None if payload is None else memoryview(payload),), 1
        if statement.startswith("INSERT"):
            self.rows[params[0]] = None
            return None, 1
        if statement.startswith("UPDATE"):
            payload, model_id = params
            if model_id not in self.rows:
                return None, 0
            self.rows[model_id] = bytes(payload)
            return None, 1
        return None, -1


# ---------------------------------------------------------------------------
# Isolation
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Fresh global config per test, rooted in a temporary working directory."""
    monkeypatch.chdir(tmp_path)
    for name in ("DATABASE_URL", "CLASSIFIER_TABLE", "COMPRESSION_LEVEL", "LOCK_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(utils.config, "_config", None)
    yield


# ---------------------------------------------------------------------------
# Store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'store' / 'classifiers.db'}"


@pytest.fixture
def database(database_url):
    db = ClassifierDatabase(database_url, table_name="classifier")
    db.create_tables()
    return db


@pytest.fixture
def pipeline_factory():
    return partial(create_conversion_pipeline, labels=LABELS)


@pytest.fixture
def store(database, pipeline_factory):
    return ClassifierStore(database, codec=PayloadCodec(), pipeline_factory=pipeline_factory)


@pytest.fixture
def trained_payload_parts(pipeline_factory):
    """A trainer and pipe trained on the sample documents."""
    pipe = pipeline_factory()
    trainer = NaiveBayesTrainer(pipe)
    trainer.train_documents(SPORTS_DOCUMENTS + POLITICS_DOCUMENTS)
    return trainer, pipe


@pytest.fixture
def fail_commits(database, monkeypatch):
    """Call to make every connection opened afterwards fail on commit."""
    def connect():
        return sqlite3.connect(database.sqlite_path, timeout=database.connect_timeout,
                               factory=FailingCommitConnection)

    def enable():
        monkeypatch.setattr(database, "_connect", connect)

    return enable


@pytest.fixture
def fake_postgres(monkeypatch):
    """Route psycopg2.connect to an in-process fake server."""
    server = FakePostgresServer()
    monkeypatch.setattr(core.database.psycopg2, "connect", server.connect)
    return server


# ---------------------------------------------------------------------------
# Sample documents
# ---------------------------------------------------------------------------

@pytest.fixture
def sports_documents():
    return list(SPORTS_DOCUMENTS)


@pytest.fixture
def politics_documents():
    return list(POLITICS_DOCUMENTS)


@pytest.fixture
def labeled_documents(sports_documents, politics_documents):
    return sports_documents + politics_documents
