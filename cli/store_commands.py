# cli/store_commands.py
"""
CLI commands for training and querying stored classifiers.
One job: route train/classify/show/reset requests through the access layer.
"""

from pathlib import Path
from typing import List, Tuple

from core.classifier_access import ClassifierAccessLayer
from core.classifier_store import build_store
from core.errors import ClassifierStoreError
from utils.config import get_config


def _access_layer(args) -> ClassifierAccessLayer:
    config = get_config()
    store = build_store(config, database_url=args.database_url)
    return ClassifierAccessLayer(store, lock_timeout=config.lock_timeout)


def _load_documents(path: Path) -> List[Tuple[str, str]]:
    """Read 'label<TAB>text' lines, skipping blanks and # comments"""
    documents = []
    with open(path, 'r', encoding='utf-8') as f:
        for line_number, line in enumerate(f, start=1):
            line = line.rstrip('\n')
            if not line.strip() or line.startswith('#'):
                continue
            if '\t' not in line:
                raise ValueError(f"{path}:{line_number}: expected 'label<TAB>text'")
            label, text = line.split('\t', 1)
            documents.append((text, label.strip()))
    return documents


def cmd_train(args):
    """Train a classifier on labeled documents"""
    print(f"🏋️ Training Classifier {args.model_id}")
    print("=" * 40)

    try:
        if args.file:
            documents = _load_documents(Path(args.file))
        elif args.text and args.label:
            documents = [(args.text, args.label)]
        else:
            print("❌ Provide --file, or both --text and --label")
            return 1

        if not documents:
            print("ℹ️  No documents to train on")
            return 1

        access = _access_layer(args)
        trained = access.train_documents(args.model_id, documents)

        classifier = access.get_classifier(args.model_id)
        print(f"📈 Trained {trained:,} documents")
        print(f"   Total documents: {classifier.document_count:,}")
        print(f"   Labels: {', '.join(classifier.labels)}")
        return 0

    except (ClassifierStoreError, ValueError, OSError) as e:
        print(f"❌ Training failed: {e}")
        return 1


def cmd_classify(args):
    """Classify text with the last committed classifier"""
    try:
        access = _access_layer(args)
        snapshot = access.read(args.model_id)

        if not snapshot.available:
            print(f"ℹ️  Classifier {args.model_id} is not available (unknown or never trained)")
            return 1

        result = snapshot.model.classify(args.text)
        print(f"🏷️ {result.label} ({result.confidence:.1%})")

        if args.verbose:
            for label, score in sorted(result.scores.items(), key=lambda item: -item[1]):
                print(f"   {label}: {score:.4f}")
        return 0

    except (ClassifierStoreError, ValueError) as e:
        print(f"❌ Classification failed: {e}")
        return 1


def cmd_show(args):
    """Show the committed state of a classifier"""
    print(f"🔍 Classifier {args.model_id}")
    print("=" * 40)

    try:
        access = _access_layer(args)
        snapshot = access.read(args.model_id)

        print(f"   Status: {snapshot.status.value}")
        if snapshot.available:
            classifier = snapshot.model
            print(f"   Documents trained: {classifier.document_count:,}")
            print(f"   Vocabulary size: {classifier.vocabulary_size:,}")
            print(f"   Labels: {', '.join(classifier.labels) or '(none)'}")
        return 0

    except ClassifierStoreError as e:
        print(f"❌ Error: {e}")
        return 1


def cmd_reset(args):
    """Delete a classifier so its next checkout starts fresh"""
    try:
        access = _access_layer(args)
        deleted = access.store.db.delete_model(args.model_id)

        if deleted:
            print(f"🗑️ Deleted classifier {args.model_id}")
            return 0

        print(f"ℹ️  No classifier {args.model_id} to delete")
        return 1

    except ClassifierStoreError as e:
        print(f"❌ Error: {e}")
        return 1
