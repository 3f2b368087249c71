#!/usr/bin/env python3
"""
Quill Classifier Store - CLI Interface
Clean, modular command dispatcher.
One job: route commands to appropriate handlers.
"""

import sys
import argparse

from core.database import ClassifierDatabase, create_database
from core.errors import ClassifierStoreError
from utils.config import get_config, validate_setup

# Import command modules
from cli.store_commands import cmd_classify, cmd_reset, cmd_show, cmd_train


def _database(args) -> ClassifierDatabase:
    return create_database(args.database_url)


def cmd_setup(args):
    """Setup and validate Quill configuration"""
    print("🔧 Quill Setup and Validation")
    print("=" * 40)

    config = get_config()
    config.ensure_directories()

    # Write default settings and .env template if missing
    if not (config.config_dir / 'settings.json').exists():
        config.save_settings()

    env_example = config.config_dir / '.env.example'
    if not env_example.exists():
        config.create_env_template()

    is_valid = validate_setup(config)

    print(f"\n📁 Configuration:")
    print(f"   Config directory: {config.config_dir}")
    print(f"   Data directory: {config.data_dir}")
    print(f"   Database URL: {args.database_url or config.database_url}")

    if not is_valid:
        print(f"\n❌ Setup incomplete!")
        return 1

    print(f"\n✅ Setup is complete!")
    return 0


def cmd_config(args):
    """Show current configuration"""
    print("⚙️ Quill Configuration")
    print("=" * 40)

    config = get_config()

    print(f"🗄️ Database:")
    print(f"   URL: {args.database_url or config.database_url}")
    print(f"   Table: {config.table_name}")
    print(f"   Compression level: {config.compression_level}")

    print(f"\n🔒 Locking:")
    print(f"   Timeout: {config.lock_timeout if config.lock_timeout is not None else 'none'}")

    print(f"\n📝 Pipeline:")
    print(f"   Labels: {', '.join(config.labels) or '(none)'}")
    print(f"   Extra stopwords: {len(config.extra_stopwords)}")
    print(f"   Min token length: {config.min_token_length}")

    print(f"\n🧮 Training:")
    print(f"   Smoothing: {config.smoothing}")

    return 0


def cmd_init_db(args):
    """Create the classifier table"""
    print("🗄️ Initializing Classifier Table")
    print("=" * 40)

    try:
        db = _database(args)
        db.create_tables()
        return 0
    except (ClassifierStoreError, ValueError) as e:
        print(f"\n❌ Database error: {e}")
        print("\nTroubleshooting:")
        print("1. Make sure PostgreSQL is running (or use a sqlite:/// URL)")
        print("2. Check DATABASE_URL in config/.env")
        return 1


def cmd_stats(args):
    """Show classifier table statistics"""
    print("📊 Classifier Store Statistics")
    print("=" * 40)

    try:
        db = _database(args)
        db.create_tables()
        stats = db.get_store_stats()

        print(f"   Total classifiers: {stats['total_models']:,}")
        print(f"   Trained: {stats['trained_models']:,}")
        print(f"   Never trained: {stats['untrained_models']:,}")
        print(f"   Payload bytes: {stats['total_payload_bytes']:,}")
        print(f"   Largest payload: {stats['largest_payload_bytes']:,}")

        if stats['total_models'] == 0:
            print("\nℹ️  Store is empty. Use 'quill train' to create a classifier.")

        return 0

    except (ClassifierStoreError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1


def cmd_list(args):
    """List stored classifiers"""
    print("📋 Stored Classifiers")
    print("=" * 40)

    try:
        db = _database(args)
        db.create_tables()
        models = db.list_models()

        if not models:
            print("   (none)")
        for model_id, size in models:
            state = f"{size:,} bytes" if size is not None else "never trained"
            print(f"   {model_id}: {state}")
        return 0

    except (ClassifierStoreError, ValueError) as e:
        print(f"❌ Error: {e}")
        return 1


def create_parser():
    """Create command line argument parser"""
    parser = argparse.ArgumentParser(
        prog='quill',
        description='Quill - persisted, incrementally trained text classifiers',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  quill setup                                   # Setup and validate configuration
  quill init-db                                 # Create the classifier table
  quill train 42 --label sports --text "..."    # Train classifier 42 on one document
  quill train 42 --file labeled.tsv             # Train on label<TAB>text lines
  quill classify 42 "match report from ..."     # Classify with the committed classifier
  quill stats                                   # Show store statistics
        """
    )
    parser.add_argument('--database-url', default=None,
                        help='Database URL (overrides DATABASE_URL)')

    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Setup and config commands
    subparsers.add_parser('setup', help='Setup and validate configuration')
    subparsers.add_parser('config', help='Show current configuration')

    # Database commands
    subparsers.add_parser('init-db', help='Create the classifier table')
    subparsers.add_parser('stats', help='Show classifier store statistics')
    subparsers.add_parser('list', help='List stored classifiers')

    # Classifier commands
    train_parser = subparsers.add_parser('train', help='Train a classifier on labeled documents')
    train_parser.add_argument('model_id', type=int, help='Classifier identity')
    train_parser.add_argument('--text', help='Document text')
    train_parser.add_argument('--label', help='Document label')
    train_parser.add_argument('--file', help='File of label<TAB>text lines')

    classify_parser = subparsers.add_parser('classify', help='Classify text')
    classify_parser.add_argument('model_id', type=int, help='Classifier identity')
    classify_parser.add_argument('text', help='Text to classify')
    classify_parser.add_argument('--verbose', action='store_true', help='Show all label scores')

    show_parser = subparsers.add_parser('show', help='Show a classifier')
    show_parser.add_argument('model_id', type=int, help='Classifier identity')

    reset_parser = subparsers.add_parser('reset', help='Delete a classifier')
    reset_parser.add_argument('model_id', type=int, help='Classifier identity')

    return parser


def main(argv=None):
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # Command mapping
    commands = {
        'setup': cmd_setup,
        'config': cmd_config,
        'init-db': cmd_init_db,
        'stats': cmd_stats,
        'list': cmd_list,
        'train': cmd_train,
        'classify': cmd_classify,
        'show': cmd_show,
        'reset': cmd_reset
    }

    try:
        return commands[args.command](args)
    except KeyboardInterrupt:
        print("\n⏹️ Operation cancelled by user")
        return 130
    except Exception as e:
        print(f"\n❌ Unexpected error: {e}")
        import traceback
        traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
