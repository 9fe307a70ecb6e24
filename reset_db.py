#!/usr/bin/env python3
"""Reset the MindCanvas LanceDB database.

Usage:
    python reset_db.py              # Reset default database
    python reset_db.py --path ./custom/path  # Reset custom database
    python reset_db.py --yes        # Skip confirmation
"""

import argparse
import shutil
from pathlib import Path

from loguru import logger

from mind_canvas.canvas_store import CanvasStore
from mind_canvas.config import Settings


def reset_database(db_path: str, force: bool = False) -> bool:
    """Delete the canvas database directory.

    Args:
        db_path: Path to the database directory
        force: Skip confirmation prompt

    Returns:
        True if the database was removed
    """
    db_path = Path(db_path)

    if not db_path.exists():
        print(f"✅ Database does not exist at {db_path}")
        return False

    try:
        count = CanvasStore(db_path=db_path).count_canvases()
        print(f"Found {count} canvases in database")
    except Exception as e:
        logger.warning(f"Could not count canvases in {db_path}: {e}")
        print("Could not count canvases (database may be corrupted)")

    if not force:
        response = input(f"⚠️  Delete database at {db_path}? (yes/no): ")
        if response.lower() not in ("yes", "y"):
            print("❌ Cancelled")
            return False

    print(f"🗑️  Deleting database at {db_path}...")
    shutil.rmtree(db_path)

    if db_path.exists():
        print("❌ Warning: Database still exists")
        return False
    print("✅ Database deleted")
    return True


def main():
    """Main entry point."""
    default_path = Settings.from_env().db_path
    parser = argparse.ArgumentParser(
        description="Reset MindCanvas LanceDB database",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                  # Reset with confirmation
  %(prog)s --yes            # Reset without confirmation
  %(prog)s --path ./custom  # Reset custom database location
        """,
    )
    parser.add_argument(
        "--path",
        default=default_path,
        help=f"Path to database directory (default: {default_path})",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Skip confirmation prompt",
    )

    args = parser.parse_args()

    print("=" * 50)
    print("MindCanvas Database Reset")
    print("=" * 50)
    print()

    reset_database(db_path=args.path, force=args.yes)


if __name__ == "__main__":
    main()
