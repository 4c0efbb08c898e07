#!/usr/bin/env python3
"""
Create the Click People approval schema.

Usage:
    DATABASE_URL='postgresql://...' python scripts/init_db.py
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'clickpeople'))


def main():
    if not os.environ.get('DATABASE_URL'):
        print("ERROR: DATABASE_URL environment variable not set")
        sys.exit(1)

    from core.utils.logging_config import setup_logging
    from database import init_db

    setup_logging(os.environ.get('LOG_LEVEL', 'INFO'))
    created = init_db()
    print('Schema created' if created else 'Schema already present')


if __name__ == '__main__':
    main()
