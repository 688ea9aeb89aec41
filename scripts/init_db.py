#!/usr/bin/env python3
# ToolShare - Community Tool Lending Service
# Copyright (C) 2025 Oleg Tokmakov
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Database initialization script."""

import logging
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from toolshare.config import configure_logging, init_settings
from toolshare.database import init_database

logger = logging.getLogger("toolshare.init_db")


def main():
    """Initialize the database."""
    # Load configuration
    settings = init_settings()
    configure_logging(settings)

    logger.info("Initializing ToolShare database at %s", settings.database.url)

    # Initialize database
    init_database()

    logger.info("Database initialization complete!")


if __name__ == "__main__":
    main()
