#!/usr/bin/env python3
"""
Setup script to create the recommendation tables and seed the default weights

Usage:
    python scripts/setup_database.py [--config config/bid_recommender.json] [--dry-run]
"""

import argparse
import logging
import sys

from dotenv import load_dotenv

from bid_recommender.config import RecommenderConfig
from bid_recommender.database import SCHEMA_SQL, DatabaseConnector
from bid_recommender.schemas import WeightsUpdateRequest

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def setup_database(config_path: str, dry_run: bool = False) -> bool:
    """Create schema and insert the global 'ALL' weight row"""
    config = RecommenderConfig.from_file(config_path)
    config.validate()
    default_weights = WeightsUpdateRequest(country='ALL', **config.default_weights)

    if dry_run:
        logger.info("DRY RUN: would execute schema:")
        logger.info(SCHEMA_SQL)
        logger.info(f"DRY RUN: would seed ALL weights {default_weights.model_dump()}")
        return True

    try:
        db = DatabaseConnector()
    except ValueError as e:
        logger.error(f"Database configuration error: {e}")
        return False

    db.create_tables()

    existing = {w.country for w in db.list_weights()}
    if 'ALL' in existing:
        logger.info("Global weight row already present, leaving it unchanged")
        return True

    return db.update_weights(default_weights)


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description='Create bid recommender tables')
    parser.add_argument('--config', default='config/bid_recommender.json',
                        help='Configuration file with default weights')
    parser.add_argument('--dry-run', action='store_true',
                        help='Show what would be created without making changes')

    args = parser.parse_args()

    success = setup_database(args.config, dry_run=args.dry_run)
    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
