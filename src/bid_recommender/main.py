#!/usr/bin/env python3
"""
Main script for the Bid Recommendation Engine
Usage: python -m bid_recommender.main [options]
"""

import argparse
import logging
import os
import sys
from datetime import date, datetime
from typing import List, Optional

from dotenv import load_dotenv

from .config import RecommenderConfig
from .database import DatabaseConnector
from .exceptions import RecommendationRunError
from .recommendations import Recommendation
from .rule_engine import BidRecommendationEngine, RunSummary


def setup_logging(level: str = 'INFO', log_dir: str = 'logs') -> None:
    """Setup logging configuration"""
    log_level = getattr(logging, level.upper(), logging.INFO)
    os.makedirs(log_dir, exist_ok=True)

    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(os.path.join(log_dir, f'bid_recommender_{datetime.now().strftime("%Y%m%d")}.log'))
        ]
    )


def load_config(config_path: Optional[str]) -> RecommenderConfig:
    """Load configuration from file or fall back to defaults"""
    if config_path and os.path.exists(config_path):
        return RecommenderConfig.from_file(config_path)
    if config_path:
        print(f"Config file {config_path} not found, creating default configuration")
        config = RecommenderConfig()
        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)
        config.to_file(config_path)
        return config
    return RecommenderConfig()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Multi-timeframe weighted bid recommendation engine')
    parser.add_argument('--country', '-C', action='append', dest='countries',
                        help='Country to process (repeatable, default: all configured countries)')
    parser.add_argument('--campaigns', '-p', nargs='+',
                        help='Specific campaign IDs to analyze (default: all)')
    parser.add_argument('--config', '-c', default='config/bid_recommender.json',
                        help='Configuration file path')
    parser.add_argument('--date', type=date.fromisoformat,
                        help='Reference date YYYY-MM-DD (default: today)')
    parser.add_argument('--output', '-o',
                        help='Export generated recommendations to this file')
    parser.add_argument('--format', '-f', choices=['json', 'csv'], default='json',
                        help='Output format')
    parser.add_argument('--detect-bid-changes', action='store_true',
                        help='Refresh bid change history from daily bids before running')
    parser.add_argument('--log-level', '-l', choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        default='INFO', help='Logging level')
    parser.add_argument('--dry-run', action='store_true',
                        help='Compute recommendations without storing them')
    return parser


def print_summary(summaries: List[RunSummary], recommendations: List[Recommendation],
                  failed: dict) -> None:
    print("\n" + "=" * 60)
    print("BID RECOMMENDATION RESULTS")
    print("=" * 60)
    print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    for summary in summaries:
        print(
            f"{summary.country}: {summary.evaluated} evaluated | "
            f"{summary.keyword_recommendations} keyword / {summary.placement_recommendations} placement | "
            f"cooldown {summary.cooldown_suppressed} | insufficient {summary.insufficient_data} | "
            f"no target {summary.missing_target} | in band {summary.inside_band} | "
            f"errors {summary.data_errors} | write failures {summary.write_failures} | "
            f"portfolio balanced {summary.portfolio_balanced_campaigns}"
        )
        if summary.campaigns_with_both:
            print(f"    campaigns with keyword and placement changes: {', '.join(summary.campaigns_with_both)}")
    for country, error in failed.items():
        print(f"{country}: FAILED - {error}")
    print("=" * 60)

    if recommendations:
        print("\nTOP RECOMMENDATIONS:")
        print("-" * 60)
        for i, rec in enumerate(recommendations[:10], 1):
            unit = '%' if rec.recommendation_type == 'placement_adjustment' else ''
            print(f"{i:2d}. [{rec.country}] {rec.campaign_name or rec.campaign_id} - {rec.targeting}")
            print(f"     {rec.action.upper()}: {rec.old_value:.2f}{unit} -> {rec.recommended_value:.2f}{unit}")
            print(f"     Confidence: {rec.confidence}")
            print(f"     Reason: {rec.reason}")
            print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main function"""
    load_dotenv()
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config)
        config.validate()
        logger.info("Configuration loaded and validated")
    except (ValueError, TypeError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        db_connector = DatabaseConnector()
    except ValueError as e:
        logger.error(f"Database configuration error: {e}")
        logger.error("Please ensure DB_HOST, DB_PORT, DB_NAME, DB_USER, and DB_PASSWORD are set")
        return 1

    engine = BidRecommendationEngine(config, db_connector)

    if args.campaigns:
        summaries, recommendations, failed = [], [], {}
        for country in args.countries or config.countries:
            try:
                if args.detect_bid_changes:
                    engine.refresh_bid_changes(country)
                recs, summary = engine.run_country(country, args.campaigns, today=args.date,
                                                   dry_run=args.dry_run)
            except RecommendationRunError as e:
                logger.error(f"Run for {country} failed: {e}")
                failed[country] = str(e)
                continue
            summaries.append(summary)
            recommendations.extend(recs)
    else:
        totals = engine.generate_daily(args.countries, today=args.date,
                                       detect_bid_changes=args.detect_bid_changes,
                                       dry_run=args.dry_run)
        summaries = totals['summaries']
        recommendations = totals['recommendations']
        failed = totals['failed_countries']

    print_summary(summaries, recommendations, failed)

    if args.output:
        output_dir = os.path.dirname(args.output)
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
        engine.export_recommendations(recommendations, args.output, args.format)
        print(f"Recommendations exported to: {args.output}")

    if args.dry_run:
        print("DRY RUN: No recommendations stored")

    if failed and not summaries:
        logger.error("No country could be processed")
        return 1

    logger.info("Recommendation run completed")
    return 0


if __name__ == '__main__':
    sys.exit(main())
