#!/usr/bin/env python3
"""
Management commands for stored recommendations and configuration tables

Usage:
    python scripts/manage_recommendations.py history [--country DE] [--campaign ID] [--implemented] [--limit N]
    python scripts/manage_recommendations.py implement <recommendation_id>
    python scripts/manage_recommendations.py weights [--set COUNTRY T0 D30 D365 LIFETIME]
    python scripts/manage_recommendations.py target COUNTRY CAMPAIGN_ID [ACOS] [--name NAME]
"""

import argparse
import logging
import sys

from dotenv import load_dotenv
from pydantic import ValidationError

from bid_recommender.database import DatabaseConnector
from bid_recommender.schemas import AcosTargetUpdateRequest, HistoryQuery, WeightsUpdateRequest

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def show_history(db: DatabaseConnector, args: argparse.Namespace) -> int:
    query = HistoryQuery(
        country=args.country.upper() if args.country else None,
        campaign_id=args.campaign,
        recommendation_type=args.type,
        implemented_only=args.implemented,
        limit=args.limit,
    )
    recommendations = db.get_recommendation_history(query)
    for rec in recommendations:
        status = rec.implemented_at.strftime('%Y-%m-%d') if rec.implemented_at else 'open'
        print(
            f"{rec.id:>6} {rec.created_at:%Y-%m-%d} {rec.country} {rec.campaign_id} {rec.targeting} "
            f"{rec.recommendation_type} {rec.old_value:.2f} -> {rec.recommended_value:.2f} "
            f"[{rec.confidence}] {status}"
        )
    print(f"{len(recommendations)} recommendations")
    return 0


def implement(db: DatabaseConnector, args: argparse.Namespace) -> int:
    if db.mark_implemented(args.recommendation_id):
        print(f"Recommendation {args.recommendation_id} marked as implemented")
        return 0
    print(f"Recommendation {args.recommendation_id} not found or already implemented")
    return 1


def weights(db: DatabaseConnector, args: argparse.Namespace) -> int:
    if args.set:
        country, t0, d30, d365, lifetime = args.set
        try:
            request = WeightsUpdateRequest(country=country, t0=t0, d30=d30, d365=d365, lifetime=lifetime)
        except ValidationError as e:
            logger.error(f"Invalid weights: {e}")
            return 1
        if not db.update_weights(request):
            return 1

    for row in db.list_weights():
        print(f"{row.country:>4}  t0={row.t0:.2f}  30d={row.d30:.2f}  365d={row.d365:.2f}  lifetime={row.lifetime:.2f}")
    return 0


def target(db: DatabaseConnector, args: argparse.Namespace) -> int:
    current = db.get_acos_target(args.campaign_id, country=args.country.upper())
    current_text = f"{current:.2%}" if current is not None else "not set"
    if args.acos is None:
        print(f"{args.country.upper()} {args.campaign_id}: ACOS target {current_text}")
        return 0

    try:
        request = AcosTargetUpdateRequest(
            country=args.country, campaign_id=args.campaign_id,
            campaign_name=args.name, acos_target=args.acos,
        )
    except ValidationError as e:
        logger.error(f"Invalid ACOS target: {e}")
        return 1
    if not db.set_acos_target(request):
        return 1
    print(f"{request.country} {request.campaign_id}: ACOS target {current_text} -> {request.acos_target:.2%}")
    return 0


def main():
    load_dotenv()
    parser = argparse.ArgumentParser(description='Manage bid recommendations')
    subparsers = parser.add_subparsers(dest='command', required=True)

    history_parser = subparsers.add_parser('history', help='List stored recommendations, newest first')
    history_parser.add_argument('--country')
    history_parser.add_argument('--campaign')
    history_parser.add_argument('--type', choices=['keyword_bid', 'placement_adjustment'])
    history_parser.add_argument('--implemented', action='store_true', help='Only implemented recommendations')
    history_parser.add_argument('--limit', type=int, default=50)

    implement_parser = subparsers.add_parser('implement', help='Mark a recommendation as implemented')
    implement_parser.add_argument('recommendation_id', type=int)

    weights_parser = subparsers.add_parser('weights', help='List or set window weights')
    weights_parser.add_argument('--set', nargs=5, metavar=('COUNTRY', 'T0', 'D30', 'D365', 'LIFETIME'))

    target_parser = subparsers.add_parser('target', help='Show or set the ACOS target of a campaign')
    target_parser.add_argument('country')
    target_parser.add_argument('campaign_id')
    target_parser.add_argument('acos', type=float, nargs='?',
                               help='New target ACOS as a fraction, e.g. 0.2 (omit to show the current one)')
    target_parser.add_argument('--name', help='Campaign name')

    args = parser.parse_args()

    try:
        db = DatabaseConnector()
    except ValueError as e:
        logger.error(f"Database configuration error: {e}")
        sys.exit(1)

    commands = {
        'history': show_history,
        'implement': implement,
        'weights': weights,
        'target': target,
    }
    sys.exit(commands[args.command](db, args))


if __name__ == '__main__':
    main()
