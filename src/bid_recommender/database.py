"""
Database connector for the Bid Recommendation Engine
"""

import logging
import os
from contextlib import contextmanager
from dataclasses import fields
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional

import psycopg2
import psycopg2.extras

from .efficiency import Weights
from .entities import BidChangeRecord, EntityKind, TargetingEntity
from .exceptions import DataSourceError, StoreWriteError
from .recommendations import Recommendation
from .schemas import AcosTargetUpdateRequest, HistoryQuery, WeightsUpdateRequest

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS keyword_performance_daily (
    id SERIAL PRIMARY KEY,
    country VARCHAR(3) NOT NULL,
    report_date DATE NOT NULL,
    campaign_id TEXT NOT NULL,
    campaign_name TEXT,
    ad_group_id TEXT NOT NULL,
    ad_group_name TEXT,
    targeting TEXT NOT NULL,
    match_type VARCHAR(20),
    keyword_bid DOUBLE PRECISION,
    clicks INTEGER NOT NULL DEFAULT 0,
    cost DOUBLE PRECISION NOT NULL DEFAULT 0,
    sales DOUBLE PRECISION NOT NULL DEFAULT 0,
    orders INTEGER NOT NULL DEFAULT 0,
    UNIQUE (country, report_date, campaign_id, ad_group_id, targeting, match_type)
);

CREATE TABLE IF NOT EXISTS placement_performance_daily (
    id SERIAL PRIMARY KEY,
    country VARCHAR(3) NOT NULL,
    report_date DATE NOT NULL,
    campaign_id TEXT NOT NULL,
    campaign_name TEXT,
    placement TEXT NOT NULL,
    bid_adjustment DOUBLE PRECISION,
    clicks INTEGER NOT NULL DEFAULT 0,
    cost DOUBLE PRECISION NOT NULL DEFAULT 0,
    sales DOUBLE PRECISION NOT NULL DEFAULT 0,
    orders INTEGER NOT NULL DEFAULT 0,
    UNIQUE (country, report_date, campaign_id, placement)
);

CREATE TABLE IF NOT EXISTS weight_config (
    country VARCHAR(3) PRIMARY KEY,
    t0 DOUBLE PRECISION NOT NULL CHECK (t0 >= 0),
    d30 DOUBLE PRECISION NOT NULL CHECK (d30 >= 0),
    d365 DOUBLE PRECISION NOT NULL CHECK (d365 >= 0),
    lifetime DOUBLE PRECISION NOT NULL CHECK (lifetime >= 0),
    updated_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS acos_target_campaign (
    country VARCHAR(3) NOT NULL,
    campaign_id TEXT NOT NULL,
    campaign_name TEXT,
    acos_target DOUBLE PRECISION NOT NULL CHECK (acos_target > 0),
    updated_at TIMESTAMP NOT NULL DEFAULT NOW(),
    PRIMARY KEY (country, campaign_id)
);

CREATE TABLE IF NOT EXISTS bid_change_history (
    id SERIAL PRIMARY KEY,
    country VARCHAR(3),
    campaign_id TEXT NOT NULL,
    ad_group_id TEXT,
    targeting TEXT NOT NULL,
    kind VARCHAR(20) NOT NULL,
    date_adjusted DATE NOT NULL,
    previous_value DOUBLE PRECISION,
    new_value DOUBLE PRECISION NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS bid_change_history_entity_date
    ON bid_change_history (campaign_id, COALESCE(ad_group_id, ''), targeting, kind, date_adjusted);

CREATE TABLE IF NOT EXISTS recommendation_history (
    id SERIAL PRIMARY KEY,
    country VARCHAR(3) NOT NULL,
    campaign_id TEXT NOT NULL,
    campaign_name TEXT,
    ad_group_id TEXT,
    ad_group_name TEXT,
    targeting TEXT NOT NULL,
    match_type VARCHAR(20),
    recommendation_type VARCHAR(30) NOT NULL,
    action VARCHAR(10) NOT NULL,
    old_value DOUBLE PRECISION NOT NULL,
    recommended_value DOUBLE PRECISION NOT NULL,
    pre_acos_t0 DOUBLE PRECISION,
    pre_acos_d30 DOUBLE PRECISION,
    pre_acos_d365 DOUBLE PRECISION,
    pre_acos_lifetime DOUBLE PRECISION,
    pre_clicks_t0 INTEGER NOT NULL,
    pre_clicks_d30 INTEGER NOT NULL,
    pre_clicks_d365 INTEGER NOT NULL,
    pre_clicks_lifetime INTEGER NOT NULL,
    pre_cost_t0 DOUBLE PRECISION NOT NULL,
    pre_cost_d30 DOUBLE PRECISION NOT NULL,
    pre_cost_d365 DOUBLE PRECISION NOT NULL,
    pre_cost_lifetime DOUBLE PRECISION NOT NULL,
    pre_orders_t0 INTEGER NOT NULL,
    pre_orders_d30 INTEGER NOT NULL,
    pre_orders_d365 INTEGER NOT NULL,
    pre_orders_lifetime INTEGER NOT NULL,
    weighted_acos DOUBLE PRECISION,
    acos_target DOUBLE PRECISION NOT NULL,
    confidence VARCHAR(10) NOT NULL,
    reason TEXT NOT NULL,
    created_at TIMESTAMP NOT NULL,
    implemented_at TIMESTAMP
);

CREATE INDEX IF NOT EXISTS recommendation_history_country_created
    ON recommendation_history (country, created_at DESC);
"""

RECOMMENDATION_COLUMNS = [f.name for f in fields(Recommendation) if f.name != 'id']


class DatabaseConnector:
    """PostgreSQL data source and recommendation store"""

    def __init__(self, connection_string: str = None):
        """
        Initialize database connector

        Args:
            connection_string: PostgreSQL connection string (optional, will use env vars if not provided)
        """
        if connection_string:
            self.connection_string = connection_string
        else:
            db_host = os.getenv('DB_HOST', 'localhost')
            db_port = os.getenv('DB_PORT', '5432')
            db_name = os.getenv('DB_NAME', 'bid_recommender')
            db_user = os.getenv('DB_USER', 'postgres')
            db_password = os.getenv('DB_PASSWORD')

            if not db_password:
                raise ValueError("DB_PASSWORD environment variable is required")

            self.connection_string = f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"

        self.logger = logging.getLogger(__name__)

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """Get database connection, committed on success and always closed"""
        conn = psycopg2.connect(self.connection_string)
        try:
            with conn:
                yield conn
        finally:
            conn.close()

    def create_tables(self) -> None:
        """Create all tables and indexes if they do not exist"""
        with self.get_connection() as conn:
            with conn.cursor() as cursor:
                cursor.execute(SCHEMA_SQL)
        self.logger.info("Database schema is up to date")

    # ------------------------------------------------------------------ #
    # Entities and performance
    # ------------------------------------------------------------------ #

    def get_targeting_entities(self, country: str, kind: EntityKind,
                               campaign_ids: Optional[List[str]] = None,
                               limit: Optional[int] = 500) -> List[TargetingEntity]:
        """
        Get keywords or placements of a country, highest lifetime cost first

        Args:
            country: Country code
            kind: Entity kind to list
            campaign_ids: Restrict to these campaigns (None for all)
            limit: Maximum number of entities (None for all)

        Returns:
            List of targeting entities with their latest bid or adjustment
        """
        if kind == EntityKind.KEYWORD:
            query = """
            SELECT
                campaign_id,
                MAX(campaign_name) AS campaign_name,
                ad_group_id,
                MAX(ad_group_name) AS ad_group_name,
                targeting,
                match_type,
                (ARRAY_AGG(keyword_bid ORDER BY report_date DESC)
                    FILTER (WHERE keyword_bid IS NOT NULL))[1] AS current_value,
                SUM(cost) AS lifetime_cost
            FROM keyword_performance_daily
            WHERE country = %(country)s
            AND (%(campaign_ids)s::text[] IS NULL OR campaign_id = ANY(%(campaign_ids)s::text[]))
            GROUP BY campaign_id, ad_group_id, targeting, match_type
            ORDER BY lifetime_cost DESC
            LIMIT %(limit)s
            """
        else:
            query = """
            SELECT
                campaign_id,
                MAX(campaign_name) AS campaign_name,
                NULL AS ad_group_id,
                NULL AS ad_group_name,
                placement AS targeting,
                NULL AS match_type,
                (ARRAY_AGG(bid_adjustment ORDER BY report_date DESC)
                    FILTER (WHERE bid_adjustment IS NOT NULL))[1] AS current_value,
                SUM(cost) AS lifetime_cost
            FROM placement_performance_daily
            WHERE country = %(country)s
            AND (%(campaign_ids)s::text[] IS NULL OR campaign_id = ANY(%(campaign_ids)s::text[]))
            GROUP BY campaign_id, placement
            ORDER BY lifetime_cost DESC
            LIMIT %(limit)s
            """

        params = {
            'country': country,
            'campaign_ids': [str(c) for c in campaign_ids] if campaign_ids else None,
            'limit': limit,
        }

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, params)
                    rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error listing {kind.value} entities for {country}: {e}") from e

        return [
            TargetingEntity(
                country=country,
                campaign_id=str(row['campaign_id']),
                ad_group_id=str(row['ad_group_id']) if row['ad_group_id'] is not None else None,
                targeting=row['targeting'],
                kind=kind,
                match_type=row['match_type'],
                campaign_name=row['campaign_name'],
                ad_group_name=row['ad_group_name'],
                current_value=float(row['current_value']) if row['current_value'] is not None else None,
                lifetime_cost=float(row['lifetime_cost'] or 0),
            )
            for row in rows
        ]

    def get_window_totals(self, entity: TargetingEntity, start_date: Optional[date],
                          end_date: date) -> Dict[str, Any]:
        """
        Sum clicks, cost, sales and orders of an entity over a date range

        Args:
            entity: Targeting entity
            start_date: Inclusive start (None for all history)
            end_date: Inclusive end

        Returns:
            Dictionary with clicks, cost, sales and orders

        Raises:
            DataSourceError: when the query fails
        """
        if entity.kind == EntityKind.KEYWORD:
            query = """
            SELECT
                COALESCE(SUM(clicks), 0) AS clicks,
                COALESCE(SUM(cost), 0) AS cost,
                COALESCE(SUM(sales), 0) AS sales,
                COALESCE(SUM(orders), 0) AS orders
            FROM keyword_performance_daily
            WHERE country = %(country)s
            AND campaign_id = %(campaign_id)s
            AND ad_group_id = %(ad_group_id)s
            AND targeting = %(targeting)s
            AND match_type IS NOT DISTINCT FROM %(match_type)s
            AND (%(start_date)s::date IS NULL OR report_date >= %(start_date)s::date)
            AND report_date <= %(end_date)s
            """
        else:
            query = """
            SELECT
                COALESCE(SUM(clicks), 0) AS clicks,
                COALESCE(SUM(cost), 0) AS cost,
                COALESCE(SUM(sales), 0) AS sales,
                COALESCE(SUM(orders), 0) AS orders
            FROM placement_performance_daily
            WHERE country = %(country)s
            AND campaign_id = %(campaign_id)s
            AND placement = %(targeting)s
            AND (%(start_date)s::date IS NULL OR report_date >= %(start_date)s::date)
            AND report_date <= %(end_date)s
            """

        params = {
            'country': entity.country,
            'campaign_id': entity.campaign_id,
            'ad_group_id': entity.ad_group_id,
            'targeting': entity.targeting,
            'match_type': entity.match_type,
            'start_date': start_date,
            'end_date': end_date,
        }

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, params)
                    row = cursor.fetchone()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error reading totals for {entity.display_name}: {e}") from e

        return dict(row) if row else {}

    def get_daily_bids(self, country: str) -> List[Dict[str, Any]]:
        """
        Get the daily keyword bid snapshots of a country

        Returns:
            Rows with campaign_id, ad_group_id, targeting, match_type, report_date, bid
        """
        query = """
        SELECT campaign_id, ad_group_id, targeting, match_type, report_date, keyword_bid AS bid
        FROM keyword_performance_daily
        WHERE country = %s
        AND keyword_bid IS NOT NULL
        ORDER BY campaign_id, ad_group_id, targeting, match_type, report_date
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (country,))
                    return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            self.logger.error(f"Error getting daily bids for {country}: {e}")
            return []

    # ------------------------------------------------------------------ #
    # Configuration tables
    # ------------------------------------------------------------------ #

    def get_weights(self, country: str) -> Optional[Weights]:
        """
        Get window weights of a country, falling back to the global 'ALL' row

        Args:
            country: Country code

        Returns:
            Weights, or None when neither row exists
        """
        query = """
        SELECT country, t0, d30, d365, lifetime
        FROM weight_config
        WHERE country IN (%s, 'ALL')
        ORDER BY (country = 'ALL')
        LIMIT 1
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (country,))
                    row = cursor.fetchone()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error reading weights for {country}: {e}") from e

        if not row:
            return None
        return Weights.from_mapping(row, country=row['country'])

    def list_weights(self) -> List[Weights]:
        """List all weight rows"""
        query = "SELECT country, t0, d30, d365, lifetime FROM weight_config ORDER BY country"

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query)
                    return [Weights.from_mapping(row, country=row['country']) for row in cursor.fetchall()]
        except Exception as e:
            self.logger.error(f"Error listing weights: {e}")
            return []

    def update_weights(self, request: WeightsUpdateRequest) -> bool:
        """
        Insert or update the weights of one country

        Args:
            request: Validated weights update

        Returns:
            True if successful, False otherwise
        """
        query = """
        INSERT INTO weight_config (country, t0, d30, d365, lifetime, updated_at)
        VALUES (%(country)s, %(t0)s, %(d30)s, %(d365)s, %(lifetime)s, NOW())
        ON CONFLICT (country) DO UPDATE SET
            t0 = EXCLUDED.t0,
            d30 = EXCLUDED.d30,
            d365 = EXCLUDED.d365,
            lifetime = EXCLUDED.lifetime,
            updated_at = NOW()
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, request.model_dump())
            self.logger.info(f"Weights updated for {request.country}")
            return True
        except Exception as e:
            self.logger.error(f"Error updating weights for {request.country}: {e}")
            return False

    def get_acos_targets(self, country: str) -> Dict[str, float]:
        """
        Get the ACOS target of every campaign of a country

        Returns:
            Mapping of campaign ID to target ACOS (fraction)
        """
        query = """
        SELECT campaign_id, acos_target
        FROM acos_target_campaign
        WHERE country = %s
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (country,))
                    rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error reading ACOS targets for {country}: {e}") from e

        return {str(row['campaign_id']): float(row['acos_target']) for row in rows}

    def get_acos_target(self, campaign_id: str, country: Optional[str] = None) -> Optional[float]:
        """Get the ACOS target of one campaign, None if not set"""
        query = """
        SELECT acos_target
        FROM acos_target_campaign
        WHERE campaign_id = %s
        AND (%s::text IS NULL OR country = %s)
        LIMIT 1
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (str(campaign_id), country, country))
                    row = cursor.fetchone()
                    return float(row['acos_target']) if row else None
        except Exception as e:
            self.logger.error(f"Error getting ACOS target for campaign {campaign_id}: {e}")
            return None

    def set_acos_target(self, request: AcosTargetUpdateRequest) -> bool:
        """Insert or update the ACOS target of one campaign"""
        query = """
        INSERT INTO acos_target_campaign (country, campaign_id, campaign_name, acos_target, updated_at)
        VALUES (%(country)s, %(campaign_id)s, %(campaign_name)s, %(acos_target)s, NOW())
        ON CONFLICT (country, campaign_id) DO UPDATE SET
            campaign_name = COALESCE(EXCLUDED.campaign_name, acos_target_campaign.campaign_name),
            acos_target = EXCLUDED.acos_target,
            updated_at = NOW()
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, request.model_dump())
            self.logger.info(f"ACOS target for campaign {request.campaign_id} set to {request.acos_target:.2%}")
            return True
        except Exception as e:
            self.logger.error(f"Error setting ACOS target for campaign {request.campaign_id}: {e}")
            return False

    # ------------------------------------------------------------------ #
    # Bid change history
    # ------------------------------------------------------------------ #

    def get_last_change_date(self, entity: TargetingEntity) -> Optional[date]:
        """
        Get the date of the most recent change of an entity

        Args:
            entity: Targeting entity

        Returns:
            Date of the last change, None if never changed
        """
        query = """
        SELECT MAX(date_adjusted) AS last_change
        FROM bid_change_history
        WHERE campaign_id = %s
        AND ad_group_id IS NOT DISTINCT FROM %s
        AND targeting = %s
        AND kind = %s
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (entity.campaign_id, entity.ad_group_id,
                                           entity.targeting, entity.kind.value))
                    row = cursor.fetchone()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error reading last change for {entity.display_name}: {e}") from e

        return row['last_change'] if row else None

    def get_bid_change_history(self, entity: TargetingEntity) -> List[BidChangeRecord]:
        """
        Get all recorded changes of an entity, oldest first

        Raises:
            DataSourceError: when the query fails
        """
        query = """
        SELECT campaign_id, ad_group_id, targeting, kind, date_adjusted, previous_value, new_value
        FROM bid_change_history
        WHERE campaign_id = %s
        AND ad_group_id IS NOT DISTINCT FROM %s
        AND targeting = %s
        AND kind = %s
        ORDER BY date_adjusted
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (entity.campaign_id, entity.ad_group_id,
                                           entity.targeting, entity.kind.value))
                    rows = cursor.fetchall()
        except psycopg2.Error as e:
            raise DataSourceError(f"Error reading change history for {entity.display_name}: {e}") from e

        return [
            BidChangeRecord(
                campaign_id=row['campaign_id'],
                ad_group_id=row['ad_group_id'],
                targeting=row['targeting'],
                kind=EntityKind(row['kind']),
                date_adjusted=row['date_adjusted'],
                previous_value=row['previous_value'],
                new_value=row['new_value'],
            )
            for row in rows
        ]

    def get_change_dates(self, country: str, kind: EntityKind = EntityKind.KEYWORD) -> Dict[tuple, List[date]]:
        """Known change dates per entity key of a country"""
        query = """
        SELECT campaign_id, ad_group_id, targeting, date_adjusted
        FROM bid_change_history
        WHERE country = %s
        AND kind = %s
        """

        dates: Dict[tuple, List[date]] = {}
        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (country, kind.value))
                    for row in cursor.fetchall():
                        key = (row['campaign_id'], row['ad_group_id'], row['targeting'])
                        dates.setdefault(key, []).append(row['date_adjusted'])
        except Exception as e:
            self.logger.error(f"Error getting change dates for {country}: {e}")
        return dates

    def record_bid_change(self, record: BidChangeRecord, country: Optional[str] = None) -> Optional[int]:
        """
        Save a bid change record, ignoring duplicates

        Returns:
            Inserted change ID, None if it already existed or failed
        """
        query = """
        INSERT INTO bid_change_history (
            country, campaign_id, ad_group_id, targeting, kind,
            date_adjusted, previous_value, new_value
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT DO NOTHING
        RETURNING id
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (
                        country, record.campaign_id, record.ad_group_id, record.targeting,
                        record.kind.value, record.date_adjusted, record.previous_value, record.new_value,
                    ))
                    row = cursor.fetchone()
                    return row[0] if row else None
        except Exception as e:
            self.logger.error(f"Error saving bid change for {record.targeting}: {e}")
            return None

    # ------------------------------------------------------------------ #
    # Recommendations
    # ------------------------------------------------------------------ #

    def save_recommendation(self, recommendation: Recommendation) -> int:
        """
        Insert a recommendation

        Args:
            recommendation: Recommendation to store

        Returns:
            Inserted recommendation ID

        Raises:
            StoreWriteError: when the insert fails
        """
        columns = ', '.join(RECOMMENDATION_COLUMNS)
        placeholders = ', '.join(f'%({name})s' for name in RECOMMENDATION_COLUMNS)
        query = f"INSERT INTO recommendation_history ({columns}) VALUES ({placeholders}) RETURNING id"

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, recommendation.to_record())
                    row = cursor.fetchone()
        except psycopg2.Error as e:
            raise StoreWriteError(f"Error saving recommendation for {recommendation.targeting}: {e}") from e

        if not row:
            raise StoreWriteError("Recommendation insert returned no ID")
        return row[0]

    def mark_implemented(self, recommendation_id: int, implemented_at: Optional[datetime] = None) -> bool:
        """
        Set the implementation timestamp of a recommendation

        Returns:
            True if a not yet implemented recommendation was updated
        """
        query = """
        UPDATE recommendation_history
        SET implemented_at = %s
        WHERE id = %s
        AND implemented_at IS NULL
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (implemented_at or datetime.now(), recommendation_id))
                    updated = cursor.rowcount > 0
        except Exception as e:
            self.logger.error(f"Error marking recommendation {recommendation_id} implemented: {e}")
            return False

        if not updated:
            self.logger.warning(f"Recommendation {recommendation_id} not found or already implemented")
        return updated

    def get_recommendation(self, recommendation_id: int) -> Optional[Recommendation]:
        """Get one recommendation by ID"""
        query = "SELECT * FROM recommendation_history WHERE id = %s"

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (recommendation_id,))
                    row = cursor.fetchone()
                    return Recommendation.from_record(row) if row else None
        except Exception as e:
            self.logger.error(f"Error getting recommendation {recommendation_id}: {e}")
            return None

    def get_recommendation_history(self, query_filter: Optional[HistoryQuery] = None) -> List[Recommendation]:
        """
        Get stored recommendations, newest first

        Args:
            query_filter: Optional filters (country, campaign, type, implemented only, limit)

        Returns:
            List of recommendations
        """
        query_filter = query_filter or HistoryQuery()
        query = """
        SELECT *
        FROM recommendation_history
        WHERE (%(country)s::text IS NULL OR country = %(country)s)
        AND (%(campaign_id)s::text IS NULL OR campaign_id = %(campaign_id)s)
        AND (%(recommendation_type)s::text IS NULL OR recommendation_type = %(recommendation_type)s)
        AND (NOT %(implemented_only)s OR implemented_at IS NOT NULL)
        ORDER BY created_at DESC, id DESC
        LIMIT %(limit)s
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, query_filter.model_dump())
                    return [Recommendation.from_record(row) for row in cursor.fetchall()]
        except Exception as e:
            self.logger.error(f"Error getting recommendation history: {e}")
            return []
