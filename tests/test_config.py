"""Tests for configuration loading, validation and update schemas."""

import pytest
from pydantic import ValidationError

from bid_recommender.config import RecommenderConfig
from bid_recommender.schemas import AcosTargetUpdateRequest, HistoryQuery, WeightsUpdateRequest


class TestRecommenderConfig:
    def test_defaults_are_valid(self):
        config = RecommenderConfig()
        assert config.validate()
        assert config.cooldown_days == 14
        assert config.default_weights == {'t0': 0.35, 'd30': 0.25, 'd365': 0.25, 'lifetime': 0.15}

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        RecommenderConfig(cooldown_days=21, countries=['DE']).to_file(str(path))

        loaded = RecommenderConfig.from_file(str(path))
        assert loaded.cooldown_days == 21
        assert loaded.countries == ['DE']

    def test_missing_file_gives_defaults(self, tmp_path):
        assert RecommenderConfig.from_file(str(tmp_path / "absent.json")) == RecommenderConfig()

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"not_a_setting": 1}')
        with pytest.raises(TypeError):
            RecommenderConfig.from_file(str(path))

    @pytest.mark.parametrize("overrides", [
        {'default_weights': {'t0': 0.5, 'd30': 0.5, 'd365': 0.5, 'lifetime': 0.5}},
        {'default_weights': {'t0': 1.0}},
        {'keyword_max_decrease': 1.0},
        {'max_bid_multiplier': 1.0},
        {'t0_reset_policy': 'sometimes'},
        {'placement_min_adjustment': 900.0},
        {'no_sales_click_tiers': [[100, 1.5]]},
        {'countries': []},
        {'write_retry_attempts': 0},
    ])
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError, match="Configuration validation failed"):
            RecommenderConfig(**overrides).validate()

    def test_all_errors_reported_together(self):
        with pytest.raises(ValueError) as excinfo:
            RecommenderConfig(min_clicks=-1, cooldown_days=-1).validate()
        assert "Minimum clicks" in str(excinfo.value)
        assert "Cooldown days" in str(excinfo.value)


class TestSchemas:
    def test_weights_update(self):
        request = WeightsUpdateRequest(country='de', t0=0.4, d30=0.3, d365=0.2, lifetime=0.1)
        weights = request.to_weights()
        assert weights.country == 'DE'
        assert weights.total == pytest.approx(1.0)

    def test_weights_within_tolerance(self):
        assert WeightsUpdateRequest(t0=0.35, d30=0.25, d365=0.25, lifetime=0.145).country == 'ALL'

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValidationError, match="sum to 1.0"):
            WeightsUpdateRequest(t0=0.5, d30=0.5, d365=0.5, lifetime=0.5)

    def test_negative_weight_rejected(self):
        with pytest.raises(ValidationError):
            WeightsUpdateRequest(t0=-0.1, d30=0.5, d365=0.4, lifetime=0.2)

    @pytest.mark.parametrize("target", [0.0, 1.5])
    def test_acos_target_range(self, target):
        with pytest.raises(ValidationError):
            AcosTargetUpdateRequest(country='DE', campaign_id='C1', acos_target=target)

    def test_acos_target(self):
        request = AcosTargetUpdateRequest(country='fr', campaign_id='C1', acos_target=0.25)
        assert request.country == 'FR'

    def test_history_query(self):
        assert HistoryQuery().limit == 100
        with pytest.raises(ValidationError):
            HistoryQuery(recommendation_type='bogus')
        with pytest.raises(ValidationError):
            HistoryQuery(limit=0)
