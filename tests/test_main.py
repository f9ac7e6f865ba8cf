"""Tests for the command line entry point."""

import json
from datetime import date

import pytest

from bid_recommender import main as cli

from conftest import TODAY, day, make_keyword


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def wired(data_source, monkeypatch):
    data_source.set_target('DE', 'C1', 0.20)
    data_source.add_entity(make_keyword(bid=1.00), [day(5, clicks=100, cost=40.0, sales=100.0, orders=4)])
    monkeypatch.setattr(cli, 'DatabaseConnector', lambda: data_source)
    return data_source


def test_parser_options():
    args = cli.build_parser().parse_args(['-C', 'DE', '-C', 'FR', '--date', '2025-06-01', '--dry-run'])
    assert args.countries == ['DE', 'FR']
    assert args.date == date(2025, 6, 1)
    assert args.dry_run
    assert args.format == 'json'


def test_dry_run_exports_without_storing(workdir, wired, capsys):
    output = workdir / "out" / "recs.json"
    code = cli.main(['-C', 'DE', '--config', str(workdir / 'config.json'), '--date', TODAY.isoformat(),
                     '--dry-run', '--output', str(output)])

    assert code == 0
    assert wired.saved == []
    data = json.loads(output.read_text())
    assert data['recommendations'][0]['recommended_value'] == 0.50
    assert "DRY RUN" in capsys.readouterr().out
    assert (workdir / 'config.json').exists()


def test_campaign_filter_run_stores(workdir, wired):
    code = cli.main(['-C', 'DE', '--campaigns', 'C1', '--config', str(workdir / 'config.json'),
                     '--date', TODAY.isoformat()])
    assert code == 0
    assert len(wired.saved) == 1


def test_all_countries_failing_returns_error(workdir, wired):
    code = cli.main(['-C', 'IT', '--config', str(workdir / 'config.json'), '--date', TODAY.isoformat()])
    assert code == 1


def test_invalid_config_returns_error(workdir, wired):
    path = workdir / 'config.json'
    path.write_text(json.dumps({'cooldown_days': -5}))
    assert cli.main(['--config', str(path)]) == 1
