"""Tests for the ``games`` table upsert helpers."""

from __future__ import annotations

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.dialects import mysql

from db import utils as db_utils
from games import repository
from games.schema import TIME_FIELDS, ensure_games_table


@pytest.fixture
def database(tmp_path):
    engine_wrapper = db_utils.build_engine_from_dsn(f"sqlite:///{tmp_path / 'games.db'}")
    ensure_games_table(engine_wrapper.engine)
    yield engine_wrapper
    engine_wrapper.dispose()


def _stamp():
    return '2024-01-01T00:00:00+00:00'


def test_ensure_games_table_creates_expected_columns(database):
    with database.sa_connection() as conn:
        columns = {col['name'] for col in inspect(conn).get_columns('games')}

    assert {'id', 'appid', 'hltb_id', 'name', 'owners', 'updated_at'} <= columns
    assert set(TIME_FIELDS) <= columns
    assert len(TIME_FIELDS) == 15


def test_upsert_by_appid_inserts_then_merges(database):
    with database.sa_connection() as conn:
        with conn.begin():
            first = repository.upsert_by_appid(
                conn,
                620,
                {'name': 'Portal 2', 'developer': 'Valve', 'review_score': 95},
                timestamp_factory=_stamp,
            )
        with conn.begin():
            second = repository.upsert_by_appid(
                conn,
                620,
                {'name': None, 'developer': None, 'publisher': 'Valve', 'main_avg': 30600.0},
            )

    assert first['name'] == 'Portal 2'
    assert first['owners'] == 0
    assert first['updated_at'] == _stamp()
    assert second['id'] == first['id']
    assert second['name'] == 'Portal 2'
    assert second['developer'] == 'Valve'
    assert second['review_score'] == 95
    assert second['publisher'] == 'Valve'
    assert second['main_avg'] == 30600.0


def test_upsert_by_appid_with_null_partial_leaves_row_unchanged(database):
    stored = {
        'name': 'Half-Life',
        'description': 'A scientist.',
        'release_date': '8 Nov, 1998',
        'developer': 'Valve',
        'publisher': 'Valve',
        'review_score': 96,
        'main_avg': 43200.0,
    }
    with database.sa_connection() as conn:
        with conn.begin():
            before = repository.upsert_by_appid(conn, 70, stored, timestamp_factory=_stamp)
        with conn.begin():
            after = repository.upsert_by_appid(
                conn,
                70,
                {key: None for key in stored},
                timestamp_factory=_stamp,
            )

    assert after == before


def test_upsert_by_appid_ignores_unknown_fields(database):
    with database.sa_connection() as conn:
        with conn.begin():
            row = repository.upsert_by_appid(
                conn, 10, {'name': 'Counter-Strike', 'owners': 999, 'hltb_name': 'CS'}
            )

    assert row['name'] == 'Counter-Strike'
    assert row['owners'] == 0


def test_upsert_by_name_inserts_new_row(database):
    with database.sa_connection() as conn:
        with conn.begin():
            row = repository.upsert_by_name(
                conn, 'Celeste', {'hltb_id': 42818, 'main_avg': 28800.0, 'extra_avg': None}
            )

    assert row['name'] == 'Celeste'
    assert row['hltb_id'] == 42818
    assert row['main_avg'] == 28800.0
    assert row['extra_avg'] is None
    assert row['appid'] is None


def test_upsert_by_name_prefers_hltb_id_over_name(database):
    with database.sa_connection() as conn:
        with conn.begin():
            by_id = repository.upsert_by_appid(
                conn, 504230, {'name': 'Celeste', 'hltb_id': 42818, 'developer': 'Maddy Makes Games'}
            )
            repository.upsert_by_name(conn, 'celeste classic', {'main_avg': 600.0})
        with conn.begin():
            merged = repository.upsert_by_name(
                conn, 'Celeste Classic', {'hltb_id': 42818, 'main_avg': 28800.0}
            )

    assert merged['id'] == by_id['id']
    assert merged['name'] == 'Celeste'
    assert merged['developer'] == 'Maddy Makes Games'
    assert merged['main_avg'] == 28800.0


def test_upsert_by_name_falls_back_to_case_insensitive_name(database):
    with database.sa_connection() as conn:
        with conn.begin():
            original = repository.upsert_by_appid(
                conn, 413150, {'name': 'Stardew Valley', 'publisher': 'ConcernedApe'}
            )
        with conn.begin():
            merged = repository.upsert_by_name(
                conn, 'stardew valley', {'hltb_id': 34716, 'completionist_avg': 550800.0}
            )

    assert merged['id'] == original['id']
    assert merged['hltb_id'] == 34716
    assert merged['publisher'] == 'ConcernedApe'
    assert merged['completionist_avg'] == 550800.0


def test_upsert_by_appid_adopts_row_created_by_name(database):
    with database.sa_connection() as conn:
        with conn.begin():
            named = repository.upsert_by_name(conn, 'Hades', {'hltb_id': 62941, 'main_avg': 81000.0})
        with conn.begin():
            linked = repository.upsert_by_appid(
                conn, 1145360, {'name': 'Hades', 'hltb_id': 62941, 'developer': 'Supergiant Games'}
            )
        rows = conn.execute(select(repository.games_table)).fetchall()

    assert len(rows) == 1
    assert linked['id'] == named['id']
    assert linked['appid'] == 1145360
    assert linked['main_avg'] == 81000.0
    assert linked['developer'] == 'Supergiant Games'


def test_upsert_by_appid_drops_hltb_id_owned_by_other_app(database):
    with database.sa_connection() as conn:
        with conn.begin():
            repository.upsert_by_appid(conn, 1, {'name': 'First', 'hltb_id': 7})
        with conn.begin():
            second = repository.upsert_by_appid(conn, 2, {'name': 'Second', 'hltb_id': 7})

    assert second['appid'] == 2
    assert second['hltb_id'] is None


def test_build_appid_upsert_uses_duplicate_key_update_for_mariadb():
    stmt = repository.build_appid_upsert('mariadb', 5, {'name': 'Game', 'updated_at': 'now'})

    compiled = str(stmt.compile(dialect=mysql.dialect()))

    assert 'ON DUPLICATE KEY UPDATE' in compiled
    assert 'ON CONFLICT' not in compiled
    assert repository.build_appid_upsert('postgresql', 5, {'name': 'Game'}) is None


def test_upsert_by_appid_keeps_existing_row_when_name_row_owns_hltb_id(database):
    with database.sa_connection() as conn:
        with conn.begin():
            app_row = repository.upsert_by_appid(conn, 10, {'name': 'Half-Life'})
        with conn.begin():
            named = repository.upsert_by_name(conn, 'HalfLife', {'hltb_id': 77, 'main_avg': 43200.0})
        with conn.begin():
            updated = repository.upsert_by_appid(
                conn, 10, {'name': 'Half-Life', 'hltb_id': 77, 'developer': 'Valve'}
            )
        untouched = repository.get_game_by_id(conn, named['id'])

    assert updated['id'] == app_row['id']
    assert updated['developer'] == 'Valve'
    assert updated['hltb_id'] is None
    assert untouched['hltb_id'] == 77
    assert untouched['appid'] is None
    assert untouched['main_avg'] == 43200.0
