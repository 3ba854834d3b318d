import pytest

from gtfs_services.db import Database, build_copy_query, connect, quote_identifier


@pytest.fixture
def dsn(tmp_path):
    return f"sqlite:///{tmp_path / 'test.db'}"


@pytest.fixture
def database(dsn):
    db = connect(dsn)
    db.execute("CREATE TABLE trips (trip_id TEXT, route_id TEXT, feed_id TEXT)")
    yield db
    db.close()


def test_quote_identifier_plain():
    assert quote_identifier("trip_id") == '"trip_id"'


def test_quote_identifier_doubles_quotes():
    assert quote_identifier('we"ird') == '"we""ird"'


def test_build_copy_query():
    assert build_copy_query("trips", ["trip_id", "route_id"]) == (
        'COPY trips ("trip_id", "route_id") FROM STDIN WITH (FORMAT csv, HEADER true)'
    )


def test_connect_rejects_bad_url():
    with pytest.raises(ValueError):
        connect("definitely not a url")


def test_connect_ping_failure(tmp_path):
    missing = tmp_path / "no" / "such" / "dir" / "x.db"
    with pytest.raises(ConnectionError, match="db ping"):
        connect(f"sqlite:///{missing}")


def test_execute_and_query_one_round_trip(database):
    affected = database.execute(
        "INSERT INTO trips (trip_id, route_id, feed_id) VALUES (:t, :r, :f)",
        {"t": "T1", "r": "A", "f": "7"},
    )
    assert affected == 1
    row = database.query_one(
        "SELECT trip_id, route_id, feed_id FROM trips WHERE trip_id = :t", {"t": "T1"}
    )
    assert row == ("T1", "A", "7")


def test_query_one_no_rows(database):
    assert database.query_one("SELECT trip_id FROM trips WHERE trip_id = :t", {"t": "x"}) is None


def test_copy_from_csv_file_loads_rows(database, tmp_path):
    csv_path = tmp_path / "trips.csv"
    csv_path.write_text("trip_id,route_id,feed_id\nT1,A,3\nT2,C,3\nT3,E,3\n", encoding="utf-8")
    count = database.copy_from_csv_file("trips", ["trip_id", "route_id", "feed_id"], str(csv_path))
    assert count == 3
    assert database.query_one("SELECT COUNT(*) FROM trips") == (3,)
    assert database.query_one("SELECT route_id FROM trips WHERE trip_id = 'T2'") == ("C",)


def test_copy_from_header_only(database, tmp_path):
    csv_path = tmp_path / "empty.csv"
    csv_path.write_text("trip_id,route_id,feed_id\n", encoding="utf-8")
    assert database.copy_from("trips", ["trip_id", "route_id", "feed_id"], str(csv_path)) == 0
    assert database.query_one("SELECT COUNT(*) FROM trips") == (0,)


def test_copy_from_ragged_row(database, tmp_path):
    csv_path = tmp_path / "bad.csv"
    csv_path.write_text("trip_id,route_id,feed_id\nT1,A\n", encoding="utf-8")
    with pytest.raises(ValueError):
        database.copy_from("trips", ["trip_id", "route_id", "feed_id"], str(csv_path))


def test_copy_from_missing_file(database, tmp_path):
    with pytest.raises(FileNotFoundError):
        database.copy_from("trips", ["trip_id"], str(tmp_path / "missing.csv"))


def test_context_manager_closes(dsn):
    with connect(dsn) as db:
        assert db.query_one("SELECT 1") == (1,)
    assert db.closed
    with pytest.raises(RuntimeError):
        db.execute("SELECT 1")


def test_close_twice_is_harmless(dsn):
    db = connect(dsn)
    db.close()
    db.close()
    assert db.closed is True


def test_database_wraps_engine(dsn):
    from sqlalchemy import create_engine

    db = Database(create_engine(dsn))
    assert db.query_one("SELECT 2") == (2,)
    db.close()