import asyncio
import csv
import io
import logging

import pytest

from pgbulk import ConfigurationError, FileIngestionError, PGBulk, SchemaIntegrityError

from .fakes import FakeConnection, FakePool

HEADERS = ["id", "age", "name", "nickname", "address_id", "street", "state"]


def _users(prefix, count):
    return [
        {
            "id": f"{prefix}-u{i}",
            "age": str(20 + i),
            "name": f"name {i}",
            "nickname": "",
            "address_id": f"{prefix}-a{i}",
            "street": f"{i} Main St",
            "state": "SP",
        }
        for i in range(count)
    ]


def _copied_rows(connection):
    return list(csv.reader(io.StringIO(connection.copies[0]["data"].decode("utf-8"))))


@pytest.fixture
def users_dir(tmp_path):
    for n in range(2):
        with open(tmp_path / f"users-{n}.csv", "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=HEADERS)
            writer.writeheader()
            writer.writerows(_users(f"f{n}", 25))
    (tmp_path / "readme.txt").write_text("not data")
    return tmp_path


def _job(config, connection, **kwargs):
    config = {**config, "quiet": True, "loading": {"batch_size": 10, "queue_size": 2}}
    return PGBulk(config, pool=FakePool(connection), **kwargs)


@pytest.mark.asyncio
async def test_staging_run_follows_load_sequence(users_job, users_dir):
    connection = FakeConnection(
        indexes={"users": [("name_index", "CREATE INDEX name_index ON public.users USING btree (name)")]},
        constraints={"users": [("users_address_fkey", "FOREIGN KEY (address) REFERENCES addresses(id)")]},
    )
    job = _job(users_job, connection)
    assert job.using_staging is True
    assert len(job.register(str(users_dir), "users-*.csv")) == 2

    result = await job.start()

    executed = connection.executed
    assert executed[0].startswith('CREATE TEMPORARY TABLE "staging_users_job"')
    assert executed[1] == 'ANALYZE "staging_users_job"'
    assert executed[2].startswith("DROP INDEX IF EXISTS")
    assert executed[3].startswith('ALTER TABLE "users" DROP CONSTRAINT')
    assert executed[4].startswith('INSERT INTO "addresses"')
    assert set(executed[5:7]) == {
        "CREATE INDEX name_index ON public.users USING btree (name)",
        'ALTER TABLE "users" ADD CONSTRAINT "users_address_fkey" FOREIGN KEY (address) REFERENCES addresses(id)',
    }
    assert executed[7:] == ['ANALYZE "addresses"', 'ANALYZE "users"']

    assert connection.events[0] == "begin"
    assert connection.events[-1] == "commit"
    assert connection.events.index("copy") > connection.events.index("fetch")

    copy = connection.copies[0]
    assert copy["table"] == "staging_users_job"
    assert copy["columns"][0] == "addresses_id"
    assert result.strategy == "Staging"
    assert result.rows_copied == 50
    assert sorted(result.rows_per_file.values()) == [25, 25]
    assert (result.indexes, result.constraints) == (1, 1)


@pytest.mark.asyncio
async def test_rows_keep_file_order_and_references(users_job, users_dir):
    connection = FakeConnection()
    job = _job(users_job, connection)
    job.register(str(users_dir), "users-*.csv")
    await job.start()

    rows = _copied_rows(connection)
    assert len(rows) == 50
    # users_address (last column) always carries the row's address id
    assert all(row[-1] == row[0] for row in rows)
    first_file_ids = [row[3] for row in rows if row[3].startswith("f0-")]
    assert first_file_ids == [f"f0-u{i}" for i in range(25)]


@pytest.mark.asyncio
async def test_direct_run_copies_into_destination(addresses_job, users_dir):
    connection = FakeConnection()
    job = _job({**addresses_job, "schema_name": "pgbulk"}, connection)
    assert job.using_staging is False
    job.register(str(users_dir), "users-*.csv")

    result = await job.start()

    copy = connection.copies[0]
    assert (copy["table"], copy["schema"]) == ("addresses", "pgbulk")
    assert copy["columns"] == ["id", "street", "state"]
    rows = _copied_rows(connection)
    assert len(rows) == 50
    assert ["f0-a0", "0 Main St", "SP"] in rows
    assert connection.executed == ['ANALYZE "pgbulk"."addresses"']
    assert result.strategy == "Direct"


@pytest.mark.asyncio
async def test_no_files_fails_before_touching_database(users_job):
    connection = FakeConnection()
    pool = FakePool(connection)
    job = PGBulk({**users_job, "quiet": True}, pool=pool)

    with pytest.raises(ConfigurationError, match="No files registered"):
        await job.start()
    assert pool.acquired == 0
    assert connection.events == []


@pytest.mark.asyncio
async def test_async_parse_hook_runs_before_mapping(users_job, users_dir):
    async def shout(record):
        await asyncio.sleep(0)
        return {**record, "name": record["name"].upper()}

    connection = FakeConnection()
    job = _job(users_job, connection, parse=shout)
    job.register(str(users_dir), "users-0.csv")
    await job.start()

    names = [row[5] for row in _copied_rows(connection)]
    assert names[0] == "NAME 0"


@pytest.mark.asyncio
async def test_parse_hook_failure_rolls_back(users_job, users_dir):
    def explode(record):
        if record["id"] == "f1-u3":
            raise ValueError("bad row")
        return record

    connection = FakeConnection()
    job = _job(users_job, connection, parse=explode)
    job.register(str(users_dir), "users-*.csv")

    with pytest.raises(FileIngestionError, match="users-1.csv"):
        await job.start()
    assert connection.events[-1] == "rollback"
    assert not any(sql.startswith("INSERT") for sql in connection.executed)


@pytest.mark.asyncio
async def test_parse_hook_must_return_record(users_job, users_dir):
    connection = FakeConnection()
    job = _job(users_job, connection, parse=lambda record: None)
    job.register(str(users_dir), "users-0.csv")

    with pytest.raises(FileIngestionError, match="must return a mapping"):
        await job.start()


@pytest.mark.asyncio
async def test_copy_error_propagates_unchanged(users_job, users_dir):
    connection = FakeConnection(copy_error=RuntimeError("COPY failed"))
    job = _job(users_job, connection)
    job.register(str(users_dir), "users-*.csv")

    with pytest.raises(RuntimeError, match="COPY failed"):
        await job.start()
    assert connection.events[-1] == "rollback"


@pytest.mark.asyncio
async def test_integrity_failure_rolls_back(users_job, users_dir):
    connection = FakeConnection(
        indexes={"users": [("name_index", "CREATE INDEX name_index ON public.users USING btree (name)")]},
    )

    def lose_index(query):
        if query.startswith("DROP INDEX"):
            connection.indexes["users"] = []

    connection.on_execute = lose_index
    job = _job(users_job, connection)
    job.register(str(users_dir), "users-*.csv")

    with pytest.raises(SchemaIntegrityError):
        await job.start()
    assert connection.events[-1] == "rollback"


@pytest.mark.asyncio
async def test_on_finish_runs_inside_transaction(users_job, users_dir):
    connection = FakeConnection()
    calls = []

    async def refresh(conn):
        calls.append(conn)
        await conn.execute("REFRESH MATERIALIZED VIEW user_stats")

    job = _job(users_job, connection, on_finish=refresh)
    job.register(str(users_dir), "users-0.csv")
    await job.start()

    assert calls == [connection]
    assert connection.executed[-1] == "REFRESH MATERIALIZED VIEW user_stats"
    assert connection.events[-1] == "commit"


@pytest.mark.asyncio
async def test_injected_pool_survives_end(users_job):
    pool = FakePool(FakeConnection())
    async with PGBulk({**users_job, "quiet": True}, pool=pool):
        pass
    assert pool.closed is False


def test_invalid_config_raises_configuration_error():
    with pytest.raises(ConfigurationError):
        PGBulk({"tables": {"users": [{"destination_column": "a", "sql_type": "TEXT", "references_column": "b"}]}})


@pytest.mark.asyncio
async def test_quiet_job_logs_nothing(users_job, users_dir, monkeypatch, caplog):
    connection = FakeConnection()

    async def fake_create_pool(dsn, **kwargs):
        return FakePool(connection)

    monkeypatch.setattr("pgbulk.database.engine.asyncpg.create_pool", fake_create_pool)

    with caplog.at_level(logging.DEBUG):
        async with PGBulk({**users_job, "quiet": True}) as job:
            job.register(str(users_dir), "users-*.csv")
            await job.start()

    assert connection.events[-1] == "commit"
    assert [r for r in caplog.records if r.name.startswith("pgbulk")] == []


@pytest.mark.asyncio
async def test_job_logger_reaches_every_component(users_job, users_dir, monkeypatch, caplog):
    connection = FakeConnection()

    async def fake_create_pool(dsn, **kwargs):
        return FakePool(connection)

    monkeypatch.setattr("pgbulk.database.engine.asyncpg.create_pool", fake_create_pool)
    job_logger = logging.getLogger("pgbulk.tests.job")

    with caplog.at_level(logging.DEBUG):
        async with PGBulk(users_job, logger=job_logger) as job:
            job.register(str(users_dir), "users-*.csv")
            await job.start()

    messages = [r.getMessage() for r in caplog.records if r.name == "pgbulk.tests.job"]
    for tag in ("[ConnectionFactory]", "[Discovery]", "[Staging]", "[Orchestrator]"):
        assert any(m.startswith(tag) for m in messages), tag
    assert {r.name for r in caplog.records if r.name.startswith("pgbulk")} == {"pgbulk.tests.job"}
