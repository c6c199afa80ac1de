import pytest

from pgbulk.core.strategies import (
    DirectStrategy,
    StagingStrategy,
    requires_staging,
    select_strategy,
    staging_columns,
)
from pgbulk.setup.config.models import JobConfig


def _single_table(**column_overrides):
    column = {"destination_column": "id", "sql_type": "TEXT"}
    column.update(column_overrides)
    return {"tables": {"addresses": [column, {"destination_column": "street", "sql_type": "TEXT"}]}}


@pytest.mark.parametrize("force_staging", [False, True])
def test_single_plain_table_follows_force_flag(force_staging):
    config = JobConfig.model_validate({**_single_table(), "force_staging": force_staging})
    assert requires_staging(config) is force_staging


@pytest.mark.parametrize("force_staging", [False, True])
def test_multiple_tables_always_stage(users_job, force_staging):
    config = JobConfig.model_validate({**users_job, "force_staging": force_staging})
    assert requires_staging(config) is True


@pytest.mark.parametrize(
    "overrides",
    [
        {"expand": True, "sql_type": "TEXT[]"},
        {"cast_type": "INT"},
        {"expand": True, "sql_type": "TEXT[]", "cast_type": "INT"},
    ],
)
def test_expand_or_cast_column_stages(overrides):
    config = JobConfig.model_validate(_single_table(**overrides))
    assert requires_staging(config) is True


def test_select_strategy_direct(addresses_job):
    strategy = select_strategy(JobConfig.model_validate(addresses_job))

    assert isinstance(strategy, DirectStrategy)
    assert strategy.get_name() == "Direct"
    assert strategy.copy_target == ("addresses", None)
    assert strategy.copy_columns == ["id", "street", "state"]


def test_select_strategy_staging(users_job):
    config = JobConfig.model_validate({**users_job, "schema_name": "pgbulk"})
    strategy = select_strategy(config)

    assert isinstance(strategy, StagingStrategy)
    # temporary table is never schema-qualified
    assert strategy.copy_target == ("staging_users_job", None)
    assert strategy.copy_columns == [
        "addresses_id", "addresses_street", "addresses_state",
        "users_id", "users_age", "users_name", "users_nickname", "users_address",
    ]


def test_direct_strategy_targets_schema(addresses_job):
    strategy = select_strategy(JobConfig.model_validate({**addresses_job, "schema_name": "pgbulk"}))
    assert strategy.copy_target == ("addresses", "pgbulk")


def test_staging_columns_keep_declared_types(users_job):
    columns = staging_columns(JobConfig.model_validate(users_job))
    assert ("users_age", "INT") in columns
    assert columns[0] == ("addresses_id", "TEXT")


@pytest.mark.asyncio
async def test_staging_strategy_statements(users_job, fake_connection):
    from pgbulk.database.session import LoadSession

    strategy = StagingStrategy(JobConfig.model_validate(users_job))
    session = LoadSession(fake_connection)

    await strategy.prepare(session)
    await strategy.analyze_staging(session)
    await strategy.merge(session)

    create, analyze, merge = fake_connection.executed
    assert create.startswith('CREATE TEMPORARY TABLE "staging_users_job" (')
    assert '"users_age" INT' in create
    assert analyze == 'ANALYZE "staging_users_job"'
    assert merge.count("ON CONFLICT DO NOTHING;") == 2
    assert merge.index('INSERT INTO "addresses"') < merge.index('INSERT INTO "users"')


@pytest.mark.asyncio
async def test_direct_strategy_issues_no_statements(addresses_job, fake_connection):
    from pgbulk.database.session import LoadSession

    strategy = DirectStrategy(JobConfig.model_validate(addresses_job))
    session = LoadSession(fake_connection)

    await strategy.prepare(session)
    await strategy.analyze_staging(session)
    await strategy.merge(session)

    assert fake_connection.executed == []
