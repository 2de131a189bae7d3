"""Tests for the cached example-values provider."""

from __future__ import annotations

from entities.shared.example_values import ATTENDANCE_STATUSES, ExampleValuesProvider

from tests.conftest import FakeSqlExecutor, HangingSqlExecutor

_SAMPLES = [
    [{"name": "5A", "level": 5}],
    [{"first_name": "Asha", "last_name": "Rao", "admission_number": "A1", "roll_number": 1}],
    [{"fee_type": "tuition"}, {"fee_type": "transport"}],
    [{"exam_type": "midterm", "name": "Midterm 2024"}],
    [{"academic_year": "2024-25"}],
    [{"name": "Green Valley", "code": "GV", "city": "Pune", "state": "MH"}],
]


class _RaisingExecutor:
    async def execute(self, query: str):
        raise ConnectionError("database unreachable")


async def test_loads_and_flattens() -> None:
    executor = FakeSqlExecutor(_SAMPLES)

    values = await ExampleValuesProvider(executor).get()

    assert len(executor.calls) == 6
    assert values["classes"] == [{"name": "5A", "level": 5}]
    assert values["fee_types"] == ["tuition", "transport"]
    assert values["academic_years"] == ["2024-25"]
    assert values["attendance_statuses"] == ATTENDANCE_STATUSES


async def test_row_limit_in_queries() -> None:
    executor = FakeSqlExecutor(_SAMPLES)

    await ExampleValuesProvider(executor, rows_per_table=3).get()

    assert executor.calls[0].endswith("LIMIT 3")


async def test_cached_within_ttl() -> None:
    executor = FakeSqlExecutor(_SAMPLES)
    provider = ExampleValuesProvider(executor)

    first = await provider.get()
    second = await provider.get()

    assert first == second
    assert len(executor.calls) == 6


async def test_reloads_when_stale() -> None:
    executor = FakeSqlExecutor(_SAMPLES * 2)
    provider = ExampleValuesProvider(executor, ttl_seconds=0)

    await provider.get()
    await provider.get()

    assert len(executor.calls) == 12


async def test_clear_forces_reload() -> None:
    executor = FakeSqlExecutor(_SAMPLES * 2)
    provider = ExampleValuesProvider(executor)

    await provider.get()
    provider.clear()
    await provider.get()

    assert len(executor.calls) == 12


async def test_failed_query_returns_empty_and_is_not_cached() -> None:
    executor = FakeSqlExecutor(['relation "classes" does not exist', *_SAMPLES])
    provider = ExampleValuesProvider(executor)

    assert await provider.get() == {}
    assert len(executor.calls) == 1

    values = await provider.get()
    assert values["fee_types"] == ["tuition", "transport"]


async def test_executor_exception_returns_empty() -> None:
    assert await ExampleValuesProvider(_RaisingExecutor()).get() == {}


async def test_hanging_query_times_out_and_is_not_cached() -> None:
    executor = HangingSqlExecutor()
    provider = ExampleValuesProvider(executor, timeout_seconds=0.01)

    assert await provider.get() == {}
    assert await provider.get() == {}
    assert len(executor.calls) == 2
