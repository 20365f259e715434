"""
测试查询门面
"""
from datetime import date

import pytest

from coronavirus_api.data.processors import normalize
from coronavirus_api.domain import GLOBAL_SCOPE, DateRange, Granularity
from coronavirus_api.services import DataStatus, QueryFacade

from tests.fakes import REVISED_CSV


@pytest.fixture
def facade(cache, snapshot) -> QueryFacade:
    cache.publish(snapshot)
    return QueryFacade(cache)


class TestQueryFacade:
    def test_pending_before_first_publish(self, cache):
        facade = QueryFacade(cache)

        assert facade.get_countries().status == DataStatus.PENDING
        assert facade.get_records("AFGHANISTAN").items == ()
        assert not facade.get_buckets(GLOBAL_SCOPE, Granularity.MONTH).is_ready
        assert facade.get_status()["status"] == "pending"

    def test_countries_sorted_by_code(self, facade):
        result = facade.get_countries()
        assert result.status == DataStatus.READY
        assert result.generation == 1
        assert [c.code for c in result] == ["AFGHANISTAN", "AUSTRALIA.NEW-SOUTH-WALES"]

    def test_records_case_insensitive(self, facade):
        result = facade.get_records("afghanistan")
        assert [r.confirmed for r in result] == [0, 1, 3]
        assert all(r.country_code == "AFGHANISTAN" for r in result)

    def test_records_date_range(self, facade):
        window = DateRange(start=date(2020, 1, 31), end=date(2020, 2, 1))
        result = facade.get_records("AFGHANISTAN", window)
        assert [r.date for r in result] == [date(2020, 1, 31), date(2020, 2, 1)]

    def test_unknown_country_is_ready_and_empty(self, facade):
        result = facade.get_records("ZZ")
        assert result.status == DataStatus.READY
        assert result.items == ()
        assert facade.get_buckets("ZZ", Granularity.WEEK).items == ()

    def test_window_outside_data_is_empty(self, facade):
        window = DateRange(start=date(2021, 1, 1), end=date(2021, 12, 31))
        assert facade.get_records("AFGHANISTAN", window).items == ()
        assert facade.get_buckets(GLOBAL_SCOPE, Granularity.MONTH, window).items == ()

    def test_global_buckets(self, facade):
        result = facade.get_buckets("GLOBAL", Granularity.MONTH)
        assert [b.confirmed for b in result] == [5, 9]
        assert all(b.is_global for b in result)

    def test_granularity_accepts_plain_string(self, facade):
        result = facade.get_buckets(GLOBAL_SCOPE, "year")
        assert len(result) == 1

    def test_results_come_from_one_generation(self, cache, facade):
        before = facade.get_records("AFGHANISTAN")
        cache.publish(normalize(REVISED_CSV, generation=2))
        after = facade.get_records("AFGHANISTAN")

        assert before.generation == 1
        assert before.items[-1].confirmed == 3
        assert after.generation == 2
        assert after.items[-1].confirmed == 5

    def test_status(self, facade):
        status = facade.get_status()
        assert status["status"] == "ready"
        assert status["generation"] == 1
        assert status["countries"] == 2
        assert status["records"] == 6
