"""
测试聚合桶构建

聚合桶与同一快照中的逐日记录必须一致
"""
from datetime import date

import pytest

from coronavirus_api.data.processors import normalize
from coronavirus_api.domain import GLOBAL_SCOPE, DateRange, Granularity

from tests.fakes import SAMPLE_CSV

HEADER = b"Date,Country/Region,Province/State,Lat,Long,Confirmed,Recovered,Deaths\n"


class TestBuckets:
    def test_every_scope_and_granularity_is_present(self, snapshot):
        scopes = set(snapshot.countries) | {GLOBAL_SCOPE}
        for scope in scopes:
            for granularity in Granularity:
                assert snapshot.buckets_for(scope, granularity), (scope, granularity)

    def test_monthly_global_buckets(self, snapshot):
        january, february = snapshot.buckets_for(GLOBAL_SCOPE, Granularity.MONTH)

        assert (january.start, january.end) == (date(2020, 1, 1), date(2020, 1, 31))
        assert (january.confirmed, january.recovered, january.deceased) == (5, 1, 0)
        assert january.new_confirmed == 5

        assert (february.start, february.end) == (date(2020, 2, 1), date(2020, 2, 29))
        assert (february.confirmed, february.recovered, february.deceased) == (9, 3, 1)
        assert (february.new_confirmed, february.new_recovered, february.new_deceased) == (4, 2, 1)

    def test_weeks_start_on_monday(self, snapshot):
        (week,) = snapshot.buckets_for(GLOBAL_SCOPE, Granularity.WEEK)
        assert week.start == date(2020, 1, 27)
        assert week.end == date(2020, 2, 2)
        assert week.start.weekday() == 0
        assert week.confirmed == 9

    def test_yearly_bucket(self, snapshot):
        (year,) = snapshot.buckets_for("AFGHANISTAN", Granularity.YEAR)
        assert (year.start, year.end) == (date(2020, 1, 1), date(2020, 12, 31))
        assert year.confirmed == 3
        assert not year.is_global

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_buckets_match_last_record_in_period(self, snapshot, granularity):
        for code, records in snapshot.records.items():
            for bucket in snapshot.buckets_for(code, granularity):
                inside = [r for r in records if bucket.start <= r.date <= bucket.end]
                assert inside
                assert bucket.confirmed == inside[-1].confirmed
                assert bucket.recovered == inside[-1].recovered
                assert bucket.deceased == inside[-1].deceased

    @pytest.mark.parametrize("granularity", list(Granularity))
    def test_global_equals_sum_of_countries_on_last_day(self, snapshot, granularity):
        all_records = [r for records in snapshot.records.values() for r in records]
        for bucket in snapshot.buckets_for(GLOBAL_SCOPE, granularity):
            last_day = max(r.date for r in all_records if bucket.start <= r.date <= bucket.end)
            same_day = [r for r in all_records if r.date == last_day]
            assert bucket.confirmed == sum(r.confirmed for r in same_day)
            assert bucket.recovered == sum(r.recovered for r in same_day)
            assert bucket.deceased == sum(r.deceased for r in same_day)

    def test_deltas_sum_to_last_total(self, snapshot):
        buckets = snapshot.buckets_for("AUSTRALIA.NEW-SOUTH-WALES", Granularity.MONTH)
        assert sum(b.new_confirmed for b in buckets) == buckets[-1].confirmed

    def test_date_range_filters_overlapping_buckets(self, snapshot):
        window = DateRange(start=date(2020, 2, 1), end=date(2020, 2, 1))
        (bucket,) = snapshot.buckets_for(GLOBAL_SCOPE, Granularity.MONTH, window)
        assert bucket.start == date(2020, 2, 1)

    def test_gaps_between_periods(self):
        payload = (
            HEADER
            + b"2020-01-15,France,,46.2,2.2,10,0,0\n"
            + b"2020-03-15,France,,46.2,2.2,30,0,1\n"
        )
        snapshot = normalize(payload, generation=1)
        buckets = snapshot.buckets_for("FRANCE", Granularity.MONTH)
        assert [b.start.month for b in buckets] == [1, 3]
        assert buckets[1].new_confirmed == 20

    def test_to_dict(self):
        snapshot = normalize(SAMPLE_CSV, generation=1)
        data = snapshot.buckets_for(GLOBAL_SCOPE, Granularity.YEAR)[0].to_dict()
        assert data["scope"] == GLOBAL_SCOPE
        assert data["granularity"] == "year"
        assert data["start"] == "2020-01-01"

    def test_global_sums_each_country_at_its_own_last_day(self):
        payload = (
            HEADER
            + b"2020-01-30,Andorra,,,,10,0,0\n"
            + b"2020-01-31,Andorra,,,,20,1,0\n"
            + b"2020-01-30,Bhutan,,,,100,5,2\n"
        )
        snapshot = normalize(payload, generation=1)

        for granularity in Granularity:
            (andorra,) = snapshot.buckets_for("ANDORRA", granularity)
            (bhutan,) = snapshot.buckets_for("BHUTAN", granularity)
            (total,) = snapshot.buckets_for(GLOBAL_SCOPE, granularity)
            assert total.confirmed == andorra.confirmed + bhutan.confirmed == 120
            assert total.recovered == andorra.recovered + bhutan.recovered == 6
            assert total.deceased == 2

    def test_global_deltas_follow_summed_totals(self):
        payload = (
            HEADER
            + b"2020-01-15,Andorra,,,,10,0,0\n"
            + b"2020-02-10,Andorra,,,,30,0,0\n"
            + b"2020-01-20,Bhutan,,,,100,0,0\n"
            + b"2020-02-05,Bhutan,,,,150,0,0\n"
        )
        snapshot = normalize(payload, generation=1)

        january, february = snapshot.buckets_for(GLOBAL_SCOPE, Granularity.MONTH)
        assert january.confirmed == 110
        assert february.confirmed == 180
        assert february.new_confirmed == 70


class TestDateRange:
    def test_contains_is_inclusive(self):
        window = DateRange(start=date(2020, 2, 1), end=date(2020, 2, 29))
        assert window.contains(date(2020, 2, 1))
        assert window.contains(date(2020, 2, 29))
        assert not window.contains(date(2020, 3, 1))

    def test_open_ended(self):
        assert DateRange(end=date(2020, 1, 1)).contains(date(1999, 1, 1))
        assert DateRange().overlaps(date(2020, 1, 1), date(2020, 1, 31))

    def test_reversed_range_is_rejected(self):
        with pytest.raises(ValueError):
            DateRange(start=date(2020, 2, 1), end=date(2020, 1, 1))
