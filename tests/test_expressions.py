# Daybook
# Copyright (C) 2024 The Daybook Authors
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; version 3
# of the License or (at your option) any later version of
# the License.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston,
# MA  02110-1301, USA.

"""Tests for daybook.expressions."""

import unittest
from datetime import date, datetime, timedelta, timezone

from daybook import expressions
from daybook.expressions import (
    ALWAYS,
    FRIDAY,
    MONDAY,
    NEVER,
    SATURDAY,
    AfterDate,
    And,
    BeforeDate,
    Cadence,
    Daily,
    Date,
    DateRange,
    DayEvent,
    DayOfMonth,
    Month,
    MonthRange,
    Monthly,
    Not,
    Or,
    TemporalExpression,
    Weekday,
    WeekdayRange,
    WeekInMonth,
    Weekly,
    Year,
    YearRange,
    Yearly,
    after_date,
    before_date,
    date_range,
    dates,
    day_event,
    day_range,
    days,
    days_in_month,
    end_of_month,
    includes,
    is_leap_year,
    next_n,
    next_occurrence,
    week_of_month,
    weekdays,
)


def _all_subclasses(cls):
    for subclass in cls.__subclasses__():
        yield subclass
        yield from _all_subclasses(subclass)


def _days(start, end):
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


class CalendarHelperTests(unittest.TestCase):
    def test_is_leap_year(self):
        self.assertTrue(is_leap_year(2000))
        self.assertTrue(is_leap_year(2024))
        self.assertFalse(is_leap_year(1900))
        self.assertFalse(is_leap_year(2023))

    def test_days_in_month(self):
        self.assertEqual(28, days_in_month(2023, 2))
        self.assertEqual(29, days_in_month(2024, 2))
        self.assertEqual(31, days_in_month(2024, 12))
        self.assertEqual(30, days_in_month(2024, 4))

    def test_end_of_month(self):
        self.assertEqual(date(2024, 2, 29), end_of_month(date(2024, 2, 10)))
        self.assertEqual(date(2023, 2, 28), end_of_month(datetime(2023, 2, 1, 12)))

    def test_week_of_month(self):
        # June 2024 starts on a Saturday
        self.assertEqual(1, week_of_month(date(2024, 6, 1)))
        self.assertEqual(1, week_of_month(date(2024, 6, 2)))
        self.assertEqual(2, week_of_month(date(2024, 6, 3)))
        self.assertEqual(5, week_of_month(date(2024, 6, 30)))


class ExpressionValueTests(unittest.TestCase):
    def test_equality(self):
        self.assertEqual(Weekday(MONDAY), Weekday(MONDAY))
        self.assertNotEqual(Weekday(MONDAY), Weekday(FRIDAY))
        self.assertEqual(hash(Month(3)), hash(Month(3)))

    def test_equality_across_kinds(self):
        self.assertNotEqual(Weekday(1), DayOfMonth(1))
        self.assertNotEqual(Month(1), Year(1))
        self.assertNotEqual(And(ALWAYS), Or(ALWAYS))

    def test_repr(self):
        self.assertEqual("Weekday(1)", repr(Weekday(1)))
        self.assertEqual("And(Weekday(1), Month(2))", repr(And(Weekday(1), Month(2))))
        self.assertEqual("Or()", repr(Or()))

    def test_operators(self):
        self.assertEqual(And(Weekday(1), Month(2)), Weekday(1) & Month(2))
        self.assertEqual(Or(Weekday(1), Month(2)), Weekday(1) | Month(2))
        self.assertEqual(Not(Year(2024)), ~Year(2024))

    def test_helpers(self):
        self.assertEqual(Or(DayOfMonth(1), DayOfMonth(15)), days(1, 15))
        self.assertEqual(Or(Weekday(1), Weekday(5)), weekdays(MONDAY, FRIDAY))
        self.assertEqual(Or(Date(2024, 1, 2)), dates(date(2024, 1, 2)))
        self.assertEqual(
            DateRange(3, 10, 5, 20),
            date_range(datetime(2024, 3, 10, 9), datetime(2024, 5, 20, 17)),
        )

    def test_cadence_bounds(self):
        self.assertRaises(ValueError, Daily, 2024, 1, 1, 0)
        self.assertRaises(ValueError, Monthly, 2024, 1, 1, 1, -1)
        self.assertEqual(date(2024, 1, 1), Daily(2024, 1, 1).anchor)


class IncludesTests(unittest.TestCase):
    def test_every_kind_has_handler(self):
        for cls in _all_subclasses(TemporalExpression):
            if cls.__module__ != expressions.__name__ or cls is Cadence:
                continue
            self.assertIn(cls, expressions._HANDLERS, cls.__name__)

    def test_unknown_kind(self):
        class Unknown(TemporalExpression):
            __slots__ = ()

        self.assertRaises(TypeError, includes, Unknown(), date(2024, 1, 1))

    def test_always_never(self):
        self.assertTrue(ALWAYS.includes(date(2024, 1, 1)))
        self.assertFalse(NEVER.includes(date(2024, 1, 1)))

    def test_empty_combinators(self):
        self.assertTrue(And().includes(date(2024, 1, 1)))
        self.assertFalse(Or().includes(date(2024, 1, 1)))

    def test_combinators(self):
        expr = And(Weekday(MONDAY), Not(Month(1)))
        self.assertFalse(expr.includes(date(2024, 1, 1)))
        self.assertTrue(expr.includes(date(2024, 2, 5)))
        self.assertFalse(expr.includes(date(2024, 2, 6)))
        expr = Or(Year(2020), Month(12))
        self.assertTrue(expr.includes(date(2020, 6, 1)))
        self.assertTrue(expr.includes(date(2021, 12, 1)))
        self.assertFalse(expr.includes(date(2021, 11, 30)))

    def test_weekday(self):
        # 2024-01-01 is a Monday
        self.assertTrue(Weekday(MONDAY).includes(date(2024, 1, 1)))
        self.assertFalse(Weekday(MONDAY).includes(date(2024, 1, 2)))
        self.assertTrue(WeekdayRange(MONDAY, FRIDAY).includes(date(2024, 1, 5)))
        self.assertFalse(WeekdayRange(MONDAY, FRIDAY).includes(date(2024, 1, 6)))
        self.assertTrue(Weekday(SATURDAY).includes(date(2024, 1, 6)))

    def test_last_day_of_month(self):
        expr = DayOfMonth(-1)
        for day in _days(date(2023, 1, 1), date(2024, 12, 31)):
            self.assertEqual(
                day == end_of_month(day), expr.includes(day), day.isoformat()
            )

    def test_day_of_month_negative(self):
        self.assertTrue(DayOfMonth(-2).includes(date(2024, 2, 28)))
        self.assertTrue(DayOfMonth(-2).includes(date(2023, 2, 27)))
        self.assertFalse(DayOfMonth(-2).includes(date(2023, 2, 28)))

    def test_day_of_month_missing(self):
        self.assertFalse(DayOfMonth(30).includes(date(2024, 2, 29)))
        self.assertTrue(DayOfMonth(30).includes(date(2024, 4, 30)))

    def test_day_range(self):
        self.assertTrue(day_range(1, -1).includes(date(2024, 2, 29)))
        self.assertTrue(day_range(-7, -1).includes(date(2024, 2, 23)))
        self.assertFalse(day_range(-7, -1).includes(date(2024, 2, 22)))
        self.assertTrue(day_range(10, 12).includes(date(2024, 5, 11)))
        self.assertFalse(day_range(10, 12).includes(date(2024, 5, 13)))

    def test_week_in_month(self):
        self.assertTrue(WeekInMonth(2).includes(date(2024, 6, 3)))
        self.assertFalse(WeekInMonth(2).includes(date(2024, 6, 2)))
        self.assertTrue(WeekInMonth(-1).includes(date(2024, 6, 24)))
        self.assertFalse(WeekInMonth(-1).includes(date(2024, 6, 23)))

    def test_month_year(self):
        self.assertTrue(Month(2).includes(date(2024, 2, 1)))
        self.assertTrue(MonthRange(3, 5).includes(date(2024, 4, 30)))
        self.assertFalse(MonthRange(3, 5).includes(date(2024, 6, 1)))
        self.assertTrue(Year(2024).includes(datetime(2024, 12, 31, 23, 59)))
        self.assertTrue(YearRange(2020, 2022).includes(date(2022, 1, 1)))
        self.assertFalse(YearRange(2020, 2022).includes(date(2023, 1, 1)))

    def test_date(self):
        self.assertTrue(Date(2024, 1, 1).includes(date(2024, 1, 1)))
        self.assertTrue(
            Date(2024, 1, 1).includes(datetime(2024, 1, 1, 23, tzinfo=timezone.utc))
        )
        self.assertFalse(Date(2024, 1, 1).includes(date(2023, 1, 1)))

    def test_date_range(self):
        expr = DateRange(3, 10, 5, 20)
        self.assertFalse(expr.includes(date(2024, 3, 9)))
        self.assertTrue(expr.includes(date(2024, 3, 10)))
        self.assertTrue(expr.includes(date(2024, 4, 1)))
        self.assertTrue(expr.includes(date(2019, 5, 20)))
        self.assertFalse(expr.includes(date(2024, 5, 21)))
        self.assertFalse(expr.includes(date(2024, 6, 1)))

    def test_date_range_single_month(self):
        expr = DateRange(3, 10, 3, 12)
        self.assertTrue(expr.includes(date(2024, 3, 11)))
        self.assertFalse(expr.includes(date(2024, 3, 13)))
        self.assertFalse(expr.includes(date(2024, 3, 9)))

    def test_before_after_date(self):
        self.assertTrue(
            before_date(datetime(2024, 3, 10, 23, 59)).includes(date(2024, 3, 9))
        )
        self.assertFalse(
            before_date(datetime(2024, 3, 10, 0, 1)).includes(
                datetime(2024, 3, 10, 0, 0)
            )
        )
        self.assertEqual(AfterDate(date(2024, 3, 10)), after_date(date(2024, 3, 10)))
        self.assertTrue(after_date(date(2024, 3, 10)).includes(date(2024, 3, 11)))
        self.assertFalse(after_date(date(2024, 3, 10)).includes(date(2024, 3, 10)))
        inclusive = after_date(datetime(2024, 3, 10, 18), inclusive=True)
        self.assertTrue(inclusive.includes(datetime(2024, 3, 10, 1)))
        self.assertFalse(inclusive.includes(date(2024, 3, 9)))
        self.assertTrue(BeforeDate(date(2024, 1, 1)).includes(date(2023, 12, 31)))

    def test_day_event(self):
        expr = day_event(datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 10, 30))
        self.assertEqual(DayEvent(540, 630), expr)
        self.assertTrue(expr.includes(datetime(2024, 5, 5, 9, 0)))
        self.assertTrue(expr.includes(datetime(2024, 5, 5, 10, 29)))
        self.assertFalse(expr.includes(datetime(2024, 5, 5, 10, 30)))
        self.assertFalse(expr.includes(date(2024, 5, 5)))


class CadenceTests(unittest.TestCase):
    def test_daily(self):
        expr = Daily(2024, 1, 1, 3)
        self.assertTrue(expr.includes(date(2024, 1, 1)))
        self.assertFalse(expr.includes(date(2024, 1, 2)))
        self.assertTrue(expr.includes(date(2024, 1, 4)))
        self.assertFalse(expr.includes(date(2023, 12, 29)))

    def test_daily_count(self):
        expr = Daily(2024, 1, 1, 2, 2)
        self.assertTrue(expr.includes(date(2024, 1, 1)))
        self.assertTrue(expr.includes(date(2024, 1, 3)))
        self.assertTrue(expr.includes(date(2024, 1, 5)))
        self.assertFalse(expr.includes(date(2024, 1, 7)))

    def test_weekly(self):
        expr = Weekly(2024, 1, 1, 2)
        self.assertTrue(expr.includes(date(2024, 1, 15)))
        self.assertFalse(expr.includes(date(2024, 1, 8)))
        self.assertFalse(expr.includes(date(2024, 1, 16)))
        self.assertFalse(expr.includes(date(2023, 12, 18)))

    def test_monthly(self):
        expr = Monthly(2014, 1, 15)
        self.assertTrue(expr.includes(date(2014, 2, 15)))
        self.assertTrue(expr.includes(date(2014, 3, 15)))
        self.assertFalse(expr.includes(date(2014, 2, 14)))
        self.assertFalse(expr.includes(date(2014, 2, 16)))
        self.assertFalse(expr.includes(date(2013, 12, 15)))

    def test_monthly_skips_short_months(self):
        expr = Monthly(2024, 1, 31)
        self.assertFalse(expr.includes(date(2024, 2, 29)))
        self.assertTrue(expr.includes(date(2024, 3, 31)))
        self.assertFalse(expr.includes(date(2024, 4, 30)))

    def test_monthly_interval_count(self):
        expr = Monthly(2024, 1, 10, 3, 1)
        self.assertTrue(expr.includes(date(2024, 1, 10)))
        self.assertFalse(expr.includes(date(2024, 2, 10)))
        self.assertTrue(expr.includes(date(2024, 4, 10)))
        self.assertFalse(expr.includes(date(2024, 7, 10)))

    def test_yearly(self):
        expr = Yearly(2020, 5, 1, 2)
        self.assertTrue(expr.includes(date(2020, 5, 1)))
        self.assertTrue(expr.includes(date(2022, 5, 1)))
        self.assertTrue(expr.includes(date(2022, 5, 2)))
        self.assertTrue(expr.includes(date(2022, 12, 31)))
        self.assertFalse(expr.includes(date(2021, 5, 1)))
        self.assertFalse(expr.includes(date(2018, 5, 1)))

    def test_yearly_whole_year(self):
        expr = Yearly(2020, 2, 29)
        self.assertTrue(expr.includes(date(2024, 2, 29)))
        self.assertTrue(expr.includes(date(2021, 2, 28)))
        self.assertTrue(expr.includes(date(2021, 3, 1)))
        self.assertFalse(expr.includes(date(2019, 12, 31)))

    def test_yearly_count(self):
        expr = Yearly(2020, 1, 1, 2, 2)
        self.assertTrue(expr.includes(date(2022, 7, 1)))
        self.assertTrue(expr.includes(date(2024, 7, 1)))
        self.assertFalse(expr.includes(date(2026, 7, 1)))


class NextOccurrenceTests(unittest.TestCase):
    def test_next_occurrence(self):
        self.assertEqual(
            datetime(2024, 1, 8), next_occurrence(date(2024, 1, 2), Weekday(MONDAY))
        )
        self.assertEqual(
            datetime(2024, 1, 1), next_occurrence(date(2024, 1, 1), Weekday(MONDAY))
        )

    def test_next_occurrence_aware(self):
        self.assertEqual(
            datetime(2024, 1, 8, tzinfo=timezone.utc),
            next_occurrence(
                datetime(2024, 1, 2, 15, tzinfo=timezone.utc), Weekday(MONDAY)
            ),
        )

    def test_next_occurrence_none(self):
        self.assertIsNone(next_occurrence(date(2024, 1, 1), NEVER, horizon=10))
        self.assertIsNone(
            next_occurrence(date(2024, 1, 1), Date(2024, 1, 20), horizon=10)
        )

    def test_next_n(self):
        self.assertEqual(
            [datetime(2024, 1, 31), datetime(2024, 2, 29), datetime(2024, 3, 31)],
            next_n(date(2024, 1, 1), DayOfMonth(-1), 3),
        )

    def test_next_n_exhausted(self):
        self.assertEqual([], next_n(date(2024, 1, 1), NEVER, 3, horizon=5))
        self.assertEqual(
            [datetime(2024, 1, 1), datetime(2024, 1, 3)],
            next_n(date(2024, 1, 1), Daily(2024, 1, 1, 2, 1), 5, horizon=30),
        )
