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

"""Temporal expressions.

A temporal expression is a predicate over a calendar day. Leaf expressions
match a single calendar field (day of the week, day of the month, month,
year, ...) or a periodic cadence; And, Or and Not combine them into trees.

Day fields are always taken from the queried value as it is, in its own
time zone. Callers that care about which day a point in time falls on
should convert it to the relevant zone first.
"""

import calendar as _mod_calendar
from collections.abc import Callable
from datetime import date, datetime, time, timedelta
from typing import Any, Optional, Union

DateLike = Union[date, datetime]

# ISO days of the week, as returned by date.isoweekday()
MONDAY = 1
TUESDAY = 2
WEDNESDAY = 3
THURSDAY = 4
FRIDAY = 5
SATURDAY = 6
SUNDAY = 7

# Number of days next_occurrence() scans before giving up
DEFAULT_HORIZON = 3660


def is_leap_year(year: int) -> bool:
    return _mod_calendar.isleap(year)


def days_in_month(year: int, month: int) -> int:
    return _mod_calendar.monthrange(year, month)[1]


def as_date(when: DateLike) -> date:
    """Return the calendar day of a date or datetime."""
    if isinstance(when, datetime):
        return when.date()
    return when


def beginning_of_day(when: DateLike) -> datetime:
    """Return midnight of the day `when` falls on, keeping its time zone."""
    if isinstance(when, datetime):
        return when.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.combine(when, time())


def end_of_month(when: DateLike) -> date:
    d = as_date(when)
    return d.replace(day=days_in_month(d.year, d.month))


def week_of_month(when: DateLike) -> int:
    """Return the week of the month `when` falls in.

    Weeks start on Monday; week 1 is the week containing the first day of
    the month.
    """
    d = as_date(when)
    return (d.day + d.replace(day=1).weekday() - 1) // 7 + 1


def _minute_of_day(when: DateLike) -> int:
    if isinstance(when, datetime):
        return when.hour * 60 + when.minute
    return 0


class TemporalExpression:
    """A predicate over calendar days.

    Subclasses list their attributes in `_fields`; equality, hashing and
    representation are derived from those.
    """

    __slots__ = ()
    _fields: tuple[str, ...] = ()

    def _values(self) -> tuple:
        return tuple(getattr(self, name) for name in self._fields)

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self._values() == other._values()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._values()))

    def __repr__(self) -> str:
        return "{}({})".format(
            type(self).__name__, ", ".join(repr(v) for v in self._values())
        )

    def __and__(self, other: "TemporalExpression") -> "And":
        return And(self, other)

    def __or__(self, other: "TemporalExpression") -> "Or":
        return Or(self, other)

    def __invert__(self) -> "Not":
        return Not(self)

    def includes(self, when: DateLike) -> bool:
        """Check whether this expression includes the day of `when`."""
        return includes(self, when)


class Always(TemporalExpression):
    __slots__ = ()


class Never(TemporalExpression):
    """Matches nothing; the state of a rule that has not been compiled."""

    __slots__ = ()


ALWAYS = Always()
NEVER = Never()


class Weekday(TemporalExpression):
    """Matches an ISO day of the week (1 is Monday, 7 is Sunday)."""

    __slots__ = _fields = ("day",)

    def __init__(self, day: int) -> None:
        self.day = day


class WeekdayRange(TemporalExpression):
    """Matches days of the week between start and end, inclusive.

    The range is compared numerically and does not wrap around the end of
    the week.
    """

    __slots__ = _fields = ("start", "end")

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end


class DayOfMonth(TemporalExpression):
    """Matches a day of the month.

    Negative days count back from the end of the month, -1 being the last
    day of whichever month the queried day is in.
    """

    __slots__ = _fields = ("day",)

    def __init__(self, day: int) -> None:
        self.day = day

    def normalize(self, when: DateLike) -> int:
        if self.day < 0:
            d = as_date(when)
            return days_in_month(d.year, d.month) + self.day + 1
        return self.day


class DayRange(TemporalExpression):
    __slots__ = _fields = ("start", "end")

    def __init__(self, start: DayOfMonth, end: DayOfMonth) -> None:
        self.start = start
        self.end = end


class WeekInMonth(TemporalExpression):
    """Matches a week of the month; see week_of_month().

    Negative weeks count back from the last week of the queried month.
    """

    __slots__ = _fields = ("week",)

    def __init__(self, week: int) -> None:
        self.week = week

    def normalize(self, when: DateLike) -> int:
        if self.week < 0:
            return week_of_month(end_of_month(when)) + self.week + 1
        return self.week


class Month(TemporalExpression):
    __slots__ = _fields = ("month",)

    def __init__(self, month: int) -> None:
        self.month = month


class MonthRange(TemporalExpression):
    __slots__ = _fields = ("start", "end")

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end


class Year(TemporalExpression):
    __slots__ = _fields = ("year",)

    def __init__(self, year: int) -> None:
        self.year = year


class YearRange(TemporalExpression):
    __slots__ = _fields = ("start", "end")

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end


class Date(TemporalExpression):
    """Matches exactly one calendar day."""

    __slots__ = _fields = ("year", "month", "day")

    def __init__(self, year: int, month: int, day: int) -> None:
        self.year = year
        self.month = month
        self.day = day


class DateRange(TemporalExpression):
    """Matches the days between two month/day pairs of any year, inclusive.

    The window does not wrap around the end of the year.
    """

    __slots__ = _fields = ("start_month", "start_day", "end_month", "end_day")

    def __init__(
        self, start_month: int, start_day: int, end_month: int, end_day: int
    ) -> None:
        self.start_month = start_month
        self.start_day = start_day
        self.end_month = end_month
        self.end_day = end_day


class BeforeDate(TemporalExpression):
    """Matches days strictly before a given day."""

    __slots__ = _fields = ("day",)

    def __init__(self, day: date) -> None:
        self.day = day


class AfterDate(TemporalExpression):
    """Matches days strictly after a given day.

    Use after_date() with inclusive=True to include the bound itself.
    """

    __slots__ = _fields = ("day",)

    def __init__(self, day: date) -> None:
        self.day = day


class DayEvent(TemporalExpression):
    """Matches a time-of-day window, in minutes since midnight.

    The start minute is included, the end minute is not. Plain dates are
    treated as midnight.
    """

    __slots__ = _fields = ("start", "end")

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end


class Cadence(TemporalExpression):
    """Base class for expressions matching every `interval` periods.

    The anchor day is period 0. With a non-zero count, only periods up to
    and including period number `count` match.
    """

    __slots__ = _fields = ("year", "month", "day", "interval", "count")

    def __init__(
        self, year: int, month: int, day: int, interval: int = 1, count: int = 0
    ) -> None:
        if interval < 1:
            raise ValueError(f"interval must be at least 1, got {interval}")
        if count < 0:
            raise ValueError(f"count can not be negative, got {count}")
        self.year = year
        self.month = month
        self.day = day
        self.interval = interval
        self.count = count

    @property
    def anchor(self) -> date:
        return date(self.year, self.month, self.day)

    def matches_period(self, elapsed: int) -> bool:
        """Check whether `elapsed` periods since the anchor is a boundary."""
        if elapsed < 0 or elapsed % self.interval:
            return False
        if self.count == 0:
            return True
        # Boundaries passed so far, rounded up
        so_far = -(-elapsed // self.interval)
        return so_far <= self.count


class Daily(Cadence):
    __slots__ = ()


class Weekly(Cadence):
    __slots__ = ()


class Monthly(Cadence):
    """Matches the anchor's day of the month every `interval` months.

    Months that do not have that day are skipped.
    """

    __slots__ = ()


class Yearly(Cadence):
    """Matches every day of every `interval`-th year since the anchor.

    Only the anchor's year is significant; combine with a DateRange or Date
    to select days within the year.
    """

    __slots__ = ()


class And(TemporalExpression):
    """Matches when all subexpressions match; And() matches everything."""

    __slots__ = _fields = ("expressions",)

    def __init__(self, *expressions: TemporalExpression) -> None:
        self.expressions = tuple(expressions)

    def __repr__(self) -> str:
        return "{}({})".format(
            type(self).__name__, ", ".join(repr(e) for e in self.expressions)
        )


class Or(TemporalExpression):
    """Matches when any subexpression matches; Or() matches nothing."""

    __slots__ = _fields = ("expressions",)

    def __init__(self, *expressions: TemporalExpression) -> None:
        self.expressions = tuple(expressions)

    __repr__ = And.__repr__


class Not(TemporalExpression):
    __slots__ = _fields = ("expression",)

    def __init__(self, expression: TemporalExpression) -> None:
        self.expression = expression


def _includes_cadence_daily(expr: Daily, when: DateLike) -> bool:
    return expr.matches_period((as_date(when) - expr.anchor).days)


def _includes_cadence_weekly(expr: Weekly, when: DateLike) -> bool:
    days = (as_date(when) - expr.anchor).days
    if days % 7:
        return False
    return expr.matches_period(days // 7)


def _includes_cadence_monthly(expr: Monthly, when: DateLike) -> bool:
    d = as_date(when)
    if d.day != expr.day:
        return False
    return expr.matches_period((d.year - expr.year) * 12 + d.month - expr.month)


def _includes_cadence_yearly(expr: Yearly, when: DateLike) -> bool:
    return expr.matches_period(as_date(when).year - expr.year)


def _includes_date_range(expr: DateRange, when: DateLike) -> bool:
    d = as_date(when)
    if d.month == expr.start_month and d.month == expr.end_month:
        return expr.start_day <= d.day <= expr.end_day
    elif expr.start_month < d.month < expr.end_month:
        return True
    elif d.month == expr.start_month:
        return d.day >= expr.start_day
    elif d.month == expr.end_month:
        return d.day <= expr.end_day
    return False


def _includes_day_range(expr: DayRange, when: DateLike) -> bool:
    day = as_date(when).day
    return expr.start.normalize(when) <= day <= expr.end.normalize(when)


_HANDLERS: dict[type, Callable[[Any, DateLike], bool]] = {
    Always: lambda expr, when: True,
    Never: lambda expr, when: False,
    Weekday: lambda expr, when: as_date(when).isoweekday() == expr.day,
    WeekdayRange: lambda expr, when: (
        expr.start <= as_date(when).isoweekday() <= expr.end
    ),
    DayOfMonth: lambda expr, when: as_date(when).day == expr.normalize(when),
    DayRange: _includes_day_range,
    WeekInMonth: lambda expr, when: week_of_month(when) == expr.normalize(when),
    Month: lambda expr, when: as_date(when).month == expr.month,
    MonthRange: lambda expr, when: expr.start <= as_date(when).month <= expr.end,
    Year: lambda expr, when: as_date(when).year == expr.year,
    YearRange: lambda expr, when: expr.start <= as_date(when).year <= expr.end,
    Date: lambda expr, when: (
        as_date(when) == date(expr.year, expr.month, expr.day)
    ),
    DateRange: _includes_date_range,
    BeforeDate: lambda expr, when: as_date(when) < expr.day,
    AfterDate: lambda expr, when: as_date(when) > expr.day,
    DayEvent: lambda expr, when: expr.start <= _minute_of_day(when) < expr.end,
    Daily: _includes_cadence_daily,
    Weekly: _includes_cadence_weekly,
    Monthly: _includes_cadence_monthly,
    Yearly: _includes_cadence_yearly,
    And: lambda expr, when: all(includes(e, when) for e in expr.expressions),
    Or: lambda expr, when: any(includes(e, when) for e in expr.expressions),
    Not: lambda expr, when: not includes(expr.expression, when),
}


def includes(expr: TemporalExpression, when: DateLike) -> bool:
    """Check whether a temporal expression includes the day of `when`.

    Args:
      expr: Temporal expression
      when: A date or datetime
    Raises:
      TypeError: if `expr` is not a known kind of temporal expression
    """
    try:
        handler = _HANDLERS[type(expr)]
    except KeyError as exc:
        raise TypeError(expr) from exc
    return handler(expr, when)


def days(*days: int) -> Or:
    return Or(*[DayOfMonth(d) for d in days])


def weekdays(*days: int) -> Or:
    return Or(*[Weekday(d) for d in days])


def months(*months: int) -> Or:
    return Or(*[Month(m) for m in months])


def years(*years: int) -> Or:
    return Or(*[Year(y) for y in years])


def dates(*dates: DateLike) -> Or:
    return Or(*[Date(d.year, d.month, d.day) for d in dates])


def day_range(start: int, end: int) -> DayRange:
    return DayRange(DayOfMonth(start), DayOfMonth(end))


def day_event(start: datetime, end: datetime) -> DayEvent:
    """Create a time-of-day window covering the time from start to end."""
    minute = start.hour * 60 + start.minute
    return DayEvent(minute, minute + int((end - start).total_seconds() // 60))


def day_events(*windows: tuple[int, int]) -> Or:
    return Or(*[DayEvent(start, end) for (start, end) in windows])


def before_date(when: DateLike) -> BeforeDate:
    return BeforeDate(as_date(when))


def after_date(when: DateLike, inclusive: bool = False) -> AfterDate:
    """Create an expression matching the days after the day of `when`.

    Args:
      when: Bound
      inclusive: Whether the day of `when` itself matches
    """
    day = as_date(when)
    if inclusive:
        day -= timedelta(days=1)
    return AfterDate(day)


def date_range(start: DateLike, end: DateLike) -> DateRange:
    """Create an expression matching the month/day window from start to end."""
    return DateRange(start.month, start.day, end.month, end.day)


def next_occurrence(
    when: DateLike, expr: TemporalExpression, horizon: int = DEFAULT_HORIZON
) -> Optional[datetime]:
    """Find the first day on or after `when` included by `expr`.

    Args:
      when: Day to start searching from
      expr: Temporal expression
      horizon: Maximum number of days to scan
    Returns: midnight of the matching day, or None if there is no match
      within the horizon
    """
    current = beginning_of_day(when)
    for _ in range(horizon):
        if includes(expr, current):
            return current
        current += timedelta(days=1)
    return None


def next_n(
    when: DateLike,
    expr: TemporalExpression,
    n: int,
    horizon: int = DEFAULT_HORIZON,
) -> list[datetime]:
    """Find the next `n` days on or after `when` included by `expr`.

    Fewer than `n` days are returned if the search runs out of horizon.
    """
    ret: list[datetime] = []
    current = when
    while len(ret) < n:
        found = next_occurrence(current, expr, horizon)
        if found is None:
            break
        ret.append(found)
        current = found + timedelta(days=1)
    return ret

