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

"""Recurrence rules.

Parsing, validation and serialization of RFC 5545 RRULE values, and
compilation of a rule into a temporal expression anchored on one
occurrence of an event.

See https://tools.ietf.org/html/rfc5545, section 3.3.10
"""

import re
from datetime import date, datetime, time, timedelta, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import dateutil.rrule
from dateutil.rrule import (
    DAILY,
    FR,
    HOURLY,
    MINUTELY,
    MO,
    MONTHLY,
    SA,
    SECONDLY,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    YEARLY,
    weekday,
)
from icalendar.prop import vDate, vDatetime

from .expressions import (
    NEVER,
    And,
    BeforeDate,
    Daily,
    Monthly,
    TemporalExpression,
    Yearly,
    after_date,
    as_date,
    date_range,
)

UTC = ZoneInfo("UTC")

FREQUENCIES = {
    "YEARLY": YEARLY,
    "MONTHLY": MONTHLY,
    "WEEKLY": WEEKLY,
    "DAILY": DAILY,
    "HOURLY": HOURLY,
    "MINUTELY": MINUTELY,
    "SECONDLY": SECONDLY,
}
FREQUENCY_NAMES = {freq: name for (name, freq) in FREQUENCIES.items()}

# Frequencies that compile() can turn into a temporal expression
COMPILABLE_FREQUENCIES = (YEARLY, MONTHLY, DAILY)

WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)
WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")

DateOrDateTime = Union[date, datetime]

_INTEGER_RE = re.compile(r"^[+-]?[0-9]+$")
_DATE_RE = re.compile(r"^[0-9]{8}$")
_DATETIME_RE = re.compile(r"^[0-9]{8}T[0-9]{6}Z?$")

_INTEGER_LIST_KEYS = {
    "BYSETPOS": "bysetpos",
    "BYMONTH": "bymonth",
    "BYMONTHDAY": "bymonthday",
    "BYYEARDAY": "byyearday",
    "BYWEEKNO": "byweekno",
    "BYHOUR": "byhour",
    "BYMINUTE": "byminute",
    "BYSECOND": "bysecond",
    "BYEASTER": "byeaster",
}

# (attribute, property name, lowest, highest, whether negative values are
# also allowed)
_BOUNDS = (
    ("bysecond", "BYSECOND", 0, 59, False),
    ("byminute", "BYMINUTE", 0, 59, False),
    ("byhour", "BYHOUR", 0, 23, False),
    ("bymonthday", "BYMONTHDAY", 1, 31, True),
    ("byyearday", "BYYEARDAY", 1, 366, True),
    ("byweekno", "BYWEEKNO", 1, 53, True),
    ("bymonth", "BYMONTH", 1, 12, False),
    ("bysetpos", "BYSETPOS", 1, 366, True),
)


class ValidationError(ValueError):
    """A recurrence rule property is malformed or out of bounds."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class UnsupportedFrequencyError(Exception):
    """A recurrence rule can not be compiled into a temporal expression."""

    def __init__(self, freq: int) -> None:
        super().__init__(
            f"Unable to compile {FREQUENCY_NAMES.get(freq, freq)} recurrence "
            "rule into a temporal expression"
        )
        self.freq = freq


class RecurrenceOptions:
    """Structured form of a recurrence rule.

    Scalar properties that were not specified are None, so that the rule
    serializes back to what it was parsed from. The `rfc` flag marks a pure
    RRULE value, which is serialized without DTSTART.
    """

    _fields = (
        "freq",
        "dtstart",
        "interval",
        "wkst",
        "count",
        "until",
        "bysetpos",
        "bymonth",
        "bymonthday",
        "byyearday",
        "byweekno",
        "byweekday",
        "byhour",
        "byminute",
        "bysecond",
        "byeaster",
        "rfc",
    )

    def __init__(
        self,
        freq: int,
        dtstart: Optional[datetime] = None,
        interval: Optional[int] = None,
        wkst: Optional[weekday] = None,
        count: Optional[int] = None,
        until: Optional[DateOrDateTime] = None,
        bysetpos=None,
        bymonth=None,
        bymonthday=None,
        byyearday=None,
        byweekno=None,
        byweekday: Optional[list[weekday]] = None,
        byhour=None,
        byminute=None,
        bysecond=None,
        byeaster=None,
        rfc: bool = False,
    ) -> None:
        self.freq = freq
        self.dtstart = dtstart
        self.interval = interval
        self.wkst = wkst
        self.count = count
        self.until = until
        self.bysetpos: list[int] = list(bysetpos or [])
        self.bymonth: list[int] = list(bymonth or [])
        self.bymonthday: list[int] = list(bymonthday or [])
        self.byyearday: list[int] = list(byyearday or [])
        self.byweekno: list[int] = list(byweekno or [])
        self.byweekday: list[weekday] = list(byweekday or [])
        self.byhour: list[int] = list(byhour or [])
        self.byminute: list[int] = list(byminute or [])
        self.bysecond: list[int] = list(bysecond or [])
        self.byeaster: list[int] = list(byeaster or [])
        self.rfc = rfc

    def __eq__(self, other) -> bool:
        if not isinstance(other, RecurrenceOptions):
            return False
        return all(
            getattr(self, name) == getattr(other, name) for name in self._fields
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({format_rrule(self)!r})"

    def __str__(self) -> str:
        return format_rrule(self)


def format_weekday(wday: weekday) -> str:
    code = WEEKDAY_CODES[wday.weekday]
    if not wday.n:
        return code
    return "%+d%s" % (wday.n, code)


def _format_timestamp(value: DateOrDateTime) -> str:
    if not isinstance(value, datetime):
        return value.strftime("%Y%m%d")
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.strftime("%Y%m%dT%H%M%SZ")


def format_rrule(options: RecurrenceOptions) -> str:
    """Serialize recurrence options to the RRULE string form.

    The output is canonical rather than a copy of whatever was parsed:
    timestamps are always written in UTC with a trailing ``Z`` (naive values
    gain the ``Z``, aware ones such as a TZID-qualified DTSTART are converted
    to UTC first), date-only values stay as ``YYYYMMDD``, weekday ordinals are
    always signed (``2FR`` becomes ``+2FR``) and parts are written in a fixed
    order. Parsing the output gives back equal options, but the string only
    survives a round trip unchanged when it is already in this form.
    """
    parts = ["FREQ=" + FREQUENCY_NAMES[options.freq]]
    if options.dtstart is not None and not options.rfc:
        parts.append("DTSTART=" + _format_timestamp(options.dtstart))
    if options.interval is not None:
        parts.append(f"INTERVAL={options.interval}")
    if options.wkst is not None:
        parts.append("WKST=" + format_weekday(options.wkst))
    if options.count is not None:
        parts.append(f"COUNT={options.count}")
    if options.until is not None:
        parts.append("UNTIL=" + _format_timestamp(options.until))
    for name in ("BYSETPOS", "BYMONTH", "BYMONTHDAY", "BYYEARDAY", "BYWEEKNO"):
        values = getattr(options, _INTEGER_LIST_KEYS[name])
        if values:
            parts.append(name + "=" + ",".join(str(v) for v in values))
    if options.byweekday:
        parts.append("BYDAY=" + ",".join(format_weekday(w) for w in options.byweekday))
    for name in ("BYHOUR", "BYMINUTE", "BYSECOND", "BYEASTER"):
        values = getattr(options, _INTEGER_LIST_KEYS[name])
        if values:
            parts.append(name + "=" + ",".join(str(v) for v in values))
    return ";".join(parts)


def _parse_integer(field: str, value: str) -> int:
    if not _INTEGER_RE.match(value):
        raise ValidationError(field, f"invalid integer {value!r}")
    return int(value)


def parse_weekday(value: str, field: str = "BYDAY") -> weekday:
    """Parse a weekday token such as MO, +2FR or -1SU."""
    if len(value) < 2:
        raise ValidationError(field, f"invalid weekday {value!r}")
    ordinal, code = value[:-2], value[-2:]
    try:
        wday = WEEKDAYS[WEEKDAY_CODES.index(code)]
    except ValueError:
        raise ValidationError(field, f"invalid weekday {value!r}") from None
    if not ordinal:
        return wday
    n = _parse_integer(field, ordinal)
    if n == 0:
        raise ValidationError(field, f"invalid weekday ordinal in {value!r}")
    return wday(n)


def _parse_timezone(field: str, name: str) -> tzinfo:
    if not name:
        raise ValidationError(field, "empty TZID")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValidationError(field, f"unknown time zone {name!r}") from exc


def _parse_timestamp(
    field: str, value: str, default_timezone: Optional[tzinfo]
) -> DateOrDateTime:
    if _DATE_RE.match(value):
        try:
            return vDate.from_ical(value)
        except ValueError as exc:
            raise ValidationError(field, f"invalid date {value!r}") from exc
    if not _DATETIME_RE.match(value):
        raise ValidationError(field, f"invalid date-time {value!r}")
    try:
        dt = vDatetime.from_ical(value)
    except ValueError as exc:
        raise ValidationError(field, f"invalid date-time {value!r}") from exc
    if dt.tzinfo is None and default_timezone is not None:
        dt = dt.replace(tzinfo=default_timezone)
    return dt


def parse_dtstart(value: str, default_timezone: Optional[tzinfo] = UTC) -> datetime:
    """Parse the value of a DTSTART property.

    Accepts a local time (interpreted in `default_timezone`), a UTC time
    with a trailing Z, or a time prefixed with TZID=<zone>: and optionally a
    VALUE parameter.

    Raises:
      ValidationError: if the value is malformed or names an unknown zone
    """
    tz = default_timezone
    params, sep, stamp = value.partition(":")
    if not sep:
        stamp = params
    else:
        if ":" in stamp:
            raise ValidationError("DTSTART", f"invalid value {value!r}")
        for param in params.split(";"):
            if param.startswith("TZID="):
                tz = _parse_timezone("DTSTART", param[len("TZID=") :])
            elif param not in ("VALUE=DATE-TIME", "VALUE=DATE"):
                raise ValidationError("DTSTART", f"unsupported parameter {param!r}")
    ret = _parse_timestamp("DTSTART", stamp, tz)
    if not isinstance(ret, datetime):
        ret = datetime.combine(ret, time(), tzinfo=tz)
    return ret


def parse_rrule(
    text: str, default_timezone: Optional[tzinfo] = UTC
) -> RecurrenceOptions:
    """Parse a recurrence rule string.

    Args:
      text: Semicolon-separated KEY=VALUE pairs, e.g. FREQ=DAILY;COUNT=3
      default_timezone: Zone for local DTSTART and UNTIL times
    Returns: RecurrenceOptions
    Raises:
      ValidationError: naming the offending property
    """
    text = text.strip()
    if not text:
        raise ValidationError("RRULE", "empty recurrence rule")
    kwargs: dict = {}
    for attr in text.split(";"):
        key, sep, value = attr.partition("=")
        key = key.strip().upper()
        if not sep:
            raise ValidationError(key or "RRULE", f"expected KEY=VALUE, got {attr!r}")
        if not value:
            raise ValidationError(key, "empty value")
        if key == "FREQ":
            try:
                kwargs["freq"] = FREQUENCIES[value]
            except KeyError:
                raise ValidationError(key, f"invalid frequency {value!r}") from None
        elif key == "DTSTART":
            kwargs["dtstart"] = parse_dtstart(value, default_timezone)
        elif key == "INTERVAL":
            kwargs["interval"] = _parse_integer(key, value)
        elif key == "COUNT":
            kwargs["count"] = _parse_integer(key, value)
        elif key == "UNTIL":
            kwargs["until"] = _parse_timestamp(key, value, default_timezone)
        elif key == "WKST":
            wkst = parse_weekday(value, key)
            if wkst.n:
                raise ValidationError(key, f"unexpected ordinal in {value!r}")
            kwargs["wkst"] = wkst
        elif key == "BYDAY":
            kwargs["byweekday"] = [parse_weekday(v, key) for v in value.split(",")]
        elif key in _INTEGER_LIST_KEYS:
            kwargs[_INTEGER_LIST_KEYS[key]] = [
                _parse_integer(key, v) for v in value.split(",")
            ]
        else:
            raise ValidationError(key, "unknown recurrence rule property")
    if "freq" not in kwargs:
        raise ValidationError("FREQ", "missing required property")
    options = RecurrenceOptions(**kwargs)
    validate_options(options)
    return options


def validate_options(options: RecurrenceOptions) -> None:
    """Check recurrence options against the bounds set by RFC 5545.

    Raises:
      ValidationError: naming the first offending property
    """
    if options.freq not in FREQUENCY_NAMES:
        raise ValidationError("FREQ", f"invalid frequency {options.freq!r}")
    for attr, field, low, high, signed in _BOUNDS:
        for value in getattr(options, attr):
            if low <= value <= high:
                continue
            if signed and -high <= value <= -low:
                continue
            if signed:
                raise ValidationError(
                    field,
                    f"{value} must be between {low} and {high} "
                    f"or {-low} and {-high}",
                )
            raise ValidationError(field, f"{value} must be between {low} and {high}")
    for wday in options.byweekday:
        if wday.n is not None and not 1 <= abs(wday.n) <= 53:
            raise ValidationError(
                "BYDAY", f"{format_weekday(wday)} must be between 1 and 53 or -1 and -53"
            )
    if options.interval is not None and options.interval < 1:
        raise ValidationError("INTERVAL", "must be greater than 0")
    if options.count is not None and options.count < 0:
        raise ValidationError("COUNT", "can not be negative")


def _match_awareness(dt: datetime, reference: datetime) -> datetime:
    """Make `dt` naive or aware, following `reference`."""
    if reference.tzinfo is None and dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    if reference.tzinfo is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=reference.tzinfo)
    return dt


class RecurrenceRule:
    """A validated recurrence rule.

    The rule starts out uncompiled, matching nothing. compile() binds it to
    the start and end of an event's first occurrence, after which
    includes() answers whether the event recurs on a given day.
    """

    compiled: TemporalExpression

    def __init__(self, options: RecurrenceOptions) -> None:
        validate_options(options)
        self.options = options
        self.freq = options.freq
        self.interval = options.interval or 1
        self.count = options.count or 0
        self.until = options.until
        self.wkst = options.wkst.weekday if options.wkst is not None else MO.weekday
        self.bysetpos = list(options.bysetpos)
        self.byyearday = list(options.byyearday)
        self.byweekno = list(options.byweekno)
        self.byeaster = list(options.byeaster)
        self.compiled = NEVER
        self.set_dtstart(options.dtstart or datetime.now(UTC))

    @classmethod
    def from_string(
        cls, text: str, default_timezone: Optional[tzinfo] = UTC
    ) -> "RecurrenceRule":
        return cls(parse_rrule(text, default_timezone))

    def __str__(self) -> str:
        return format_rrule(self.options)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self)!r})"

    def set_dtstart(self, dtstart: datetime) -> None:
        """Change the start of the rule and the defaults derived from it."""
        self.dtstart = dtstart.replace(microsecond=0)
        options = self.options
        bymonth = list(options.bymonth)
        bymonthday = list(options.bymonthday)
        byweekday = list(options.byweekday)
        if not (
            options.byweekno
            or options.byyearday
            or options.bymonthday
            or options.byweekday
            or options.byeaster
        ):
            if self.freq == YEARLY:
                if not bymonth:
                    bymonth = [self.dtstart.month]
                bymonthday = [self.dtstart.day]
            elif self.freq == MONTHLY:
                bymonthday = [self.dtstart.day]
            elif self.freq == WEEKLY:
                byweekday = [WEEKDAYS[self.dtstart.weekday()]]
        self.bymonth = bymonth
        self.bymonthday = [d for d in bymonthday if d > 0]
        self.bynmonthday = [d for d in bymonthday if d < 0]
        # Ordinals only have a meaning for MONTHLY and YEARLY rules
        self.byweekday = [w.weekday for w in byweekday if not w.n or self.freq > MONTHLY]
        self.bynweekday = [w for w in byweekday if w.n and self.freq <= MONTHLY]
        self.byhour = list(options.byhour)
        if not self.byhour and self.freq < HOURLY:
            self.byhour = [self.dtstart.hour]
        self.byminute = list(options.byminute)
        if not self.byminute and self.freq < MINUTELY:
            self.byminute = [self.dtstart.minute]
        self.bysecond = list(options.bysecond)
        if not self.bysecond and self.freq < SECONDLY:
            self.bysecond = [self.dtstart.second]

    def _until_day(self, start: DateOrDateTime) -> date:
        until = self.until
        if (
            isinstance(until, datetime)
            and until.tzinfo is not None
            and isinstance(start, datetime)
            and start.tzinfo is not None
        ):
            until = until.astimezone(start.tzinfo)
        return as_date(until)

    def compile(self, start: DateOrDateTime, end: DateOrDateTime) -> TemporalExpression:
        """Compile this rule into a temporal expression.

        Args:
          start: Start of the first occurrence
          end: End of the first occurrence
        Returns: the compiled expression, also kept as `compiled`
        Raises:
          UnsupportedFrequencyError: if the frequency can not be compiled;
            the rule then keeps matching nothing
        """
        anchor = as_date(start)
        cadence = (anchor.year, anchor.month, anchor.day, self.interval, self.count)
        if self.freq == YEARLY:
            parts = [
                after_date(start, inclusive=True),
                Yearly(*cadence),
                date_range(start, end),
            ]
        elif self.freq == MONTHLY:
            parts = [after_date(start, inclusive=True), Monthly(*cadence)]
        elif self.freq == DAILY:
            parts = [after_date(start, inclusive=True), Daily(*cadence)]
        else:
            self.compiled = NEVER
            raise UnsupportedFrequencyError(self.freq)
        if self.until is not None:
            # UNTIL is inclusive
            parts.append(BeforeDate(self._until_day(start) + timedelta(days=1)))
        self.compiled = And(*parts)
        return self.compiled

    def includes(self, when: DateOrDateTime) -> bool:
        return self.compiled.includes(when)

    def _dateutil_until(self) -> Optional[datetime]:
        until = self.until
        if until is None:
            return None
        if not isinstance(until, datetime):
            until = datetime.combine(until, time.max)
        return _match_awareness(until, self.dtstart)

    def to_dateutil(self) -> dateutil.rrule.rrule:
        """Create the equivalent dateutil rrule, for any frequency."""
        options = self.options
        return dateutil.rrule.rrule(
            self.freq,
            dtstart=self.dtstart,
            interval=self.interval,
            wkst=self.wkst,
            count=options.count,
            until=self._dateutil_until(),
            bysetpos=options.bysetpos or None,
            bymonth=options.bymonth or None,
            bymonthday=options.bymonthday or None,
            byyearday=options.byyearday or None,
            byeaster=options.byeaster or None,
            byweekno=options.byweekno or None,
            byweekday=options.byweekday or None,
            byhour=options.byhour or None,
            byminute=options.byminute or None,
            bysecond=options.bysecond or None,
        )

    def between(
        self, start: datetime, end: datetime, inc: bool = True
    ) -> list[datetime]:
        """List the occurrences of this rule between start and end."""
        return self.to_dateutil().between(
            _match_awareness(start, self.dtstart),
            _match_awareness(end, self.dtstart),
            inc=inc,
        )


def compile_rule(
    options: RecurrenceOptions, start: DateOrDateTime, end: DateOrDateTime
) -> TemporalExpression:
    """Validate recurrence options and compile them for one occurrence."""
    return RecurrenceRule(options).compile(start, end)
