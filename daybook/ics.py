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

"""Loading calendars from iCalendar files.

See https://tools.ietf.org/html/rfc5545
"""

import collections
import logging
from datetime import datetime, timedelta, tzinfo
from typing import Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from icalendar.cal import Calendar as ICalendar, Component

from .calendar import Calendar, Event, as_tz_aware_ts
from .rrule import UnsupportedFrequencyError, ValidationError

# Result of loading a calendar: the calendar with every event that could be
# read, and the errors for the ones that could not.
LoadResult = collections.namedtuple("LoadResult", ["calendar", "errors"])


class MissingProperty(Exception):
    def __init__(self, property_name) -> None:
        super().__init__(f"Property {property_name!r} missing")
        self.property_name = property_name


class InvalidCalendarContents(Exception):
    """Contents could not be parsed as iCalendar."""

    def __init__(self, data, error) -> None:
        self.data = data
        self.error = error

    def __str__(self) -> str:
        return f"Invalid calendar contents: {self.error}"


def _text(comp: Component, name: str):
    value = comp.get(name)
    if value is None:
        return None
    return str(value)


def _datetime(comp: Component, name: str):
    value = comp.get(name)
    if value is None:
        return None
    return value.dt


def event_from_component(comp: Component, default_timezone: Union[str, tzinfo]) -> Event:
    """Create an event from a VEVENT component.

    Args:
      comp: VEVENT component
      default_timezone: Time zone for times without one
    Returns: Event
    Raises:
      MissingProperty: if DTSTART is missing
    """
    try:
        dtstart = comp["DTSTART"].dt
    except KeyError as exc:
        raise MissingProperty("DTSTART") from exc
    whole_day = not isinstance(dtstart, datetime)
    if "DTEND" in comp:
        dtend = comp["DTEND"].dt
        exclusive = True
    elif "DURATION" in comp:
        dtend = dtstart + comp["DURATION"].dt
        exclusive = True
    else:
        dtend = dtstart
        exclusive = False
    if exclusive and whole_day and not isinstance(dtend, datetime):
        # A date DTEND is the first day the event no longer covers
        dtend = max(dtstart, dtend - timedelta(days=1))
    rrule = comp.get("RRULE")
    if isinstance(rrule, list):
        logging.warning(
            "Event %s has %d recurrence rules, only using the first",
            comp.get("UID"),
            len(rrule),
        )
        rrule = rrule[0]
    if rrule is not None:
        rrule = rrule.to_ical().decode("utf-8")
    return Event(
        as_tz_aware_ts(dtstart, default_timezone),
        as_tz_aware_ts(dtend, default_timezone),
        imported_id=_text(comp, "UID"),
        rrule=rrule or "",
        summary=_text(comp, "SUMMARY"),
        description=_text(comp, "DESCRIPTION"),
        location=_text(comp, "LOCATION"),
        status=_text(comp, "STATUS"),
        classification=_text(comp, "CLASS"),
        sequence=int(comp.get("SEQUENCE", 0)),
        created=_datetime(comp, "CREATED"),
        modified=_datetime(comp, "LAST-MODIFIED"),
        whole_day=whole_day,
    )


def parse_calendar(
    content: Union[bytes, str], default_timezone: Union[str, tzinfo] = "UTC"
) -> LoadResult:
    """Parse iCalendar contents into a calendar.

    Events that can not be read are skipped; their errors are collected in
    the result rather than raised.

    Args:
      content: iCalendar data
      default_timezone: Time zone to use when the calendar does not set one
    Returns: LoadResult
    Raises:
      InvalidCalendarContents: if the contents are not iCalendar at all
    """
    try:
        ical = ICalendar.from_ical(content)
    except ValueError as exc:
        raise InvalidCalendarContents(content, str(exc)) from exc
    errors: list[Exception] = []
    timezone = default_timezone
    tzid = _text(ical, "X-WR-TIMEZONE")
    if tzid:
        try:
            timezone = ZoneInfo(tzid)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            logging.warning("Unknown calendar time zone %r, using UTC", tzid)
            errors.append(exc)
            timezone = "UTC"
    cal = Calendar(
        timezone,
        name=_text(ical, "X-WR-CALNAME"),
        description=_text(ical, "X-WR-CALDESC"),
        version=_text(ical, "VERSION"),
    )
    for comp in ical.walk("VEVENT"):
        try:
            event = event_from_component(comp, cal.timezone)
        except MissingProperty as exc:
            logging.warning("Skipping event %s: %s", comp.get("UID"), exc)
            errors.append(exc)
            continue
        try:
            cal.insert_event(event)
        except (ValidationError, UnsupportedFrequencyError) as exc:
            errors.append(exc)
    logging.info(
        "Loaded calendar %s with %d events (%d errors)",
        cal.name,
        len(cal.events),
        len(errors),
    )
    return LoadResult(cal, errors)


def load_calendar(path: str, default_timezone: Union[str, tzinfo] = "UTC") -> LoadResult:
    """Load a calendar from an iCalendar file.

    A file that can not be read or parsed results in an empty calendar, with
    the error reported in the result.
    """
    try:
        with open(path, "rb") as f:
            content = f.read()
    except OSError as exc:
        logging.warning("Unable to read calendar %s: %s", path, exc)
        return LoadResult(Calendar(default_timezone), [exc])
    try:
        return parse_calendar(content, default_timezone)
    except InvalidCalendarContents as exc:
        logging.warning("Unable to parse calendar %s: %s", path, exc)
        return LoadResult(Calendar(default_timezone), [exc])
