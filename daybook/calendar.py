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

"""Event index.

A Calendar owns a list of events, and indexes them by identifier and by
calendar day. Events with a recurrence rule are not bucketed by day;
their compiled rules are evaluated on every query instead.
"""

import collections
import hashlib
import logging
import time
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Union
from zoneinfo import ZoneInfo

from .expressions import DateLike
from .rrule import RecurrenceRule, UnsupportedFrequencyError, ValidationError

TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"


class NotFoundError(KeyError):
    """No event or day bucket exists for a key."""

    def __init__(self, key) -> None:
        super().__init__(key)
        self.key = key


def as_tz_aware_ts(dt: DateLike, default_timezone: Union[str, tzinfo]) -> datetime:
    """Return an aware datetime, assuming `default_timezone` for naive values.

    Plain dates are taken to mean midnight.
    """
    if not isinstance(dt, datetime):
        _dt = datetime.combine(dt, datetime.min.time())
    else:
        _dt = dt
    if _dt.tzinfo is None:
        if isinstance(default_timezone, str):
            _dt = _dt.replace(tzinfo=ZoneInfo(default_timezone))
        else:
            _dt = _dt.replace(tzinfo=default_timezone)
    return _dt


class Event:
    """A calendar event.

    Attributes:
      start: Start of the (first) occurrence
      end: End of the (first) occurrence; for whole-day events the last day
        covered rather than the exclusive end
      identifier: Identifier within the calendar
      imported_id: Identifier from the source, e.g. the iCalendar UID
      rrule: Recurrence rule text, empty for single events
    """

    def __init__(
        self,
        start: datetime,
        end: datetime,
        identifier: Optional[str] = None,
        imported_id: Optional[str] = None,
        rrule: str = "",
        summary: Optional[str] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        status: Optional[str] = None,
        classification: Optional[str] = None,
        sequence: int = 0,
        created: Optional[datetime] = None,
        modified: Optional[datetime] = None,
        whole_day: bool = False,
    ) -> None:
        self.start = start
        self.end = end
        self.imported_id = imported_id
        self.rrule = rrule
        self.summary = summary
        self.description = description
        self.location = location
        self.status = status
        self.classification = classification
        self.sequence = sequence
        self.created = created
        self.modified = modified
        self.whole_day = whole_day
        if identifier is None:
            identifier = self.generate_uid()
        self.identifier = identifier

    def generate_uid(self) -> str:
        """Generate an identifier from the event's times and imported id.

        Events without an imported id get the current time mixed in, so
        identifiers of otherwise identical events differ.
        """
        h = hashlib.md5()
        h.update(self.start.isoformat().encode("utf-8"))
        h.update(self.end.isoformat().encode("utf-8"))
        if self.imported_id:
            h.update(self.imported_id.encode("utf-8"))
        else:
            h.update(str(time.time_ns()).encode("ascii"))
        return h.hexdigest()

    def __str__(self) -> str:
        return "Event({}) from {} to {} about {}".format(
            self.status or "",
            self.start.strftime(TIMESTAMP_FORMAT),
            self.end.strftime(TIMESTAMP_FORMAT),
            self.summary or "",
        )

    def __repr__(self) -> str:
        return "{}(start={!r}, end={!r}, identifier={!r})".format(
            type(self).__name__, self.start, self.end, self.identifier
        )


class EventRef:
    """Reference to an event in a Calendar."""

    __slots__ = ("index",)

    def __init__(self, index: int) -> None:
        self.index = index

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.index == other.index

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.index))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.index!r})"


class DirectRef(EventRef):
    """Position of an event in the calendar's event list."""

    __slots__ = ()


class RecurringRef(EventRef):
    """Position of a rule in the calendar's list of recurring events."""

    __slots__ = ()


RecurringEvent = collections.namedtuple("RecurringEvent", ["event_index", "rule"])

# Events active on each day in [start, end]; days without events are left
# out.
Timeline = collections.namedtuple("Timeline", ["start", "end", "events"])


class Calendar:
    """A set of events, indexed by identifier and by day.

    Day boundaries are taken in the calendar's time zone. Events are only
    ever appended, so references stay valid for the lifetime of the
    calendar.
    """

    def __init__(
        self,
        timezone: Union[str, tzinfo] = "UTC",
        name: Optional[str] = None,
        description: Optional[str] = None,
        version: Optional[str] = None,
    ) -> None:
        if isinstance(timezone, str):
            timezone = ZoneInfo(timezone)
        self.timezone = timezone
        self.name = name
        self.description = description
        self.version = version
        self.events: list[Event] = []
        self.events_by_date: dict[date, list[int]] = {}
        self.events_by_id: dict[str, EventRef] = {}
        self.events_by_imported_id: dict[str, EventRef] = {}
        self.recurring: list[RecurringEvent] = []

    def __str__(self) -> str:
        return "Calendar {} about {} has {} events.".format(
            self.name or "", self.description or "", len(self.events)
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, timezone={self.timezone!r})"

    def _localize(self, when: DateLike) -> datetime:
        return as_tz_aware_ts(when, self.timezone).astimezone(self.timezone)

    def day_of(self, when: DateLike) -> date:
        """Return the day `when` falls on in the calendar's time zone.

        Plain dates are returned as they are.
        """
        if not isinstance(when, datetime):
            return when
        return self._localize(when).date()

    def _register(self, event: Event, ref: EventRef) -> None:
        self.events_by_id[event.identifier] = ref
        if event.imported_id:
            self.events_by_imported_id[event.imported_id] = ref

    def insert_event(self, event: Event) -> int:
        """Add an event to the calendar.

        Args:
          event: Event to add
        Returns: position of the event in `events`
        Raises:
          ValidationError: if the recurrence rule is malformed
          UnsupportedFrequencyError: if the recurrence rule can not be compiled
        The event is kept when an exception is raised; it then never matches
        any day.
        """
        index = len(self.events)
        self.events.append(event)
        if not event.rrule:
            first = self.day_of(event.start)
            last = self.day_of(event.end)
            if last < first:
                logging.debug(
                    "Event %s ends before it starts; indexing its start day only",
                    event.identifier,
                )
                last = first
            day = first
            while day <= last:
                self.events_by_date.setdefault(day, []).append(index)
                day += timedelta(days=1)
            self._register(event, DirectRef(index))
            return index

        try:
            rule = RecurrenceRule.from_string(event.rrule, self.timezone)
        except ValidationError as e:
            logging.warning(
                "Invalid recurrence rule %r for event %s: %s",
                event.rrule,
                event.identifier,
                e,
            )
            self._register(event, DirectRef(index))
            raise
        start = self._localize(event.start)
        if rule.options.dtstart is None:
            rule.set_dtstart(start)
        self._register(event, RecurringRef(len(self.recurring)))
        self.recurring.append(RecurringEvent(index, rule))
        try:
            rule.compile(start, self._localize(event.end))
        except UnsupportedFrequencyError as e:
            logging.warning("Not indexing recurrence of event %s: %s", event.identifier, e)
            raise
        return index

    def event_by_ref(self, ref: EventRef) -> Event:
        """Resolve a reference to an event.

        Raises:
          NotFoundError: if there is no event for the reference
        """
        if isinstance(ref, RecurringRef):
            if not 0 <= ref.index < len(self.recurring):
                raise NotFoundError(ref)
            index = self.recurring[ref.index].event_index
        else:
            index = ref.index
        if not 0 <= index < len(self.events):
            raise NotFoundError(ref)
        return self.events[index]

    def ref_by_id(self, identifier: str) -> EventRef:
        try:
            return self.events_by_id[identifier]
        except KeyError:
            raise NotFoundError(identifier) from None

    def ref_by_imported_id(self, imported_id: str) -> EventRef:
        try:
            return self.events_by_imported_id[imported_id]
        except KeyError:
            raise NotFoundError(imported_id) from None

    def event_by_id(self, identifier: str) -> Event:
        return self.event_by_ref(self.ref_by_id(identifier))

    def event_by_imported_id(self, imported_id: str) -> Event:
        return self.event_by_ref(self.ref_by_imported_id(imported_id))

    def refs_on(self, when: DateLike) -> list[DirectRef]:
        """Look up the single events bucketed on the day of `when`.

        Raises:
          NotFoundError: if no single event is active on that day
        """
        day = self.day_of(when)
        try:
            indices = self.events_by_date[day]
        except KeyError:
            raise NotFoundError(day) from None
        return [DirectRef(i) for i in indices]

    def _recurring_refs_on(self, day: date) -> list[RecurringRef]:
        return [
            RecurringRef(i)
            for (i, recurring) in enumerate(self.recurring)
            if recurring.rule.includes(day)
        ]

    def events_on(self, when: DateLike) -> list[Event]:
        """List the events active on the day of `when`.

        Single events come first, in insertion order, followed by recurring
        events in the order their rules were registered.
        """
        day = self.day_of(when)
        ret = [self.events[i] for i in self.events_by_date.get(day, [])]
        for ref in self._recurring_refs_on(day):
            ret.append(self.event_by_ref(ref))
        return ret

    def timeline(self, start: DateLike, days: int) -> Timeline:
        """Collect references to the events active on `days` consecutive days.

        Args:
          start: First day
          days: Number of days
        Returns: Timeline with the first and last day, and a dictionary
          mapping each day that has events to their references
        """
        first = self.day_of(start)
        events: dict[date, list[EventRef]] = {}
        for offset in range(days):
            day = first + timedelta(days=offset)
            refs: list[EventRef] = [DirectRef(i) for i in self.events_by_date.get(day, [])]
            refs.extend(self._recurring_refs_on(day))
            if refs:
                events[day] = refs
        return Timeline(first, first + timedelta(days=days - 1), events)
