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

"""Daybook command-line handling."""

import argparse
import itertools
import logging
import os
import sys
from datetime import datetime

from . import __version__
from .config import DEFAULT_TIMEZONE, FILENAME, FileBasedCalendarConfig
from .expressions import DEFAULT_HORIZON, next_n
from .ics import load_calendar
from .rrule import (
    RecurrenceRule,
    UnsupportedFrequencyError,
    ValidationError,
    parse_dtstart,
)


def statuschar(evstatus):
    return {"TENTATIVE": "?", "CONFIRMED": ".", "CANCELLED": "-"}.get(evstatus, "")


def format_month(dt):
    return dt.strftime("%b")


def format_daterange(start, end):
    if end is None:
        return "%d %s-?" % (start.day, format_month(start))
    if start.month == end.month:
        if start.day == end.day:
            return "%d %s" % (start.day, format_month(start))
        return "%d-%d %s" % (start.day, end.day, format_month(start))
    return "%d %s-%d %s" % (start.day, format_month(start), end.day, format_month(end))


def format_event(event, timezone) -> str:
    """Format an event as a single line of text."""
    if event.whole_day:
        ret = format_daterange(event.start, event.end)
    else:
        ret = "{}-{}".format(
            event.start.astimezone(timezone).strftime("%H:%M"),
            event.end.astimezone(timezone).strftime("%H:%M"),
        )
    ret += " %s" % (event.summary or "")
    if event.location:
        ret += " @ %s" % event.location.replace("\n", " / ")
    return ret + statuschar(event.status)


def add_day_parser(parser):
    parser.add_argument("path", help="iCalendar file to read.")
    parser.add_argument("date", help="Day to list events for, as YYYYMMDD.")
    parser.add_argument(
        "--timezone",
        type=str,
        default=None,
        help="Time zone for day boundaries [%s]." % DEFAULT_TIMEZONE,
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Calendar configuration file [%s next to the calendar]." % FILENAME,
    )


def add_rrule_parser(parser):
    parser.add_argument("rule", help="Recurrence rule, e.g. FREQ=DAILY;COUNT=3.")
    parser.add_argument(
        "--dtstart", type=str, default=None, help="Start of the recurrence."
    )
    parser.add_argument(
        "-n",
        type=int,
        dest="count",
        default=5,
        help="Number of occurrences to list [%(default)s].",
    )
    parser.add_argument(
        "--days",
        action="store_true",
        help="List matching days of the compiled rule instead of occurrences.",
    )
    parser.add_argument(
        "--config", type=str, default=None, help="Calendar configuration file."
    )


def load_config(path=None, calendar_path=None):
    """Load the calendar configuration, if there is any.

    Args:
      path: Explicit configuration file
      calendar_path: Calendar file; a configuration file next to it is used
        when no explicit path is given
    Returns: a `FileBasedCalendarConfig`, or None
    """
    if path is None and calendar_path is not None:
        path = os.path.join(os.path.dirname(os.path.abspath(calendar_path)), FILENAME)
        if not os.path.exists(path):
            return None
    if path is None:
        return None
    return FileBasedCalendarConfig.from_path(path)


def _config_value(config, getter):
    if config is None:
        return None
    try:
        return getter(config)
    except KeyError:
        return None


def day_main(args, parser):
    config = load_config(args.config, args.path)
    timezone = args.timezone
    if timezone is None:
        timezone = _config_value(config, FileBasedCalendarConfig.get_timezone)
    if timezone is None:
        timezone = DEFAULT_TIMEZONE
    try:
        day = datetime.strptime(args.date, "%Y%m%d").date()
    except ValueError:
        parser.error("invalid date %r, expected YYYYMMDD" % args.date)
    cal, errors = load_calendar(args.path, timezone)
    for error in errors:
        logging.warning("%s", error)
    if cal.name is None:
        cal.name = _config_value(config, FileBasedCalendarConfig.get_displayname)
    if cal.description is None:
        cal.description = _config_value(
            config, FileBasedCalendarConfig.get_description
        )
    logging.info("%s", cal)
    for event in cal.events_on(day):
        sys.stdout.write(format_event(event, cal.timezone) + "\n")
    return 0


def rrule_main(args, parser):
    try:
        rule = RecurrenceRule.from_string(args.rule)
        if args.dtstart:
            rule.set_dtstart(parse_dtstart(args.dtstart))
    except ValidationError as e:
        logging.error("Invalid recurrence rule: %s", e)
        return 1
    sys.stdout.write(str(rule) + "\n")
    if args.days:
        try:
            rule.compile(rule.dtstart, rule.dtstart)
        except UnsupportedFrequencyError as e:
            logging.error("Can not list days: %s", e)
            return 1
        horizon = _config_value(
            load_config(args.config), FileBasedCalendarConfig.get_horizon
        )
        if horizon is None:
            horizon = DEFAULT_HORIZON
        for day in next_n(rule.dtstart, rule.compiled, args.count, horizon):
            sys.stdout.write(day.date().isoformat() + "\n")
        return 0
    for occurrence in itertools.islice(rule.to_dateutil(), args.count):
        sys.stdout.write(occurrence.isoformat() + "\n")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(prog="daybook")

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s " + ".".join(map(str, __version__)),
    )

    subparsers = parser.add_subparsers(help="Subcommands", dest="subcommand")
    day_parser = subparsers.add_parser(
        "day", usage="%(prog)s FILE DATE [OPTIONS]", help="List the events on a day"
    )
    add_day_parser(day_parser)
    rrule_parser = subparsers.add_parser(
        "rrule", usage="%(prog)s RULE [OPTIONS]", help="Check a recurrence rule"
    )
    add_rrule_parser(rrule_parser)

    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(message)s")

    if args.subcommand == "day":
        return day_main(args, day_parser)
    elif args.subcommand == "rrule":
        return rrule_main(args, rrule_parser)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
