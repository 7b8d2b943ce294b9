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

"""Calendar configuration file.
"""

import configparser

FILENAME = ".daybook"

DEFAULT_TIMEZONE = "UTC"


class CalendarConfig:
    """Configuration for a calendar."""

    def get_timezone(self):
        """Get the name of the time zone used for day boundaries."""
        raise NotImplementedError(self.get_timezone)

    def set_timezone(self, timezone):
        raise NotImplementedError(self.set_timezone)

    def get_displayname(self):
        raise NotImplementedError(self.get_displayname)

    def set_displayname(self, displayname):
        raise NotImplementedError(self.set_displayname)

    def get_description(self):
        raise NotImplementedError(self.get_description)

    def set_description(self, description):
        raise NotImplementedError(self.set_description)

    def get_horizon(self):
        """Get the number of days to search for the next occurrence."""
        raise NotImplementedError(self.get_horizon)


class FileBasedCalendarConfig(CalendarConfig):
    """Calendar configuration stored in an INI file."""

    def __init__(self, cp=None):
        if cp is None:
            cp = configparser.ConfigParser()
        self._configparser = cp

    @classmethod
    def from_file(cls, f):
        cp = configparser.ConfigParser()
        cp.read_file(f)
        return cls(cp)

    @classmethod
    def from_path(cls, path):
        with open(path) as f:
            return cls.from_file(f)

    def write(self, f):
        self._configparser.write(f)

    def get_timezone(self):
        return self._configparser["DEFAULT"]["timezone"]

    def set_timezone(self, timezone):
        if timezone is not None:
            self._configparser["DEFAULT"]["timezone"] = timezone
        else:
            del self._configparser["DEFAULT"]["timezone"]

    def get_displayname(self):
        return self._configparser["DEFAULT"]["displayname"]

    def set_displayname(self, displayname):
        if displayname is not None:
            self._configparser["DEFAULT"]["displayname"] = displayname
        else:
            del self._configparser["DEFAULT"]["displayname"]

    def get_description(self):
        return self._configparser["DEFAULT"]["description"]

    def set_description(self, description):
        if description is not None:
            self._configparser["DEFAULT"]["description"] = description
        else:
            del self._configparser["DEFAULT"]["description"]

    def get_horizon(self):
        return int(self._configparser["recurrence"]["horizon"])

    def set_horizon(self, horizon):
        try:
            self._configparser.add_section("recurrence")
        except configparser.DuplicateSectionError:
            pass
        if horizon is None:
            del self._configparser["recurrence"]["horizon"]
        else:
            self._configparser["recurrence"]["horizon"] = str(horizon)
