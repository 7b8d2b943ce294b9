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

"""Tests for daybook.config."""

from io import StringIO
from unittest import TestCase

from daybook.config import FileBasedCalendarConfig


class FileBasedCalendarConfigTests(TestCase):
    def test_get_timezone(self):
        f = StringIO("""\
[DEFAULT]
timezone = Europe/Amsterdam
""")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertEqual("Europe/Amsterdam", cc.get_timezone())

    def test_get_timezone_missing(self):
        f = StringIO("")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertRaises(KeyError, cc.get_timezone)

    def test_get_displayname(self):
        f = StringIO("""\
[DEFAULT]
displayname = Work
""")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertEqual("Work", cc.get_displayname())

    def test_get_displayname_missing(self):
        f = StringIO("")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertRaises(KeyError, cc.get_displayname)

    def test_get_description(self):
        f = StringIO("""\
[DEFAULT]
description = this is a description
""")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertEqual("this is a description", cc.get_description())

    def test_get_description_missing(self):
        f = StringIO("")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertRaises(KeyError, cc.get_description)

    def test_get_horizon(self):
        f = StringIO("""\
[recurrence]
horizon = 365
""")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertEqual(365, cc.get_horizon())

    def test_get_horizon_missing(self):
        f = StringIO("")
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertRaises(KeyError, cc.get_horizon)

    def test_set_timezone(self):
        cc = FileBasedCalendarConfig()
        cc.set_timezone("America/New_York")
        self.assertEqual("America/New_York", cc.get_timezone())
        cc.set_timezone(None)
        self.assertRaises(KeyError, cc.get_timezone)

    def test_set_displayname(self):
        cc = FileBasedCalendarConfig()
        cc.set_displayname("Work")
        self.assertEqual("Work", cc.get_displayname())
        cc.set_displayname(None)
        self.assertRaises(KeyError, cc.get_displayname)

    def test_set_description(self):
        cc = FileBasedCalendarConfig()
        cc.set_description("Meetings")
        self.assertEqual("Meetings", cc.get_description())
        cc.set_description(None)
        self.assertRaises(KeyError, cc.get_description)

    def test_set_horizon(self):
        cc = FileBasedCalendarConfig()
        cc.set_horizon(30)
        self.assertEqual(30, cc.get_horizon())
        cc.set_horizon(None)
        self.assertRaises(KeyError, cc.get_horizon)

    def test_write(self):
        cc = FileBasedCalendarConfig()
        cc.set_timezone("Europe/Amsterdam")
        cc.set_horizon(30)
        f = StringIO()
        cc.write(f)
        f.seek(0)
        cc = FileBasedCalendarConfig.from_file(f)
        self.assertEqual("Europe/Amsterdam", cc.get_timezone())
        self.assertEqual(30, cc.get_horizon())
