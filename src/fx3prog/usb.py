# This file is part of fx3prog
# Copyright (C) 2026 The fx3prog authors
#
# This program is free software; you can redistribute it and/or
# modify it under the terms of the GNU General Public License
# as published by the Free Software Foundation; either version 2
# of the License, or (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program; if not, write to the Free Software
# Foundation, Inc., 51 Franklin Street, Fifth Floor, Boston, MA  02110-1301, USA.

import usb
import usb.core
import usb.util
from fx3prog.errors import BusAccessError

class FX3USBContext():
	"""
	This class holds the device objects returned by the last
	usb.core.find() scan. Every rescan drops the previous list, so that
	stale devices from before a re-enumeration are never matched again.
	"""

	devices = []

	def rescan():
		__class__.devices.clear()
		try:
			__class__.devices = list(usb.core.find(find_all=True))
		except usb.core.NoBackendError as err:
			raise BusAccessError("no libusb backend available") from err
		except usb.core.USBError as err:
			raise BusAccessError(f"failed to get USB device list: {err}") from err

	def find():
		for dev in __class__.devices:
			yield dev
