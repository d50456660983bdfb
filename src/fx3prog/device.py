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
from enum import Enum
import logging
logger = logging.getLogger("fx3prog")

from fx3prog.usb import FX3USBContext
from fx3prog.protocols.fx3 import FX3, USB_TIMEOUT
from fx3prog.errors import OpenFailed, DeviceNotFound, InvalidIndex
from fx3prog.utils import get_supported_devices, match_device, prettify_usb_ids

MAX_DEVICES = 16

BOOTLOADER_STRING_INDEX = 2
BOOTLOADER_PRODUCT = "WestBridge"

class Mode(Enum):
	UNKNOWN = 0
	BOOTLOADER = 1
	APPLICATION = 2
	FLASH_PROGRAMMER = 3

	def __str__(self):
		return {
			Mode.UNKNOWN: "Unknown",
			Mode.BOOTLOADER: "Bootloader",
			Mode.APPLICATION: "Application",
			Mode.FLASH_PROGRAMMER: "FlashProgrammer",
		}[self]

class DeviceHandle():
	def __init__(self, dev: usb.core.Device, index: int, product_name: str = "FX3", timeout: int = USB_TIMEOUT):
		self.dev = dev
		self.vid = dev.idVendor
		self.pid = dev.idProduct
		self.bus = dev.bus
		self.addr = dev.address
		self.dev_class = dev.bDeviceClass
		self.index = index
		self.product_name = product_name
		self.mode = Mode.UNKNOWN
		self.fx3 = FX3(dev, timeout)
		self.is_open = False

	def open(self):
		"""
		libusb opens devices lazily, so force the first access here
		to catch permission problems during enumeration.
		"""
		try:
			self.dev.get_active_configuration()
		except NotImplementedError:
			pass
		except usb.core.USBError:
			# the ROM bootloader starts unconfigured
			try:
				self.dev.set_configuration()
			except usb.core.USBError as err:
				raise OpenFailed(f"failed to open USB device {prettify_usb_ids(self.vid, self.pid)} "
						f"on bus {self.bus:03d} device {self.addr:03d}: {err}") from err
		self.is_open = True
		return self

	def close(self):
		if not self.is_open:
			return
		usb.util.dispose_resources(self.dev)
		self.is_open = False

	def __str__(self):
		return f"[{self.index}] VID:PID={prettify_usb_ids(self.vid, self.pid)} "\
			+ f"Bus={self.bus:03d} Device={self.addr:03d} Mode={self.mode} ({self.product_name})"

def is_bootloader(handle: DeviceHandle) -> bool:
	try:
		product = usb.util.get_string(handle.dev, BOOTLOADER_STRING_INDEX)
	except (usb.core.USBError, ValueError) as err:
		logger.debug(f"failed to read product string of {prettify_usb_ids(handle.vid, handle.pid)}: {err}")
		return False
	if product is None:
		return False
	return product[:len(BOOTLOADER_PRODUCT)] == BOOTLOADER_PRODUCT

def classify(handle: DeviceHandle) -> Mode:
	"""
	The flash programmer probe comes first since it is the only
	positive identification available. A failed probe is never an
	error: devices that answer neither probe are assumed to run an
	application.
	"""
	if handle.fx3.is_flash_programmer():
		mode = Mode.FLASH_PROGRAMMER
	elif is_bootloader(handle):
		mode = Mode.BOOTLOADER
	else:
		mode = Mode.APPLICATION
	handle.mode = mode
	return mode

def discover(max_devices: int = MAX_DEVICES, timeout: int = USB_TIMEOUT) -> list:
	"""
	Scan the bus for supported devices, open and classify each one.
	Raises BusAccessError if the bus cannot be listed at all.
	"""
	supported = get_supported_devices()["devices"]
	FX3USBContext.rescan()

	devices = []
	for dev in FX3USBContext.find():
		entry = match_device(supported, dev.idVendor, dev.idProduct)
		if entry is None:
			continue

		if len(devices) >= max_devices:
			logger.warning(f"More than {max_devices} supported devices found, ignoring the rest")
			break

		handle = DeviceHandle(dev, len(devices), entry["name"], timeout)
		try:
			handle.open()
		except OpenFailed as err:
			logger.warning(f"{err}, skipping it")
			continue

		classify(handle)
		logger.debug(f"found {handle}")
		devices.append(handle)

	return devices

def close_all(devices: list) -> None:
	for handle in devices:
		handle.close()

def select(devices: list, index: int) -> DeviceHandle:
	if len(devices) == 0:
		raise DeviceNotFound("No FX3 devices found")
	if index < 0 or index >= len(devices):
		raise InvalidIndex(f"Invalid device index {index}, {len(devices)} device(s) found")
	return devices[index]

def list_devices(devices: list) -> None:
	if len(devices) == 0:
		print("No FX3 devices found")
		return

	print(f"Found {len(devices)} FX3 device(s):\n")
	for handle in devices:
		print(str(handle))
	print("")
