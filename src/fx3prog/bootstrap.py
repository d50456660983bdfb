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

"""
The FX3 ROM bootloader can only download to RAM and jump. Writing the
I2C EEPROM needs the requests implemented by the Cypress flash
programmer, which has to be loaded into RAM first. Once started, it
re-enumerates and has to be found again on the bus.
"""

import os
import time
from enum import Enum
import logging
logger = logging.getLogger("fx3prog")

from fx3prog import loader
from fx3prog.config import programmer_config
from fx3prog.device import DeviceHandle, Mode, discover, classify, close_all
from fx3prog.errors import (
	FX3Error,
	BusAccessError,
	ImageNotFound,
	ReenumerationTimeout,
	WrongMode,
)
from fx3prog.utils import get_supported_devices

FLASHPROG_IMAGE = "cyfxflashprog.img"

flashprog_candidates = [
	FLASHPROG_IMAGE,
	"../" + FLASHPROG_IMAGE,
	"../../../../../cyusb_linux/fx3_images/" + FLASHPROG_IMAGE,
	"../../cyusb_linux/fx3_images/" + FLASHPROG_IMAGE,
	"../fx3_images/" + FLASHPROG_IMAGE,
	"../../fx3_images/" + FLASHPROG_IMAGE,
]

class BootstrapState(Enum):
	FAILED = -1
	PROBING = 0
	NEED_LOAD = 1
	LOADING = 2
	WAITING_REENUMERATION = 3
	READY = 4

def find_flashprog_image(override: str = None) -> str:
	candidates = [override] + flashprog_candidates
	for path in candidates:
		if path is None:
			continue
		if os.path.isfile(path):
			return path
	return None

class Bootstrapper():
	def __init__(self, devices: list, handle: DeviceHandle, config: dict = None):
		self.devices = devices
		self.handle = handle
		self.config = programmer_config if config is None else config
		self.state = BootstrapState.PROBING
		self.image_path = None
		self.error = None

	def set_state(self, new_state: BootstrapState):
		logger.info(f"flash programmer bootstrap: {self.state.name} -> {new_state.name}")
		self.state = new_state

	def fail(self, error: FX3Error):
		self.error = error
		self.set_state(BootstrapState.FAILED)

	def probe(self):
		mode = classify(self.handle)
		if mode == Mode.FLASH_PROGRAMMER:
			self.set_state(BootstrapState.READY)
		elif mode == Mode.BOOTLOADER:
			self.set_state(BootstrapState.NEED_LOAD)
		else:
			self.fail(WrongMode("Device must be in bootloader mode to launch the flash programmer, "
					"please set the PMODE jumper (J4) then power cycle"))

	def resolve_image(self):
		self.image_path = find_flashprog_image(self.config.get("flashprog_image"))
		if self.image_path is None:
			self.fail(ImageNotFound(f"{FLASHPROG_IMAGE} not found, set FX3_FLASH_PROG or place it near the working directory"))
		else:
			self.set_state(BootstrapState.LOADING)

	def load(self):
		logger.info(f"Downloading flash programmer {self.image_path} to device {self.handle.index}...")
		try:
			loader.upload(self.handle, self.image_path)
		except FX3Error as err:
			logger.error("Failed to load flash programmer into RAM")
			self.fail(err)
			return
		self.set_state(BootstrapState.WAITING_REENUMERATION)

	def wait_reenumeration(self):
		# every handle goes stale when the device resets
		self.handle.close()
		close_all(self.devices)
		self.devices = []
		self.handle = None

		vendor = get_supported_devices()["bootloader_vendor"]
		attempts = self.config["reenum_attempts"]
		for attempt in range(attempts):
			time.sleep(self.config["reenum_interval"])
			logger.info(f"Waiting for flash programmer {attempt + 1}/{attempts}")
			try:
				devices = discover(self.config["max_devices"], self.config["usb_timeout"])
			except BusAccessError as err:
				logger.warning(f"USB rescan failed: {err}")
				continue

			for handle in devices:
				if handle.vid == vendor and handle.mode == Mode.FLASH_PROGRAMMER:
					logger.info(f"Found FX3 flash programmer (device {handle.index})")
					self.devices = devices
					self.handle = handle
					self.set_state(BootstrapState.READY)
					return
			close_all(devices)

		self.fail(ReenumerationTimeout(f"Flash programmer did not enumerate after {attempts} attempts"))

	def step(self):
		state = self.state
		if state == BootstrapState.PROBING:
			self.probe()
		elif state == BootstrapState.NEED_LOAD:
			self.resolve_image()
		elif state == BootstrapState.LOADING:
			self.load()
		elif state == BootstrapState.WAITING_REENUMERATION:
			self.wait_reenumeration()

	def run(self) -> DeviceHandle:
		"""
		Drive the state machine to completion. Returns the flash
		programmer handle, or raises the error that caused the failure.
		"""
		while self.state not in [BootstrapState.READY, BootstrapState.FAILED]:
			self.step()
		if self.state == BootstrapState.FAILED:
			raise self.error
		return self.handle
