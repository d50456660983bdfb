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

import os
import re
import sys
import usb
import usb.core
import logging
logger = logging.getLogger("fx3prog")

import yaml

def cli_error(error: str):
	logger.error(f"CLI error: {error}")
	sys.exit(-1)

def parse_usb_ids(usb_id: str) -> tuple:
	"""
	parses "vid:pid" into (vid, pid), "vid:*" into (vid, None)
	"""
	expr = re.compile(r"^([0-9a-fA-F]{1,4}):([0-9a-fA-F]{1,4}|\*)$")
	m = expr.match(usb_id)
	if m is None:
		raise ValueError(f"invalid USB ID {usb_id}")
	vid = int(m.group(1), base=16)
	pid = None if m.group(2) == "*" else int(m.group(2), base=16)
	return (vid, pid)

def prettify_usb_ids(vid: int, pid: int) -> str:
	return f"{vid:04x}:{pid:04x}"

def get_supported_devices() -> dict:
	with open(os.path.dirname(__file__) + "/supported_devices.yaml", "r") as file:
		table = yaml.safe_load(file)
	devices = []
	for entry in table["devices"]:
		(vid, pid) = parse_usb_ids(entry["usb"])
		devices.append({"vid": vid, "pid": pid, "name": entry["name"]})
	return {
		"bootloader_vendor": int(table["bootloader_vendor"], base=16),
		"devices": devices,
	}

def match_device(devices: list, vid: int, pid: int):
	# first matching entry of the supported device table, or None
	for entry in devices:
		if entry["vid"] == vid and entry["pid"] in (None, pid):
			return entry
	return None

def dnload_iter(blob: bytes, chunk_size: int):
	# parse binary blob by chunks of chunk_size bytes
	for offset in range(0, len(blob), chunk_size):
		yield blob[offset:offset + chunk_size]

def round_up(size: int, align: int) -> int:
	return ((size + align - 1) // align) * align

def reset_usb(dev: usb.core.Device) -> None:
	try:
		dev.reset()
	except usb.core.USBError as err:
		# the device usually drops off the bus before acknowledging the reset
		logger.debug(f"USB reset returned {err}")
