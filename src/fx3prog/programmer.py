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
I2C EEPROM programming through the flash programmer.

The EEPROM is addressed as a series of 64KiB windows, each selected by
a slave index passed in wValue. wIndex holds the offset inside the
window. Every window is read back and compared right after it has been
written, and the first mismatch or transfer error aborts the whole
operation. There is no retry and no rollback, a failed run has to be
restarted from scratch.
"""

from dataclasses import dataclass
import logging
logger = logging.getLogger("fx3prog")

from fx3prog.protocols.fx3 import FX3
from fx3prog.firmware.image import read_file
from fx3prog.errors import VerificationMismatch
from fx3prog.utils import round_up

I2C_PAGE_SIZE = 64
I2C_SLAVE_SIZE = 64 * 1024

@dataclass
class I2CWindow():
	slave: int
	offset: int # absolute offset of the window in the image
	length: int

def pad_image(blob: bytes, page_size: int = I2C_PAGE_SIZE) -> bytes:
	padded_size = round_up(len(blob), page_size)
	return bytes(blob) + b"\x00" * (padded_size - len(blob))

def windows(length: int):
	slave = 0
	for offset in range(0, length, I2C_SLAVE_SIZE):
		yield I2CWindow(slave, offset, min(I2C_SLAVE_SIZE, length - offset))
		slave += 1

def write_window(fx3: FX3, blob: bytes, window: I2CWindow):
	address = 0
	while address < window.length:
		size = min(FX3.MAX_WRITE_SIZE, window.length - address)
		start = window.offset + address
		fx3.i2c_write(window.slave, address, blob[start:start + size])
		address += size

def verify_window(fx3: FX3, expected: bytes, window: I2CWindow):
	address = 0
	while address < window.length:
		size = min(FX3.MAX_WRITE_SIZE, window.length - address)
		start = window.offset + address
		data = fx3.i2c_read(window.slave, address, size)
		ref = expected[start:start + size]
		if data != ref:
			i = next(i for i in range(size) if data[i] != ref[i])
			raise VerificationMismatch(start + i, ref[i], data[i])
		address += size

def program(handle, image_bytes: bytes) -> None:
	blob = pad_image(image_bytes)
	logger.info(f"Programming {len(image_bytes)} bytes, padded to {len(blob)}, to the I2C EEPROM...")

	for window in windows(len(blob)):
		logger.info(f"Writing slave {window.slave}: 0x{window.length:x} bytes at offset 0x{window.offset:x}")
		write_window(handle.fx3, blob, window)
		verify_window(handle.fx3, blob, window)

	logger.info(f"Successfully programmed {len(blob)} bytes to the I2C EEPROM")

def verify(handle, expected_bytes: bytes) -> None:
	blob = pad_image(expected_bytes)
	logger.info(f"Verifying I2C EEPROM ({len(expected_bytes)} bytes, padded to {len(blob)})...")

	for window in windows(len(blob)):
		logger.debug(f"Verifying slave {window.slave}: 0x{window.length:x} bytes at offset 0x{window.offset:x}")
		verify_window(handle.fx3, blob, window)

	logger.info("Verification successful")

def program_file(handle, path: str) -> None:
	program(handle, read_file(path))

def verify_file(handle, path: str) -> None:
	verify(handle, read_file(path))
	logger.info(f"EEPROM matches {path}")
