# This file is part of fx3prog
# Copyright (C) 2026 The fx3prog authors
#
# Based on cyusb_linux (https://github.com/Cypress-Semiconductor/cyusb_linux)
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
Vendor control requests understood by the FX3 ROM bootloader and by the
Cypress flash programmer (cyfxflashprog.img). The ROM only implements
FX3_DOWNLOAD, the I2C requests are provided by the flash programmer.
"""

import usb
import usb.core
import logging
logger = logging.getLogger("fx3prog")
from fx3prog.errors import TransferError, TransferTimeout

REQTYPE_VENDOR_OUT = 0x40
REQTYPE_VENDOR_IN = 0xc0

USB_TIMEOUT = 5000
FLASHPROG_MAGIC = b"FX3PROG"

class FX3():
	MAX_WRITE_SIZE = 2048

	request_codes = {
	"FX3_DOWNLOAD": 0xa0,
	"FX3_FLASHPROG_ID": 0xb0,
	"FX3_I2C_WRITE": 0xba,
	"FX3_I2C_READ": 0xbb,
	}

	def __init__(self, dev: usb.core.Device, timeout: int = USB_TIMEOUT):
		self.dev = dev
		self.timeout = timeout

	def ctrl_out(self, request: str, value: int, index: int, data: bytes = b"") -> int:
		if len(data) > FX3.MAX_WRITE_SIZE:
			raise ValueError(f"{len(data)} bytes exceed the {FX3.MAX_WRITE_SIZE} byte control transfer limit")
		try:
			ret = self.dev.ctrl_transfer(REQTYPE_VENDOR_OUT, FX3.request_codes[request],
					wValue=value, wIndex=index, data_or_wLength=data, timeout=self.timeout)
		except usb.core.USBTimeoutError as err:
			raise TransferTimeout(f"{request} timed out (wValue 0x{value:04x} wIndex 0x{index:04x})") from err
		except usb.core.USBError as err:
			raise TransferError(f"{request} failed (wValue 0x{value:04x} wIndex 0x{index:04x}): {err}") from err
		if ret != len(data):
			raise TransferError(f"{request} sent only {ret}/{len(data)} bytes")
		return ret

	def ctrl_in(self, request: str, value: int, index: int, length: int) -> bytes:
		if length > FX3.MAX_WRITE_SIZE:
			raise ValueError(f"{length} bytes exceed the {FX3.MAX_WRITE_SIZE} byte control transfer limit")
		try:
			ret = self.dev.ctrl_transfer(REQTYPE_VENDOR_IN, FX3.request_codes[request],
					wValue=value, wIndex=index, data_or_wLength=length, timeout=self.timeout)
		except usb.core.USBTimeoutError as err:
			raise TransferTimeout(f"{request} timed out (wValue 0x{value:04x} wIndex 0x{index:04x})") from err
		except usb.core.USBError as err:
			raise TransferError(f"{request} failed (wValue 0x{value:04x} wIndex 0x{index:04x}): {err}") from err
		ret = bytes(ret)
		if len(ret) != length:
			raise TransferError(f"{request} returned only {len(ret)}/{length} bytes")
		return ret

	def is_flash_programmer(self) -> bool:
		try:
			ret = self.ctrl_in("FX3_FLASHPROG_ID", 0, 0, 8)
		except (TransferError, TransferTimeout) as err:
			# the ROM bootloader and most applications stall this request
			logger.debug(f"flash programmer probe: {err}")
			return False
		return ret[:len(FLASHPROG_MAGIC)] == FLASHPROG_MAGIC

	def ram_write(self, addr: int, chunk: bytes) -> int:
		logger.debug(f"[FX3] ram_write addr 0x{addr:08x} size 0x{len(chunk):x}")
		return self.ctrl_out("FX3_DOWNLOAD", addr & 0xffff, addr >> 16, chunk)

	def jump(self, addr: int) -> None:
		logger.debug(f"[FX3] jump to 0x{addr:08x}")
		self.ctrl_out("FX3_DOWNLOAD", addr & 0xffff, addr >> 16)

	def i2c_write(self, slave: int, offset: int, chunk: bytes) -> int:
		logger.debug(f"[FX3] i2c_write slave {slave} offset 0x{offset:04x} size 0x{len(chunk):x}")
		return self.ctrl_out("FX3_I2C_WRITE", slave, offset, chunk)

	def i2c_read(self, slave: int, offset: int, size: int) -> bytes:
		logger.debug(f"[FX3] i2c_read slave {slave} offset 0x{offset:04x} size 0x{size:x}")
		return self.ctrl_in("FX3_I2C_READ", slave, offset, size)
