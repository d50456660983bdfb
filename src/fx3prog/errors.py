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

class FX3Error(Exception):
	"Base class for every failure reported by fx3prog"
	pass

class DeviceNotFound(FX3Error):
	pass

class InvalidIndex(FX3Error):
	pass

class OpenFailed(FX3Error):
	pass

class BusAccessError(FX3Error):
	"Raised when the USB bus itself cannot be listed, as opposed to a single device"
	pass

class TransferTimeout(FX3Error):
	pass

class TransferError(FX3Error):
	pass

class ParseError(FX3Error):
	def __init__(self, message):
		self.message = message
		super().__init__(self.message)

	def __str__(self):
		return f"Image format error: {self.message}"

class InvalidImageHeader(ParseError):
	pass

class NotExecutable(ParseError):
	pass

class UnsupportedType(ParseError):
	pass

class TruncatedImage(ParseError):
	def __init__(self, offset: int, needed: int, remaining: int):
		self.offset = offset
		super().__init__(f"truncated image: need {needed} bytes at offset 0x{offset:x}, only {remaining} left")

class ImageNotFound(FX3Error):
	pass

class ReenumerationTimeout(FX3Error):
	pass

class WrongMode(FX3Error):
	pass

class VerificationMismatch(FX3Error):
	def __init__(self, offset: int, expected: int = None, actual: int = None):
		self.offset = offset
		self.expected = expected
		self.actual = actual
		msg = f"verification failed at offset 0x{offset:x}"
		if expected is not None:
			msg += f": expected 0x{expected:02x}, read 0x{actual:02x}"
		super().__init__(msg)

class FileIO(FX3Error):
	pass
