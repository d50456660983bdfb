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
Cypress FX3 boot image (.img) parsing.

	magic[2]        "CY"
	control         bit 0 clear for executable code
	type            0xB0, normal firmware with checksum
	records...      length (in 32-bit words), address, data
	                a zero length ends the records and is followed
	                by the entry address and the data checksum
"""

from dataclasses import dataclass, field
import logging
logger = logging.getLogger("fx3prog")

from fx3prog.errors import (
	InvalidImageHeader,
	NotExecutable,
	UnsupportedType,
	TruncatedImage,
	FileIO,
)
from fx3prog.utils import dnload_iter

IMAGE_MAGIC = b"CY"
IMAGE_CTL_NOEXEC = 0x01
IMAGE_TYPE_NORMAL = 0xb0
HEADER_SIZE = 4
WORD_SIZE = 4

@dataclass
class Section():
	address: int
	payload: bytes

	def chunks(self, chunk_size: int):
		"""
		yields (address, data) pairs, the last one may be shorter
		"""
		addr = self.address
		for chunk in dnload_iter(self.payload, chunk_size):
			yield (addr, chunk)
			addr += len(chunk)

@dataclass
class FirmwareImage():
	sections: list = field(default_factory=list)
	entry_point: int = 0
	checksum: int = None
	size: int = 0

	@property
	def total_payload(self) -> int:
		return sum([len(section.payload) for section in self.sections])

	def compute_checksum(self) -> int:
		# 32-bit sum of every payload word
		total = 0
		for section in self.sections:
			for i in range(0, len(section.payload), WORD_SIZE):
				total += int.from_bytes(section.payload[i:i + WORD_SIZE], "little")
		return total & 0xffffffff

	def log(self):
		for i, section in enumerate(self.sections):
			logger.debug(f"section {i}: address 0x{section.address:08x} size 0x{len(section.payload):x}")
		logger.debug(f"entry point: 0x{self.entry_point:08x}")

class ImageCursor():
	def __init__(self, blob: bytes):
		self.blob = memoryview(blob)
		self.offset = 0

	def remaining(self) -> int:
		return len(self.blob) - self.offset

	def read(self, size: int) -> bytes:
		if size > self.remaining():
			raise TruncatedImage(self.offset, size, self.remaining())
		data = bytes(self.blob[self.offset:self.offset + size])
		self.offset += size
		return data

	def read32(self) -> int:
		return int.from_bytes(self.read(WORD_SIZE), "little")

def parse(blob: bytes) -> FirmwareImage:
	if len(blob) < HEADER_SIZE or blob[0:2] != IMAGE_MAGIC:
		raise InvalidImageHeader("missing CY header")

	if blob[2] & IMAGE_CTL_NOEXEC:
		raise NotExecutable("image does not contain executable code")

	if blob[3] != IMAGE_TYPE_NORMAL:
		raise UnsupportedType(f"not a normal FW binary with checksum (got 0x{blob[3]:02x})")

	cursor = ImageCursor(blob)
	cursor.read(HEADER_SIZE)
	image = FirmwareImage()

	while True:
		length = cursor.read32()
		if length == 0:
			image.entry_point = cursor.read32()
			break
		address = cursor.read32()
		payload = cursor.read(length * WORD_SIZE)
		image.sections.append(Section(address, payload))

	if cursor.remaining() == WORD_SIZE:
		image.checksum = cursor.read32()
		computed = image.compute_checksum()
		if computed != image.checksum:
			logger.warning(f"Image checksum mismatch: header says 0x{image.checksum:08x}, data sums to 0x{computed:08x}")
	elif cursor.remaining() > 0:
		logger.debug(f"ignoring {cursor.remaining()} trailing bytes after the entry address")

	image.size = cursor.offset
	image.log()
	return image

def check_fw_blob(fw_blob: bytes) -> bool:
	"""
	Returns False if the start of the file decodes as text, which
	usually means that the wrong file was passed.
	"""
	first_512 = fw_blob[:512]

	try:
		first_512.decode("ascii")
	except UnicodeDecodeError:
		return True

	return False

def read_file(path: str) -> bytes:
	try:
		with open(path, "rb") as file:
			return file.read(-1)
	except OSError as err:
		raise FileIO(f"failed to read firmware file {path}: {err}") from err

def load_image(path: str) -> FirmwareImage:
	fw_blob = read_file(path)

	if not check_fw_blob(fw_blob):
		logger.warning(f"File {path} looks like a text file!")

	return parse(fw_blob)
