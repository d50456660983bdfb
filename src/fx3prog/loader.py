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

import logging
logger = logging.getLogger("fx3prog")

from fx3prog.protocols.fx3 import FX3
from fx3prog.firmware.image import FirmwareImage, load_image
from fx3prog.errors import FX3Error, TransferError, TransferTimeout

def download(handle, image: FirmwareImage) -> int:
	"""
	Write every section of image to device RAM, then jump to its entry
	point. Any failed chunk aborts the whole download: a partially
	loaded image must never run, the only recovery is to start over.
	"""
	fx3 = handle.fx3
	bytes_sent = 0

	logger.info(f"Downloading {len(image.sections)} section(s), {image.total_payload} bytes to device {handle.index}...")
	for section in image.sections:
		for (addr, chunk) in section.chunks(FX3.MAX_WRITE_SIZE):
			try:
				bytes_sent += fx3.ram_write(addr, chunk)
			except (TransferError, TransferTimeout) as err:
				logger.error(f"USB transfer failed at offset {bytes_sent} (0x{bytes_sent:x}): {err}")
				raise

	logger.info(f"Program entry address: 0x{image.entry_point:08x}")
	try:
		fx3.jump(image.entry_point)
	except FX3Error as err:
		# the device may already be resetting into the new firmware
		logger.warning(f"Error sending program entry: {err}")

	logger.info(f"Successfully uploaded {bytes_sent} bytes to device {handle.index}")
	return bytes_sent

def upload(handle, path: str) -> int:
	image = load_image(path)
	logger.info(f"Uploading {path} ({image.size} bytes) to device {handle.index}...")
	return download(handle, image)
