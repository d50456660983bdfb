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
import yaml
from fx3prog.utils import cli_error
import logging

logger = logging.getLogger("fx3prog")

FLASHPROG_ENV = "FX3_FLASH_PROG"

def default_config() -> dict:
	return {
		# ms, applied to every control transfer
		"usb_timeout": 5000,
		# flash programmer re-enumeration poll, in seconds
		"reenum_interval": 1.0,
		"reenum_attempts": 10,
		"max_devices": 16,
		"flashprog_image": os.environ.get(FLASHPROG_ENV),
	}

programmer_config = default_config()  # Global config to be initialized with CLI args

def check_config(config: dict) -> None:
	defaults = default_config()
	for key, value in config.items():
		if key not in defaults:
			cli_error(f"unknown configuration key {key}, valid keys: {', '.join(defaults)}")
		if key == "flashprog_image":
			if value is not None and not isinstance(value, str):
				cli_error(f"{key} should be a path, got {value}")
		elif key == "reenum_interval":
			if not isinstance(value, (int, float)) or isinstance(value, bool) or value < 0:
				cli_error(f"{key} should be a non-negative number, got {value}")
		elif not isinstance(value, int) or isinstance(value, bool) or value <= 0:
			cli_error(f"{key} should be a positive integer, got {value}")

def read_config_file(path: str) -> dict:
	try:
		with open(path, "r") as file:
			file_config = yaml.safe_load(file)
	except OSError as err:
		cli_error(f"failed to read configuration file {path}: {err}")
	if file_config is None:
		return {}
	if not isinstance(file_config, dict):
		cli_error(f"configuration file {path} did not evaluate to a dict: {file_config}")
	return file_config

def init_config(args) -> dict:
	# this is the only time that config.programmer_config should be modified!
	programmer_config.clear()
	programmer_config.update(default_config())

	if getattr(args, "config", None):
		file_config = read_config_file(args.config)
		check_config(file_config)
		programmer_config.update(file_config)

	if getattr(args, "flashprog", None):
		programmer_config["flashprog_image"] = args.flashprog

	logger.debug(f"programmer_config:{str(programmer_config)}")
	return programmer_config
