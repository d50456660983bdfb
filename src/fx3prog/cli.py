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

import sys
import argparse
import logging
from fx3prog import __version__
from fx3prog import loader, programmer
from fx3prog.bootstrap import Bootstrapper
from fx3prog.device import discover, select, close_all, list_devices
from fx3prog.errors import FX3Error
from fx3prog.utils import cli_error, reset_usb
import fx3prog.config as config

def setup_logging(args) -> logging.Logger:
	logger = logging.getLogger("fx3prog")
	logger.setLevel(logging.DEBUG)
	log_formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

	stdout_handler = logging.StreamHandler(sys.stdout)
	stdout_handler.setLevel(logging.INFO)
	stdout_handler.setFormatter(log_formatter)
	logger.addHandler(stdout_handler)

	if args.loglevel != "silent":
		log_handler = logging.FileHandler(args.logfile, encoding="utf-8")
		log_handler.setFormatter(log_formatter)
		if args.loglevel == "debug":
			log_handler.setLevel(logging.DEBUG)
		elif args.loglevel == "info":
			log_handler.setLevel(logging.INFO)
		logger.addHandler(log_handler)

	return logger

def get_parser() -> argparse.ArgumentParser:
	example = '''Examples:
	fx3prog -l                          List devices
	fx3prog -u firmware.img             Upload firmware to RAM on device 0
	fx3prog -p firmware.img             Program firmware to the I2C EEPROM on device 0
	fx3prog -p firmware.img -v          Program, then verify the whole EEPROM
	fx3prog -d 1 -u firmware.img        Upload firmware to RAM on device 1
	fx3prog -d 0 -r                     Reset device 0

Notes:
	EEPROM programming requires the device to be in bootloader mode.
	Set the PMODE jumper (J4) and power cycle to enter the bootloader.
	The flash programmer image (cyfxflashprog.img) is looked up in
	$FX3_FLASH_PROG, then next to the working directory.
'''
	parser = argparse.ArgumentParser(prog="fx3prog", description="FX3 firmware programmer",
			epilog=example, formatter_class=argparse.RawDescriptionHelpFormatter)
	actions = parser.add_argument_group("Actions")
	actions.add_argument("-l", "--list", help="list connected FX3 devices", action="store_true")
	actions.add_argument("-u", "--upload", help="upload firmware to device RAM and run it", metavar="FIRMWARE_FILE")
	actions.add_argument("-p", "--program", help="program firmware to the I2C EEPROM (persistent)", metavar="FIRMWARE_FILE")
	actions.add_argument("-v", "--verify", help="verify EEPROM contents against the firmware file (use with -p)", action="store_true")
	actions.add_argument("-r", "--reset", help="reset device", action="store_true")
	optional = parser.add_argument_group("Optional")
	optional.add_argument("-d", "--device", help="target device index", type=int, default=0, metavar="DEVICE_IDX")
	optional.add_argument("--flashprog", help="path to the flash programmer image, overrides $FX3_FLASH_PROG")
	optional.add_argument("--config", help="programmer configuration, passed as a yaml file", metavar="config.yaml")
	optional.add_argument("--loglevel", help="set loglevel", choices=["silent", "info", "debug"], default="silent")
	optional.add_argument("--logfile", help="set logfile", default="fx3prog.log")
	optional.add_argument("--version", help="show version", action="store_true")
	return parser

def run(args, logger) -> None:
	cfg = config.programmer_config
	devices = discover(cfg["max_devices"], cfg["usb_timeout"])
	prog_handle = None

	try:
		if args.list:
			list_devices(devices)

		if args.upload:
			handle = select(devices, args.device)
			loader.upload(handle, args.upload)

		if args.program:
			handle = select(devices, args.device)
			bootstrapper = Bootstrapper(devices, handle, cfg)
			try:
				prog_handle = bootstrapper.run()
			finally:
				devices = bootstrapper.devices
			programmer.program_file(prog_handle, args.program)
			if args.verify:
				programmer.verify_file(prog_handle, args.program)
			logger.info("Power cycle the device (remove J4/PMODE to boot from EEPROM)")

		if args.reset:
			# device indexes change once the flash programmer re-enumerates
			handle = prog_handle if prog_handle is not None else select(devices, args.device)
			logger.info(f"Resetting device {handle.index}...")
			reset_usb(handle.dev)
	finally:
		close_all(devices)

def cli():
	parser = get_parser()

	if len(sys.argv) == 1:
		parser.print_help()
		sys.exit(0)

	args = parser.parse_args()

	logger = setup_logging(args)

	# show version
	if args.version:
		logger.info(f"fx3prog v{__version__}")
		sys.exit(0)

	if args.verify and not args.program:
		cli_error("verify requires a firmware file, use -p <file> -v to program and verify")

	if not (args.list or args.upload or args.program or args.reset):
		cli_error("nothing to do, please pass one of -l, -u, -p or -r")

	config.init_config(args)

	try:
		run(args, logger)
	except FX3Error as err:
		logger.error(f"{type(err).__name__}: {err}")
		sys.exit(-1)

	logger.info("Done")

if __name__ == "__main__":
	cli()
