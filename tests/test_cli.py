import io
import logging
import os
import tempfile
import unittest
import unittest.mock
from contextlib import redirect_stdout

import fx3prog.config as config
from fx3prog.cli import cli

from fake_fx3 import FakeFX3, build_image, make_handle, patch_get_string

class CliTestCase(unittest.TestCase):
	def setUp(self):
		self.tmpdir = tempfile.TemporaryDirectory()
		self.addCleanup(self.tmpdir.cleanup)
		logger = logging.getLogger("fx3prog")
		handlers = list(logger.handlers)
		self.addCleanup(lambda: setattr(logger, "handlers", handlers))
		get_string = patch_get_string()
		get_string.start()
		self.addCleanup(get_string.stop)

	def write(self, name: str, blob: bytes) -> str:
		path = os.path.join(self.tmpdir.name, name)
		with open(path, "wb") as file:
			file.write(blob)
		return path

	def run_cli(self, *argv, devices=None) -> int:
		out = io.StringIO()
		with unittest.mock.patch("sys.argv", ["fx3prog", *argv]), \
				unittest.mock.patch("fx3prog.cli.discover", return_value=devices or []), \
				redirect_stdout(out):
			try:
				cli()
			except SystemExit as err:
				self.output = out.getvalue()
				return err.code
		self.output = out.getvalue()
		return 0

class TestCli(CliTestCase):
	def test_help(self):
		self.assertEqual(self.run_cli(), 0)
		self.assertIn("FX3 firmware programmer", self.output)

	def test_verify_requires_program(self):
		self.assertNotEqual(self.run_cli("-v"), 0)

	def test_list(self):
		devices = [make_handle(FakeFX3("bootloader"))]
		self.assertEqual(self.run_cli("-l", devices=devices), 0)
		self.assertIn("Mode=Bootloader", self.output)
		self.assertFalse(devices[0].is_open)

	def test_invalid_index(self):
		devices = [make_handle(FakeFX3("bootloader"))]
		path = self.write("fw.img", build_image([(0x40000000, bytes(64))], 0x40000000))
		self.assertNotEqual(self.run_cli("-d", "3", "-u", path, devices=devices), 0)

	def test_no_device(self):
		path = self.write("fw.img", build_image([], 0))
		self.assertNotEqual(self.run_cli("-u", path), 0)

	def test_upload(self):
		rom = FakeFX3("bootloader")
		path = self.write("fw.img", build_image([(0x40000000, bytes(4096))], 0x40000010))
		self.assertEqual(self.run_cli("-u", path, devices=[make_handle(rom)]), 0)
		self.assertEqual(len(rom.ram_writes), 2)
		self.assertEqual(rom.jumps, [0x40000010])

	def test_upload_bad_image(self):
		rom = FakeFX3("bootloader")
		path = self.write("fw.img", b"CY\x01\xb0" + bytes(8))
		self.assertNotEqual(self.run_cli("-u", path, devices=[make_handle(rom)]), 0)
		self.assertEqual(rom.ram_writes, [])

	def test_program_and_verify(self):
		prog = FakeFX3("flashprog")
		blob = bytes(range(256)) * 300
		path = self.write("fw.img", blob)

		self.assertEqual(self.run_cli("-p", path, "-v", devices=[make_handle(prog)]), 0)
		self.assertEqual(bytes(prog.eeprom[:len(blob)]), blob)
		self.assertIn("Power cycle", self.output)

	def test_program_from_bootloader(self):
		rom = FakeFX3("bootloader")
		prog = FakeFX3("flashprog")
		flashprog_img = self.write("cyfxflashprog.img", build_image([(0x40000000, bytes(512))], 0x40000000))
		path = self.write("fw.img", bytes(1000))
		prog.eeprom[:1024] = b"\xff" * 1024

		defaults = {
			"usb_timeout": 5000,
			"reenum_interval": 0,
			"reenum_attempts": 2,
			"max_devices": 16,
			"flashprog_image": None,
		}
		with unittest.mock.patch("fx3prog.bootstrap.discover", return_value=[make_handle(prog)]), \
				unittest.mock.patch("fx3prog.config.default_config", return_value=defaults):
			ret = self.run_cli("-p", path, "--flashprog", flashprog_img, devices=[make_handle(rom)])

		self.assertEqual(ret, 0)
		self.assertEqual(rom.jumps, [0x40000000])
		self.assertEqual(bytes(prog.eeprom[:1024]), bytes(1024))

	def test_program_application_fails(self):
		app = FakeFX3("application", vid=0x1d50, pid=0x603b)
		path = self.write("fw.img", bytes(64))
		self.assertNotEqual(self.run_cli("-p", path, devices=[make_handle(app)]), 0)
		self.assertEqual(app.ram_writes, [])

	def test_reset(self):
		rom = FakeFX3("bootloader")
		rom.reset = unittest.mock.Mock()
		self.assertEqual(self.run_cli("-r", devices=[make_handle(rom)]), 0)
		rom.reset.assert_called_once()

	def test_program_then_reset_targets_flash_programmer(self):
		rom = FakeFX3("bootloader")
		app = FakeFX3("application", vid=0x1d50, pid=0x603b, address=5)
		app.reset = unittest.mock.Mock()
		prog = FakeFX3("flashprog", address=6)
		prog.reset = unittest.mock.Mock()
		flashprog_img = self.write("cyfxflashprog.img", build_image([(0x40000000, bytes(512))], 0x40000000))
		path = self.write("fw.img", bytes(256))

		defaults = {
			"usb_timeout": 5000,
			"reenum_interval": 0,
			"reenum_attempts": 2,
			"max_devices": 16,
			"flashprog_image": None,
		}
		# after re-enumeration index 0 is another device
		rediscovered = [make_handle(app, 0), make_handle(prog, 1)]
		with unittest.mock.patch("fx3prog.bootstrap.discover", return_value=rediscovered), \
				unittest.mock.patch("fx3prog.config.default_config", return_value=defaults):
			ret = self.run_cli("-d", "0", "-p", path, "-r", "--flashprog", flashprog_img, devices=[make_handle(rom)])

		self.assertEqual(ret, 0)
		prog.reset.assert_called_once()
		app.reset.assert_not_called()

class TestConfig(CliTestCase):
	def args(self, **kwargs):
		return unittest.mock.Mock(config=kwargs.get("config"), flashprog=kwargs.get("flashprog"))

	def test_defaults(self):
		cfg = config.init_config(self.args())
		self.assertEqual(cfg["usb_timeout"], 5000)
		self.assertEqual(cfg["reenum_attempts"], 10)
		self.assertEqual(cfg["reenum_interval"], 1.0)
		self.assertEqual(cfg["max_devices"], 16)
		self.assertIs(cfg, config.programmer_config)

	def test_env_override(self):
		with unittest.mock.patch.dict(os.environ, {"FX3_FLASH_PROG": "/opt/cyfxflashprog.img"}):
			cfg = config.init_config(self.args())
		self.assertEqual(cfg["flashprog_image"], "/opt/cyfxflashprog.img")

	def test_file_and_cli(self):
		path = self.write("fx3prog.yaml", b"reenum_attempts: 30\nreenum_interval: 0.5\nflashprog_image: /a.img\n")
		cfg = config.init_config(self.args(config=path, flashprog="/b.img"))
		self.assertEqual(cfg["reenum_attempts"], 30)
		self.assertEqual(cfg["reenum_interval"], 0.5)
		self.assertEqual(cfg["flashprog_image"], "/b.img")

	def test_unknown_key(self):
		path = self.write("fx3prog.yaml", b"retries: 3\n")
		with self.assertRaises(SystemExit):
			config.init_config(self.args(config=path))

	def test_bad_value(self):
		path = self.write("fx3prog.yaml", b"usb_timeout: fast\n")
		with self.assertRaises(SystemExit):
			config.init_config(self.args(config=path))

	def test_zero_rejected(self):
		for key in ["usb_timeout", "max_devices", "reenum_attempts"]:
			with self.subTest(key=key):
				path = self.write("fx3prog.yaml", f"{key}: 0\n".encode())
				with self.assertRaises(SystemExit):
					config.init_config(self.args(config=path))

	def test_zero_interval_accepted(self):
		path = self.write("fx3prog.yaml", b"reenum_interval: 0\n")
		cfg = config.init_config(self.args(config=path))
		self.assertEqual(cfg["reenum_interval"], 0)
