import struct
import tempfile
import unittest
from pathlib import Path

from fakes import FakeObsClient

from obsfs import cli
from obsfs.errors import ConfigurationError
from obsfs.filesystem import StreamFactory


def scalar_record(key, value):
    return struct.pack("<Qi", key, 1) + struct.pack("<f4x", value) + struct.pack("<f4x", 0.0)


class ParseArgsTests(unittest.TestCase):
    def test_parses_name_value_pairs(self):
        args = cli.parse_args(["input=obs://b/part-*", "output=obs://b/out", "need_inverse=1"])

        self.assertEqual("obs://b/part-*", args.input)
        self.assertEqual("obs://b/out", args.output)
        self.assertTrue(args.need_inverse)
        self.assertIsNone(args.workers)

    def test_accepts_legacy_names(self):
        args = cli.parse_args(["model_in=a", "push_out=b", "need_inverse=0", "--workers", "3"])

        self.assertEqual("a", args.input)
        self.assertEqual("b", args.output)
        self.assertFalse(args.need_inverse)
        self.assertEqual(3, args.workers)

    def test_requires_input_and_output(self):
        with self.assertRaises(SystemExit):
            cli.parse_args(["input=a"])

    def test_rejects_malformed_assignment(self):
        with self.assertRaises(SystemExit):
            cli.parse_args(["input", "output=b"])


class MainTests(unittest.TestCase):
    def test_successful_run_exits_zero(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "part-0").write_bytes(scalar_record(5, 1.0))
            (root / "out").mkdir()

            code = cli.main([f"input={root}/part-*", f"output={root}/out"])

            self.assertEqual(cli.EXIT_OK, code)
            self.assertEqual("5\t1\n", (root / "out" / "part-0").read_text())

    def test_no_matched_files_exits_non_zero(self):
        with tempfile.TemporaryDirectory() as tmp:
            code = cli.main([f"input={tmp}/part-*", f"output={tmp}"])

        self.assertEqual(cli.EXIT_NO_INPUT, code)

    def test_worker_failure_exits_with_failure_code(self):
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            (root / "part-0").write_bytes(struct.pack("<Qi", 1, 4))

            code = cli.main([f"input={root}/part-0", f"output={root}/out-missing"])

        self.assertEqual(cli.EXIT_WORKER_FAILED, code)

    def test_missing_configuration_exits_before_io(self):
        client = FakeObsClient({"b": {}})

        def loader():
            raise ConfigurationError("Need to set environment variable OBS_ENDPOINT to use OBS")

        factory = StreamFactory(settings_loader=loader, client_factory=lambda *_, **__: client)

        code = cli.main(["input=obs://b/part-*", "output=obs://b/out"], factory=factory)

        self.assertEqual(cli.EXIT_NO_INPUT, code)
        self.assertEqual([], client.list_calls)

    def test_missing_configuration_for_output_exits_before_workers(self):
        loads = []

        def loader():
            loads.append(1)
            raise ConfigurationError("Need to set environment variable OBS_ENDPOINT to use OBS")

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            for index in range(3):
                (root / f"part-{index}").write_bytes(scalar_record(index, 1.0))
            factory = StreamFactory(settings_loader=loader)

            code = cli.main([f"input={root}/part-*", "output=obs://b/out"], factory=factory)

        self.assertEqual(cli.EXIT_NO_INPUT, code)
        self.assertEqual(1, len(loads))


if __name__ == "__main__":
    unittest.main()
