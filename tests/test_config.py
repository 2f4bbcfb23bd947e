import json
import os
import tempfile
import unittest

from mandelanim.config import ConfigError, RenderConfig, build_run_config, load_config, normalise_config, parse_shard


class TestConfig(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.out_dir = os.path.join(self.tmp.name, "frames")

    def tearDown(self):
        self.tmp.cleanup()

    def test_defaults(self):
        cfg = normalise_config({})
        self.assertEqual((cfg["width"], cfg["height"]), (1920, 1080))
        self.assertEqual(cfg["frames"], 300)
        self.assertEqual(cfg["zoom_end"], 1e-6)
        self.assertGreaterEqual(cfg["workers"], 1)

    def test_build_creates_output_dir(self):
        run = build_run_config({"out_dir": self.out_dir, "frames": 12, "zoom_end": "1e-20", "workers": 3})
        self.assertTrue(os.path.isdir(self.out_dir))
        self.assertEqual(run.schedule.frame_count, 12)
        self.assertEqual(run.schedule.end_magnification, 1e-20)
        self.assertEqual(run.render.workers, 3)

    def test_zoom_must_decrease(self):
        with self.assertRaises(ConfigError):
            build_run_config({"out_dir": self.out_dir, "zoom_start": 1e-6, "zoom_end": 1.0})

    def test_rejects_bad_dimensions(self):
        for bad in ({"width": 0}, {"height": -4}, {"frames": 0}, {"max_iter": 0}, {"fps": 0}):
            with self.assertRaises(ConfigError, msg=str(bad)):
                build_run_config(dict(bad, out_dir=self.out_dir))

    def test_rejects_unknown_and_malformed_fields(self):
        with self.assertRaises(ConfigError):
            normalise_config({"colour": "red"})
        with self.assertRaises(ConfigError):
            normalise_config({"width": "wide"})
        with self.assertRaises(ConfigError):
            normalise_config({"on_error": "retry"})

    def test_output_dir_must_be_creatable(self):
        blocker = os.path.join(self.tmp.name, "file")
        with open(blocker, "w") as f:
            f.write("x")
        with self.assertRaises(ConfigError):
            build_run_config({"out_dir": os.path.join(blocker, "frames")})

    def test_load_config_json(self):
        path = os.path.join(self.tmp.name, "cfg.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump({"width": 64, "height": 48}, f)
        self.assertEqual(load_config(path), {"width": 64, "height": 48})
        self.assertEqual(load_config(None), {})

    def test_load_config_rejects_non_object(self):
        path = os.path.join(self.tmp.name, "cfg.json")
        with open(path, "w", encoding="utf-8") as f:
            json.dump([1, 2], f)
        with self.assertRaises(ConfigError):
            load_config(path)

    def test_parse_shard(self):
        self.assertEqual(parse_shard("2/4"), (2, 4))
        for bad in ("4/4", "x", "1/0"):
            with self.assertRaises(ConfigError):
                parse_shard(bad)

    def test_render_config_validates(self):
        with self.assertRaises(ConfigError):
            RenderConfig(width=10, height=10, max_iterations=10, out_dir=".", workers=0)


if __name__ == "__main__":
    unittest.main()
