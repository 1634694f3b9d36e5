import threading
import unittest

from idkspot.state import AppState


class TestAppState(unittest.TestCase):
    def test_defaults(self):
        s = AppState()
        self.assertTrue(s.show_window)
        self.assertTrue(s.running)
        self.assertEqual(s.version, 0)

    def test_set_same_value_does_not_bump(self):
        s = AppState(show_window=False)
        s.set_show_window(False)
        self.assertEqual(s.version, 0)
        s.set_show_window(True)
        self.assertEqual(s.version, 1)

    def test_wait_for_change_wakes_on_quit(self):
        s = AppState()
        threading.Timer(0.05, s.request_quit).start()
        version = s.wait_for_change(0, timeout_s=2.0)
        self.assertEqual(version, 1)
        self.assertFalse(s.running)

    def test_wait_for_change_times_out(self):
        s = AppState()
        self.assertEqual(s.wait_for_change(0, timeout_s=0.05), 0)


if __name__ == "__main__":
    unittest.main()
