import unittest
from datetime import datetime, timedelta, timezone

from application.scheduler import DEFAULT_LEAD_TIME, ClaimScheduler
from fakes import FakeClock

START = datetime(2026, 3, 1, 18, 0, 0, tzinfo=timezone.utc)


class ClaimSchedulerTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = FakeClock(START)
        self.scheduler = ClaimScheduler(self.clock)

    def test_default_lead_time_is_twenty_seconds(self):
        self.assertEqual(DEFAULT_LEAD_TIME, timedelta(seconds=20))
        self.assertEqual(self.scheduler.connect_at(START), START - timedelta(seconds=20))

    def test_future_target_wakes_at_lead_then_target(self):
        target = START + timedelta(minutes=5)

        self.scheduler.wait_for_connection(target)
        self.assertEqual(self.clock.current, target - timedelta(seconds=20))

        self.scheduler.wait_for_fire(target)
        self.assertEqual(self.clock.current, target)
        self.assertEqual(self.clock.sleeps, [280.0, 20.0])

    def test_target_inside_lead_window_only_waits_for_fire(self):
        target = START + timedelta(seconds=5)

        self.assertEqual(self.scheduler.wait_for_connection(target), 0.0)
        self.assertEqual(self.scheduler.wait_for_fire(target), 5.0)
        self.assertEqual(self.clock.sleeps, [5.0])

    def test_past_target_never_sleeps(self):
        for offset in (timedelta(0), timedelta(seconds=-1), timedelta(days=-3)):
            target = START + offset
            with self.subTest(offset=offset):
                self.assertEqual(self.scheduler.wait_for_connection(target), 0.0)
                self.assertEqual(self.scheduler.wait_for_fire(target), 0.0)
        self.assertEqual(self.clock.sleeps, [])

    def test_negative_lead_time_is_rejected(self):
        with self.assertRaises(ValueError):
            ClaimScheduler(self.clock, lead_time=timedelta(seconds=-1))


if __name__ == "__main__":
    unittest.main()
