import unittest

from codeplanner.errors import RateLimitExceeded
from codeplanner.rate_limit import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


class RateLimiterTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(max_requests=3, window_seconds=60, clock=self.clock)

    def test_admits_up_to_limit(self):
        for _ in range(3):
            self.assertTrue(self.limiter.check("alice"))
        self.assertFalse(self.limiter.check("alice"))
        self.assertTrue(self.limiter.check("bob"))

    def test_admit_raises_with_retry_after(self):
        self.limiter.admit("alice")
        self.clock.now += 20
        self.limiter.admit("alice")
        self.limiter.admit("alice")
        with self.assertRaises(RateLimitExceeded) as ctx:
            self.limiter.admit("alice")
        self.assertEqual(ctx.exception.retry_after, 40)

    def test_window_slides(self):
        for _ in range(3):
            self.limiter.admit("alice")
        self.clock.now += 60
        self.limiter.admit("alice")
        self.assertEqual(self.limiter.remaining("alice"), 2)

    def test_remaining_and_clear(self):
        self.assertEqual(self.limiter.remaining("alice"), 3)
        self.limiter.admit("alice")
        self.assertEqual(self.limiter.remaining("alice"), 2)
        self.limiter.clear("alice")
        self.assertEqual(self.limiter.remaining("alice"), 3)

    def test_empty_keys_dropped(self):
        self.limiter.admit("alice")
        self.limiter.admit("bob")
        self.clock.now += 61
        self.assertEqual(self.limiter.cleanup(), 2)
        self.assertEqual(self.limiter._hits, {})

    def test_rejection_does_not_record(self):
        for _ in range(3):
            self.limiter.admit("alice")
        for _ in range(5):
            self.assertFalse(self.limiter.check("alice"))
        self.clock.now += 60
        self.assertEqual(self.limiter.remaining("alice"), 3)

    def test_zero_limit_rejects_with_full_window(self):
        limiter = RateLimiter(max_requests=0, window_seconds=30, clock=self.clock)
        with self.assertRaises(RateLimitExceeded) as ctx:
            limiter.admit("alice")
        self.assertEqual(ctx.exception.retry_after, 30)
        self.assertFalse(limiter.check("alice"))

    def test_from_config(self):
        limiter = RateLimiter.from_config({"max_requests": 2, "window_seconds": 5})
        self.assertEqual((limiter.max_requests, limiter.window_seconds), (2, 5.0))
        self.assertEqual(RateLimiter.from_config(None).max_requests, 10)


if __name__ == "__main__":
    unittest.main()
