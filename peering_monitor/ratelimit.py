import threading
import time


class RateLimiter:
    """Token bucket rate limiter shared by every thread that talks to one upstream.

    `rate` is tokens per second, `burst` the bucket size. PeeringDB allows 20
    anonymous requests per minute, so the default bucket lets the two lookups
    of a single check go out back to back and paces anything beyond that.
    """

    def __init__(self, rate, burst=2, clock=time.monotonic, sleep=time.sleep):
        self.refill_rate = rate
        self.max_tokens = burst
        self.tokens = burst
        self._clock = clock
        self._sleep = sleep
        self.last_refill = clock()
        self._lock = threading.Lock()

    @classmethod
    def per_minute(cls, requests_per_minute, burst=2, **kwargs):
        return cls(requests_per_minute / 60.0, burst=burst, **kwargs)

    def acquire(self):
        """Acquire a token, waiting if necessary. Returns the time waited."""
        with self._lock:
            now = self._clock()
            elapsed = now - self.last_refill
            self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
            self.last_refill = now

            if self.tokens < 1:
                wait_time = (1 - self.tokens) / self.refill_rate
                self._sleep(wait_time)
                self.tokens = 0
                self.last_refill = self._clock()
                return wait_time
            self.tokens -= 1
            return 0.0
