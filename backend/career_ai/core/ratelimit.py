import math
import time
from threading import Lock
from typing import Callable, Dict, List

from fastapi import HTTPException

RATE_LIMIT_MESSAGE = "リクエスト回数の上限に達しました。1分後に再度お試しください。"


class RateLimiter:
    """Sliding-window request counter keyed by client id.

    State is owned by the instance and lives for the process, so limits
    are approximate when several workers serve the same deployment.
    """

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        *,
        name: str = "default",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.limit = limit
        self.window = float(window_seconds)
        self.name = name
        self.clock = clock
        self.hits: Dict[str, List[float]] = {}
        self._lock = Lock()

    def _prune(self, key: str, now: float) -> List[float]:
        window_start = now - self.window
        entries = [ts for ts in self.hits.get(key, []) if ts > window_start]
        self.hits[key] = entries
        return entries

    def _record_or_wait(self, key: str) -> int:
        """Record a hit and return 0, or return the seconds until a slot frees."""
        with self._lock:
            now = self.clock()
            entries = self._prune(key, now)
            if len(entries) >= self.limit:
                return max(1, math.ceil(entries[0] + self.window - now))
            entries.append(now)
            return 0

    def check_and_record(self, key: str) -> bool:
        return self._record_or_wait(key) == 0

    def retry_after(self, key: str) -> int:
        with self._lock:
            now = self.clock()
            entries = self._prune(key, now)
            if len(entries) < self.limit:
                return 0
            return max(1, math.ceil(entries[0] + self.window - now))

    def check(self, key: str, message: str = RATE_LIMIT_MESSAGE) -> None:
        wait = self._record_or_wait(key)
        if not wait:
            return
        raise HTTPException(
            status_code=429,
            detail={
                "message": message,
                "retry_after_seconds": wait,
            },
        )

    def clear(self, key: str) -> None:
        with self._lock:
            self.hits.pop(key, None)

    def reset(self) -> None:
        with self._lock:
            self.hits.clear()


analyze_rate_limiter = RateLimiter(limit=3, window_seconds=60, name="analyze")
chat_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="chat")
interview_rate_limiter = RateLimiter(limit=5, window_seconds=60, name="interview")
share_rate_limiter = RateLimiter(limit=5, window_seconds=60, name="share")
share_interview_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="share-interview")
profile_share_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="profile-share")
mock_start_rate_limiter = RateLimiter(limit=5, window_seconds=60, name="mock-start")
mock_next_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="mock-next")
mock_evaluate_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="mock-evaluate")
mock_summary_rate_limiter = RateLimiter(limit=5, window_seconds=60, name="mock-summary")
resume_rate_limiter = RateLimiter(limit=5, window_seconds=60, name="resume-generate")
login_rate_limiter = RateLimiter(limit=10, window_seconds=60, name="auth-login")

ALL_RATE_LIMITERS = (
    analyze_rate_limiter,
    chat_rate_limiter,
    interview_rate_limiter,
    share_rate_limiter,
    share_interview_rate_limiter,
    profile_share_rate_limiter,
    mock_start_rate_limiter,
    mock_next_rate_limiter,
    mock_evaluate_rate_limiter,
    mock_summary_rate_limiter,
    resume_rate_limiter,
    login_rate_limiter,
)
