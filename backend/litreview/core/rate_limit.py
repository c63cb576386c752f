import time
from collections import deque
from threading import Lock

from fastapi import HTTPException, Request, status

from litreview.core.config import get_settings

settings = get_settings()


class SlidingWindowLimiter:
    """Counts failures per key inside a sliding time window."""

    def __init__(self, max_attempts: int, window_seconds: int) -> None:
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self._attempts: dict[str, deque[float]] = {}
        self._lock = Lock()

    def _live(self, key: str, now: float) -> deque[float] | None:
        attempts = self._attempts.get(key)
        if attempts is None:
            return None
        while attempts and now - attempts[0] > self.window_seconds:
            attempts.popleft()
        if not attempts:
            del self._attempts[key]
            return None
        return attempts

    def is_blocked(self, key: str) -> bool:
        if not key or self.max_attempts <= 0:
            return False
        with self._lock:
            attempts = self._live(key, time.monotonic())
            return attempts is not None and len(attempts) >= self.max_attempts

    def record_failure(self, key: str) -> None:
        if not key or self.max_attempts <= 0:
            return
        now = time.monotonic()
        with self._lock:
            self._live(key, now)
            self._attempts.setdefault(key, deque()).append(now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)


class LoginThrottle:
    """Per-IP and per-account login failure limits."""

    def __init__(self, per_ip: int, per_user: int, window_seconds: int) -> None:
        self.by_ip = SlidingWindowLimiter(per_ip, window_seconds)
        self.by_user = SlidingWindowLimiter(per_user, window_seconds)

    @staticmethod
    def _user_key(email: str) -> str:
        email = (email or "").strip().lower()
        return f"user:{email}" if email else ""

    def ensure_allowed(self, ip: str, email: str) -> None:
        if self.by_ip.is_blocked(ip) or self.by_user.is_blocked(self._user_key(email)):
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many login attempts. Please try again later",
            )

    def record_failure(self, ip: str, email: str) -> None:
        self.by_ip.record_failure(ip)
        self.by_user.record_failure(self._user_key(email))

    def record_success(self, email: str) -> None:
        self.by_user.reset(self._user_key(email))


def get_client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
        if ip:
            return ip
    if request.client:
        return request.client.host or "unknown"
    return "unknown"


login_throttle = LoginThrottle(
    settings.login_rate_limit_per_ip,
    settings.login_rate_limit_per_user,
    settings.login_rate_limit_window_seconds,
)
