import pytest
from databricks.sdk.errors import NotFound, TooManyRequests

from dbcomply.core.transport import RateLimitedTransport, is_rate_limited


class _Clock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _transport(clock, **kwargs):
    kwargs.setdefault("min_interval", 0.0)
    return RateLimitedTransport(clock=clock, sleep=clock.sleep, **kwargs)


def test_is_rate_limited():
    assert is_rate_limited(TooManyRequests("slow down"))
    assert not is_rate_limited(NotFound("missing"))

    class _HttpError(Exception):
        status_code = 429

    assert is_rate_limited(_HttpError())


def test_backoff_is_monotonic_and_budget_is_exact():
    clock = _Clock()
    transport = _transport(clock, max_retries=3, base_delay=1.0, max_delay=8.0)
    calls = []

    def always_limited():
        calls.append(1)
        raise TooManyRequests("slow down")

    with pytest.raises(TooManyRequests):
        transport.execute(always_limited)

    assert len(calls) == 4
    assert clock.sleeps == [1.0, 2.0, 4.0]
    assert all(b >= a for a, b in zip(clock.sleeps, clock.sleeps[1:]))


def test_backoff_delay_is_capped():
    clock = _Clock()
    transport = _transport(clock, max_retries=5, base_delay=1.0, max_delay=8.0)

    with pytest.raises(TooManyRequests):
        transport.execute(lambda: (_ for _ in ()).throw(TooManyRequests("slow")))

    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 8.0]
    assert transport.consecutive_errors == 6


def test_recovers_after_rate_limit_and_resets_errors():
    clock = _Clock()
    transport = _transport(clock, max_retries=3)
    responses = [TooManyRequests("slow"), TooManyRequests("slow"), "ok"]

    def flaky():
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    assert transport.execute(flaky) == "ok"
    assert transport.consecutive_errors == 0


def test_non_rate_limit_errors_are_not_retried():
    clock = _Clock()
    transport = _transport(clock)
    calls = []

    def missing():
        calls.append(1)
        raise NotFound("no such catalog")

    with pytest.raises(NotFound):
        transport.execute(missing)

    assert calls == [1]
    assert clock.sleeps == []


def test_spacing_between_requests():
    clock = _Clock()
    transport = _transport(clock, min_interval=0.3)

    transport.execute(lambda: 1)
    transport.execute(lambda: 2)

    assert clock.sleeps == [pytest.approx(0.3)]


def test_spacing_grows_with_consecutive_errors_and_reset_clears_it():
    clock = _Clock()
    transport = _transport(clock, min_interval=0.5, max_retries=0)

    with pytest.raises(TooManyRequests):
        transport.execute(lambda: (_ for _ in ()).throw(TooManyRequests("slow")))
    assert transport.consecutive_errors == 1

    transport.execute(lambda: "ok")
    # spacing doubled because of the single outstanding error
    assert clock.sleeps == [pytest.approx(1.0)]

    transport.reset()
    clock.sleeps.clear()
    transport.execute(lambda: "first after reset")
    assert clock.sleeps == []


def _sdk_gave_up():
    """The SDK's own retry loop ends with a TimeoutError chained to the 429."""
    try:
        raise TooManyRequests("slow down")
    except TooManyRequests as exc:
        try:
            raise TimeoutError("Timed out after 0:00:01") from exc
        except TimeoutError as timeout:
            return timeout


def test_is_rate_limited_follows_the_cause_chain():
    assert is_rate_limited(_sdk_gave_up())
    assert not is_rate_limited(TimeoutError("read timed out"))


def test_exhausted_sdk_retries_are_retried_as_rate_limits():
    clock = _Clock()
    transport = _transport(clock, max_retries=2, base_delay=0.5)
    responses = [_sdk_gave_up(), _sdk_gave_up(), "ok"]

    def flaky():
        item = responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    assert transport.execute(flaky) == "ok"
    assert clock.sleeps == [0.5, 1.0]
