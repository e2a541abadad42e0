import pytest

from tollroute.retry import backoff_delay, retry_with_backoff


def test_backoff_delays():
    assert [backoff_delay(a, 1.0, 5.0) for a in range(1, 5)] == [1.0, 2.0, 4.0, 5.0]
    assert [backoff_delay(a, 1.0, 10.0, mode="linear") for a in range(1, 4)] == [1.0, 2.0, 3.0]
    with pytest.raises(ValueError):
        backoff_delay(1, 1.0, 1.0, mode="random")


def test_retries_until_success():
    sleeps = []
    attempts = []

    @retry_with_backoff(max_attempts=4, base_delay=1.0, max_delay=5.0, retry_on=(ConnectionError,), sleep=sleeps.append)
    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise ConnectionError("boom")
        return "ok"

    assert flaky() == "ok"
    assert len(attempts) == 3
    assert sleeps == [1.0, 2.0]


def test_reraises_after_exhausting_attempts():
    sleeps = []

    @retry_with_backoff(max_attempts=3, base_delay=0.5, max_delay=5.0, mode="linear", sleep=sleeps.append)
    def always_fails():
        raise TimeoutError("slow")

    with pytest.raises(TimeoutError):
        always_fails()
    assert sleeps == [0.5, 1.0]


def test_other_errors_are_not_retried():
    calls = []

    @retry_with_backoff(max_attempts=5, base_delay=1.0, max_delay=1.0, retry_on=(ConnectionError,), sleep=lambda _: None)
    def broken():
        calls.append(1)
        raise KeyError("bad payload")

    with pytest.raises(KeyError):
        broken()
    assert len(calls) == 1


def test_rejects_zero_attempts():
    with pytest.raises(ValueError):
        retry_with_backoff(max_attempts=0, base_delay=1.0, max_delay=1.0)
