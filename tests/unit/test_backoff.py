from fundwatch.utils.backoff import RetryPolicy, jitter, next_backoff

def test_next_backoff_caps():
    assert next_backoff(1, 4) == 2
    assert next_backoff(2, 4) == 4
    assert next_backoff(4, 4) == 4

def test_retry_delays_progression():
    p = RetryPolicy(max_attempts=6, initial_s=0.25, cap_s=2.0)
    assert list(p.delays()) == [0.25, 0.5, 1.0, 2.0, 2.0]

def test_single_attempt_never_sleeps():
    assert list(RetryPolicy(max_attempts=1).delays()) == []

def test_jitter_bounds():
    for _ in range(50):
        assert 0.8 <= jitter(1.0) <= 1.2
    p = RetryPolicy(max_attempts=3, initial_s=1.0, jitter_ratio=0.0)
    assert list(p.jittered()) == [1.0, 2.0]
