import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from nugenx.max_xsec_cache import MaxXSecCache


# ------------------------------ Basic use ---------------------------------
def test_first_request_probes_and_applies_safety():
    cache = MaxXSecCache()
    envelope = cache.get_or_compute_max("chan", 1.0, lambda E: 2.0, safety_factor=1.25)
    assert envelope == pytest.approx(2.5)
    entry = cache.peek("chan")
    assert entry.max_xsec == 2.0 and entry.energy == 1.0


def test_cached_value_reused_within_tolerance():
    cache = MaxXSecCache(energy_tolerance=0.05)
    calls = []

    def probe(E):
        calls.append(E)
        return 1.0

    cache.get_or_compute_max("chan", 1.0, probe)
    cache.get_or_compute_max("chan", 1.04, probe)
    cache.get_or_compute_max("chan", 0.5, probe)
    assert calls == [1.0]


def test_higher_energy_reprobes_and_only_raises():
    cache = MaxXSecCache(energy_tolerance=0.0)
    cache.get_or_compute_max("chan", 1.0, lambda E: 3.0)
    cache.get_or_compute_max("chan", 2.0, lambda E: 1.0)
    assert cache.peek("chan").max_xsec == 3.0
    cache.get_or_compute_max("chan", 3.0, lambda E: 4.0)
    assert cache.peek("chan").max_xsec == 4.0
    assert cache.peek("chan").energy == 3.0


def test_update_is_monotonic():
    cache = MaxXSecCache()
    assert not cache.update("missing", 5.0)
    cache.get_or_compute_max("chan", 1.0, lambda E: 1.0, safety_factor=2.0)
    assert cache.update("chan", 1.5)
    assert not cache.update("chan", 0.5)
    entry = cache.peek("chan")
    assert entry.max_xsec == 1.5
    assert entry.envelope == pytest.approx(3.0)
    assert entry.n_updates == 1


def test_invalid_arguments():
    with pytest.raises(ValueError):
        MaxXSecCache(energy_tolerance=-1.0)
    with pytest.raises(ValueError):
        MaxXSecCache().get_or_compute_max("chan", 1.0, lambda E: 1.0, safety_factor=0.5)


def test_negative_probe_is_clamped():
    cache = MaxXSecCache()
    assert cache.get_or_compute_max("chan", 1.0, lambda E: -3.0) == 0.0


def test_clear():
    cache = MaxXSecCache()
    cache.get_or_compute_max("chan", 1.0, lambda E: 1.0)
    assert "chan" in cache and len(cache) == 1
    cache.clear()
    assert "chan" not in cache and len(cache) == 0


# ------------------------------- Threads ----------------------------------
def test_concurrent_requests_probe_once():
    cache = MaxXSecCache()
    calls = []
    lock = threading.Lock()

    def probe(E):
        with lock:
            calls.append(E)
        time.sleep(0.01)
        return 1.0

    with ThreadPoolExecutor(max_workers=8) as pool:
        envelopes = list(pool.map(lambda _: cache.get_or_compute_max("chan", 1.0, probe, 1.1), range(32)))

    assert len(calls) == 1
    assert all(e == pytest.approx(1.1) for e in envelopes)


def test_concurrent_updates_keep_maximum():
    cache = MaxXSecCache()
    cache.get_or_compute_max("chan", 1.0, lambda E: 0.0)
    values = [float(v) for v in range(200)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda v: cache.update("chan", v), values))

    assert cache.peek("chan").max_xsec == 199.0
