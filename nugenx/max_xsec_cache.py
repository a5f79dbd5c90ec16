"""
Cache of maximum differential cross sections, keyed by interaction
fingerprint.

The envelope used for rejection sampling is ``safety_factor * max_xsec``.
Recorded maxima only ever grow: a probe at a higher energy or an observed
value above the maximum can raise an entry, nothing lowers it. This relies
on the envelope being non-decreasing with probe energy, which holds for the
channels shipped with the generator.

The cache is shared between worker threads. Each fingerprint has its own
lock, so probes for different channels run concurrently while concurrent
requests for one channel wait for a single probe.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from .config import DEFAULT_ENERGY_TOLERANCE

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    max_xsec: float
    energy: float
    safety_factor: float
    n_updates: int = 0

    @property
    def envelope(self) -> float:
        return self.max_xsec * self.safety_factor


class MaxXSecCache:
    def __init__(self, energy_tolerance: float = DEFAULT_ENERGY_TOLERANCE):
        if energy_tolerance < 0.0:
            raise ValueError("energy_tolerance must be non-negative")
        self.energy_tolerance = energy_tolerance
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, fingerprint: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(fingerprint)
            if lock is None:
                lock = self._locks[fingerprint] = threading.Lock()
            return lock

    def get_or_compute_max(self, fingerprint: str, energy: float,
                           probe: Callable[[float], float],
                           safety_factor: float = 1.0) -> float:
        """
        Return the envelope (safety factor times maximum) for `fingerprint`.

        Args:
            fingerprint: channel key
            energy: probe energy of the event being generated
            probe: callable(energy) -> maximum found by a scan at that energy
            safety_factor: multiplier applied on first insertion (> 1 recommended)

        Returns:
            Envelope value; 0 if the channel has no allowed phase space.
        """
        if safety_factor < 1.0:
            raise ValueError(f"safety_factor must be >= 1, got {safety_factor}")

        with self._lock_for(fingerprint):
            entry = self._entries.get(fingerprint)
            if entry is None:
                found = max(0.0, float(probe(energy)))
                entry = CacheEntry(found, energy, safety_factor)
                self._entries[fingerprint] = entry
                logger.debug(f"Max xsec for {fingerprint} at E={energy:.4f}: {found:.6e}")
            elif energy > entry.energy * (1.0 + self.energy_tolerance):
                found = max(0.0, float(probe(energy)))
                if found > entry.max_xsec:
                    logger.debug(
                        f"Re-probe raised max xsec for {fingerprint}: "
                        f"{entry.max_xsec:.6e} -> {found:.6e} (E={energy:.4f})"
                    )
                    entry.max_xsec = found
                    entry.n_updates += 1
                entry.energy = energy
            return entry.envelope

    def update(self, fingerprint: str, observed: float) -> bool:
        """Raise the recorded maximum to `observed` if larger. Returns True if raised."""
        with self._lock_for(fingerprint):
            entry = self._entries.get(fingerprint)
            if entry is None:
                return False
            raised = False
            if observed > entry.max_xsec:
                entry.max_xsec = float(observed)
                entry.n_updates += 1
                raised = True
            return raised

    def peek(self, fingerprint: str) -> Optional[CacheEntry]:
        with self._lock_for(fingerprint):
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            return CacheEntry(entry.max_xsec, entry.energy, entry.safety_factor, entry.n_updates)

    def clear(self):
        with self._guard:
            self._entries.clear()
            self._locks.clear()

    def __contains__(self, fingerprint: str) -> bool:
        return fingerprint in self._entries

    def __len__(self) -> int:
        return len(self._entries)
