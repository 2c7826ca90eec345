"""Network profiles and the providers that report or simulate them.

Profiles follow the Chrome DevTools throttling presets. ``severity`` orders
them from best (0) to worst; timeouts scale with it.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NetworkProfile:
    name: str
    latency_ms: float
    download_kbps: float
    upload_kbps: float
    packet_loss: float = 0.0
    severity: int = 0

    @property
    def offline(self) -> bool:
        return self.download_kbps <= 0 and self.upload_kbps <= 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "latency_ms": self.latency_ms,
            "download_kbps": self.download_kbps,
            "upload_kbps": self.upload_kbps,
            "packet_loss": self.packet_loss,
            "severity": self.severity,
        }


FAST = NetworkProfile("fast", latency_ms=2, download_kbps=30000, upload_kbps=15000, severity=0)
FOUR_G = NetworkProfile("4g", latency_ms=20, download_kbps=4000, upload_kbps=3000, severity=1)
FAST_3G = NetworkProfile("fast-3g", latency_ms=562.5, download_kbps=1440, upload_kbps=675, severity=2)
SLOW_3G = NetworkProfile("slow-3g", latency_ms=2000, download_kbps=400, upload_kbps=400, packet_loss=0.01, severity=3)
SLOW_2G = NetworkProfile("slow-2g", latency_ms=2000, download_kbps=50, upload_kbps=20, packet_loss=0.05, severity=4)
OFFLINE = NetworkProfile("offline", latency_ms=0, download_kbps=0, upload_kbps=0, packet_loss=1.0, severity=5)

PROFILES: Dict[str, NetworkProfile] = {p.name: p for p in (FAST, FOUR_G, FAST_3G, SLOW_3G, SLOW_2G, OFFLINE)}

# Timeout multiplier per severity step.
SCALING_STEPS: List[float] = [1.0, 1.25, 2.0, 3.0, 4.0, 5.0]


def get_profile(name: str) -> NetworkProfile:
    key = (name or "").strip().lower()
    if key not in PROFILES:
        raise ConfigurationError(f"unknown network profile {name!r}; expected one of {sorted(PROFILES)}")
    return PROFILES[key]


def scaling_factor(profile: NetworkProfile) -> float:
    index = min(max(profile.severity, 0), len(SCALING_STEPS) - 1)
    return SCALING_STEPS[index]


def classify(latency_ms: float, download_kbps: Optional[float] = None, offline: bool = False) -> NetworkProfile:
    """Pick the best built-in profile the measurements are no better than."""
    if offline or (download_kbps is not None and download_kbps <= 0):
        return OFFLINE
    ordered = sorted((p for p in PROFILES.values() if not p.offline), key=lambda p: p.severity)
    chosen = ordered[0]
    for profile in ordered:
        # Profiles sharing a latency are told apart by bandwidth only.
        if latency_ms >= profile.latency_ms > chosen.latency_ms:
            chosen = profile
        elif download_kbps is not None and download_kbps <= profile.download_kbps:
            chosen = profile
    return chosen


class NetworkConditionProvider(Protocol):
    def current_profile(self) -> NetworkProfile:
        ...


class StaticNetworkProvider:
    """Reports whatever profile it was last given."""

    def __init__(self, profile: NetworkProfile = FAST) -> None:
        self._profile = profile

    def current_profile(self) -> NetworkProfile:
        return self._profile

    def set(self, profile: NetworkProfile) -> None:
        self._profile = profile


class SeleniumNetworkProvider:
    """Reads and simulates network conditions on a Chromium WebDriver session."""

    def __init__(self, driver: Any) -> None:
        self.driver = driver

    def simulate(self, profile: NetworkProfile) -> None:
        # Chromium expects throughput in bytes per second.
        logger.info("simulating network profile %s", profile.name)
        self.driver.set_network_conditions(
            offline=profile.offline,
            latency=int(profile.latency_ms),
            download_throughput=int(profile.download_kbps * 1024 / 8),
            upload_throughput=int(profile.upload_kbps * 1024 / 8),
        )

    def clear(self) -> None:
        self.driver.delete_network_conditions()

    def current_profile(self) -> NetworkProfile:
        try:
            conditions = self.driver.get_network_conditions()
        except Exception as exc:  # noqa: BLE001
            # No emulation configured: the session runs unthrottled.
            logger.debug("no network conditions on session: %s", exc)
            return FAST
        if conditions.get("offline"):
            return OFFLINE
        download = conditions.get("download_throughput")
        download_kbps = download * 8 / 1024 if download and download > 0 else None
        return classify(float(conditions.get("latency", 0)), download_kbps)


class ProbeNetworkProvider:
    """Measures round-trip time to ``url`` with HEAD requests and classifies it."""

    def __init__(self, url: str, samples: int = 3, timeout: float = 10.0, session: Optional[requests.Session] = None) -> None:
        if samples < 1:
            raise ConfigurationError("samples must be >= 1")
        self.url = url
        self.samples = samples
        self.timeout = timeout
        self.session = session or requests.Session()

    def measure_latency_ms(self) -> Optional[float]:
        timings: List[float] = []
        for _ in range(self.samples):
            start = time.monotonic()
            try:
                self.session.head(self.url, allow_redirects=True, timeout=self.timeout)
            except requests.exceptions.RequestException as exc:
                logger.warning("probe of %s failed: %s", self.url, exc)
                continue
            timings.append((time.monotonic() - start) * 1000)
        if not timings:
            return None
        return sorted(timings)[len(timings) // 2]

    def current_profile(self) -> NetworkProfile:
        latency = self.measure_latency_ms()
        if latency is None:
            return OFFLINE
        return classify(latency)
