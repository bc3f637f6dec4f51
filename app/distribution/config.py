# app/distribution/config.py
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional


MIN_INTERVAL_SECONDS = 1


@dataclass(frozen=True)
class AutoDistributionConfig:
    enabled: bool = False
    interval_seconds: int = 30

    @classmethod
    def build(cls, enabled: bool, interval_seconds: int) -> "AutoDistributionConfig":
        return cls(enabled=bool(enabled), interval_seconds=max(MIN_INTERVAL_SECONDS, int(interval_seconds)))


@dataclass(frozen=True)
class ConfigSnapshot:
    config: AutoDistributionConfig
    version: int
    closed: bool = False


class DistributionConfigChannel:
    """
    Sole owner of the auto-distribution config.

    Serves both "what is the config now" and "wait until it changes", so a
    reader can never see a value the scheduler has not been woken up for.
    Latest value wins; intermediate updates may be coalesced.
    """

    def __init__(self, initial: Optional[AutoDistributionConfig] = None):
        self._cond = threading.Condition()
        self._config = initial or AutoDistributionConfig()
        self._version = 0
        self._closed = False

    def current(self) -> AutoDistributionConfig:
        with self._cond:
            return self._config

    def snapshot(self) -> ConfigSnapshot:
        with self._cond:
            return ConfigSnapshot(self._config, self._version, self._closed)

    def update(self, enabled: bool, interval_seconds: int) -> AutoDistributionConfig:
        new_config = AutoDistributionConfig.build(enabled, interval_seconds)
        with self._cond:
            if self._closed:
                raise RuntimeError("auto distribution config channel is closed")
            self._config = new_config
            self._version += 1
            self._cond.notify_all()
        return new_config

    def wait_for_change(self, seen_version: int, timeout: Optional[float]) -> ConfigSnapshot:
        """
        Block until the version moves past `seen_version`, the channel closes,
        or the timeout expires. Always returns the latest snapshot.
        """
        with self._cond:
            self._cond.wait_for(
                lambda: self._closed or self._version != seen_version,
                timeout=timeout,
            )
            return ConfigSnapshot(self._config, self._version, self._closed)

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed
