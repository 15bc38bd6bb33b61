"""Polling watcher for the tool server configuration file."""
from __future__ import annotations

import asyncio
import logging
import tomllib
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from app.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_S = 0.5
DEFAULT_DEBOUNCE_S = 0.1


@dataclass
class McpConfig:
    path: str
    raw: str
    mcp_servers: list[str] = field(default_factory=list)


def extract_mcp_servers(raw: str) -> list[str]:
    """Sorted names declared under the ``[mcp_servers]`` table."""

    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("Tool server configuration is not valid TOML: %s", exc)
        return []
    servers = data.get("mcp_servers")
    if not isinstance(servers, dict):
        return []
    return sorted(str(name).strip() for name in servers if str(name).strip())


def read_mcp_config(config_path: Path) -> McpConfig | None:
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except UnicodeDecodeError as exc:
        logger.warning("Tool server configuration %s is not valid UTF-8: %s", config_path, exc)
        raw = config_path.read_bytes().decode("utf-8", errors="replace")
        return McpConfig(path=str(config_path), raw=raw, mcp_servers=[])
    return McpConfig(path=str(config_path), raw=raw, mcp_servers=extract_mcp_servers(raw))


class DebouncerState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"


class ChangeDebouncer:
    """Collapses bursts of triggers into one callback after a quiet period.

    ``trigger`` moves IDLE -> PENDING and (re)schedules the single callback;
    firing or ``cancel`` moves back to IDLE.
    """

    def __init__(
        self,
        delay_s: float,
        callback: Callable[[], None],
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._delay_s = max(0.0, delay_s)
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._state = DebouncerState.IDLE

    @property
    def state(self) -> DebouncerState:
        return self._state

    def trigger(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay_s, self._fire)
        self._state = DebouncerState.PENDING

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._state = DebouncerState.IDLE

    def _fire(self) -> None:
        self._handle = None
        self._state = DebouncerState.IDLE
        self._callback()


ConfigListener = Callable[[McpConfig], None]


class McpConfigWatcher:
    """Notifies listeners when the configuration file content changes."""

    def __init__(
        self,
        config_path: Path,
        *,
        poll_interval_s: float = DEFAULT_POLL_INTERVAL_S,
        debounce_s: float = DEFAULT_DEBOUNCE_S,
    ) -> None:
        self.config_path = config_path
        self._poll_interval_s = max(0.01, poll_interval_s)
        self._debouncer = ChangeDebouncer(debounce_s, self._schedule_notify)
        self._listeners: list[ConfigListener] = []
        self._last_raw: str | None = None
        self._last_mtime: float | None = None
        self._poll_task: asyncio.Task[None] | None = None
        self._pending: set[asyncio.Task[Any]] = set()
        self._closed = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "McpConfigWatcher":
        return cls(
            settings.mcp_config_path,
            poll_interval_s=settings.config_poll_interval_s,
            debounce_s=settings.config_debounce_s,
        )

    def on_change(self, listener: ConfigListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    async def start(self) -> None:
        """Record the current content as baseline and begin polling."""

        if self._poll_task is not None or self._closed:
            return
        config = await asyncio.to_thread(read_mcp_config, self.config_path)
        self._last_raw = config.raw if config else None
        self._last_mtime = self._stat_mtime()
        self._poll_task = asyncio.create_task(self._poll_loop())

    def poll_once(self) -> bool:
        """Check the file modification time; returns True when a change was scheduled."""

        if self._closed:
            return False
        mtime = self._stat_mtime()
        if mtime == self._last_mtime:
            return False
        self._last_mtime = mtime
        self._debouncer.trigger()
        return True

    async def check_now(self) -> McpConfig | None:
        """Re-read the file and notify listeners if its content changed."""

        if self._closed:
            return None
        config = await asyncio.to_thread(read_mcp_config, self.config_path)
        if config is None or config.raw == self._last_raw:
            return None
        self._last_raw = config.raw
        logger.info("Tool server configuration changed: servers=%s", config.mcp_servers)
        for listener in list(self._listeners):
            listener(config)
        return config

    async def close(self) -> None:
        self._closed = True
        self._debouncer.cancel()
        tasks = [task for task in (self._poll_task, *self._pending) if task is not None]
        self._poll_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
        self._listeners.clear()

    async def _poll_loop(self) -> None:
        while not self._closed:
            self.poll_once()
            await asyncio.sleep(self._poll_interval_s)

    def _schedule_notify(self) -> None:
        if self._closed:
            return
        task = asyncio.ensure_future(self.check_now())
        self._pending.add(task)
        task.add_done_callback(self._on_notify_done)

    def _on_notify_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Failed to process tool server configuration change: %s", exc)

    def _stat_mtime(self) -> float | None:
        try:
            return self.config_path.stat().st_mtime
        except FileNotFoundError:
            return None
