"""
SLA External Service Integrations
==================================

External services for SLA compliance:
- YAML business-hours config with watchdog hot-reload
- APScheduler for background refresh jobs
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence

import yaml
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from pydantic import ValidationError
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from itop_sla.core import ConfigurationException
from itop_sla.sla.application import ISLAConfigProvider
from itop_sla.sla.domain import BusinessHoursConfig
from itop_sla.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for business-hours config file changes."""

    def __init__(self, config_manager: "SLAConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Config file changed", extra={"path": event.src_path})
            self.config_manager.reload()

    on_created = on_modified


class SLAConfigManager(ISLAConfigProvider):
    """
    Thread-safe business-hours configuration manager with hot-reload support.

    Uses watchdog to monitor file changes and reload configuration
    without restarting the service. A reload that fails validation keeps
    the previous configuration.
    """

    def __init__(self):
        self._config: Optional[BusinessHoursConfig] = None
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> BusinessHoursConfig:
        """
        Initial configuration load.

        Raises:
            ConfigurationException: If the file exists but is not valid.
        """
        self._path = Path(path)
        config = self._load_from_file(self._path)
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self, path: Path) -> BusinessHoursConfig:
        """Load and validate the YAML config file."""
        if not path.exists():
            logger.warning(
                "Business hours config not found, using defaults",
                extra={"path": str(path)}
            )
            return BusinessHoursConfig()

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            return BusinessHoursConfig(**data)
        except (OSError, yaml.YAMLError, ValidationError, TypeError) as e:
            raise ConfigurationException(
                f"Invalid business hours config {path}: {e}",
                {"path": str(path)}
            ) from e

    def reload(self) -> bool:
        """Reload configuration from file."""
        if self._path is None:
            return False

        try:
            new_config = self._load_from_file(self._path)
        except ConfigurationException as e:
            logger.error(
                "Failed to reload business hours config, keeping previous",
                extra={"error": e.message}
            )
            return False

        with self._lock:
            self._config = new_config
        logger.info("Business hours configuration reloaded successfully")
        return True

    def start_watching(self) -> None:
        """
        Start watching configuration file for changes.

        Skips watching if the file does not exist or the platform has no
        usable file-event backend (some container runtimes).
        """
        if self._path is None:
            raise RuntimeError("Config not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Config file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching config file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning(
                "File watching not available, using static config",
                extra={"error": str(e)}
            )
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching configuration file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def config(self) -> BusinessHoursConfig:
        """Get current configuration."""
        with self._lock:
            if self._config is None:
                raise RuntimeError("Business hours configuration not loaded")
            return self._config

    def get_config(self) -> BusinessHoursConfig:
        return self.config


class SLAScheduler:
    """
    Wrapper for APScheduler running the background refresh jobs.

    Jobs are registered with ``add_job`` and first fire as soon as the
    scheduler starts. Each job runs with ``max_instances=1`` so a slow
    iTop call never stacks up runs of the same job.
    """

    def __init__(self):
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._jobs: List[dict] = []

    def add_job(
        self,
        job_func: Callable[..., Any],
        interval_seconds: int,
        job_id: str,
        name: Optional[str] = None,
        args: Sequence[Any] = ()
    ) -> None:
        """Register a job; takes effect immediately if already running."""
        job = {
            "func": job_func,
            "seconds": interval_seconds,
            "id": job_id,
            "name": name or job_id,
            "args": list(args),
        }
        self._jobs.append(job)
        if self._scheduler is not None:
            self._schedule(job)

    def _schedule(self, job: dict) -> None:
        self._scheduler.add_job(
            job["func"],
            "interval",
            seconds=job["seconds"],
            args=job["args"],
            id=job["id"],
            name=job["name"],
            next_run_time=datetime.now(timezone.utc),
            misfire_grace_time=job["seconds"],
            coalesce=True,
            max_instances=1,
            replace_existing=True
        )

    async def start(self) -> None:
        """Start the scheduler with all registered jobs."""
        if self._running:
            logger.warning("SLA scheduler already running")
            return

        self._scheduler = AsyncIOScheduler()
        for job in self._jobs:
            self._schedule(job)

        self._scheduler.start()
        self._running = True

        logger.info("SLA scheduler started", extra={"jobs": self.job_ids})

    async def stop(self) -> None:
        """Stop the scheduler gracefully."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("SLA scheduler stopped")

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    @property
    def job_ids(self) -> List[str]:
        return [job["id"] for job in self._jobs]
