"""
Triage External Integrations
=============================

File-backed triage configuration:
- YAML config file watcher (watchdog) with hot reload
- Config repository reading and writing that file
"""

import threading
from pathlib import Path
from typing import Optional

import yaml
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

from helpdesk.core import ConfigurationException
from helpdesk.shared.infrastructure.logging import get_logger
from helpdesk.triage.application import IConfigRepository
from helpdesk.triage.domain import TriageConfig

logger = get_logger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """Watchdog event handler for triage config file changes."""

    def __init__(self, config_manager: "TriageConfigManager", config_path: Path):
        self.config_manager = config_manager
        self.config_path = config_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.config_path.resolve():
            logger.info("Triage config file changed", extra={"path": str(event.src_path)})
            self.config_manager.reload()

    on_created = on_modified


class TriageConfigManager:
    """
    Thread-safe triage configuration holder with hot-reload support.

    Uses watchdog to monitor the YAML file and reload it without restarting
    the service. `config` is None while the file does not exist, so the
    pipeline falls back to its in-memory defaults.
    """

    def __init__(self, path: Path):
        self._path = path
        self._config: Optional[TriageConfig] = None
        self._lock = threading.Lock()
        self._observer = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> Optional[TriageConfig]:
        """Initial configuration load."""
        config = self._load_from_file()
        with self._lock:
            self._config = config
        return config

    def _load_from_file(self) -> Optional[TriageConfig]:
        """Load and parse the YAML config file."""
        if not self._path.exists():
            logger.info("Triage config file not found, using defaults", extra={"path": str(self._path)})
            return None

        with open(self._path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationException(f"Triage config file must contain a mapping: {self._path}")

        # YAML quoted "false" is a truthy string
        auto_close_enabled = data.get("auto_close_enabled", False)
        if not isinstance(auto_close_enabled, bool):
            raise ConfigurationException(f"auto_close_enabled must be true or false in {self._path}")

        try:
            return TriageConfig(
                auto_close_enabled=auto_close_enabled,
                confidence_threshold=float(data.get("confidence_threshold", 0.78)),
                sla_hours=int(data.get("sla_hours", 24))
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationException(f"Invalid triage config file {self._path}: {e}")

    def reload(self) -> bool:
        """Reload configuration from file, keeping the previous one on error."""
        try:
            new_config = self._load_from_file()
        except (ConfigurationException, yaml.YAMLError, OSError) as e:
            logger.error("Failed to reload triage config", extra={"error": str(e)})
            return False

        with self._lock:
            self._config = new_config
        logger.info("Triage configuration reloaded")
        return True

    def write(self, config: TriageConfig) -> TriageConfig:
        """Persist configuration to the file and make it current."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            with open(self._path, "w") as f:
                yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
            self._config = config
        return config

    def start_watching(self) -> None:
        """
        Start watching the config directory for changes.

        Falls back to a static config where file watching is unavailable.
        """
        if self._observer is not None:
            return

        watch_dir = self._path.parent
        if not watch_dir.exists():
            logger.info(
                "Config directory doesn't exist, skipping file watch",
                extra={"path": str(watch_dir)}
            )
            return

        try:
            self._observer = Observer()
            handler = ConfigFileHandler(self, self._path)
            self._observer.schedule(handler, str(watch_dir), recursive=False)
            self._observer.start()
            logger.info("Started watching triage config file", extra={"path": str(self._path)})
        except OSError as e:
            # inotify is not available in some containers
            logger.warning("File watching not available, using static config", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching the config file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    @property
    def is_watching(self) -> bool:
        return self._observer is not None

    @property
    def config(self) -> Optional[TriageConfig]:
        """Get current configuration."""
        with self._lock:
            return self._config


class YAMLConfigRepository(IConfigRepository):
    """Config repository backed by a hot-reloaded YAML file."""

    def __init__(self, manager: TriageConfigManager):
        self._manager = manager

    async def find_singleton(self) -> Optional[TriageConfig]:
        return self._manager.config

    async def save(self, config: TriageConfig) -> TriageConfig:
        return self._manager.write(config)
