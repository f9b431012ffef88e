"""
Config Manager

Loads the listener's YAML configuration and turns it into an AppConfig.
Falls back to the packaged factory defaults when the main file cannot be
loaded or validated.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, Optional, Union

from graceful_listener.models.config import AppConfig
from graceful_listener.models.enums import LogLevel
from graceful_listener.utils.logger import get_logger, LogCategory

log = get_logger().for_category(LogCategory.CONFIG)

PathLike = Union[str, Path]


class ConfigManager:
    """
    YAML configuration loader

    Relative paths are resolved against the package directory, so the
    defaults work no matter where the process is started from.

    Example:
        config = ConfigManager().load()
        coordinator = LifecycleCoordinator(config.port, app)
    """

    def __init__(
        self,
        config_path: PathLike = "config/config.yaml",
        defaults_path: PathLike = "config/factory_defaults.yaml",
    ):
        package_dir = Path(__file__).resolve().parent.parent
        self.config_path = self._resolve(package_dir, config_path)
        self.factory_defaults_path = self._resolve(package_dir, defaults_path)
        self.data: Dict[str, Any] = {}
        self.config: Optional[AppConfig] = None

    @staticmethod
    def _resolve(base: Path, path: PathLike) -> Path:
        path = Path(path)
        return path if path.is_absolute() else base / path

    def load(self) -> AppConfig:
        """
        Load and validate configuration

        Process:
        1. Load and validate config.yaml
        2. On any failure, log it and load factory defaults instead

        Returns:
            Validated AppConfig
        """
        try:
            self.data = self._read_yaml(self.config_path)
            self.config = self._parse(self.data)
            log.info("Configuration loaded", path=str(self.config_path))
        except Exception as ex:
            log.error("Failed to load config", path=str(self.config_path),
                      error=str(ex), error_type=type(ex).__name__)
            log.warn("Falling back to factory defaults")

            self.data = self._read_yaml(self.factory_defaults_path)
            self.config = self._parse(self.data)

        return self.config

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} must contain a mapping at top level")
        return data

    @staticmethod
    def _parse(data: Dict[str, Any]) -> AppConfig:
        server = data.get("server") or {}
        logging_cfg = data.get("logging") or {}
        api = data.get("api") or {}

        port = server.get("port")
        if isinstance(port, bool) or not isinstance(port, (str, int)):
            raise ValueError(f"server.port must be a string or integer, got {port!r}")

        level_name = str(logging_cfg.get("level", "INFO")).upper()
        if level_name == "WARNING":
            level_name = "WARN"
        try:
            level = LogLevel[level_name]
        except KeyError:
            raise ValueError(f"Unknown log level: {level_name}")

        return AppConfig(
            port=str(port),
            log_level=level,
            use_colors=bool(logging_cfg.get("use_colors", True)),
            title=str(api.get("title", "Graceful Listener")),
        )
