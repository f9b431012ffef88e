from dataclasses import dataclass

from graceful_listener.models.enums import LogLevel


@dataclass(frozen=True)
class AppConfig:
    """Settings for the command-line listener, loaded from YAML."""
    port: str
    log_level: LogLevel = LogLevel.INFO
    use_colors: bool = True
    title: str = "Graceful Listener"
