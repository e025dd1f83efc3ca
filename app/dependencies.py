"""Dependency wiring for the API routers."""

from functools import lru_cache

from app.config import Settings, settings as app_settings
from src.etabs_bridge import EtabsBridge, EtabsCli
from src.version_control import ProjectRegistry


def get_settings() -> Settings:
    """Application settings."""
    return app_settings


def build_bridge(settings: Settings) -> EtabsBridge:
    """ETABS bridge configured from settings."""
    cli = EtabsCli(
        settings.etabs_cli_path,
        timeout_seconds=settings.etabs_cli_timeout_seconds,
    )
    return EtabsBridge(
        executable=settings.etabs_executable,
        cli=cli,
        close_timeout_seconds=settings.etabs_close_timeout_seconds,
    )


@lru_cache
def get_registry() -> ProjectRegistry:
    """Process-wide registry of open projects; each project gets its own bridge."""
    settings = get_settings()
    return ProjectRegistry(
        bridge_factory=lambda: build_bridge(settings),
        working_file_name=settings.working_file_name,
    )


@lru_cache
def get_tool_bridge() -> EtabsBridge:
    """Bridge for project-independent commands (E2K generation, validation)."""
    return build_bridge(get_settings())
