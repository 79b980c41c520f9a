"""
Configuration Manager
====================

Manages the tool's settings file.
"""

import json
import logging
from pathlib import Path
from typing import Any, Optional
from dataclasses import dataclass, asdict, fields

from locsync.core.exceptions import ConfigError


@dataclass
class SyncSettings:
    """Toggles of the sync and reconciliation passes."""
    use_notabridge: bool = False  # JSON bridge endpoint instead of the main site
    use_scan_db: bool = False  # Read strings from the scan database instead of assets/
    auto_open: bool = False  # Interactive mode starts with an update
    fetch_connections: int = 8
    fixup_connections: int = 16
    translation_language: str = "ru"
    word_diff: bool = False
    allow_cross_file_migrations: bool = False

@dataclass
class RemoteSettings:
    """Translation platform endpoints."""
    nota_url: str = "https://notabenoid.org"
    notabridge_url: str = "https://notabridge.crosscode.ru"
    book_id: str = "74823"
    timeout: int = 30

@dataclass
class PathSettings:
    """Where local state and produced artifacts live."""
    data_dir: str = "mod-data"
    assets_dir: str = "assets"
    scan_db_file: str = "scan.json"
    packs_dir: str = "mod-data/localize-me-packs"
    mapping_file: str = "mod-data/localize-me-mapping.json"
    po_dir: str = "crosscode-localization-data/po"


def _load_section(cls, data: Any):
    """Build a settings dataclass, ignoring keys it does not know."""
    if not isinstance(data, dict):
        raise ConfigError(f"Section for {cls.__name__} must be an object")
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


class ConfigManager:
    """Manages application configuration."""

    SECTIONS = {
        'sync': 'sync_settings',
        'remote': 'remote_settings',
        'paths': 'path_settings',
    }

    def __init__(self, config_file: str = "config.json", load: bool = True):
        self.logger = logging.getLogger(__name__)
        self.config_file = Path(config_file)

        # Default configuration
        self.sync_settings = SyncSettings()
        self.remote_settings = RemoteSettings()
        self.path_settings = PathSettings()

        if load:
            self.load_config()

    def load_config(self) -> bool:
        """Load configuration from file."""
        if not self.config_file.exists():
            self.logger.info("Config file doesn't exist, using defaults")
            return False

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = json.load(f)

            if 'sync_settings' in config_data:
                self.sync_settings = _load_section(SyncSettings, config_data['sync_settings'])

            if 'remote_settings' in config_data:
                self.remote_settings = _load_section(RemoteSettings, config_data['remote_settings'])

            if 'path_settings' in config_data:
                self.path_settings = _load_section(PathSettings, config_data['path_settings'])

            self.logger.info("Configuration loaded successfully")
            return True

        except (OSError, ValueError, TypeError, ConfigError) as e:
            self.logger.error(f"Error loading configuration: {e}")
            self.reset_to_defaults()
            return False

    def save_config(self) -> bool:
        """Save configuration to file."""
        try:
            config_data = {
                'sync_settings': asdict(self.sync_settings),
                'remote_settings': asdict(self.remote_settings),
                'path_settings': asdict(self.path_settings),
            }

            # Create backup if file exists
            if self.config_file.exists():
                backup_file = self.config_file.with_suffix('.json.bak')
                if backup_file.exists():
                    try:
                        backup_file.unlink()
                    except OSError as e:
                        self.logger.warning(f"Could not remove existing backup: {e}")
                try:
                    self.config_file.rename(backup_file)
                except OSError as e:
                    self.logger.warning(f"Could not create backup: {e}")

            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=4, ensure_ascii=False)

            self.logger.info("Configuration saved successfully")
            return True

        except OSError as e:
            self.logger.error(f"Error saving configuration: {e}")
            return False

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a setting value using dot notation (e.g., 'sync.use_scan_db')."""
        section, _, setting = key.partition('.')
        attr = self.SECTIONS.get(section)
        if attr is None or not setting:
            return default
        return getattr(getattr(self, attr), setting, default)

    def set_setting(self, key: str, value: Any, save: bool = True) -> None:
        """Set a setting value using dot notation (e.g., 'sync.auto_open')."""
        section, _, setting = key.partition('.')
        attr = self.SECTIONS.get(section)
        if attr is None or not setting:
            raise ConfigError(f"Unknown setting: {key}")
        target = getattr(self, attr)
        if not hasattr(target, setting):
            raise ConfigError(f"Unknown setting: {key}")
        setattr(target, setting, value)
        if save:
            self.save_config()

    def nota_base_url(self) -> str:
        """Endpoint variant picked by the ``use_notabridge`` toggle."""
        if self.sync_settings.use_notabridge:
            return self.remote_settings.notabridge_url
        return self.remote_settings.nota_url

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults."""
        self.sync_settings = SyncSettings()
        self.remote_settings = RemoteSettings()
        self.path_settings = PathSettings()
        self.logger.info("Configuration reset to defaults")
