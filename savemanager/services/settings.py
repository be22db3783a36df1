# savemanager/services/settings.py
"""
SaveManager Options (config.yml)

Loads the plugin-style YAML options that drive the save and backup timers:
- Timer periods and feature toggles
- Broadcast message templates (& colour codes)
- Worlds to back up and their output directories
- Per-user permission grants for the command surface

Missing keys fall back to defaults; the file is written with defaults on
first start.
"""

import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from savemanager.core.config import CONFIG_FILE, MINECRAFT_SERVER_PATH

logger = logging.getLogger(__name__)

DEFAULT_BROADCAST_MESSAGES = {
    "preparing": "&7[&aSaveManager&7] &fPreparing to save world progress...",
    "saving": "&7[&aSaveManager&7] &fSaving all worlds...",
    "backing_up": "&7[&aSaveManager&7] &fBacking up world files...",
    "backup_complete": "&7[&aSaveManager&7] &fBackup complete!",
}

DEFAULT_BACKUP_WORLDS = ["world", "world_nether", "world_the_end"]

DEFAULT_BACKUP_DIRECTORIES = {
    "world": "backups/overworld",
    "world_nether": "backups/nether",
    "world_the_end": "backups/end",
}

# Characters accepted after the alternate colour char (ChatColor codes)
COLOR_CODE_CHARS = "0123456789AaBbCcDdEeFfKkLlMmNnOoRrXx"
SECTION_SIGN = "§"


def translate_color_codes(text: str, alt_char: str = "&") -> str:
    """Replace `&x` colour codes with the `§x` form the server understands"""
    chars = list(text)
    for i in range(len(chars) - 1):
        if chars[i] == alt_char and chars[i + 1] in COLOR_CODE_CHARS:
            chars[i] = SECTION_SIGN
            chars[i + 1] = chars[i + 1].lower()
    return "".join(chars)


@dataclass
class SaveManagerConfig:
    """Options loaded from config.yml"""
    save_interval: int = 3600  # seconds
    backup_interval: int = 86400  # seconds
    enable_backups: bool = True
    enable_broadcast: bool = True
    broadcast_messages: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_BROADCAST_MESSAGES))
    backup_worlds: List[str] = field(default_factory=lambda: list(DEFAULT_BACKUP_WORLDS))
    backup_directories: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_BACKUP_DIRECTORIES))
    permissions: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "SaveManagerConfig":
        config = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})

        # Partial message maps keep the defaults for the keys they omit
        messages = dict(DEFAULT_BROADCAST_MESSAGES)
        messages.update({str(k): str(v) for k, v in (config.broadcast_messages or {}).items()})
        config.broadcast_messages = messages

        config.backup_directories = {
            str(k).lower(): str(v) for k, v in (config.backup_directories or {}).items()
        }
        config.backup_worlds = [str(w) for w in (config.backup_worlds or [])]
        config.permissions = {
            str(email).strip().lower(): [str(p) for p in (perms or [])]
            for email, perms in (config.permissions or {}).items()
        }
        config.save_interval = max(1, int(config.save_interval))
        config.backup_interval = max(1, int(config.backup_interval))
        return config

    def message(self, key: str) -> str:
        """Broadcast template with colour codes translated"""
        return translate_color_codes(self.broadcast_messages.get(key, DEFAULT_BROADCAST_MESSAGES[key]))

    def backup_directory(self, world_name: str, base_dir: Optional[Path] = None) -> Path:
        """Output directory for a world; relative paths resolve against the server directory"""
        key = world_name.lower()
        raw = self.backup_directories.get(key, f"backups/{key}")
        path = Path(raw).expanduser()
        if not path.is_absolute():
            path = (base_dir or MINECRAFT_SERVER_PATH) / path
        return path

    def has_permission(self, email: str, permission: str) -> bool:
        granted = self.permissions.get((email or "").strip().lower(), [])
        return permission in granted or "*" in granted


def load_config(path: Optional[Path] = None) -> SaveManagerConfig:
    """Load options from YAML, falling back to defaults on any problem"""
    path = path or CONFIG_FILE
    if not path.exists():
        return SaveManagerConfig()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError("top level of config must be a mapping")
        return SaveManagerConfig.from_dict(data)
    except Exception as e:
        logger.warning("[SaveManager] Failed to load config %s: %s", path, e)
        return SaveManagerConfig()


def save_default_config(path: Optional[Path] = None) -> bool:
    """Write config.yml with default options unless it already exists"""
    path = path or CONFIG_FILE
    if path.exists():
        return False
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.safe_dump(SaveManagerConfig().to_dict(), f, sort_keys=False, allow_unicode=True)
        logger.info("[SaveManager] Wrote default config to %s", path)
        return True
    except OSError as e:
        logger.warning("[SaveManager] Failed to write default config: %s", e)
        return False


_config: Optional[SaveManagerConfig] = None


def get_config() -> SaveManagerConfig:
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> SaveManagerConfig:
    global _config
    _config = load_config()
    return _config
