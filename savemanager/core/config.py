import os
from pathlib import Path

# ==========================================
# Path Configuration
# ==========================================

CORE_DIR = Path(__file__).resolve().parent
APP_DIR = CORE_DIR.parent
ROOT_DIR = APP_DIR.parent

ENV_FILE = ROOT_DIR / ".env"
DATA_DIR = ROOT_DIR / "data"

_raw_config_path = os.getenv("SAVEMANAGER_CONFIG", str(ROOT_DIR / "config.yml")).strip()
CONFIG_FILE = Path(_raw_config_path).expanduser()

# ==========================================
# Minecraft Server Configuration
# ==========================================

_raw_mc_path = os.getenv("MINECRAFT_SERVER_PATH", str(DATA_DIR / "minecraft_server_paper")).strip()
MINECRAFT_SERVER_PATH = Path(_raw_mc_path).expanduser()
if not MINECRAFT_SERVER_PATH.is_absolute():
    MINECRAFT_SERVER_PATH = ROOT_DIR / MINECRAFT_SERVER_PATH

# ==========================================
# App Configuration
# ==========================================

APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
PORT = int(os.getenv("PORT", "8000"))
HOST = os.getenv("HOST", "127.0.0.1")

# Shared secret for the JSON login endpoint (empty disables token login)
API_TOKEN = os.getenv("SAVEMANAGER_API_TOKEN", "")
