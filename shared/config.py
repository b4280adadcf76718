"""
Proctoring Integrity Engine Configuration
Loads settings from environment variables and .env file
"""

import os
from pathlib import Path

from dotenv import load_dotenv

from shared.constants import Config


# Look for .env in project root (parent of shared/)
PROJECT_ROOT = Path(__file__).resolve().parent.parent
ENV_PATH = PROJECT_ROOT / '.env'

if ENV_PATH.exists():
    load_dotenv(ENV_PATH)


class Settings:
    """Runtime settings loaded from INTEGRITY_* environment variables"""

    # ==================== LOGGING ====================
    @property
    def LOG_DIR(self) -> str:
        return os.environ.get("INTEGRITY_LOG_DIR", str(PROJECT_ROOT / "logs"))

    @property
    def LOG_LEVEL(self) -> str:
        return os.environ.get("INTEGRITY_LOG_LEVEL", "INFO").upper()

    @property
    def LOG_TO_FILE(self) -> bool:
        return os.environ.get("INTEGRITY_LOG_TO_FILE", "true").lower() in ("true", "1", "yes")

    # ==================== VISUAL DETECTOR ====================
    @property
    def MODEL_PATH(self) -> str:
        return os.environ.get("INTEGRITY_MODEL_PATH", str(PROJECT_ROOT / Config.MODEL_PATH))

    @property
    def INFERENCE_TIMEOUT(self) -> float:
        return float(os.environ.get("INTEGRITY_INFERENCE_TIMEOUT", str(Config.INFERENCE_TIMEOUT)))

    @property
    def MAX_FACES(self) -> int:
        return int(os.environ.get("INTEGRITY_MAX_FACES", str(Config.MAX_NUM_FACES)))

    @property
    def FPS_TARGET(self) -> int:
        return int(os.environ.get("INTEGRITY_FPS_TARGET", str(Config.FPS_TARGET)))

    @property
    def CAMERA_INDEX(self) -> int:
        return int(os.environ.get("INTEGRITY_CAMERA_INDEX", "0"))

    def __repr__(self) -> str:
        return (
            f"Settings(\n"
            f"  LOG_DIR={self.LOG_DIR}, LOG_LEVEL={self.LOG_LEVEL}, LOG_TO_FILE={self.LOG_TO_FILE},\n"
            f"  MODEL={self.MODEL_PATH},\n"
            f"  INFERENCE_TIMEOUT={self.INFERENCE_TIMEOUT}s, MAX_FACES={self.MAX_FACES}, FPS={self.FPS_TARGET}\n"
            f")"
        )


settings = Settings()
