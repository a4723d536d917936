"""
Environment bootloader.

Validates configuration and database connectivity before the application
accepts traffic. Also runnable as a CLI for CI and smoke checks:

    python -m syndic_api.boot --mode dry-run
"""

import asyncio
import sys
import time
from dataclasses import dataclass
from enum import Enum

from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from syndic_api.config import settings
from syndic_api.logger import get_logger

logger = get_logger(__name__)


class BootMode(str, Enum):
    CRITICAL = "critical"  # Config + DB, exits on failure (startup)
    DRY_RUN = "dry-run"  # Static config check only (CI lint)


@dataclass
class ServiceStatus:
    service: str
    status: str  # 'ok', 'error'
    message: str
    duration_ms: float = 0.0


class Bootloader:
    """Handles environment validation and service connectivity checks."""

    @staticmethod
    async def validate(mode: BootMode = BootMode.CRITICAL) -> bool:
        """Run validation checks. Returns True if passed, False if failed.

        If mode is CRITICAL, this calls sys.exit(1) on failure.
        """
        logger.info("Bootloader starting validation", mode=mode.value)

        if not Bootloader._check_static_config():
            if mode == BootMode.CRITICAL:
                logger.critical("Static configuration check failed. Refusing to start.")
                sys.exit(1)
            return False

        if mode == BootMode.DRY_RUN:
            logger.info("Dry-run configuration check passed")
            return True

        result = await Bootloader.check_database()
        if result.status == "error":
            logger.error(
                "Service check failed",
                service=result.service,
                error=result.message,
                duration_ms=result.duration_ms,
            )
            logger.critical("Critical service checks failed. Application cannot start.")
            sys.exit(1)

        logger.info(
            "Service check passed",
            service=result.service,
            duration_ms=result.duration_ms,
        )
        logger.info("Bootloader validation successful")
        return True

    @staticmethod
    def _check_static_config() -> bool:
        """Verify the reconciliation settings are coherent."""
        if not settings.database_url:
            logger.error("Configuration load failed", error="DATABASE_URL is empty")
            return False
        if settings.environment == "production" and settings.secret_key.startswith("dev_"):
            logger.error("Configuration load failed", error="SECRET_KEY uses the development default")
            return False
        return True

    @staticmethod
    async def check_database() -> ServiceStatus:
        """Verify database connectivity (SELECT 1)."""
        start = time.perf_counter()
        engine = None
        try:
            engine = create_async_engine(settings.database_url, echo=False)
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

            duration_ms = (time.perf_counter() - start) * 1000
            return ServiceStatus("database", "ok", "Connection successful", duration_ms)

        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            return ServiceStatus("database", "error", str(e), duration_ms)
        finally:
            if engine:
                await engine.dispose()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--mode", type=str, default="critical", choices=[mode.value for mode in BootMode]
    )
    args = parser.parse_args()

    try:
        success = asyncio.run(Bootloader.validate(BootMode(args.mode)))
    except KeyboardInterrupt:
        sys.exit(130)

    sys.exit(0 if success else 1)
