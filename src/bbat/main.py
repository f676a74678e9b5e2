"""Application bootstrap.

Loads settings, configures logging, builds the bus and connection pool,
and boots every module.  The HTTP layer passes its own ``mount`` callback
to receive the module routers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from .bus.bus import LocalBus
from .bus.context import ConnectionPool
from .core.config import Settings, load_settings
from .lifecycle import ModuleManager, Mount
from .module import ModuleDefinition, ModuleDeps
from .observability.logger import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class Application:
    settings: Settings
    bus: LocalBus
    pool: ConnectionPool | None
    modules: ModuleManager
    data: dict[str, Any] = field(default_factory=dict)

    async def shutdown(self) -> None:
        dispose = getattr(self.pool, "dispose", None)
        if dispose is not None:
            await dispose()
        logger.info("Shutdown complete")


async def boot(
    modules: Sequence[ModuleDefinition[Any]],
    settings: Settings | None = None,
    *,
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
    mount: Mount | None = None,
    storage: Any | None = None,
    pool: ConnectionPool | None = None,
    create_pool: bool = True,
    configure_logging: bool = True,
) -> Application:
    """Main entry point.  Load config, wire modules, freeze the bus.

    Any module failing its setup aborts the boot with ``ModuleSetupError``;
    missing required wiring aborts it with ``NoSuchHandler``.
    """

    # 1. Load settings
    if settings is None:
        settings = load_settings(config_path=config_path, overrides=overrides)

    # 2. Set up logging
    if configure_logging:
        setup_logging(
            level=settings.observability.log_level,
            format=settings.observability.log_format,
        )

    logger.info("Starting %s", settings.app_name)

    # 3. Module list (rejects duplicate names before anything is opened)
    manager = ModuleManager(modules, concurrent=settings.modules.concurrent_setup)

    # 4. Connection pool
    owned_pool = None
    if pool is None and create_pool:
        from .storage.postgres.connection import SessionPool

        pool = owned_pool = SessionPool.from_config(settings.database)

    # 5. Bus + modules
    bus = LocalBus()
    deps = ModuleDeps(bus=bus, config=settings, pool=pool, storage=storage)

    try:
        data = await manager.boot(deps, mount=mount, prefix=settings.modules.api_prefix)
    except Exception:
        logger.error("Startup aborted")
        if owned_pool is not None:
            await owned_pool.dispose()
        raise

    return Application(
        settings=settings,
        bus=bus,
        pool=pool,
        modules=manager,
        data=data,
    )
