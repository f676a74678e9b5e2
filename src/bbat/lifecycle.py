"""Module lifecycle manager.

Runs every module's ``setup`` exactly once, verifies required wiring,
freezes the bus and finally hands each module's router to the HTTP layer.
A failing setup aborts startup: there is no partially initialised system.

Usage::

    manager = ModuleManager([debts, payments, jobs])
    data = await manager.boot(deps, mount=lambda prefix, router: app.mount(prefix, router))
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import replace
from typing import Any, Callable, Sequence

from bbat.bus.bus import LocalBus
from bbat.bus.interface import Interface
from bbat.core.errors import DuplicateModule, ModuleSetupError, NoSuchHandler
from bbat.observability.logger import get_logger

from .module import ModuleDefinition, ModuleDeps, ModuleRoute, RouterFactoryContext

logger = get_logger(__name__)

Mount = Callable[[str, Any], None]


class ModuleManager:
    """Boots a fixed set of modules against one bus."""

    def __init__(
        self,
        modules: Sequence[ModuleDefinition[Any]],
        *,
        concurrent: bool = True,
    ) -> None:
        self._modules: dict[str, ModuleDefinition[Any]] = {}
        for module in modules:
            if module.name in self._modules:
                raise DuplicateModule(module.name)
            self._modules[module.name] = module
        self._concurrent = concurrent
        self._data: dict[str, Any] = {}

    @property
    def modules(self) -> list[ModuleDefinition[Any]]:
        return list(self._modules.values())

    @property
    def data(self) -> dict[str, Any]:
        """Exported setup data keyed by module name."""
        return dict(self._data)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    async def setup_all(self, deps: ModuleDeps) -> dict[str, Any]:
        """Run every module's setup once.

        Raises ``ModuleSetupError`` (chaining the original error) for the
        first failing module, in declaration order.
        """
        logger.info("Setting up modules", count=len(self._modules), concurrent=self._concurrent)
        modules = self.modules

        if self._concurrent:
            results = await asyncio.gather(
                *(self._setup_one(module, deps) for module in modules),
                return_exceptions=True,
            )
            for module, result in zip(modules, results):
                if isinstance(result, Exception):
                    raise ModuleSetupError(module.name, str(result)) from result
                if isinstance(result, BaseException):
                    raise result
                self._data[module.name] = result
        else:
            for module in modules:
                try:
                    self._data[module.name] = await self._setup_one(module, deps)
                except Exception as exc:
                    raise ModuleSetupError(module.name, str(exc)) from exc

        return self.data

    async def _setup_one(self, module: ModuleDefinition[Any], deps: ModuleDeps) -> Any:
        module_deps = replace(deps, logger=logger.bind(module=module.name))
        data = module.setup(module_deps)
        if inspect.isawaitable(data):
            data = await data
        logger.info("Initialized module", module=module.name)
        return data

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def verify_wiring(self, bus: LocalBus) -> None:
        """Raise ``NoSuchHandler`` for the first missing required registration."""
        for module in self._modules.values():
            for requirement in module.requires:
                if isinstance(requirement, Interface):
                    procedures = [requirement.procedures[name] for name in requirement.procedures]
                else:
                    procedures = [requirement]
                for procedure in procedures:
                    if not bus.has_handler(procedure):
                        logger.error(
                            "Missing required handler",
                            module=module.name,
                            procedure=procedure.qualified_name,
                        )
                        raise NoSuchHandler(procedure.qualified_name)

    # ------------------------------------------------------------------
    # Routes
    # ------------------------------------------------------------------

    def mount_routes(self, mount: Mount, deps: ModuleDeps, prefix: str = "/api") -> None:
        """Build each module's router and hand it to *mount* under ``prefix/name``."""
        context = RouterFactoryContext(config=deps.config)
        for module in self._modules.values():
            if module.routes is None:
                continue
            route = ModuleRoute(
                self._data.get(module.name),
                deps.bus,
                deps.pool,
                deps.services,
            )
            router = module.routes(route, context)
            path = f"{prefix.rstrip('/')}/{module.name}"
            mount(path, router)
            logger.info("Mounted routes", module=module.name, path=path)

    # ------------------------------------------------------------------
    # Boot
    # ------------------------------------------------------------------

    async def boot(
        self,
        deps: ModuleDeps,
        mount: Mount | None = None,
        prefix: str = "/api",
    ) -> dict[str, Any]:
        """setup_all → verify_wiring → freeze → mount_routes."""
        data = await self.setup_all(deps)
        self.verify_wiring(deps.bus)
        deps.bus.freeze()
        if mount is not None:
            self.mount_routes(mount, deps, prefix)
        return data
