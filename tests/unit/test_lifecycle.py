"""Tests for module setup, wiring verification, freezing and route mounting."""

from __future__ import annotations

import asyncio

import pytest

from bbat.bus.bus import LocalBus
from bbat.bus.interface import create_interface
from bbat.bus.scope import define_scope
from bbat.core.config import Settings
from bbat.core.errors import (
    BbatError,
    DuplicateModule,
    DuplicateRegistration,
    ModuleSetupError,
    NoSuchHandler,
    RegistryFrozen,
)
from bbat.lifecycle import ModuleManager
from bbat.module import ModuleDeps, ModuleRoute, RouterFactoryContext, create_module

payers = define_scope("payers")
get_payer = payers.define_procedure(name="get", payload=str, response=dict)

debts = define_scope("debts")
create_debt = debts.define_procedure(name="create", payload=str, response=str)

notifier = create_interface("notifier", lambda b: {
    "notify": b.proc(payload=str),
})


@pytest.fixture
def deps(bus: LocalBus, pool) -> ModuleDeps:
    return ModuleDeps(bus=bus, config=Settings(), pool=pool, storage="bucket")


def _payers_setup(deps: ModuleDeps):
    deps.bus.register(get_payer, lambda id, ctx, bus: {"id": id})
    return {"exported": "payers"}


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

class TestModuleManager:
    def test_duplicate_module_names_rejected(self):
        a = create_module("debts", lambda deps: None)
        b = create_module("debts", lambda deps: None)
        with pytest.raises(DuplicateModule, match="debts") as exc_info:
            ModuleManager([a, b])
        assert isinstance(exc_info.value, BbatError)
        assert isinstance(exc_info.value, ValueError)

    def test_modules_in_declaration_order(self):
        names = ["debts", "payers", "jobs"]
        manager = ModuleManager([create_module(n, lambda deps: None) for n in names])
        assert [m.name for m in manager.modules] == names

    def test_create_module_freezes_requires(self):
        module = create_module("debts", lambda deps: None, requires=[get_payer])
        assert module.requires == (get_payer,)


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------

class TestSetup:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrent", [True, False])
    async def test_each_setup_runs_once(self, deps, concurrent):
        calls = []

        async def setup_async(d):
            await asyncio.sleep(0)
            calls.append("async")
            return "async-data"

        def setup_sync(d):
            calls.append("sync")
            return "sync-data"

        manager = ModuleManager(
            [create_module("a", setup_async), create_module("b", setup_sync)],
            concurrent=concurrent,
        )
        data = await manager.boot(deps)

        assert sorted(calls) == ["async", "sync"]
        assert data == {"a": "async-data", "b": "sync-data"}
        assert manager.data == data

    @pytest.mark.asyncio
    async def test_setup_receives_shared_bus_and_bound_logger(self, deps):
        seen = {}

        def setup(d: ModuleDeps):
            seen["bus"] = d.bus
            seen["config"] = d.config
            seen["storage"] = d.storage
            seen["logger"] = d.logger

        await ModuleManager([create_module("debts", setup)]).boot(deps)

        assert seen["bus"] is deps.bus
        assert seen["config"] is deps.config
        assert seen["storage"] == "bucket"
        assert seen["logger"] is not None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrent", [True, False])
    async def test_failing_setup_aborts_boot(self, deps, concurrent):
        mounted = []
        routes_built = []

        def broken(d):
            raise RuntimeError("cannot reach object storage")

        def routes(route, ctx):
            routes_built.append(route)
            return "router"

        manager = ModuleManager(
            [create_module("payers", _payers_setup, routes=routes), create_module("files", broken)],
            concurrent=concurrent,
        )

        with pytest.raises(ModuleSetupError) as exc_info:
            await manager.boot(deps, mount=lambda path, router: mounted.append(path))

        assert exc_info.value.module == "files"
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert routes_built == []
        assert mounted == []
        assert not deps.bus.frozen

    @pytest.mark.asyncio
    async def test_first_failure_in_declaration_order_reported(self, deps):
        async def slow_fail(d):
            await asyncio.sleep(0.01)
            raise RuntimeError("slow")

        def fast_fail(d):
            raise RuntimeError("fast")

        manager = ModuleManager([create_module("first", slow_fail), create_module("second", fast_fail)])
        with pytest.raises(ModuleSetupError) as exc_info:
            await manager.setup_all(deps)
        assert exc_info.value.module == "first"

    @pytest.mark.asyncio
    async def test_duplicate_registration_across_modules(self, deps):
        manager = ModuleManager(
            [create_module("payers", _payers_setup), create_module("payers-v2", _payers_setup)],
            concurrent=False,
        )

        with pytest.raises(ModuleSetupError) as exc_info:
            await manager.boot(deps)

        assert exc_info.value.module == "payers-v2"
        assert isinstance(exc_info.value.__cause__, DuplicateRegistration)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------

class TestWiring:
    @pytest.mark.asyncio
    async def test_requirement_satisfied_by_other_module(self, deps):
        manager = ModuleManager([
            create_module("debts", lambda d: None, requires=[get_payer]),
            create_module("payers", _payers_setup),
        ])
        await manager.boot(deps)
        assert deps.bus.frozen

    @pytest.mark.asyncio
    async def test_missing_procedure_requirement(self, deps):
        manager = ModuleManager([create_module("debts", lambda d: None, requires=[get_payer])])

        with pytest.raises(NoSuchHandler, match="payers:get"):
            await manager.boot(deps)
        assert not deps.bus.frozen

    @pytest.mark.asyncio
    async def test_interface_requirement_needs_untagged_implementation(self, deps):
        def setup(d):
            d.bus.provide_named(notifier, "email", {"notify": lambda p, c, b: None})

        manager = ModuleManager([create_module("jobs", setup, requires=[notifier])])
        with pytest.raises(NoSuchHandler, match="notifier:notify"):
            await manager.boot(deps)

    @pytest.mark.asyncio
    async def test_bus_frozen_after_boot(self, deps):
        await ModuleManager([create_module("payers", _payers_setup)]).boot(deps)

        with pytest.raises(RegistryFrozen):
            deps.bus.register(create_debt, lambda p, c, b: p)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

class TestRoutes:
    @pytest.mark.asyncio
    async def test_mount_prefix(self, deps):
        mounted = {}

        manager = ModuleManager([
            create_module("payers", _payers_setup, routes=lambda route, ctx: "payers-router"),
            create_module("debts", lambda d: None, routes=lambda route, ctx: "debts-router"),
            create_module("jobs", lambda d: None),
        ])
        await manager.boot(deps, mount=mounted.__setitem__, prefix="/api/")

        assert mounted == {"/api/payers": "payers-router", "/api/debts": "debts-router"}

    @pytest.mark.asyncio
    async def test_route_factory_receives_module_data(self, deps):
        received = {}

        def routes(route: ModuleRoute, ctx: RouterFactoryContext):
            received["module"] = route.module
            received["config"] = ctx.config
            return object()

        manager = ModuleManager([create_module("payers", _payers_setup, routes=routes)])
        await manager.boot(deps, mount=lambda path, router: None)

        assert received["module"] == {"exported": "payers"}
        assert received["config"] is deps.config

    @pytest.mark.asyncio
    async def test_route_request_runs_in_transaction(self, deps, pool):
        routes = {}

        def debt_setup(d):
            async def create(debt_id, ctx, bus):
                ctx.transaction.write(f"debt:{debt_id}", ctx.session["user"])
                return debt_id

            d.bus.register(create_debt, create)

        manager = ModuleManager([
            create_module("debts", debt_setup, routes=lambda route, ctx: route),
        ])
        await manager.boot(deps, mount=routes.__setitem__)

        route = routes["/api/debts"]
        async with route.request(session={"user": "admin"}, request_id="req-1") as handle:
            assert handle.context.request_id == "req-1"
            assert handle.context.services.storage == "bucket"
            await handle.exec(create_debt, "d1")

        assert pool.db.rows == {"debt:d1": "admin"}
        assert pool.db.commits == 1

    def test_route_request_without_pool(self, bus):
        route = ModuleRoute(None, bus, None, ModuleDeps(bus=bus, config=Settings()).services)
        with pytest.raises(RuntimeError):
            route.request()
