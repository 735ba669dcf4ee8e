"""Tests for the Shell Runtime composition root."""

import pytest
from fastapi.testclient import TestClient

from shell_kernel.api.app import create_app
from shell_kernel.models.block import ShellBundle
from shell_kernel.models.config import ShellKernelConfig
from shell_kernel.models.results import EvalResult
from shell_kernel.models.window import Viewport
from shell_kernel.models.workspace import WorkspaceSessionRecord
from shell_kernel.session.assembly import SessionError
from shell_kernel.shell.runtime import create_shell_runtime
from shell_kernel.workspace.adapters import InMemoryStorageAdapter
from shell_kernel.workspace.persistence import WorkspacePersistence


def _make_bundle() -> ShellBundle:
    return ShellBundle.model_validate({
        "manifest": {"name": "demo"},
        "blocks": {
            "view.home": {
                "blockId": "view.home",
                "blockType": "shell.view",
                "data": {
                    "state": {"status": "idle"},
                    "interactions": {
                        "start": {"kind": "start"},
                        "inspect": {
                            "kind": "command",
                            "params": {"commandId": "window.open", "args": {"windowKey": "inspector"}},
                        },
                    },
                },
            },
            "shell.windows": {
                "blockId": "shell.windows",
                "blockType": "shell.infra.window_registry",
                "data": {"windows": {"inspector": {"singleton": True}, "notes": {}}},
            },
            "shell.routing": {
                "blockId": "shell.routing",
                "blockType": "shell.infra.routing",
                "data": {"routes": {"home": {"enabled": True, "targetBlockId": "view.home"}}},
            },
            "shell.theme": {"blockId": "shell.theme", "blockType": "shell.infra.theme_tokens"},
            "ov.help": {"blockId": "ov.help", "blockType": "shell.overlay.modal"},
            "bind.start": {
                "blockId": "bind.start",
                "blockType": "binding",
                "data": {
                    "mode": "triggered",
                    "enabled": True,
                    "endpoints": [{"endpointId": "dst", "direction": "in",
                                   "target": {"blockId": "view.home", "path": "/state/status"}}],
                    "mapping": {"kind": "setLiteral", "to": "dst", "value": "running",
                                "trigger": {"sourceBlockId": "view.home", "name": "start"}},
                },
            },
        },
    })


class _AppClient:
    """A ShellClient that talks to the debug app in-process."""

    def __init__(self, http: TestClient):
        self.http = http

    async def load_active_bundle(self):
        return self.http.get("/config/shell/bundle").json()

    async def resolve_route(self, entry_slug):
        return self.http.get(f"/routing/resolve/{entry_slug}").json()

    async def dispatch_debug_action(self, request):
        return self.http.post("/debug/action/dispatch", json=request).json()

    async def dispatch_debug_derived_tick(self):
        return self.http.post("/debug/derived-tick").json()


def _make_client(server_dev_mode: bool = True) -> _AppClient:
    app = create_app(_make_bundle(), ShellKernelConfig(dev_mode=server_dev_mode))
    return _AppClient(TestClient(app))


async def _make_shell(client=None, config=None, adapter=None, tab_id="tab1"):
    return await create_shell_runtime(
        client=client or _make_client(),
        entry_slug="home",
        tab_id=tab_id,
        viewport=Viewport(width=1200, height=800),
        workspace_adapter=adapter or InMemoryStorageAdapter(),
        config=config,
    )


class TestShellConstruction:
    @pytest.mark.asyncio
    async def test_initial_plan(self):
        shell = await _make_shell()

        plan = shell.get_plan()

        assert plan.entry_slug == "home"
        assert plan.target_block_id == "view.home"
        assert [a.id for a in plan.actions] == ["view.home:inspect", "view.home:start"]
        assert plan.actions[0].action_name == "window.open"
        assert plan.windows == []
        assert [o.overlay_id for o in plan.overlays] == ["ov.help"]

    @pytest.mark.asyncio
    async def test_creates_workspace_record(self):
        adapter = InMemoryStorageAdapter()
        await _make_shell(adapter=adapter, tab_id="tab9")

        sessions = await WorkspacePersistence(adapter).list_sessions()
        assert [s.tab_id for s in sessions] == ["tab9"]

    @pytest.mark.asyncio
    async def test_prunes_stale_workspaces(self):
        adapter = InMemoryStorageAdapter([
            WorkspaceSessionRecord(tab_id="ancient", created_at=1, last_seen_at=1),
        ])
        await _make_shell(adapter=adapter, tab_id="tab1")

        sessions = await WorkspacePersistence(adapter).list_sessions()
        assert [s.tab_id for s in sessions] == ["tab1"]

    @pytest.mark.asyncio
    async def test_unknown_route_fails(self):
        shell_client = _make_client()

        with pytest.raises(SessionError, match="Route not allowed"):
            await create_shell_runtime(
                client=shell_client,
                entry_slug="nowhere",
                tab_id="tab1",
                viewport=Viewport(width=800, height=600),
                workspace_adapter=InMemoryStorageAdapter(),
            )


class TestShellOperations:
    @pytest.mark.asyncio
    async def test_open_window_shows_in_plan(self):
        shell = await _make_shell()

        assert shell.open_window("inspector").ok
        assert shell.open_window("inspector").ok

        windows = shell.get_plan().windows
        assert len(windows) == 1
        assert windows[0].instance_id == "inspector"

    @pytest.mark.asyncio
    async def test_toggle_overlay(self):
        shell = await _make_shell()

        assert shell.toggle_overlay("ov.help").is_open is True
        assert shell.get_plan().overlays[0].is_open
        assert not shell.toggle_overlay("ov.ghost").ok

    @pytest.mark.asyncio
    async def test_get_plan_is_pure(self):
        shell = await _make_shell()
        shell.open_window("notes")

        first = shell.get_plan()
        first.windows[0].x = 500
        first.actions.clear()

        second = shell.get_plan()
        assert second.windows[0].x == 0
        assert len(second.actions) == 2

    @pytest.mark.asyncio
    async def test_local_dispatch(self):
        shell = await _make_shell()

        result = await shell.dispatch_action({"sourceBlockId": "view.home", "actionName": "start"})

        assert isinstance(result, EvalResult)
        assert result.applied == 1
        assert shell.session.state["view.home"]["state"]["status"] == "running"

    @pytest.mark.asyncio
    async def test_remote_dispatch_through_debug_app(self):
        client = _make_client()
        shell = await _make_shell(client=client, config=ShellKernelConfig(dev_mode=True))

        result = await shell.dispatch_action({"sourceBlockId": "view.home", "actionName": "start"})

        assert result.applied == 1
        server_state = client.http.get("/debug/state").json()
        assert server_state["view.home"]["state"]["status"] == "running"
        assert shell.session.state["view.home"]["state"]["status"] == "idle"

    @pytest.mark.asyncio
    async def test_remote_dispatch_refused_by_prod_server(self):
        client = _make_client(server_dev_mode=False)
        shell = await _make_shell(client=client, config=ShellKernelConfig(dev_mode=True))

        result = await shell.dispatch_action({"sourceBlockId": "view.home", "actionName": "start"})
        assert result.status == 403

        outcome = await shell.apply_derived_tick()
        assert not outcome.ok
        assert outcome.error == "Debug endpoints are disabled"

    @pytest.mark.asyncio
    async def test_local_derived_tick(self):
        shell = await _make_shell()

        outcome = await shell.apply_derived_tick()
        assert outcome.ok
        assert not outcome.did_work

    @pytest.mark.asyncio
    async def test_windows_persist_through_workspace(self):
        adapter = InMemoryStorageAdapter()
        shell = await _make_shell(adapter=adapter)
        shell.open_window("notes")

        await shell.windows.save_to_persistence()

        stored = await shell.workspace.load_windows("tab1")
        assert [w["windowKey"] for w in stored] == ["notes"]
