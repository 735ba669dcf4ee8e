"""Tests for the re-entrancy-guarded binding runtime."""

from shell_kernel.bindings.runtime import BindingRuntime, seed_runtime_state
from shell_kernel.models.action import DispatchRequest, TriggerContext, TriggerEvent
from shell_kernel.models.block import Block, ShellBundle


def _make_bundle() -> ShellBundle:
    return ShellBundle(blocks={
        "counter": Block(block_id="counter", block_type="shell.view", data={"state": {"n": 1}}),
        "panel": Block(block_id="panel", block_type="shell.view"),
        "bind.mirror": Block(
            block_id="bind.mirror",
            block_type="binding",
            data={
                "mode": "derived",
                "enabled": True,
                "endpoints": [
                    {"endpointId": "src", "direction": "out",
                     "target": {"blockId": "counter", "path": "/state/n"}},
                    {"endpointId": "dst", "direction": "in",
                     "target": {"blockId": "panel", "path": "/state/n"}},
                ],
                "mapping": {"kind": "copy", "from": "src", "to": "dst"},
            },
        ),
        "bind.reset": Block(
            block_id="bind.reset",
            block_type="binding",
            data={
                "mode": "triggered",
                "enabled": True,
                "endpoints": [
                    {"endpointId": "dst", "direction": "in",
                     "target": {"blockId": "counter", "path": "/state/n"}},
                ],
                "mapping": {
                    "kind": "setLiteral", "to": "dst", "value": 0,
                    "trigger": {"sourceBlockId": "counter", "name": "reset"},
                },
            },
        ),
    })


class TestSeedRuntimeState:
    def test_seeds_non_binding_blocks(self):
        state = seed_runtime_state(_make_bundle())
        assert state == {"counter": {"state": {"n": 1}}, "panel": {"state": {}}}

    def test_seed_is_a_copy(self):
        bundle = _make_bundle()
        state = seed_runtime_state(bundle)
        state["counter"]["state"]["n"] = 99
        assert bundle.blocks["counter"].data["state"]["n"] == 1


class TestBindingRuntime:
    def setup_method(self):
        self.runtime = BindingRuntime(_make_bundle())

    def test_derived_tick_appends_summary(self):
        result = self.runtime.apply_derived_tick()
        assert result.applied == 1
        assert result.logs[-1] == (
            "[BindingRuntime] Derived tick complete. Applied: 1, Skipped: 0"
        )
        assert self.runtime.state["panel"]["state"]["n"] == 1

    def test_dispatch_action(self):
        result = self.runtime.dispatch_action(
            DispatchRequest(source_block_id="counter", action_name="reset")
        )
        assert result.applied == 1
        assert self.runtime.state["counter"]["state"]["n"] == 0
        assert result.logs[-1] == "[BindingRuntime] Dispatch complete. Applied: 1, Skipped: 0"

    def test_reentrant_call_refused(self):
        self.runtime._busy = True
        result = self.runtime.dispatch_event(
            TriggerEvent(source_block_id="counter", name="reset"), TriggerContext()
        )
        assert result.applied == 0
        assert result.skipped == 1
        assert "re-entrancy detected" in result.logs[0]
        assert self.runtime.state["counter"]["state"]["n"] == 1

    def test_guard_released_after_call(self):
        self.runtime.apply_derived_tick()
        assert not self.runtime.busy

    def test_shares_supplied_state(self):
        state = {"counter": {"state": {"n": 5}}}
        runtime = BindingRuntime(_make_bundle(), state)
        runtime.apply_derived_tick()
        assert state["panel"]["state"]["n"] == 5
