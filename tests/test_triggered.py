"""Tests for the triggered-binding matcher."""

from shell_kernel.bindings.runtime import seed_runtime_state
from shell_kernel.bindings.triggered import dispatch_triggered_event
from shell_kernel.models.action import TriggerContext, TriggerEvent
from shell_kernel.models.block import Block, ShellBundle


def _make_triggered_binding(
    binding_id: str,
    mapping: dict,
    access_policy: dict = None,
    source_block_id: str = "toolbar",
    name: str = "save",
) -> Block:
    data = {
        "mode": "triggered",
        "enabled": True,
        "endpoints": [
            {
                "endpointId": "dst",
                "direction": "in",
                "target": {"blockId": "doc", "path": "/state/status"},
            },
            {
                "endpointId": "src",
                "direction": "out",
                "target": {"blockId": "doc", "path": "/state/draft"},
            },
        ],
        "mapping": {**mapping, "trigger": {"sourceBlockId": source_block_id, "name": name}},
    }
    if access_policy is not None:
        data["accessPolicy"] = access_policy
    return Block(block_id=binding_id, block_type="binding", data=data)


def _make_bundle(*bindings: Block) -> ShellBundle:
    blocks = {
        "doc": Block(
            block_id="doc",
            block_type="shell.view",
            data={"state": {"status": "draft", "draft": "hello"}},
        ),
    }
    for b in bindings:
        blocks[b.block_id] = b
    return ShellBundle(blocks=blocks)


def _save_event(payload=None) -> TriggerEvent:
    return TriggerEvent(source_block_id="toolbar", name="save", payload=payload)


class TestTriggerMatching:
    def test_set_literal_on_match(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.save", {"kind": "setLiteral", "to": "dst", "value": "saved"})
        )
        state = seed_runtime_state(bundle)

        result = dispatch_triggered_event(bundle, state, _save_event())

        assert result.applied == 1
        assert result.logs == ["[bind.save] Applied: setLiteral"]
        assert state["doc"]["state"]["status"] == "saved"

    def test_non_matching_binding_ignored(self):
        bundle = _make_bundle(
            _make_triggered_binding(
                "bind.other", {"kind": "setLiteral", "to": "dst", "value": "x"}, name="publish"
            )
        )
        state = seed_runtime_state(bundle)

        result = dispatch_triggered_event(bundle, state, _save_event())
        assert result.applied == 0
        assert result.skipped == 0
        assert result.logs == []

    def test_set_from_payload_path(self):
        bundle = _make_bundle(
            _make_triggered_binding(
                "bind.payload", {"kind": "setFromPayload", "to": "dst", "payloadPath": "/next"}
            )
        )
        state = seed_runtime_state(bundle)

        dispatch_triggered_event(bundle, state, _save_event({"next": "review"}))
        assert state["doc"]["state"]["status"] == "review"

    def test_set_from_whole_payload(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.payload", {"kind": "setFromPayload", "to": "dst"})
        )
        state = seed_runtime_state(bundle)

        dispatch_triggered_event(bundle, state, _save_event("published"))
        assert state["doc"]["state"]["status"] == "published"

    def test_copy_on_trigger(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.copy", {"kind": "copy", "from": "src", "to": "dst"})
        )
        state = seed_runtime_state(bundle)

        dispatch_triggered_event(bundle, state, _save_event())
        assert state["doc"]["state"]["status"] == "hello"

    def test_bindings_fire_in_block_id_order(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.b", {"kind": "setLiteral", "to": "dst", "value": "b"}),
            _make_triggered_binding("bind.a", {"kind": "setLiteral", "to": "dst", "value": "a"}),
        )
        state = seed_runtime_state(bundle)

        result = dispatch_triggered_event(bundle, state, _save_event())
        assert result.logs == ["[bind.a] Applied: setLiteral", "[bind.b] Applied: setLiteral"]
        assert state["doc"]["state"]["status"] == "b"


class TestAccessPolicy:
    def setup_method(self):
        policy = {"expr": {"kind": "ref", "refType": "permission", "key": "docs.publish"}}
        self.bundle = _make_bundle(
            _make_triggered_binding(
                "bind.guarded",
                {"kind": "setLiteral", "to": "dst", "value": "published"},
                access_policy=policy,
            )
        )
        self.state = seed_runtime_state(self.bundle)

    def test_denied_without_permission(self):
        result = dispatch_triggered_event(self.bundle, self.state, _save_event(), TriggerContext())

        assert result.applied == 0
        assert result.skipped >= 1
        assert result.logs == ["[bind.guarded] Access denied: missing permission 'docs.publish'"]
        assert self.state["doc"]["state"]["status"] == "draft"

    def test_allowed_with_permission(self):
        ctx = TriggerContext(permissions={"docs.publish"})
        result = dispatch_triggered_event(self.bundle, self.state, _save_event(), ctx)

        assert result.applied == 1
        assert self.state["doc"]["state"]["status"] == "published"

    def test_missing_context_is_denied(self):
        result = dispatch_triggered_event(self.bundle, self.state, _save_event())
        assert result.applied == 0
        assert result.skipped == 1


class TestValueIndependence:
    def test_reset_literal_resets_every_time(self):
        binding = _make_triggered_binding(
            "bind.reset", {"kind": "setLiteral", "to": "dst", "value": {"count": 0}}
        )
        bundle = _make_bundle(binding)
        state = seed_runtime_state(bundle)

        dispatch_triggered_event(bundle, state, _save_event())
        state["doc"]["state"]["status"]["count"] = 5
        dispatch_triggered_event(bundle, state, _save_event())

        assert state["doc"]["state"]["status"] == {"count": 0}
        assert binding.data["mapping"]["value"] == {"count": 0}

    def test_payload_not_shared_with_state(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.payload", {"kind": "setFromPayload", "to": "dst"})
        )
        state = seed_runtime_state(bundle)
        payload = {"tags": ["a"]}

        dispatch_triggered_event(bundle, state, _save_event(payload))
        payload["tags"].append("b")

        assert state["doc"]["state"]["status"] == {"tags": ["a"]}

    def test_copy_not_shared_with_source(self):
        bundle = _make_bundle(
            _make_triggered_binding("bind.copy", {"kind": "copy", "from": "src", "to": "dst"})
        )
        state = seed_runtime_state(bundle)
        state["doc"]["state"]["draft"] = {"title": "hello"}

        dispatch_triggered_event(bundle, state, _save_event())
        state["doc"]["state"]["status"]["title"] = "changed"

        assert state["doc"]["state"]["draft"] == {"title": "hello"}
