from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import pytest

from formfill.adapters.base import IDENTITY_SCRIPT
from formfill.form_models import CandidateField, FieldType
from formfill.oracle import configure_oracle
from formfill.pipeline import ALL_CLASSIFIERS, set_active_classifiers
from formfill.similarity import configure_similarity


class FakeElement:
    """ElementHandle double answering probe scripts with canned dicts."""

    def __init__(
        self,
        probe: Optional[Dict[str, Any]] = None,
        identity: Optional[Dict[str, Any]] = None,
        connected: bool = True,
        checked: bool = False,
        editable: bool = True,
    ) -> None:
        self.probe = probe or {}
        self.identity = identity
        self.connected = connected
        self.checked = checked
        self.editable = editable
        self.filled: List[str] = []
        self.selected: List[Dict[str, Any]] = []
        self.evaluated: List[Any] = []

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append(arg)
        if script == IDENTITY_SCRIPT:
            return self.identity
        if "isConnected" in script and len(script) < 40:
            return self.connected
        return self.probe

    async def fill(self, value: str) -> None:
        self.filled.append(value)

    async def select_option(self, value: Optional[str] = None, index: Optional[int] = None) -> None:
        self.selected.append({"value": value, "index": index})

    async def is_checked(self) -> bool:
        return self.checked

    async def set_checked(self, checked: bool) -> None:
        self.checked = checked

    async def is_editable(self) -> bool:
        return self.editable

    async def query_selector(self, selector: str) -> Optional["FakeElement"]:
        return None


class FakePage:
    """Page double: selector lookups come from a dict, bindings are captured."""

    def __init__(self, selectors: Optional[Dict[str, List[FakeElement]]] = None) -> None:
        self.selectors = selectors or {}
        self.bindings: Dict[str, Callable[..., Any]] = {}
        self.evaluated: List[Any] = []

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        return list(self.selectors.get(selector, []))

    async def query_selector(self, selector: str) -> Optional[FakeElement]:
        found = self.selectors.get(selector) or []
        return found[0] if found else None

    async def expose_binding(self, name: str, callback: Callable[..., Any]) -> None:
        if name in self.bindings:
            raise RuntimeError(f"binding {name} already registered")
        self.bindings[name] = callback

    async def evaluate(self, script: str, arg: Any = None) -> Any:
        self.evaluated.append((script, arg))
        return True

    def emit(self, records: List[Dict[str, Any]]) -> None:
        for callback in self.bindings.values():
            callback(None, records)


def make_probe(**overrides: Any) -> Dict[str, Any]:
    probe: Dict[str, Any] = {
        "tag": "input",
        "type": "text",
        "name": "",
        "id": "",
        "placeholder": "",
        "autocomplete": "",
        "label": "",
        "required": False,
        "disabled": False,
        "visible": True,
        "inCustomWidget": False,
        "selector": "#field",
        "path": "html > body > form > input",
        "options": [],
        "html": "<input>",
        "contextHtml": "",
    }
    probe.update(overrides)
    return probe


def make_field(**overrides: Any) -> CandidateField:
    values: Dict[str, Any] = {
        "element": None,
        "selector": "#field",
        "dom_path": "html > body > form > input",
        "tag": "input",
        "input_type": "text",
    }
    values.update(overrides)
    return CandidateField(**values)


def make_custom_field(
    label: Optional[str], field_type: FieldType, dom_path: str, adapter: str = "antd-select"
) -> CandidateField:
    field = make_field(
        selector=f"#{adapter}",
        dom_path=dom_path,
        tag="div",
        input_type=None,
        label=label,
    )
    field.adapter_name = adapter
    field.field_type = field_type
    return field


@pytest.fixture(autouse=True)
def reset_classification_state():
    configure_similarity()
    configure_oracle()
    set_active_classifiers(ALL_CLASSIFIERS)
    yield
    configure_similarity()
    configure_oracle()
    set_active_classifiers(ALL_CLASSIFIERS)
