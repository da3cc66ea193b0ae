"""Ordered registry of custom widget adapters."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Set

from playwright.async_api import ElementHandle, Page

from ..form_models import CandidateField
from .antd import ANTD_ADAPTERS
from .base import IDENTITY_SCRIPT, AdapterDescriptor, NodeInfo
from .mui import mui_autocomplete_adapter, mui_select_adapter
from .react_select import react_select_adapter
from .select2 import select2_adapter

LOGGER = logging.getLogger(__name__)

DEFAULT_ADAPTERS: List[AdapterDescriptor] = [
    select2_adapter,
    *ANTD_ADAPTERS,
    react_select_adapter,
    mui_select_adapter,
    mui_autocomplete_adapter,
]


class AdapterRegistry:
    """Adapters in priority order; the first adapter to claim a node owns it."""

    def __init__(
        self,
        adapters: Optional[Iterable[AdapterDescriptor]] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._adapters: List[AdapterDescriptor] = list(
            DEFAULT_ADAPTERS if adapters is None else adapters
        )
        self.logger = logger or LOGGER

    @property
    def adapters(self) -> List[AdapterDescriptor]:
        return list(self._adapters)

    def register(self, adapter: AdapterDescriptor) -> None:
        if self.get_adapter(adapter.name) is not None:
            raise ValueError(f"Adapter {adapter.name!r} is already registered")
        self._adapters.append(adapter)
        self.logger.debug("Registered adapter %s", adapter.name)

    def get_adapter(self, name: Optional[str]) -> Optional[AdapterDescriptor]:
        for adapter in self._adapters:
            if adapter.name == name:
                return adapter
        return None

    async def detect_all(self, page: Page) -> List[CandidateField]:
        """Build one field per claimed wrapper node, in adapter order."""
        claimed: Set[str] = set()
        fields: List[CandidateField] = []
        for adapter in self._adapters:
            try:
                nodes = await page.query_selector_all(adapter.selector)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("[%s] query failed: %s", adapter.name, exc)
                continue
            for node in nodes:
                info = await self._identify(node)
                if info is None or info.dom_path in claimed:
                    continue
                try:
                    if not adapter.matches(info):
                        continue
                except Exception as exc:  # noqa: BLE001
                    self.logger.warning("[%s] matches failed: %s", adapter.name, exc)
                    continue
                claimed.add(info.dom_path)
                try:
                    field = await adapter.build_field(node, info)
                except Exception as exc:  # noqa: BLE001
                    self.logger.warning("[%s] failed to build field: %s", adapter.name, exc)
                    continue
                if field is None:
                    continue
                field.order = len(fields)
                fields.append(field)
                self.logger.debug("[%s] detected %s", adapter.name, field.selector)
        self.logger.info("Detected %s custom component field(s)", len(fields))
        return fields

    async def _identify(self, node: ElementHandle) -> Optional[NodeInfo]:
        try:
            probe = await node.evaluate(IDENTITY_SCRIPT)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("Could not identify node: %s", exc)
            return None
        if not isinstance(probe, dict) or not probe.get("path"):
            return None
        return NodeInfo.from_probe(probe)

    async def fill(
        self, field: CandidateField, value: str, page: Optional[Page] = None
    ) -> bool:
        """Fill through the field's adapter; ``False`` on any failure."""
        adapter = self.get_adapter(field.adapter_name)
        if adapter is None:
            if field.adapter_name:
                self.logger.warning("Adapter %s not found", field.adapter_name)
            return False
        node = await self._resolve(field, page)
        if node is None:
            self.logger.warning("[%s] element %s is gone", adapter.name, field.selector)
            return False
        try:
            filled = bool(await adapter.fill(node, value))
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("[%s] fill failed on %s: %s", adapter.name, field.selector, exc)
            return False
        if not filled:
            self.logger.debug("[%s] could not fill %s", adapter.name, field.selector)
        return filled

    async def _resolve(
        self, field: CandidateField, page: Optional[Page]
    ) -> Optional[ElementHandle]:
        if field.element is not None:
            try:
                if await field.element.evaluate("el => el.isConnected"):
                    return field.element
            except Exception as exc:  # noqa: BLE001
                self.logger.debug("Stale handle for %s: %s", field.selector, exc)
        if page is None or not field.selector:
            return None
        try:
            return await page.query_selector(field.selector)
        except Exception as exc:  # noqa: BLE001
            self.logger.debug("Could not re-resolve %s: %s", field.selector, exc)
            return None


DEFAULT_REGISTRY = AdapterRegistry()


def register_adapter(adapter: AdapterDescriptor) -> None:
    DEFAULT_REGISTRY.register(adapter)


def get_adapter(name: str) -> Optional[AdapterDescriptor]:
    return DEFAULT_REGISTRY.get_adapter(name)


async def detect_custom_components(
    page: Page, registry: Optional[AdapterRegistry] = None
) -> List[CandidateField]:
    return await (registry or DEFAULT_REGISTRY).detect_all(page)


async def fill_custom_component(
    field: CandidateField,
    value: str,
    page: Optional[Page] = None,
    registry: Optional[AdapterRegistry] = None,
) -> bool:
    return await (registry or DEFAULT_REGISTRY).fill(field, value, page)


__all__ = [
    "DEFAULT_ADAPTERS",
    "AdapterRegistry",
    "DEFAULT_REGISTRY",
    "register_adapter",
    "get_adapter",
    "detect_custom_components",
    "fill_custom_component",
]
