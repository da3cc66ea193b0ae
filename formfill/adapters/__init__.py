"""Custom widget adapters and their registry."""

from .base import AdapterDescriptor, NodeInfo, set_native_value, simulate_click, wait_for_element
from .registry import (
    DEFAULT_ADAPTERS,
    DEFAULT_REGISTRY,
    AdapterRegistry,
    detect_custom_components,
    fill_custom_component,
    get_adapter,
    register_adapter,
)

__all__ = [
    "AdapterDescriptor",
    "NodeInfo",
    "set_native_value",
    "simulate_click",
    "wait_for_element",
    "DEFAULT_ADAPTERS",
    "DEFAULT_REGISTRY",
    "AdapterRegistry",
    "detect_custom_components",
    "fill_custom_component",
    "get_adapter",
    "register_adapter",
]
