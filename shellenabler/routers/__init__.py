"""Router clients for supported Xiaomi/Redmi models."""

from .base import (
    BaseRouterClient,
    Capability,
    ShellOperationResult,
    ShellStatusResult,
    Step,
)
from .ax5400pro import AX5400ProClient

__all__ = [
    "BaseRouterClient",
    "Capability",
    "ShellOperationResult",
    "ShellStatusResult",
    "Step",
    "AX5400ProClient",
]
