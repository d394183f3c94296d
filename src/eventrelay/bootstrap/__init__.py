"""Bootstrap (composition root) for EVENTRELAY.

Assembles the application at runtime: wires concrete adapters to the
service-layer handlers, builds the message bus and the reference dispatcher,
and reads configuration.

Import rules:
- Entry points import *this* package (not adapters/service_layer directly).
- This package may import: `eventrelay.adapters`, `eventrelay.service_layer`,
  `eventrelay.interfaces`, `eventrelay.domain`, and `eventrelay.config`.
- Inner layers must not import `eventrelay.bootstrap`.
"""

from .bootstrap import (
    AppContainer,
    bootstrap,
    build_dispatcher,
    build_message_bus,
    build_write_uow,
    inject_dependencies,
)

__all__ = [
    "AppContainer",
    "bootstrap",
    "build_dispatcher",
    "build_message_bus",
    "build_write_uow",
    "inject_dependencies",
]
