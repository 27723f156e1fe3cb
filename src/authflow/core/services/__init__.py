"""Core services exports."""

from .flow_coordinator import (
    FlowCoordinator,
    InFlightOperation,
    OperationKind,
    resolve_sign_in,
)

__all__ = [
    "FlowCoordinator",
    "InFlightOperation",
    "OperationKind",
    "resolve_sign_in",
]
