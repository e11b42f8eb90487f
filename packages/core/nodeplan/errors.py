"""Exception hierarchy shared by the resolver, pricing and costing layers."""

from __future__ import annotations


class NodeplanError(Exception):
    """Base class for all nodeplan errors."""


class TopologyError(NodeplanError, ValueError):
    """Raised when a topology cannot be resolved into a valid plan."""


class CostAnalysisError(NodeplanError, ValueError):
    """Raised when a deployment context cannot be costed."""


class PricingError(NodeplanError):
    """Transport or parse failure talking to the retail pricing service.

    Never escapes PricingClient; it is converted into an estimate fallback.
    """


class QuotaError(NodeplanError, ValueError):
    """Raised when a quota usage snapshot cannot be read."""
