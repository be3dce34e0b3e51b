class RouteOptimizationError(Exception):
    """Base class for errors raised by the route optimization services."""


class InvalidOptimizationRequest(RouteOptimizationError):
    """Missing or malformed input. Raised before any side effects."""


class OptimizationNotFound(RouteOptimizationError):
    pass
