class ValidationError(ValueError):
    """Raised for local input problems. Never reaches the gateway."""
    pass


class GatewayError(RuntimeError):
    """Raised when the backend fails (network errors, rejected writes, missing records)."""
    pass


class GatewayTimeoutError(GatewayError):
    """Raised when a gateway call exceeds its time budget."""
    pass


class BusinessRuleError(RuntimeError):
    """Raised when the backend answers but the request breaks a rule (wrong code, unknown status)."""
    pass
