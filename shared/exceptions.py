"""RFC 9457 Problem Details exception hierarchy.

All gateway errors extend ProblemDetailError. The core turns them into
error outcomes; the router renders those as application/problem+json.
"""


class ProblemDetailError(Exception):
    def __init__(
        self,
        type_uri: str,
        title: str,
        status: int,
        detail: str,
        violations: list[dict] | None = None,
    ):
        self.type_uri = type_uri
        self.title = title
        self.status = status
        self.detail = detail
        self.violations = violations
        super().__init__(detail)


class ValidationError(ProblemDetailError):
    """Malformed or missing input. Never reaches upstream or the store."""

    def __init__(self, violations: list[dict]):
        super().__init__(
            type_uri="https://api.health-gateway.dev/problems/validation-error",
            title="Validation Error",
            status=422,
            detail=f"Request contains {len(violations)} validation error(s)",
            violations=violations,
        )


class UpstreamError(ProblemDetailError):
    """Non-success response or transport failure from the ROOK API."""

    def __init__(self, detail: str, status: int | None = None, body: object = None):
        self.upstream_status = status
        self.body = body
        if status is None:
            # transport failure, no response at all
            problem_status = 500
        elif status < 400:
            # 3xx cannot be relayed without its Location
            problem_status = 502
        else:
            problem_status = status
        super().__init__(
            type_uri="https://api.health-gateway.dev/problems/upstream-error",
            title="Upstream Error",
            status=problem_status,
            detail=detail,
        )


class StoreError(ProblemDetailError):
    """A durable-store operation failed. Fatal to the current call."""

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        super().__init__(
            type_uri="https://api.health-gateway.dev/problems/store-error",
            title="Store Error",
            status=500,
            detail=f"{operation} failed: {detail}",
        )


def violations_from_errors(errors) -> list[dict]:
    """Flatten pydantic error dicts into the problem-details violations shape."""
    violations = []
    for err in errors:
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc if part != "body")
        violations.append(
            {
                "field": field or "(root)",
                "message": err.get("msg", "Validation error"),
                "constraint": err.get("type", "validation"),
            }
        )
    return violations
