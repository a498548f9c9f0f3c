"""Exception types raised by the codes-validation harness."""
from __future__ import annotations


class InvalidArgumentError(ValueError):
    """A caller broke a documented precondition (never silently corrected)."""


class ConfigurationError(ValueError):
    """Required configuration is missing or holds an unsupported value."""


class ProvisioningError(Exception):
    """
    Building the code pool failed.

    Raised for every failure of the booking workflow, the database source
    or the pool file. The load run must not start once this is raised.
    """

    BODY_PREVIEW_CHARS = 500

    def __init__(
        self,
        message: str,
        *,
        step: str,
        order_index: int | None = None,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.step = step
        self.order_index = order_index
        self.status_code = status_code
        self.body = body[: self.BODY_PREVIEW_CHARS] if body else body
        super().__init__(message)

    def __str__(self) -> str:
        parts = [f"[{self.step}]"]
        if self.order_index is not None:
            parts.append(f"order={self.order_index}")
        if self.status_code is not None:
            parts.append(f"status={self.status_code}")
        parts.append(super().__str__())
        if self.body:
            parts.append(f"body={self.body!r}")
        return " ".join(parts)
