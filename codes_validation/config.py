"""
Harness configuration.

Everything is read from environment variables (the shell wrapper loads the
``.env.<environment>`` file before starting Locust). ``load_settings`` turns
them into an immutable ``Settings`` value and fails fast on anything
missing or unsupported.
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from codes_validation import __version__
from codes_validation.exceptions import ConfigurationError

PARTNER_ID = 198
MAIN_PLAN_ID = 105544
JSON_MIME_TYPE = "application/json"
AGENT_HEADER = f"codes-validation-load-testing/{__version__} (Locust)"
LOAD_TEST_HEADER = "X-Load-Test"
API_KEY_HEADER = "X-Api-Key"

DEFAULT_DATABASE_URL = "postgresql+asyncpg://fever_user@localhost:5432/fever"
DEFAULT_CODES_FILE = "results/codes.json"
DEFAULT_MAX_RESPONSE_TIME_MS = 1000
DEFAULT_HTTP_TIMEOUT = 10.0


class EnvironmentName(str, Enum):
    LOCAL = "local"
    STAGING = "staging"


class ServiceName(str, Enum):
    ACCESS_CONTROL = "access-control"
    FEVER2 = "fever2"


class CodeSource(str, Enum):
    DATABASE = "database"
    BOOKING = "booking"
    FILE = "file"


class AuthScheme(str, Enum):
    TOKEN = "token"
    API_KEY = "api-key"


BASE_URLS: dict[tuple[EnvironmentName, ServiceName], str] = {
    (EnvironmentName.LOCAL, ServiceName.ACCESS_CONTROL): "http://localhost:8020",
    (EnvironmentName.LOCAL, ServiceName.FEVER2): "http://localhost:8002",
    (EnvironmentName.STAGING, ServiceName.ACCESS_CONTROL): "https://access-control.staging.feverup.com",
    (EnvironmentName.STAGING, ServiceName.FEVER2): "https://fever2.staging.feverup.com",
}

ENDPOINTS: dict[ServiceName, str] = {
    ServiceName.ACCESS_CONTROL: "/api/1.1/partners/{partner_id}/codes/validate",
    ServiceName.FEVER2: "/b2b/2.0/partners/{partner_id}/codes/validate/",
}

DEFAULT_VUS: dict[EnvironmentName, int] = {
    EnvironmentName.LOCAL: 10,
    EnvironmentName.STAGING: 20,
}

DEFAULT_CODE_SOURCES: dict[EnvironmentName, CodeSource] = {
    EnvironmentName.LOCAL: CodeSource.DATABASE,
    EnvironmentName.STAGING: CodeSource.BOOKING,
}


@dataclass(frozen=True)
class Settings:
    """Resolved configuration for one load run."""

    environment: EnvironmentName
    service: ServiceName
    token: str
    vus: int
    code_source: CodeSource
    auth_scheme: AuthScheme = AuthScheme.TOKEN
    database_url: str = DEFAULT_DATABASE_URL
    codes_limit: int | None = None
    codes_file: Path = Path(DEFAULT_CODES_FILE)
    booking_url: str = ""
    session_id: int | None = None
    orders: int = 1
    tickets_per_order: int = 10
    provision_concurrency: int = 1
    max_response_time_ms: int = DEFAULT_MAX_RESPONSE_TIME_MS
    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    partner_id: int = PARTNER_ID
    main_plan_id: int = MAIN_PLAN_ID

    @property
    def base_url(self) -> str:
        return BASE_URLS[(self.environment, self.service)]

    @property
    def endpoint(self) -> str:
        return ENDPOINTS[self.service].format(partner_id=self.partner_id)

    @property
    def masked_token(self) -> str:
        return f"{self.token[:4]}... (truncated)"

    def headers(self) -> dict[str, str]:
        """Headers sent with every request to the target and booking APIs."""
        headers = {
            "Accept": JSON_MIME_TYPE,
            "Content-Type": JSON_MIME_TYPE,
            LOAD_TEST_HEADER: "true",
            "User-Agent": AGENT_HEADER,
        }
        if self.auth_scheme is AuthScheme.API_KEY:
            headers[API_KEY_HEADER] = self.token
        else:
            headers["Authorization"] = f"Token {self.token}"
        return headers

    def summary(self) -> dict[str, object]:
        """Loggable view of the settings; the token is truncated."""
        return {
            "environment": self.environment.value,
            "service": self.service.value,
            "base_url": self.base_url,
            "endpoint": self.endpoint,
            "vus": self.vus,
            "code_source": self.code_source.value,
            "auth_scheme": self.auth_scheme.value,
            "token": self.masked_token,
        }


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"Environment variable '{name}' not found.")
    return value


def _parse_enum(enum_cls: type[Enum], name: str, raw: str) -> Enum:
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(f"Unknown {name}: {raw!r} (expected one of: {allowed})") from None


def _parse_int(environ: Mapping[str, str], name: str, default: int | None, minimum: int = 1) -> int | None:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _parse_float(environ: Mapping[str, str], name: str, default: float) -> float:
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")
    return value


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build ``Settings`` from ``environ`` (defaults to ``os.environ``)."""
    if environ is None:
        environ = os.environ

    environment = _parse_enum(EnvironmentName, "environment", _require(environ, "LT_AC_ENVIRONMENT"))
    service = _parse_enum(ServiceName, "service", _require(environ, "LT_AC_SERVICE"))
    token = _require(environ, "USER_TOKEN")

    raw_source = environ.get("LT_AC_CODE_SOURCE", "").strip()
    code_source = (
        _parse_enum(CodeSource, "code source", raw_source)
        if raw_source
        else DEFAULT_CODE_SOURCES[environment]
    )

    raw_auth = environ.get("LT_AC_AUTH_SCHEME", "").strip()
    auth_scheme = _parse_enum(AuthScheme, "auth scheme", raw_auth) if raw_auth else AuthScheme.TOKEN

    session_id = _parse_int(environ, "LT_AC_SESSION_ID", None)
    if code_source is CodeSource.BOOKING and session_id is None:
        raise ConfigurationError("LT_AC_SESSION_ID is required when codes come from the booking API.")

    booking_url = environ.get("LT_AC_BOOKING_URL", "").strip() or BASE_URLS[(environment, ServiceName.FEVER2)]

    return Settings(
        environment=environment,
        service=service,
        token=token,
        vus=_parse_int(environ, "LT_AC_VUS", DEFAULT_VUS[environment]),
        code_source=code_source,
        auth_scheme=auth_scheme,
        database_url=environ.get("LT_AC_DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL,
        codes_limit=_parse_int(environ, "LT_AC_CODES_LIMIT", None),
        codes_file=Path(environ.get("LT_AC_CODES_FILE", "").strip() or DEFAULT_CODES_FILE),
        booking_url=booking_url.rstrip("/"),
        session_id=session_id,
        orders=_parse_int(environ, "LT_AC_ORDERS", 1),
        tickets_per_order=_parse_int(environ, "LT_AC_TICKETS_PER_ORDER", 10),
        provision_concurrency=_parse_int(environ, "LT_AC_PROVISION_CONCURRENCY", 1),
        max_response_time_ms=_parse_int(environ, "LT_AC_MAX_RESPONSE_TIME_MS", DEFAULT_MAX_RESPONSE_TIME_MS),
        http_timeout=_parse_float(environ, "LT_AC_HTTP_TIMEOUT", DEFAULT_HTTP_TIMEOUT),
    )
