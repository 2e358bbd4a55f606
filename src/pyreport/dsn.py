"""
Parsing of DSN strings into the credentials and endpoint they describe.

    {scheme}://{public_key}[:{secret_key}]@{host}[:{port}]{path_prefix}/{project_id}
"""
import time
import urllib.parse

from pydantic import BaseModel, ConfigDict

from .consts import PROTOCOL_VERSION, SDK_NAME, VERSION
from .errors import InvalidDSN

_SCHEMES = ("http", "https")


class DSN(BaseModel):
    model_config = ConfigDict(frozen=True)

    scheme: str
    public_key: str
    secret_key: str | None = None
    host: str
    port: int | None = None
    path_prefix: str = ""
    project_id: str

    @classmethod
    def parse(cls, dsn_string: str) -> "DSN":
        try:
            parsed = urllib.parse.urlsplit(dsn_string.strip())
            port = parsed.port
        except ValueError as e:
            raise InvalidDSN(f"Malformed DSN: {e}") from e

        if parsed.scheme not in _SCHEMES:
            raise InvalidDSN(f"Unsupported DSN scheme: '{parsed.scheme}'")
        if not parsed.username:
            raise InvalidDSN("DSN is missing the public key")
        if not parsed.hostname:
            raise InvalidDSN("DSN is missing the host")

        path, _, project_id = parsed.path.rstrip("/").rpartition("/")
        if not project_id.isdigit():
            raise InvalidDSN(f"DSN project id must be numeric, got '{project_id}'")

        return cls(
            scheme=parsed.scheme,
            public_key=urllib.parse.unquote(parsed.username),
            secret_key=urllib.parse.unquote(parsed.password) if parsed.password else None,
            host=parsed.hostname,
            port=port,
            path_prefix=path,
            project_id=project_id,
        )

    @property
    def netloc(self) -> str:
        return f"{self.host}:{self.port}" if self.port else self.host

    @property
    def store_url(self) -> str:
        return f"{self.scheme}://{self.netloc}{self.path_prefix}/api/{self.project_id}/store/"

    def auth_header(self, timestamp: float | None = None) -> str:
        timestamp = time.time() if timestamp is None else timestamp
        parts = [
            f"sentry_version={PROTOCOL_VERSION}",
            f"sentry_client={SDK_NAME}/{VERSION}",
            f"sentry_timestamp={int(timestamp)}",
            f"sentry_key={self.public_key}",
        ]
        if self.secret_key:
            parts.append(f"sentry_secret={self.secret_key}")
        return "Sentry " + ", ".join(parts)
