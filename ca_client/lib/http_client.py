"""Mutual-TLS HTTPS client for talking to the remote CA service."""

import dataclasses
import http.client
import ssl
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from urllib.parse import quote

from .config import Settings
from .errors import ConfigurationError, TransportError
from .truststore import TrustStore, build_truststore

DEFAULT_HEADERS: Mapping[str, str] = MappingProxyType(
    {
        "User-Agent": "PuppetserverCaCli",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }
)


@dataclass(frozen=True)
class URL:
    """Address of one CA resource: ``protocol://host:port/endpoint/version/type/name``."""

    protocol: str
    host: str
    port: int
    endpoint: str
    version: str
    resource_type: str
    resource_name: str

    @property
    def path(self) -> str:
        """Request target with each segment percent-encoded."""
        segments = (self.endpoint, self.version, self.resource_type, self.resource_name)
        return "/" + "/".join(quote(segment, safe="") for segment in segments)

    @property
    def full_url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}{self.path}"

    def with_resource(self, resource_type: str, resource_name: str) -> "URL":
        """Same endpoint, different resource."""
        return dataclasses.replace(
            self, resource_type=resource_type, resource_name=resource_name
        )


@dataclass(frozen=True)
class Result:
    """Status and body of one HTTP exchange. Non-2xx statuses are not errors."""

    status_code: int
    body: bytes

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


class Connection:
    """One open HTTPS session bound to a base URL, with verb helpers.

    Override URLs passed to the verbs only change the request path; the
    session stays on the host it was opened against.
    """

    def __init__(
        self,
        http_connection: http.client.HTTPSConnection,
        url: URL,
        headers: Mapping[str, str] = DEFAULT_HEADERS,
    ) -> None:
        self._conn = http_connection
        self.url = url
        self.headers = headers

    def get(self, url: URL | None = None, headers: Mapping[str, str] | None = None) -> Result:
        return self._request("GET", url, None, headers)

    def put(
        self,
        body: bytes | str,
        url: URL | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> Result:
        if isinstance(body, str):
            body = body.encode("utf-8")
        return self._request("PUT", url, body, headers)

    def delete(self, url: URL | None = None, headers: Mapping[str, str] | None = None) -> Result:
        return self._request("DELETE", url, None, headers)

    def _request(
        self,
        method: str,
        url: URL | None,
        body: bytes | None,
        headers: Mapping[str, str] | None,
    ) -> Result:
        target = url or self.url
        merged = {**self.headers, **(headers or {})}
        try:
            self._conn.request(method, target.path, body=body, headers=merged)
            response = self._conn.getresponse()
            data = response.read()
        except (OSError, http.client.HTTPException) as e:
            raise TransportError(f"{method} {target.full_url} failed: {e}") from e
        return Result(status_code=response.status, body=data)


class HttpClient:
    """Opens mutual-TLS connections using the host's key pair and trust store."""

    def __init__(
        self,
        settings: Settings,
        truststore: TrustStore | None = None,
        headers: Mapping[str, str] = DEFAULT_HEADERS,
    ) -> None:
        """Load the local identity and trust material.

        Args:
            settings: Resolved settings (hostcert, hostprivkey, localcacert,
                certificate_revocation, hostcrl, http_timeout)
            truststore: Prebuilt store; built from settings when omitted
            headers: Default request headers

        Raises:
            ConfigurationError: If the key, certificate, or trust material is unusable
        """
        self.store = truststore or build_truststore(
            settings.localcacert, settings.certificate_revocation, settings.hostcrl
        )
        self.cert_path = settings.hostcert
        self.key_path = settings.hostprivkey
        self.timeout = settings.http_timeout
        self.headers = headers
        self.context = self.ssl_context()

    def ssl_context(self) -> ssl.SSLContext:
        """SSL context presenting the host certificate and verifying via the store.

        The host key may be any type OpenSSL accepts.
        """
        context = self.store.ssl_context()
        try:
            context.load_cert_chain(certfile=str(self.cert_path), keyfile=str(self.key_path))
        except (ssl.SSLError, OSError) as e:
            raise ConfigurationError(
                f"could not load client certificate {self.cert_path}: {e}"
            ) from e
        return context

    @contextmanager
    def connection(self, url: URL) -> Iterator[Connection]:
        """Open a connection to ``url``'s host, closing it on every exit path.

        Raises:
            TransportError: On refusal, handshake or verification failure, or timeout
        """
        conn = http.client.HTTPSConnection(
            url.host, url.port, context=self.context, timeout=self.timeout
        )
        try:
            try:
                conn.connect()
            except (OSError, http.client.HTTPException) as e:
                raise TransportError(
                    f"could not connect to {url.host}:{url.port}: {e}"
                ) from e
            yield Connection(conn, url, self.headers)
        finally:
            conn.close()
