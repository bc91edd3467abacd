"""Certificate provisioning against a remote CA over mutual TLS."""

import json
import logging
from collections.abc import Sequence
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .alt_names import munge_alt_names, parse_alt_names
from .cert_utils import (
    generate_private_key,
    serialize_csr,
    serialize_private_key,
    serialize_public_key,
)
from .certificate_builder import CertificateBuilder
from .config import Settings
from .errors import ConfigurationError, ValidationError
from .http_client import URL, Connection, HttpClient, Result
from .logging_config import LOGGER
from .models import IdentityResult, Outcome, ProvisionResult

CA_ENDPOINT = "puppet-ca"
CA_API_VERSION = "v1"

CERTIFICATE_REQUEST = "certificate_request"
CERTIFICATE_STATUS = "certificate_status"
CERTIFICATE = "certificate"


def validate_certnames(certnames: Sequence[str]) -> None:
    """Reject certname input before any key generation or network use.

    Raises:
        ValidationError: On an empty list, a flag-like name, or a name with
            upper case characters
    """
    if not certnames:
        raise ValidationError(
            "Error: at least one certname is required to create a certificate"
        )

    for certname in certnames:
        if certname.startswith("-"):
            raise ValidationError(
                f"Error: Cannot manage cert named `{certname}` from "
                "the CLI, if needed use the HTTP API directly"
            )
        if certname != certname.lower():
            raise ValidationError(
                f"Certificate names must be lower case, got '{certname}'"
            )


def ca_url(
    settings: Settings, resource_type: str = CERTIFICATE_REQUEST, resource_name: str = ""
) -> URL:
    """URL of a resource on the configured CA server."""
    return URL(
        protocol="https",
        host=settings.ca_server,
        port=settings.ca_port,
        endpoint=CA_ENDPOINT,
        version=CA_API_VERSION,
        resource_type=resource_type,
        resource_name=resource_name,
    )


class CertificateProvisioner:
    """Creates keys and CSRs for certnames and fetches their signed certificates."""

    def __init__(
        self,
        settings: Settings,
        http_client: HttpClient | None = None,
        logger: logging.Logger = LOGGER,
    ) -> None:
        """Initialize provisioner.

        Args:
            settings: Resolved settings (CA server, key length, digest, output dirs)
            http_client: Client used to reach the CA; built from settings when omitted
            logger: Logger receiving one message per certname
        """
        self.settings = settings
        self._http_client = http_client
        self.logger = logger

    @property
    def http_client(self) -> HttpClient:
        if self._http_client is None:
            self._http_client = HttpClient(self.settings)
        return self._http_client

    def generate_key_csr(
        self, certname: str, subject_alt_names: str = ""
    ) -> tuple[RSAPrivateKey, x509.CertificateSigningRequest]:
        """Generate a key pair and a CSR for ``certname``.

        The CSR carries a SAN request only when ``subject_alt_names`` is non-empty.
        """
        key = generate_private_key(self.settings.keylength)
        csr = CertificateBuilder.build_csr(
            common_name=certname,
            private_key=key,
            digest=self.settings.signing_digest,
            subject_alt_names=munge_alt_names(subject_alt_names),
        )
        return key, csr

    def provision(
        self, certnames: Sequence[str], subject_alt_names: str = ""
    ) -> ProvisionResult:
        """Run submit, sign, and download for each certname over one connection.

        Args:
            certnames: Lower case certificate names
            subject_alt_names: SAN string applied to every CSR

        Returns:
            ProvisionResult with one IdentityResult per certname

        Raises:
            ValidationError: If certnames or alt names are invalid (before any
                network use)
            ConfigurationError: If trust material or local identity is unusable
            CryptoError: If key or CSR generation fails
            TransportError: If the CA cannot be reached
        """
        validate_certnames(certnames)
        parse_alt_names(subject_alt_names)

        result = ProvisionResult()
        with self.http_client.connection(ca_url(self.settings)) as connection:
            for certname in certnames:
                identity = self._provision_one(connection, certname, subject_alt_names)
                self._report(identity)
                result.results.append(identity)
        return result

    def run(self, certnames: Sequence[str], subject_alt_names: str = "") -> int:
        """Provision certnames and return the aggregate exit code."""
        return self.provision(certnames, subject_alt_names).exit_code

    def _provision_one(
        self, connection: Connection, certname: str, subject_alt_names: str
    ) -> IdentityResult:
        key, csr = self.generate_key_csr(certname, subject_alt_names)

        submitted = connection.put(
            serialize_csr(csr),
            ca_url(self.settings, CERTIFICATE_REQUEST, certname),
            {"Content-Type": "text/plain"},
        )
        if submitted.status_code != 204:
            return self._error(certname, "submit certificate request", submitted)

        signed = connection.put(
            json.dumps({"desired_state": "signed"}),
            ca_url(self.settings, CERTIFICATE_STATUS, certname),
        )
        if signed.status_code != 204:
            return self._error(certname, "sign certificate", signed)

        downloaded = connection.get(
            ca_url(self.settings, CERTIFICATE, certname),
            {"Accept": "text/plain"},
        )
        if downloaded.status_code == 200:
            cert_path = self._save(certname, key, downloaded.body)
            return IdentityResult(
                certname=certname,
                outcome=Outcome.SAVED,
                message=f"Successfully saved certificate for {certname} to {cert_path}",
                cert_path=cert_path,
            )
        if downloaded.status_code == 404:
            return IdentityResult(
                certname=certname,
                outcome=Outcome.NOT_FOUND,
                message=f"Error: Signed certificate for {certname} could not be found on the CA",
            )
        return self._error(certname, "download certificate", downloaded)

    def _error(self, certname: str, action: str, response: Result) -> IdentityResult:
        return IdentityResult(
            certname=certname,
            outcome=Outcome.ERROR,
            message=(
                f"Error attempting to {action} for {certname}"
                f": code: {response.status_code}, body: {response.text}"
            ),
        )

    def _save(self, certname: str, key: RSAPrivateKey, cert_pem: bytes) -> Path:
        filename = f"{certname}.pem"
        outputs = (
            (self.settings.privatekeydir / filename, serialize_private_key(key)),
            (self.settings.publickeydir / filename, serialize_public_key(key)),
            (self.settings.certdir / filename, cert_pem),
        )
        try:
            for path, content in outputs:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(content)
        except OSError as e:
            raise ConfigurationError(f"could not save files for {certname}: {e}") from e
        return self.settings.certdir / filename

    def _report(self, identity: IdentityResult) -> None:
        if identity.outcome is Outcome.SAVED:
            self.logger.info(identity.message)
        else:
            self.logger.error(identity.message)
