"""CA manager for building and writing the local CA hierarchy."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .cert_utils import (
    create_truststore_bundle,
    generate_private_key,
    get_certificate_serial_hex,
    serialize_certificate,
    serialize_crl,
    serialize_private_key,
)
from .certificate_builder import CertificateBuilder
from .config import Settings
from .errors import ConfigurationError
from .logging_config import LOGGER
from .models import GenerateResult


@dataclass
class CAHierarchy:
    """In-memory root and intermediate CA material."""

    root_key: RSAPrivateKey
    root_cert: x509.Certificate
    root_crl: x509.CertificateRevocationList
    intermediate_key: RSAPrivateKey
    intermediate_cert: x509.Certificate
    intermediate_crl: x509.CertificateRevocationList


def format_inventory_entry(cert: x509.Certificate) -> str:
    """One inventory.txt line: serial, validity window, subject."""
    not_before = cert.not_valid_before_utc.strftime("%Y-%m-%dT%H:%M:%SUTC")
    not_after = cert.not_valid_after_utc.strftime("%Y-%m-%dT%H:%M:%SUTC")
    subject = "/" + "/".join(attr.rfc4514_string() for attr in cert.subject)
    return f"0x{cert.serial_number:04x} {not_before} {not_after} {subject}"


class CAManager:
    """Certificate Authority manager for the generate action."""

    def __init__(self, settings: Settings, logger: logging.Logger = LOGGER) -> None:
        """Initialize CA manager with resolved settings.

        Args:
            settings: Settings with cadir paths, key length, digest, and CA names
            logger: Logger for progress messages
        """
        self.settings = settings
        self.logger = logger

    def build_hierarchy(self, subject_alt_names: str = "") -> CAHierarchy:
        """Generate root and intermediate keys, certificates, and empty CRLs.

        Args:
            subject_alt_names: Normalized SAN string for the intermediate cert

        Returns:
            CAHierarchy holding every generated object
        """
        digest = self.settings.signing_digest
        not_after = datetime.now(timezone.utc) + timedelta(seconds=self.settings.ca_ttl)

        root_key = generate_private_key(self.settings.keylength)
        root_cert = CertificateBuilder.build_root_ca(
            private_key=root_key,
            common_name=self.settings.root_ca_name,
            not_after=not_after,
            digest=digest,
        )
        root_crl = CertificateBuilder.build_crl(
            issuer_key=root_key,
            issuer_cert=root_cert,
            next_update=not_after,
            digest=digest,
        )

        intermediate_key = generate_private_key(self.settings.keylength)
        csr = CertificateBuilder.build_csr(
            common_name=self.settings.ca_name,
            private_key=intermediate_key,
            digest=digest,
        )
        intermediate_cert = CertificateBuilder.build_intermediate_ca(
            root_key=root_key,
            root_cert=root_cert,
            csr=csr,
            not_after=not_after,
            digest=digest,
            subject_alt_names=subject_alt_names,
        )
        intermediate_crl = CertificateBuilder.build_crl(
            issuer_key=intermediate_key,
            issuer_cert=intermediate_cert,
            next_update=not_after,
            digest=digest,
        )

        return CAHierarchy(
            root_key=root_key,
            root_cert=root_cert,
            root_crl=root_crl,
            intermediate_key=intermediate_key,
            intermediate_cert=intermediate_cert,
            intermediate_crl=intermediate_crl,
        )

    def output_paths(self) -> dict[str, Path]:
        """Files written by ``generate``, keyed by role."""
        return {
            "rootkey": self.settings.rootkey,
            "cakey": self.settings.cakey,
            "cacert": self.settings.cacert,
            "cacrl": self.settings.cacrl,
            "inventory": self.settings.cadir / "inventory.txt",
        }

    def generate(self, subject_alt_names: str = "") -> GenerateResult:
        """Build the CA hierarchy and write its artifacts under cadir.

        Generates:
            - root_key.pem: Root CA private key
            - ca_key.pem: Intermediate CA private key
            - ca_crt.pem: Intermediate + Root certificate bundle
            - ca_crl.pem: Intermediate CRL followed by Root CRL
            - inventory.txt: Issued certificate inventory

        Args:
            subject_alt_names: Normalized SAN string for the intermediate cert

        Returns:
            GenerateResult with file paths and serial numbers

        Raises:
            ConfigurationError: If any output file already exists or cannot be written
        """
        paths = self.output_paths()
        existing = [str(path) for path in paths.values() if path.exists()]
        if existing:
            raise ConfigurationError(
                "Existing CA files found, refusing to overwrite: " + ", ".join(existing)
            )

        hierarchy = self.build_hierarchy(subject_alt_names)
        self.logger.info("Generated root CA %s", self.settings.root_ca_name)
        self.logger.info("Generated intermediate CA %s", self.settings.ca_name)

        contents = {
            "rootkey": serialize_private_key(hierarchy.root_key),
            "cakey": serialize_private_key(hierarchy.intermediate_key),
            "cacert": create_truststore_bundle(
                serialize_certificate(hierarchy.intermediate_cert),
                serialize_certificate(hierarchy.root_cert),
            ),
            "cacrl": serialize_crl(hierarchy.intermediate_crl)
            + serialize_crl(hierarchy.root_crl),
            "inventory": (format_inventory_entry(hierarchy.intermediate_cert) + "\n").encode(),
        }

        try:
            for role, path in paths.items():
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_bytes(contents[role])
        except OSError as e:
            raise ConfigurationError(f"could not write CA files: {e}") from e

        return GenerateResult(
            cadir=self.settings.cadir,
            root_key_path=paths["rootkey"],
            ca_key_path=paths["cakey"],
            ca_cert_path=paths["cacert"],
            ca_crl_path=paths["cacrl"],
            inventory_path=paths["inventory"],
            root_serial=get_certificate_serial_hex(hierarchy.root_cert),
            intermediate_serial=get_certificate_serial_hex(hierarchy.intermediate_cert),
        )
