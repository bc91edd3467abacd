"""Trust store construction from a CA bundle and CRL bundle."""

import ssl
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509

from .cert_utils import (
    CERTIFICATE_LABEL,
    CRL_LABEL,
    extract_pem_blocks,
    read_pem_file,
    serialize_certificate,
)
from .config import RevocationMode
from .errors import ConfigurationError

_VERIFY_FLAGS = {
    RevocationMode.IGNORE: ssl.VERIFY_DEFAULT,
    RevocationMode.LEAF: ssl.VERIFY_CRL_CHECK_LEAF,
    RevocationMode.CHAIN: ssl.VERIFY_CRL_CHECK_CHAIN,
}


@dataclass(frozen=True)
class TrustStore:
    """Trusted CA certificates plus the CRLs used to check revocation."""

    certificates: tuple[x509.Certificate, ...]
    crls: tuple[x509.CertificateRevocationList, ...]
    revocation_mode: RevocationMode
    bundle_path: Path
    crl_path: Path | None = None

    @property
    def verify_flags(self) -> ssl.VerifyFlags:
        """OpenSSL verification flags for this store's revocation mode."""
        return _VERIFY_FLAGS[self.revocation_mode]

    def ssl_context(self) -> ssl.SSLContext:
        """Build a client SSL context that verifies peers against this store.

        Certificates come from the loaded snapshot. OpenSSL only accepts CRLs
        from files, so those are read again from ``crl_path``.

        Raises:
            ConfigurationError: If OpenSSL rejects the certificates or CRL file
        """
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        cadata = b"".join(serialize_certificate(cert) for cert in self.certificates)
        try:
            context.load_verify_locations(cadata=cadata.decode("ascii"))
            if self.crls and self.crl_path is not None:
                # cafile loading picks up X509 CRL blocks as well as certificates
                context.load_verify_locations(cafile=str(self.crl_path))
        except (ssl.SSLError, OSError) as e:
            raise ConfigurationError(f"could not load trust material: {e}") from e
        context.verify_flags |= self.verify_flags
        return context

    def is_revoked(self, cert: x509.Certificate) -> bool:
        """Whether a CRL signed by the certificate's issuer lists its serial.

        Only CRLs whose signature verifies against a CA certificate in this
        store count. Always False when revocation checking is disabled.
        Handshakes are checked by OpenSSL through ``ssl_context``; this is the
        same decision for a single certificate outside a connection.
        """
        if self.revocation_mode is RevocationMode.IGNORE:
            return False
        for crl in self.crls:
            if crl.issuer != cert.issuer or not self._is_trusted_crl(crl):
                continue
            if crl.get_revoked_certificate_by_serial_number(cert.serial_number) is not None:
                return True
        return False

    def _is_trusted_crl(self, crl: x509.CertificateRevocationList) -> bool:
        for ca_cert in self.certificates:
            if ca_cert.subject != crl.issuer:
                continue
            if crl.is_signature_valid(ca_cert.public_key()):
                return True
        return False


def load_certificates(bundle_path: Path) -> tuple[x509.Certificate, ...]:
    """Load every certificate in a PEM bundle.

    Raises:
        ConfigurationError: If the file is unreadable or holds no valid certificate
    """
    pem_data = read_pem_file(bundle_path)
    certificates = []
    for block in extract_pem_blocks(pem_data, CERTIFICATE_LABEL):
        try:
            certificates.append(x509.load_pem_x509_certificate(block))
        except ValueError as e:
            raise ConfigurationError(f"malformed certificate in {bundle_path}: {e}") from e

    if not certificates:
        raise ConfigurationError(f"no certificates found in {bundle_path}")
    return tuple(certificates)


def load_crls(crl_path: Path) -> tuple[x509.CertificateRevocationList, ...]:
    """Parse every X509 CRL block in a PEM bundle.

    Raises:
        ConfigurationError: If the file is unreadable or any block is malformed
    """
    pem_data = read_pem_file(crl_path)
    crls = []
    for index, block in enumerate(extract_pem_blocks(pem_data, CRL_LABEL)):
        try:
            crls.append(x509.load_pem_x509_crl(block))
        except ValueError as e:
            raise ConfigurationError(f"malformed CRL #{index + 1} in {crl_path}: {e}") from e
    return tuple(crls)


def build_truststore(
    bundle_path: Path,
    revocation_mode: RevocationMode | str = RevocationMode.LEAF,
    crl_path: Path | None = None,
) -> TrustStore:
    """Build an immutable trust store from PEM files.

    Args:
        bundle_path: PEM bundle of trusted CA certificates
        revocation_mode: ignore, leaf, or chain
        crl_path: PEM bundle of CRLs, required unless mode is ignore

    Returns:
        TrustStore with all certificates and CRLs loaded

    Raises:
        ConfigurationError: If any trust material is missing or malformed
    """
    mode = RevocationMode.from_setting(revocation_mode)
    certificates = load_certificates(Path(bundle_path))

    crls: tuple[x509.CertificateRevocationList, ...] = ()
    if mode is not RevocationMode.IGNORE:
        if crl_path is None:
            raise ConfigurationError(
                f"a CRL file is required when certificate_revocation is '{mode.value}'"
            )
        crls = load_crls(Path(crl_path))

    return TrustStore(
        certificates=certificates,
        crls=crls,
        revocation_mode=mode,
        bundle_path=Path(bundle_path),
        crl_path=Path(crl_path) if crl_path is not None else None,
    )
