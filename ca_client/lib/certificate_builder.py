"""Certificate builder for X.509 CA hierarchy, CSR, and CRL construction."""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .alt_names import subject_alt_name_extension
from .cert_utils import extract_csr_public_key, generate_serial_number, validate_csr_signature
from .config import x509_name
from .errors import CryptoError

# Certificates are backdated to tolerate clock skew between CA and agents
BACKDATE = timedelta(days=1)

CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=False,
    content_commitment=False,
    key_encipherment=False,
    data_encipherment=False,
    key_agreement=False,
    key_cert_sign=True,
    crl_sign=True,
    encipher_only=False,
    decipher_only=False,
)


class CertificateBuilder:
    """Builds the root and intermediate CA certificates, CSRs, and CRLs."""

    @staticmethod
    def build_root_ca(
        private_key: RSAPrivateKey,
        common_name: str,
        not_after: datetime,
        digest: hashes.HashAlgorithm,
    ) -> x509.Certificate:
        """Build self-signed Root CA certificate.

        Args:
            private_key: RSA private key for signing
            common_name: CN for subject and issuer
            not_after: End of the validity window
            digest: Signature hash algorithm

        Returns:
            Self-signed X.509 certificate with CA extensions
        """
        subject = x509_name(common_name)
        public_key = private_key.public_key()

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(datetime.now(timezone.utc) - BACKDATE)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=None),
                critical=True,
            )
            .add_extension(CA_KEY_USAGE, critical=True)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(public_key),
                critical=False,
            )
        )

        return builder.sign(private_key, digest)

    @staticmethod
    def build_intermediate_ca(
        root_key: RSAPrivateKey,
        root_cert: x509.Certificate,
        csr: x509.CertificateSigningRequest,
        not_after: datetime,
        digest: hashes.HashAlgorithm,
        subject_alt_names: str = "",
        path_length: int | None = 0,
    ) -> x509.Certificate:
        """Build Intermediate CA certificate from CSR, signed by Root CA.

        Args:
            root_key: Root CA private key for signing
            root_cert: Root CA certificate (issuer)
            csr: Certificate signing request from intermediate CA
            not_after: End of the validity window
            digest: Signature hash algorithm
            subject_alt_names: SAN string; no SAN extension when empty
            path_length: Basic constraints path length (default 0)

        Returns:
            X.509 CA certificate signed by Root CA

        Raises:
            CryptoError: If CSR signature is invalid
        """
        if not validate_csr_signature(csr):
            raise CryptoError("CSR signature validation failed")

        public_key = extract_csr_public_key(csr)

        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(root_cert.subject)
            .public_key(public_key)
            .serial_number(generate_serial_number())
            .not_valid_before(datetime.now(timezone.utc) - BACKDATE)
            .not_valid_after(not_after)
            .add_extension(
                x509.BasicConstraints(ca=True, path_length=path_length),
                critical=True,
            )
            .add_extension(CA_KEY_USAGE, critical=True)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(root_key.public_key()),
                critical=False,
            )
        )

        san = subject_alt_name_extension(subject_alt_names)
        if san is not None:
            builder = builder.add_extension(san, critical=False)

        return builder.sign(root_key, digest)

    @staticmethod
    def build_csr(
        common_name: str,
        private_key: RSAPrivateKey,
        digest: hashes.HashAlgorithm,
        subject_alt_names: str = "",
    ) -> x509.CertificateSigningRequest:
        """Build a CSR, requesting a SAN extension only when one is given."""
        builder = x509.CertificateSigningRequestBuilder().subject_name(x509_name(common_name))

        san = subject_alt_name_extension(subject_alt_names)
        if san is not None:
            builder = builder.add_extension(san, critical=False)

        return builder.sign(private_key, digest)

    @staticmethod
    def build_crl(
        issuer_key: RSAPrivateKey,
        issuer_cert: x509.Certificate,
        next_update: datetime,
        digest: hashes.HashAlgorithm,
        revoked_serials: Iterable[int] = (),
        crl_number: int = 0,
    ) -> x509.CertificateRevocationList:
        """Build a CRL issued by ``issuer_cert`` listing ``revoked_serials``."""
        now = datetime.now(timezone.utc)

        builder = (
            x509.CertificateRevocationListBuilder()
            .issuer_name(issuer_cert.subject)
            .last_update(now - BACKDATE)
            .next_update(next_update)
            .add_extension(x509.CRLNumber(crl_number), critical=False)
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
                critical=False,
            )
        )

        for serial in revoked_serials:
            revoked = (
                x509.RevokedCertificateBuilder()
                .serial_number(serial)
                .revocation_date(now)
                .build()
            )
            builder = builder.add_revoked_certificate(revoked)

        return builder.sign(issuer_key, digest)
