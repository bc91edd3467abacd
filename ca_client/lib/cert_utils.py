"""Certificate utility functions for key generation, PEM encoding, and CSR checks."""

import uuid
from pathlib import Path

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from .errors import ConfigurationError, CryptoError

CERTIFICATE_LABEL = "CERTIFICATE"
CRL_LABEL = "X509 CRL"


def generate_private_key(key_size: int = 4096) -> RSAPrivateKey:
    """Generate RSA private key with specified size.

    Raises:
        CryptoError: If the key size is rejected by the backend
    """
    try:
        return rsa.generate_private_key(
            public_exponent=65537,
            key_size=key_size,
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise CryptoError(f"cannot generate {key_size}-bit RSA key: {e}") from e


def serialize_private_key(key: RSAPrivateKey) -> bytes:
    """Serialize private key to PEM format (PKCS8, no encryption)."""
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


def serialize_public_key(key: RSAPrivateKey) -> bytes:
    """Serialize the public half of a private key to PEM (SubjectPublicKeyInfo)."""
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def serialize_certificate(cert: x509.Certificate) -> bytes:
    """Serialize certificate to PEM format."""
    return cert.public_bytes(serialization.Encoding.PEM)


def serialize_crl(crl: x509.CertificateRevocationList) -> bytes:
    """Serialize CRL to PEM format."""
    return crl.public_bytes(serialization.Encoding.PEM)


def serialize_csr(csr: x509.CertificateSigningRequest) -> bytes:
    """Serialize CSR to PEM format."""
    return csr.public_bytes(serialization.Encoding.PEM)


def read_pem_file(path: Path) -> bytes:
    """Read a PEM file, mapping I/O failures to ConfigurationError."""
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise ConfigurationError(f"could not read {path}: {e}") from e


def extract_pem_blocks(pem_data: bytes, label: str) -> list[bytes]:
    """Return every ``-----BEGIN <label>-----`` ... ``-----END <label>-----`` block.

    A line-oriented delimiter scan: text outside blocks is ignored, and an
    opening marker without its closing marker is dropped.
    """
    begin = f"-----BEGIN {label}-----".encode()
    end = f"-----END {label}-----".encode()

    blocks: list[bytes] = []
    current: list[bytes] | None = None
    for line in pem_data.splitlines():
        stripped = line.strip()
        if current is None:
            if stripped == begin:
                current = [stripped]
        else:
            current.append(stripped)
            if stripped == end:
                blocks.append(b"\n".join(current) + b"\n")
                current = None
    return blocks


def create_truststore_bundle(intermediate_cert_pem: bytes, root_cert_pem: bytes) -> bytes:
    """Create CA bundle by concatenating Intermediate + Root certs in PEM format."""
    return intermediate_cert_pem + root_cert_pem


def generate_serial_number() -> int:
    """Generate certificate serial number from UUID4.

    UUID v4 values always carry version bits, so the serial is never zero,
    and ~122 bits of randomness keep collisions out of reach.
    """
    return uuid.uuid4().int


def get_certificate_serial_hex(cert: x509.Certificate) -> str:
    """Return certificate serial number as hex with colons (e.g., 3A:F2:B1:...)."""
    serial_hex = f"{cert.serial_number:X}"
    if len(serial_hex) % 2 != 0:
        serial_hex = "0" + serial_hex
    return ":".join(serial_hex[i : i + 2] for i in range(0, len(serial_hex), 2))


def extract_csr_public_key(
    csr: x509.CertificateSigningRequest,
) -> rsa.RSAPublicKey:
    """Extract public key from CSR.

    Raises:
        CryptoError: If public key is not RSA type
    """
    public_key = csr.public_key()
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise CryptoError("CSR public key must be RSA type")
    return public_key


def validate_csr_signature(csr: x509.CertificateSigningRequest) -> bool:
    """Verify CSR self-signature to prove private key possession."""
    try:
        return csr.is_signature_valid
    except (ValueError, UnsupportedAlgorithm):
        return False
