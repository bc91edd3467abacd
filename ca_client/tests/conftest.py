"""Test fixtures for ca_client tests."""

import io
import logging
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey

from ca_client.lib.cert_utils import (
    generate_private_key,
    generate_serial_number,
    serialize_certificate,
    serialize_crl,
    serialize_private_key,
)
from ca_client.lib.certificate_builder import CertificateBuilder
from ca_client.lib.config import Settings, x509_name
from ca_client.lib.logging_config import setup_logger

TEST_KEY_SIZE = 2048  # Faster for tests


@pytest.fixture
def not_after() -> datetime:
    """End of validity for test CA certificates."""
    return datetime.now(UTC) + timedelta(days=30)


@pytest.fixture
def root_key() -> RSAPrivateKey:
    """Generate RSA private key for Root CA."""
    return generate_private_key(key_size=TEST_KEY_SIZE)


@pytest.fixture
def root_cert(root_key: RSAPrivateKey, not_after: datetime) -> x509.Certificate:
    """Generate self-signed Root CA certificate."""
    return CertificateBuilder.build_root_ca(
        private_key=root_key,
        common_name="Test Root CA",
        not_after=not_after,
        digest=hashes.SHA256(),
    )


@pytest.fixture
def intermediate_key() -> RSAPrivateKey:
    """Generate RSA private key for Intermediate CA."""
    return generate_private_key(key_size=TEST_KEY_SIZE)


@pytest.fixture
def intermediate_csr(intermediate_key: RSAPrivateKey) -> x509.CertificateSigningRequest:
    """Generate Intermediate CA CSR."""
    return CertificateBuilder.build_csr(
        common_name="Test Intermediate CA",
        private_key=intermediate_key,
        digest=hashes.SHA256(),
    )


@pytest.fixture
def intermediate_cert(
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
    intermediate_csr: x509.CertificateSigningRequest,
    not_after: datetime,
) -> x509.Certificate:
    """Generate Intermediate CA certificate signed by Root CA."""
    return CertificateBuilder.build_intermediate_ca(
        root_key=root_key,
        root_cert=root_cert,
        csr=intermediate_csr,
        not_after=not_after,
        digest=hashes.SHA256(),
    )


@pytest.fixture
def agent_key() -> RSAPrivateKey:
    """Generate RSA private key for an agent certificate."""
    return generate_private_key(key_size=TEST_KEY_SIZE)


@pytest.fixture
def agent_cert(
    agent_key: RSAPrivateKey,
    intermediate_key: RSAPrivateKey,
    intermediate_cert: x509.Certificate,
    not_after: datetime,
) -> x509.Certificate:
    """Generate an end-entity certificate signed by the Intermediate CA."""
    return (
        x509.CertificateBuilder()
        .subject_name(x509_name("agent.example.com"))
        .issuer_name(intermediate_cert.subject)
        .public_key(agent_key.public_key())
        .serial_number(generate_serial_number())
        .not_valid_before(datetime.now(UTC) - timedelta(days=1))
        .not_valid_after(not_after)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .sign(intermediate_key, hashes.SHA256())
    )


@pytest.fixture
def bundle_file(
    tmp_path: Path,
    intermediate_cert: x509.Certificate,
    root_cert: x509.Certificate,
) -> Path:
    """Write an Intermediate + Root CA bundle."""
    path = tmp_path / "ca_bundle.pem"
    path.write_bytes(serialize_certificate(intermediate_cert) + serialize_certificate(root_cert))
    return path


@pytest.fixture
def crl_file(
    tmp_path: Path,
    root_key: RSAPrivateKey,
    root_cert: x509.Certificate,
    intermediate_key: RSAPrivateKey,
    intermediate_cert: x509.Certificate,
    agent_cert: x509.Certificate,
    not_after: datetime,
) -> Path:
    """Write a CRL bundle where the intermediate CRL revokes ``agent_cert``."""
    intermediate_crl = CertificateBuilder.build_crl(
        issuer_key=intermediate_key,
        issuer_cert=intermediate_cert,
        next_update=not_after,
        digest=hashes.SHA256(),
        revoked_serials=[agent_cert.serial_number],
    )
    root_crl = CertificateBuilder.build_crl(
        issuer_key=root_key,
        issuer_cert=root_cert,
        next_update=not_after,
        digest=hashes.SHA256(),
    )
    path = tmp_path / "crl.pem"
    path.write_bytes(serialize_crl(intermediate_crl) + serialize_crl(root_crl))
    return path


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings with every path under a temporary ssldir."""
    ssldir = tmp_path / "ssl"
    return Settings(
        confdir=tmp_path,
        ssldir=ssldir,
        cadir=ssldir / "ca",
        certdir=ssldir / "certs",
        privatekeydir=ssldir / "private_keys",
        publickeydir=ssldir / "public_keys",
        certname="ca.example.com",
        localcacert=ssldir / "certs" / "ca.pem",
        hostcrl=ssldir / "crl.pem",
        hostcert=ssldir / "certs" / "ca.example.com.pem",
        hostprivkey=ssldir / "private_keys" / "ca.example.com.pem",
        cacert=ssldir / "ca" / "ca_crt.pem",
        cakey=ssldir / "ca" / "ca_key.pem",
        rootkey=ssldir / "ca" / "root_key.pem",
        cacrl=ssldir / "ca" / "ca_crl.pem",
        ca_server="ca.example.com",
        ca_name="Puppet CA: ca.example.com",
        root_ca_name="Puppet Root CA: test",
        ca_ttl=30 * 86400,
        keylength=TEST_KEY_SIZE,
    )


@pytest.fixture
def host_identity_files(
    settings: Settings,
    agent_key: RSAPrivateKey,
    agent_cert: x509.Certificate,
    bundle_file: Path,
    crl_file: Path,
) -> Settings:
    """Write host cert, key, CA bundle, and CRL to the settings' paths."""
    settings.hostcert.parent.mkdir(parents=True, exist_ok=True)
    settings.hostprivkey.parent.mkdir(parents=True, exist_ok=True)
    settings.hostcert.write_bytes(serialize_certificate(agent_cert))
    settings.hostprivkey.write_bytes(serialize_private_key(agent_key))
    settings.localcacert.write_bytes(bundle_file.read_bytes())
    settings.hostcrl.write_bytes(crl_file.read_bytes())
    return settings


@pytest.fixture
def log_streams() -> tuple[io.StringIO, io.StringIO]:
    """Return (out, err) streams captured by the test logger."""
    return io.StringIO(), io.StringIO()


@pytest.fixture
def logger(log_streams: tuple[io.StringIO, io.StringIO]) -> Generator[logging.Logger]:
    """Logger writing info to the out stream and errors to the err stream."""
    out, err = log_streams
    test_logger = setup_logger(out, err, name="ca_client.tests")
    yield test_logger
    for handler in list(test_logger.handlers):
        test_logger.removeHandler(handler)
