"""Exception hierarchy for CA client operations."""


class CAClientError(Exception):
    """Base class for all errors raised by the CA client."""


class ConfigurationError(CAClientError):
    """Trust material or settings are missing, unreadable, or malformed."""


class CryptoError(CAClientError):
    """Key generation, signing, or CSR verification failed."""


class TransportError(CAClientError):
    """TLS handshake, connectivity, or timeout failure talking to the CA."""


class ValidationError(CAClientError):
    """Invalid certname input, detected before any network call."""
