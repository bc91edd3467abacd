"""CA client settings dataclasses and puppet.conf loading."""

import configparser
import secrets
import socket
import string
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509 import oid

from .errors import ConfigurationError

DEFAULT_CONFDIR = Path("/etc/puppetlabs/puppet")

# Sections read from puppet.conf, later ones override earlier ones
CONFIG_SECTIONS = ("main", "master", "server")

DIGESTS: dict[str, type[hashes.HashAlgorithm]] = {
    "sha224": hashes.SHA224,
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}

_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "y": 365 * 86400}


class RevocationMode(Enum):
    """How strictly CRLs are checked when verifying a peer."""

    IGNORE = "ignore"
    LEAF = "leaf"
    CHAIN = "chain"

    @classmethod
    def from_setting(cls, value: "str | bool | RevocationMode") -> "RevocationMode":
        """Map a certificate_revocation setting value to a mode.

        Puppet spells chain checking as ``true`` and no checking as ``false``.
        """
        if isinstance(value, RevocationMode):
            return value
        if isinstance(value, bool):
            return cls.CHAIN if value else cls.IGNORE

        normalized = str(value).strip().lower()
        if normalized in ("true", "chain"):
            return cls.CHAIN
        if normalized == "leaf":
            return cls.LEAF
        if normalized in ("false", "ignore"):
            return cls.IGNORE
        raise ConfigurationError(
            f"invalid certificate_revocation value '{value}', "
            "expected one of true, chain, leaf, false, ignore"
        )


def parse_duration(value: str | int) -> int:
    """Parse a Puppet duration (``15y``, ``5d``, ``3600``) into seconds."""
    if isinstance(value, int):
        return value
    text = value.strip().lower()
    if not text:
        raise ConfigurationError("empty duration value")
    unit = text[-1]
    try:
        if unit in _DURATION_UNITS:
            return int(text[:-1]) * _DURATION_UNITS[unit]
        return int(text)
    except ValueError as e:
        raise ConfigurationError(f"invalid duration '{value}'") from e


def get_digest(name: str) -> hashes.HashAlgorithm:
    """Return a hash instance for a digest setting such as ``sha256``."""
    try:
        return DIGESTS[name.lower()]()
    except KeyError as e:
        raise ConfigurationError(
            f"unsupported digest '{name}', expected one of {', '.join(sorted(DIGESTS))}"
        ) from e


def x509_name(common_name: str) -> x509.Name:
    """Build the CN-only subject names Puppet uses for every certificate."""
    return x509.Name([x509.NameAttribute(oid.NameOID.COMMON_NAME, common_name)])


def _default_certname() -> str:
    return socket.getfqdn().lower()


def _default_root_ca_name() -> str:
    return f"Puppet Root CA: {secrets.token_hex(7)}"


@dataclass(frozen=True)
class Settings:
    """Resolved CA client settings.

    Path fields are absolute once produced by ``load_settings``. Tests and
    callers that build one directly pass whichever paths they need.
    """

    confdir: Path = DEFAULT_CONFDIR
    ssldir: Path = DEFAULT_CONFDIR / "ssl"
    cadir: Path = DEFAULT_CONFDIR / "ssl" / "ca"
    certdir: Path = DEFAULT_CONFDIR / "ssl" / "certs"
    privatekeydir: Path = DEFAULT_CONFDIR / "ssl" / "private_keys"
    publickeydir: Path = DEFAULT_CONFDIR / "ssl" / "public_keys"
    certname: str = field(default_factory=_default_certname)
    localcacert: Path = DEFAULT_CONFDIR / "ssl" / "certs" / "ca.pem"
    hostcrl: Path = DEFAULT_CONFDIR / "ssl" / "crl.pem"
    hostcert: Path = DEFAULT_CONFDIR / "ssl" / "certs" / "localhost.pem"
    hostprivkey: Path = DEFAULT_CONFDIR / "ssl" / "private_keys" / "localhost.pem"
    cacert: Path = DEFAULT_CONFDIR / "ssl" / "ca" / "ca_crt.pem"
    cakey: Path = DEFAULT_CONFDIR / "ssl" / "ca" / "ca_key.pem"
    rootkey: Path = DEFAULT_CONFDIR / "ssl" / "ca" / "root_key.pem"
    cacrl: Path = DEFAULT_CONFDIR / "ssl" / "ca" / "ca_crl.pem"
    ca_server: str = "puppet"
    ca_port: int = 8140
    ca_name: str = "Puppet CA: localhost"
    root_ca_name: str = field(default_factory=_default_root_ca_name)
    ca_ttl: int = 15 * 365 * 86400
    keylength: int = 4096
    digest: str = "sha256"
    certificate_revocation: RevocationMode = RevocationMode.LEAF
    subject_alt_names: str = ""
    http_timeout: float = 120.0

    @property
    def signing_digest(self) -> hashes.HashAlgorithm:
        """Hash instance for the configured digest."""
        return get_digest(self.digest)


# Resolution order: each value may interpolate only names listed before it
_PATH_SETTINGS = (
    ("confdir", None),
    ("ssldir", "$confdir/ssl"),
    ("cadir", "$ssldir/ca"),
    ("certdir", "$ssldir/certs"),
    ("privatekeydir", "$ssldir/private_keys"),
    ("publickeydir", "$ssldir/public_keys"),
    ("certname", None),
    ("localcacert", "$certdir/ca.pem"),
    ("hostcrl", "$ssldir/crl.pem"),
    ("hostcert", "$certdir/$certname.pem"),
    ("hostprivkey", "$privatekeydir/$certname.pem"),
    ("cacert", "$cadir/ca_crt.pem"),
    ("cakey", "$cadir/ca_key.pem"),
    ("rootkey", "$cadir/root_key.pem"),
    ("cacrl", "$cadir/ca_crl.pem"),
    ("server", "puppet"),
    ("ca_server", "$server"),
    ("ca_name", "Puppet CA: $certname"),
)


def _read_config(config_path: Path | None) -> dict[str, str]:
    if config_path is None:
        return {}
    parser = configparser.ConfigParser(interpolation=None)
    try:
        with config_path.open() as handle:
            parser.read_file(handle)
    except OSError as e:
        raise ConfigurationError(f"could not read config file {config_path}: {e}") from e
    except configparser.Error as e:
        raise ConfigurationError(f"could not parse config file {config_path}: {e}") from e

    raw: dict[str, str] = {}
    for section in CONFIG_SECTIONS:
        if parser.has_section(section):
            raw.update(parser.items(section))
    return raw


def load_settings(config_path: Path | None = None) -> Settings:
    """Resolve settings from a puppet.conf style file.

    Args:
        config_path: puppet.conf to read; its directory becomes the default
            confdir. None resolves built-in defaults only.

    Returns:
        Fully interpolated Settings

    Raises:
        ConfigurationError: If the file cannot be read or a value is invalid
    """
    raw = _read_config(config_path)
    resolved: dict[str, str] = {}

    for name, default in _PATH_SETTINGS:
        if name == "confdir":
            fallback = str(config_path.parent) if config_path else str(DEFAULT_CONFDIR)
        elif name == "certname":
            fallback = _default_certname()
        else:
            fallback = default or ""
        value = raw.get(name, fallback)
        resolved[name] = string.Template(value).safe_substitute(resolved)

    try:
        ca_port = int(raw.get("ca_port", raw.get("serverport", "8140")))
        keylength = int(raw.get("keylength", "4096"))
        http_timeout = float(parse_duration(raw.get("http_connect_timeout", "120")))
    except ValueError as e:
        raise ConfigurationError(f"invalid numeric setting: {e}") from e

    digest = raw.get("digest", "sha256")
    get_digest(digest)

    path_fields = {f.name for f in fields(Settings) if f.type is Path}
    values = {
        name: Path(value) if name in path_fields else value
        for name, value in resolved.items()
        if name != "server"
    }

    return Settings(
        **values,
        root_ca_name=raw.get("root_ca_name", _default_root_ca_name()),
        ca_port=ca_port,
        ca_ttl=parse_duration(raw.get("ca_ttl", "15y")),
        keylength=keylength,
        digest=digest,
        certificate_revocation=RevocationMode.from_setting(
            raw.get("certificate_revocation", "leaf")
        ),
        subject_alt_names=raw.get("dns_alt_names", ""),
        http_timeout=http_timeout,
    )
