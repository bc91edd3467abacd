"""Subject alternative name parsing, selection, and rendering."""

import ipaddress
import socket

from cryptography import x509

from .errors import ValidationError

DNS_PREFIX = "DNS:"
IP_PREFIX = "IP:"
KNOWN_PREFIXES = (DNS_PREFIX, IP_PREFIX)


def split_alt_names(alt_names: str) -> list[str]:
    """Split a comma-separated SAN string into trimmed, non-empty entries."""
    entries = []
    for field in alt_names.split(","):
        entry = field.strip()
        if entry:
            entries.append(entry)
    return entries


def munge_alt_names(alt_names: str) -> str:
    """Prefix bare entries with ``DNS:`` and join them with ``", "``.

    >>> munge_alt_names("foo.com,IP:1.2.3.4")
    'DNS:foo.com, IP:1.2.3.4'
    """
    munged = []
    for entry in split_alt_names(alt_names):
        if entry.startswith(KNOWN_PREFIXES):
            munged.append(entry)
        else:
            munged.append(DNS_PREFIX + entry)
    return ", ".join(munged)


def default_alt_names() -> str:
    """SANs for a CA that has none configured, looked up on every call."""
    fqdn = socket.getfqdn()
    _, _, domain = fqdn.partition(".")
    puppet_name = f"puppet.{domain}" if domain else "puppet"

    names = [fqdn, "puppet"]
    if puppet_name not in names:
        names.append(puppet_name)
    return ", ".join(DNS_PREFIX + name for name in names)


def choose_alt_names(cli_alt_names: str, settings_alt_names: str) -> str:
    """Pick the SAN string to use: CLI first, then settings, then host defaults."""
    if cli_alt_names:
        return munge_alt_names(cli_alt_names)
    if settings_alt_names:
        return munge_alt_names(settings_alt_names)
    return default_alt_names()


def parse_alt_names(alt_names: str) -> list[x509.GeneralName]:
    """Convert a SAN string into cryptography GeneralName objects.

    Raises:
        ValidationError: If an ``IP:`` entry is not a valid address
    """
    general_names: list[x509.GeneralName] = []
    for entry in split_alt_names(munge_alt_names(alt_names)):
        if entry.startswith(IP_PREFIX):
            value = entry[len(IP_PREFIX) :].strip()
            try:
                general_names.append(x509.IPAddress(ipaddress.ip_address(value)))
            except ValueError as e:
                raise ValidationError(f"invalid IP subject alternative name '{value}'") from e
        else:
            general_names.append(x509.DNSName(entry[len(DNS_PREFIX) :].strip()))
    return general_names


def subject_alt_name_extension(alt_names: str) -> x509.SubjectAlternativeName | None:
    """Build the SAN extension, or None when the SAN string is empty."""
    general_names = parse_alt_names(alt_names)
    if not general_names:
        return None
    return x509.SubjectAlternativeName(general_names)


def format_alt_names(extension: x509.SubjectAlternativeName) -> str:
    """Render a SAN extension the way OpenSSL prints it.

    >>> format_alt_names(x509.SubjectAlternativeName([x509.DNSName("bar.net")]))
    'subjectAltName = DNS:bar.net'
    """
    rendered = []
    for name in extension:
        if isinstance(name, x509.DNSName):
            rendered.append(f"DNS:{name.value}")
        elif isinstance(name, x509.IPAddress):
            rendered.append(f"IP Address:{name.value}")
        else:
            rendered.append(f"othername:{name.value}")
    return "subjectAltName = " + ", ".join(rendered)
