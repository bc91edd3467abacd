"""Result models for CA client operations."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


@dataclass
class GenerateResult:
    """Result from CA hierarchy generation.

    Contains file paths and serial numbers for Root and Intermediate CA artifacts.
    """

    cadir: Path
    root_key_path: Path
    ca_key_path: Path
    ca_cert_path: Path
    ca_crl_path: Path
    inventory_path: Path
    root_serial: str
    intermediate_serial: str


class Outcome(Enum):
    """Terminal state of one requested certname."""

    SAVED = "saved"
    NOT_FOUND = "not-found"
    ERROR = "error"


@dataclass
class IdentityResult:
    """Outcome for one certname, with the message reported for it."""

    certname: str
    outcome: Outcome
    message: str
    cert_path: Path | None = None


@dataclass
class ProvisionResult:
    """Aggregated outcomes for a batch of certnames."""

    results: list[IdentityResult] = field(default_factory=list)

    @property
    def saved(self) -> list[str]:
        return [r.certname for r in self.results if r.outcome is Outcome.SAVED]

    @property
    def failed(self) -> list[str]:
        return [r.certname for r in self.results if r.outcome is not Outcome.SAVED]

    @property
    def exit_code(self) -> int:
        """0 only when every certname was saved."""
        return 1 if self.failed else 0
