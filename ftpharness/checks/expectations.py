"""Result checks for the FTP server image harness.

Golden-value comparisons between what a server returned and what was
uploaded. Failures are collected in a CheckReport instead of being
raised, so one scenario run can surface several problems at once.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional


class ScenarioCheckError(AssertionError):
    """Raised by CheckReport.raise_for_failures when checks failed."""

    def __init__(self, scenario: str, failures: List["CheckFailure"]):
        self.scenario = scenario
        self.failures = failures
        lines = [f"{len(failures)} check(s) failed for {scenario}:"]
        lines.extend(f"  - {failure}" for failure in failures)
        super().__init__("\n".join(lines))


@dataclass
class CheckFailure:
    """A single failed check."""
    check: str
    message: str

    def __str__(self) -> str:
        return f"[{self.check}] {self.message}"


class ExpectationSet:
    """
    Tracks which expected names have been observed.

    Extra observed names are ignored; every expected name must be seen
    at least once.
    """

    def __init__(self, names: Iterable[str]):
        self._found: Dict[str, bool] = {name: False for name in names}

    def observe(self, names: Iterable[str]) -> None:
        """Mark any expected names among names as found."""
        for name in names:
            if name in self._found:
                self._found[name] = True

    @property
    def found(self) -> Dict[str, bool]:
        """Copy of the name -> found mapping."""
        return dict(self._found)

    def missing(self) -> List[str]:
        """Expected names never observed, sorted."""
        return sorted(name for name, found in self._found.items() if not found)

    @property
    def complete(self) -> bool:
        """True if every expected name was observed."""
        return not self.missing()


def check_present(check: str, location: str, observed: Iterable[str], expected: Iterable[str]) -> List[CheckFailure]:
    """
    Check that every expected name is among the observed names.

    Args:
        check: Check name used in failures
        location: Human-readable directory name, e.g. "root directory"
        observed: Names returned by the server
        expected: Names that must be present

    Returns:
        One CheckFailure per missing name
    """
    expectations = ExpectationSet(expected)
    expectations.observe(observed)
    return [
        CheckFailure(check, f"Expected entry '{name}' not found in {location}")
        for name in expectations.missing()
    ]


def check_absent(check: str, location: str, observed: Iterable[str], unexpected: Iterable[str]) -> List[CheckFailure]:
    """
    Check that none of the unexpected names were observed.

    Returns:
        One CheckFailure per name that is present
    """
    observed = set(observed)
    return [
        CheckFailure(check, f"Unexpected entry '{name}' found in {location}")
        for name in sorted(set(unexpected) & observed)
    ]


def compare_size(check: str, label: str, expected: bytes, actual: int) -> Optional[CheckFailure]:
    """Exact comparison of a reported size against the byte length of expected content."""
    if actual != len(expected):
        return CheckFailure(check, f"{label} size mismatch: got {actual}, expected {len(expected)}")
    return None


def compare_content(check: str, label: str, expected: bytes, actual: bytes) -> Optional[CheckFailure]:
    """Exact byte-for-byte content comparison."""
    if actual != expected:
        return CheckFailure(check, f"{label} content mismatch: got {actual!r}, expected {expected!r}")
    return None


@dataclass
class CheckReport:
    """Ordered collection of check failures for one scenario."""
    scenario: str
    failures: List[CheckFailure] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        """True if no check failed."""
        return not self.failures

    def record(self, failure: Optional[CheckFailure]) -> None:
        """Add a failure, ignoring None so comparison results can be passed directly."""
        if failure is not None:
            self.failures.append(failure)

    def extend(self, failures: Iterable[CheckFailure]) -> None:
        """Add several failures."""
        self.failures.extend(failures)

    def fail(self, check: str, message: str) -> None:
        """Record a failure from a check name and message."""
        self.failures.append(CheckFailure(check, message))

    def summary(self) -> str:
        """Multi-line text describing the outcome."""
        if self.passed:
            return f"{self.scenario}: all checks passed"
        lines = [f"{self.scenario}: {len(self.failures)} check(s) failed"]
        lines.extend(f"  - {failure}" for failure in self.failures)
        return "\n".join(lines)

    def raise_for_failures(self) -> None:
        """
        Raise if any check failed.

        Raises:
            ScenarioCheckError: Listing every failure
        """
        if self.failures:
            raise ScenarioCheckError(self.scenario, list(self.failures))
