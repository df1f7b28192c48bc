"""Boot-time configuration guard.

Validates every declared environment variable once, before the HTTP
listener binds, and stops the process when a required secret is missing or
weak.
"""

from __future__ import annotations

import os
import re
import secrets
import sys
from collections.abc import Callable, Mapping, MutableMapping
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)

DEV_HOSTS = ("localhost", "127.0.0.1")
PRODUCTION_URL_CHECKS = ("FRONTEND_URL", "BACKEND_URL")


@dataclass(frozen=True, slots=True)
class VariableRule:
    """Validation rules for one environment variable.

    Attributes
    ----------
    description : str
        Purpose shown in error messages.
    required : bool
        Whether the variable must be set.
    min_length : int | None
        Minimum value length.
    pattern : str | None
        Regular expression the value must match.
    choices : tuple[str, ...] | None
        Allowed values.
    default : str | None
        Value written back when an optional variable is unset.
    sensitive : bool
        Whether the value is masked and checked for weakness.
    """

    description: str
    required: bool = False
    min_length: int | None = None
    pattern: str | None = None
    choices: tuple[str, ...] | None = None
    default: str | None = None
    sensitive: bool = False


DEFAULT_POLICY: Mapping[str, VariableRule] = {
    "JWT_SECRET": VariableRule(
        description="State and session signing secret (strong random string)",
        required=True,
        min_length=32,
        sensitive=True,
    ),
    "ENCRYPTION_KEY": VariableRule(
        description="Encryption key for stored OAuth tokens (strong random string)",
        required=True,
        min_length=32,
        sensitive=True,
    ),
    "DATABASE_URL": VariableRule(
        description="SQLAlchemy database connection string",
        default="sqlite+aiosqlite:///./knowledge.db",
        pattern=r"^(postgresql|sqlite)(\+\w+)?://.+",
        sensitive=True,
    ),
    "PORT": VariableRule(
        description="Server port number",
        default="3001",
        pattern=r"^\d+$",
    ),
    "APP_ENV": VariableRule(
        description="Deployment environment",
        default="development",
        choices=("development", "production", "test"),
    ),
    "FRONTEND_URL": VariableRule(
        description="Frontend application URL",
        required=True,
        pattern=r"^https?://.+",
    ),
    "BACKEND_URL": VariableRule(
        description="Backend API URL",
        required=True,
        pattern=r"^https?://.+",
    ),
    "GOOGLE_CLIENT_ID": VariableRule(
        description="Google OAuth client ID",
        required=True,
        min_length=20,
    ),
    "GOOGLE_CLIENT_SECRET": VariableRule(
        description="Google OAuth client secret",
        required=True,
        min_length=20,
        sensitive=True,
    ),
    "LOG_LEVEL": VariableRule(
        description="Log level",
        default="INFO",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
    ),
    "LOG_FORMAT": VariableRule(
        description="Log renderer",
        default="console",
        choices=("console", "json"),
    ),
}

WEAK_PATTERNS = (
    re.compile(r"^(your|my|test|demo|example|change|replace|update|set|add)", re.I),
    re.compile(r"^(secret|password|key|token)$", re.I),
    re.compile(r"^(123|abc|qwerty|admin|root)", re.I),
    re.compile(r"^[a-z]{1,10}$", re.I),
)


def is_weak_value(value: str) -> bool:
    """Return whether a secret looks like a placeholder or a simple word.

    Best-effort only: it misses weak values that dodge the patterns and can
    flag random values that happen to start with a listed prefix.
    """
    return any(pattern.search(value) for pattern in WEAK_PATTERNS)


def generate_secret(num_bytes: int = 32) -> str:
    """Return a random hex string suitable as a replacement secret."""
    return secrets.token_hex(num_bytes)


@dataclass(frozen=True, slots=True)
class GuardIssue:
    """One error or warning about a variable.

    Attributes
    ----------
    variable : str
        Environment variable name.
    message : str
        Human-readable problem description.
    suggestion : str | None
        Optional remediation hint.
    """

    variable: str
    message: str
    suggestion: str | None = None


@dataclass(slots=True)
class GuardReport:
    """Outcome of a configuration check."""

    errors: list[GuardIssue] = field(default_factory=list)
    warnings: list[GuardIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        """Whether no errors were found."""
        return not self.errors


class ConfigGuard:
    """Validate process configuration against a policy.

    Parameters
    ----------
    policy : Mapping[str, VariableRule], default=DEFAULT_POLICY
        Declared variables, checked in order.
    environ : MutableMapping[str, str] | None, default=None
        Environment to read. Defaults are written back into it. Uses
        ``os.environ`` when omitted.
    weak_value : Callable[[str], bool], default=is_weak_value
        Predicate flagging weak sensitive values.
    suggest : Callable[[], str], default=generate_secret
        Produces the replacement secret offered for weak values.
    """

    def __init__(
        self,
        policy: Mapping[str, VariableRule] = DEFAULT_POLICY,
        environ: MutableMapping[str, str] | None = None,
        *,
        weak_value: Callable[[str], bool] = is_weak_value,
        suggest: Callable[[], str] = generate_secret,
    ) -> None:
        self.policy = policy
        self.environ = os.environ if environ is None else environ
        self.weak_value = weak_value
        self.suggest = suggest

    def validate(self) -> GuardReport:
        """Check every declared variable.

        Returns
        -------
        GuardReport
            Collected errors and warnings.
        """
        report = GuardReport()
        for name, rule in self.policy.items():
            issue = self._check(name, rule)
            if issue is not None:
                report.errors.append(issue)

        if self.environ.get("APP_ENV") == "production":
            for name in PRODUCTION_URL_CHECKS:
                value = self.environ.get(name)
                if value and any(host in value for host in DEV_HOSTS):
                    report.warnings.append(
                        GuardIssue(
                            variable=name,
                            message=(
                                f"{name} contains a development URL in "
                                "production environment"
                            ),
                        )
                    )
        return report

    def validate_or_exit(self) -> GuardReport:
        """Validate, log a redacted report, and exit with status 1 on errors.

        Returns
        -------
        GuardReport
            The report, when configuration is valid.
        """
        report = self.validate()
        self.log_report(report)
        if not report.valid:
            logger.error(
                "config_validation_halt",
                hint="Fix the environment variables and restart",
            )
            sys.exit(1)
        return report

    def log_report(self, report: GuardReport) -> None:
        """Write a report to the log without revealing secret values."""
        if report.valid:
            logger.info("config_validated", variables=self.safe_summary())
        else:
            for issue in report.errors:
                logger.error(
                    "config_variable_invalid",
                    variable=issue.variable,
                    error=issue.message,
                    suggestion=issue.suggestion,
                )
        for issue in report.warnings:
            logger.warning(
                "config_variable_warning",
                variable=issue.variable,
                warning=issue.message,
            )

    def mask_for_display(self, name: str) -> str:
        """Return a log-safe rendering of a variable.

        Parameters
        ----------
        name : str
            Environment variable name.

        Returns
        -------
        str
            ``[not set]``, the plain value, or a masked value.
        """
        value = self.environ.get(name)
        if not value:
            return "[not set]"
        rule = self.policy.get(name)
        if rule is None or not rule.sensitive:
            return value
        if len(value) > 12:
            return f"{value[:4]}...{value[-4:]}"
        return "***"

    def safe_summary(self) -> dict[str, str]:
        """Return masked values for every declared variable."""
        return {name: self.mask_for_display(name) for name in self.policy}

    def _check(self, name: str, rule: VariableRule) -> GuardIssue | None:
        value = self.environ.get(name)
        if not value:
            if rule.required:
                return GuardIssue(name, f"{name} is required. {rule.description}")
            if rule.default is not None:
                self.environ[name] = rule.default
            return None

        if rule.min_length is not None and len(value) < rule.min_length:
            return GuardIssue(
                name, f"{name} must be at least {rule.min_length} characters long"
            )
        if rule.pattern is not None and not re.search(rule.pattern, value):
            return GuardIssue(name, f"{name} has invalid format. {rule.description}")
        if rule.choices is not None and value not in rule.choices:
            return GuardIssue(
                name, f"{name} must be one of: {', '.join(rule.choices)}"
            )
        if rule.sensitive and self.weak_value(value):
            return GuardIssue(
                name,
                f"{name} appears to be a weak/default value. "
                "Please use a strong random string.",
                suggestion=f"Generate a secure value: {self.suggest()}",
            )
        return None
