"""Logging configuration loaded from environment variables.

Uses a frozen dataclass for immutable settings. The variables read are the
ones Cloud Run, Cloud Functions and App Engine set for a deployed service.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from cloudlogpy.core.logger import PRODUCTION_ENV_VAR
from cloudlogpy.core.models import ServiceContext

DEFAULT_LOG_NAME = "app"


@dataclass(frozen=True)
class LoggingConfig:
    """Immutable logging settings populated from environment variables."""

    project_id: str = ""
    log_name: str = DEFAULT_LOG_NAME
    service: str = DEFAULT_LOG_NAME
    version: str | None = None
    environment: str = ""

    @property
    def production(self) -> bool:
        return self.environment == "production"

    @property
    def service_context(self) -> ServiceContext:
        return ServiceContext(service=self.service, version=self.version)

    @classmethod
    def from_env(
        cls,
        log_name: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> "LoggingConfig":
        """Create a LoggingConfig from environment variables.

        Args:
            log_name: Log name to use. Defaults to ``K_SERVICE``, then "app".
            environ: Variables to read. Defaults to ``os.environ``.

        Returns:
            Settings read from ``GOOGLE_CLOUD_PROJECT`` (or ``GCP_PROJECT``),
            ``K_SERVICE``, ``K_REVISION`` and ``PYTHON_ENV``.
        """
        env = os.environ if environ is None else environ
        service = env.get("K_SERVICE") or ""
        log_name = log_name or service or DEFAULT_LOG_NAME
        return cls(
            project_id=env.get("GOOGLE_CLOUD_PROJECT") or env.get("GCP_PROJECT") or "",
            log_name=log_name,
            service=service or log_name,
            version=env.get("K_REVISION") or None,
            environment=env.get(PRODUCTION_ENV_VAR, ""),
        )
