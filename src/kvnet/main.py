"""Main entry point for the Key Vault virtual network access rule sample.

Configuration comes from environment variables, or from a YAML settings
file when KVNET_SETTINGS_FILE is set. An explicit IP address overrides
the IP rule from either source. Exit codes:

- 0: workflow completed
- 1: configuration error or Azure failure
- 2: invalid subnet resource identifier
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
import os
import sys
from datetime import UTC, datetime
from pathlib import Path

from .config import Config, ConfigurationError
from .context import ClientContext
from .errors import InvalidResourceIdentifier
from .resource_id import parse_subnet_id
from .settings import SettingsLoadError, load_settings
from .workflow import VNetAccessRuleWorkflow

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INVALID_RESOURCE_ID = 2

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_RECORD_KEYS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_KEYS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure structured logging with JSON output on stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level)

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def load_config(settings_file: Path | None = None, ip_address: str | None = None) -> Config:
    """Load configuration from a settings file if given, else from the environment.

    Args:
        settings_file: YAML settings file; KVNET_SETTINGS_FILE is used if omitted.
        ip_address: IP address or CIDR replacing the configured IP rule.

    Raises:
        ConfigurationError: If the configuration or the IP address is invalid.
        SettingsLoadError: If the settings file is invalid.
        InvalidResourceIdentifier: If the settings file holds a malformed subnet id.
    """
    if settings_file is None:
        env_path = os.environ.get("KVNET_SETTINGS_FILE")
        settings_file = Path(env_path) if env_path else None
    if settings_file is not None:
        config = load_settings(settings_file)
    else:
        config = Config.from_env()

    if ip_address:
        # replace() re-runs Config validation on the new address
        config = dataclasses.replace(config, ip_address=ip_address)
    return config


async def run_workflow(config: Config, logger: logging.Logger) -> int:
    """Run the workflow once with a fresh client context."""
    try:
        with ClientContext(config) as context:
            result = await VNetAccessRuleWorkflow(context).run()
    except Exception as e:
        logger.exception("Workflow failed unexpectedly", extra={"error": str(e)})
        return EXIT_FAILURE

    return EXIT_SUCCESS if result.success else EXIT_FAILURE


async def main(settings_file: Path | None = None, ip_address: str | None = None) -> int:
    """Run the sample.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    # Fail fast on a bad subnet id before any other validation or network call
    raw_subnet_id = os.environ.get("VNET_SUBNET_RESOURCE_ID")
    uses_environment = settings_file is None and not os.environ.get("KVNET_SETTINGS_FILE")
    if uses_environment and raw_subnet_id:
        try:
            parse_subnet_id(raw_subnet_id)
        except InvalidResourceIdentifier as e:
            logger.error("Invalid subnet resource identifier", extra={"error": str(e)})
            return EXIT_INVALID_RESOURCE_ID

    try:
        config = load_config(settings_file, ip_address)
    except InvalidResourceIdentifier as e:
        logger.error("Invalid subnet resource identifier", extra={"error": str(e)})
        return EXIT_INVALID_RESOURCE_ID
    except (ConfigurationError, SettingsLoadError) as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return EXIT_FAILURE

    logger.info(
        "Starting Key Vault VNet access rule sample",
        extra={
            "subscription_id": config.subscription_id,
            "vault_name": config.vault_name,
            "vault_location": config.vault_location,
        },
    )

    return await run_workflow(config, logger)


def run() -> None:
    """Entry point for running the sample as a module."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
