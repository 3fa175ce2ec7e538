"""Process startup and the ``videoflow`` command line interface."""

import argparse
import sys
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from .config import (
    AppConfig,
    LogLevel,
    create_default_providers,
    get_config,
    get_testing_config,
    load_config,
    validate_config
)
from .core.batch_orchestrator import BatchOrchestrator
from .core.exceptions import ConfigurationError
from .core.execution_controller import ExecutionController
from .core.logging import get_logger, setup_logging
from .core.node_handlers import build_default_registry
from .core.node_registry import NodeExecutorRegistry
from .providers.base import TaskProvider

logger = get_logger(__name__)


@dataclass
class Engine:
    """Components of one running VideoFlow process, built from a single config."""
    config: AppConfig
    providers: Dict[str, TaskProvider]
    registry: NodeExecutorRegistry
    controller: ExecutionController
    orchestrator: BatchOrchestrator

    async def aclose(self) -> None:
        """Close every provider's network resources."""
        for provider_id, provider in self.providers.items():
            await provider.aclose()
            logger.debug(f"Closed provider {provider_id}")


def bootstrap(
    config: Optional[AppConfig] = None,
    providers: Optional[Mapping[str, TaskProvider]] = None,
    validate: bool = True
) -> Engine:
    """
    Configure logging and build the engine components.

    Args:
        config: Settings; the process-wide config from the environment by default
        providers: Provider map; one Sora2 provider per platform by default
        validate: Run ``validate_config`` before building anything

    Raises:
        ConfigurationError: If validation is requested and fails
    """
    if config is None:
        config = get_config()

    setup_logging(**config.get_logging_kwargs())
    logger.info(f"Starting {config.app_name} v{config.app_version}")

    if validate:
        validate_config(config)

    provider_map = dict(providers) if providers is not None else create_default_providers(config)

    # Workflow nodes submit through the default provider, like batches without one
    registry = build_default_registry(provider_map.get(config.default_provider))
    engine = Engine(
        config=config,
        providers=provider_map,
        registry=registry,
        controller=ExecutionController(registry),
        orchestrator=BatchOrchestrator.from_config(config, provider_map),
    )

    logger.info(f"Engine ready with providers: {', '.join(sorted(provider_map))}")
    return engine


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="videoflow",
        description="VideoFlow engine - workflow execution and batch orchestration for video generation"
    )

    parser.add_argument(
        "--env",
        choices=["testing"],
        help="Use a configuration preset instead of the environment"
    )

    parser.add_argument(
        "--config",
        help="Path to a .env configuration file"
    )

    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )

    parser.add_argument(
        "--log-file",
        help="Path to log file"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    config_subparsers.add_parser("show", help="Show current configuration")
    config_subparsers.add_parser("validate", help="Validate configuration")

    return parser


def load_configuration(args: argparse.Namespace) -> AppConfig:
    """Load configuration based on command line arguments."""
    if args.env == "testing":
        config = get_testing_config()
    else:
        config = load_config(args.config)

    overrides = {}
    if args.log_level:
        overrides["log_level"] = LogLevel(args.log_level)
    if args.log_file:
        overrides["log_file"] = args.log_file

    return config.model_copy(update=overrides) if overrides else config


def show_configuration(config: AppConfig):
    """Show current configuration. API keys are reported as set or unset only."""
    print("Current Configuration:")
    print(f"  App Name: {config.app_name}")
    print(f"  Version: {config.app_version}")
    print(f"  Log Level: {config.log_level.value}")
    print(f"  Poll Interval: {config.poll_interval}s")
    print(f"  Auto Download: {config.auto_download}")
    print(f"  Download Dir: {config.download_dir}")
    print(f"  Default Provider: {config.default_provider}")
    for platform in ("juxin", "zhenzhen"):
        state = "set" if config.api_key_for(platform) else "unset"
        print(f"  {platform} API Key: {state} ({config.base_url_for(platform)})")


def validate_configuration_command(config: AppConfig) -> int:
    """Validate configuration and show results."""
    try:
        validate_config(config)
    except ConfigurationError as e:
        print("Configuration validation: FAILED")
        print(f"Error: {e.message}")
        return 1

    print("Configuration validation: PASSED")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the ``videoflow`` command."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    config = load_configuration(args)
    setup_logging(**config.get_logging_kwargs())

    if args.command == "config" and args.config_command == "show":
        show_configuration(config)
        return 0
    if args.command == "config" and args.config_command == "validate":
        return validate_configuration_command(config)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
