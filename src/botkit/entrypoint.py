"""
CLI entrypoint that boots a bot from the bundled modules.

Configuration comes from ``config.yaml``/``secrets.yaml`` via
``ConfigService``; the module manifest decides which bundled modules run and
with which options. ``--module``/``--skip-module`` adjust the manifest from
the command line.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
from collections import OrderedDict
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Any

from .bootstrap import BotBase, BotModule, bot
from .core.config import ConfigError, ConfigService, ConfigSnapshot, LoggingSettings
from .core.contracts import ModuleConfig
from .core.gateway import GatewayError
from .core.rest import RestError
from .modules import MemberLogModule, MessageAuditModule, PingModule

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

ModuleFactory = Callable[[ModuleConfig], Any]

MODULE_REGISTRY: dict[str, ModuleFactory] = {
    PingModule.name: PingModule.from_config,
    MemberLogModule.name: MemberLogModule.from_config,
    MessageAuditModule.name: MessageAuditModule.from_config,
}

MODULE_ALIASES: dict[str, str] = {
    "ping": PingModule.name,
    "members": MemberLogModule.name,
    "member-log": MemberLogModule.name,
    "audit": MessageAuditModule.name,
    "message-audit": MessageAuditModule.name,
}


def resolve_module_name(label: str) -> str:
    """Return the fully qualified module identifier for CLI-friendly aliases."""

    normalised = label.strip().lower()
    return MODULE_ALIASES.get(normalised, label)


def build_module_sequence(
    manifest: Iterable[str],
    extra_modules: Sequence[str] | None,
    skip_modules: Iterable[str] | None,
) -> list[str]:
    """
    Build the ordered list of module identifiers to run.

    Keeps manifest order, appends extras, deduplicates, and drops skipped
    entries. Unknown names raise ``ValueError``.
    """

    resolved_extras = [resolve_module_name(name) for name in (extra_modules or [])]
    resolved_skip = {resolve_module_name(name) for name in (skip_modules or [])}
    unique: OrderedDict[str, None] = OrderedDict()
    for name in [*(resolve_module_name(n) for n in manifest), *resolved_extras]:
        if name in resolved_skip:
            continue
        if name not in MODULE_REGISTRY:
            raise ValueError(f"Unknown module '{name}'. Available: {sorted(MODULE_REGISTRY)}")
        unique.setdefault(name, None)
    return list(unique.keys())


def instantiate_modules(snapshot: ConfigSnapshot, module_names: Sequence[str]) -> list[BotModule]:
    """Create module objects for ``module_names`` using manifest options."""

    modules: list[BotModule] = []
    for name in module_names:
        factory = MODULE_REGISTRY[name]
        configs = snapshot.module_configs(name) or [ModuleConfig()]
        for module_config in configs:
            if not module_config.enabled:
                LOGGER.info("Config disabled for %s; skipping", name)
                continue
            modules.append(factory(module_config))
            LOGGER.info("Prepared module %s", name)
    return modules


async def run(token: str, modules: Sequence[BotModule]) -> None:
    """Register ``modules`` and run the bot until the gateway closes."""

    def _configure(base: BotBase) -> None:
        for module in modules:
            base.register_module(module)

    await bot(token, _configure)


def _attach_log_file(settings: LoggingSettings) -> logging.Handler | None:
    """Mirror the root logger into ``settings.file``, once per path."""

    if settings.file is None:
        return None
    target = settings.file.resolve()
    root_logger = logging.getLogger()
    for existing in root_logger.handlers:
        if (
            isinstance(existing, logging.handlers.RotatingFileHandler)
            and Path(existing.baseFilename) == target
        ):
            return existing
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Log file %s disabled: %s", target, exc)
        return None

    file_handler = logging.handlers.RotatingFileHandler(
        target,
        maxBytes=settings.max_mb << 20,
        backupCount=settings.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(file_handler)
    return file_handler


def configure_logging(level: str, settings: LoggingSettings | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(level=numeric_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric_level)
    if settings is not None:
        _attach_log_file(settings)


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a gateway bot from bundled modules.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml (default: repo config/).",
    )
    parser.add_argument(
        "--token",
        default=None,
        help="Bot token; overrides bot.token from the configuration.",
    )
    parser.add_argument(
        "--module",
        dest="extra_modules",
        action="append",
        default=[],
        metavar="MODULE",
        help="Additional module to run (alias like 'ping' or full name).",
    )
    parser.add_argument(
        "--skip-module",
        dest="skip_modules",
        action="append",
        default=[],
        metavar="MODULE",
        help="Module to remove from the manifest (alias or full name).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: logging.level from config, else INFO).",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        snapshot = ConfigService(config_dir=args.config_dir).snapshot
    except ConfigError as exc:
        configure_logging(args.log_level or "INFO")
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    configure_logging(args.log_level or snapshot.logging.level, snapshot.logging)

    token = args.token or snapshot.bot.token
    if not token:
        LOGGER.error("No bot token configured; set bot.token in secrets.yaml or pass --token.")
        return 2
    try:
        module_names = build_module_sequence(
            snapshot.module_names, args.extra_modules, args.skip_modules
        )
        modules = instantiate_modules(snapshot, module_names)
    except ValueError as exc:
        LOGGER.error("Invalid module selection: %s", exc)
        return 2

    try:
        asyncio.run(run(token, modules))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except (GatewayError, RestError) as exc:
        LOGGER.error("Connection failed: %s", exc)
        return 1
    except Exception:
        LOGGER.exception("Bot crashed.")
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_module_sequence", "instantiate_modules", "main", "run"]
