"""Shared helpers for the CLI and server."""

import dataclasses
import logging
import sys
from enum import Enum
from typing import Any

from clinrev.application.config import AppConfig, resolve_config


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """Resolve config with the non-None command-line overrides applied last."""
    return resolve_config({k: v for k, v in overrides.items() if v is not None})


def setup_logging(verbose: int) -> None:
    level = logging.WARNING if verbose <= 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(levelname)s:%(name)s:%(message)s",
        stream=sys.stderr,
        force=True,
    )


def jsonable(obj: Any) -> Any:
    """Convert result dataclasses (and tuples/enums inside them) to JSON-ready values."""
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: jsonable(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [jsonable(v) for v in obj]
    return obj
