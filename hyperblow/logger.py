"""Optional stdout logging, configured through the ``HYPERBLOW_LOG`` variable."""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping

ENV_VARIABLE = "HYPERBLOW_LOG"
TRACE = 5
OFF = logging.CRITICAL + 1

logging.addLevelName(TRACE, "TRACE")

_LEVELS = {
    "trace": TRACE,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "off": OFF,
}

_HANDLER_MARK = "_hyperblow_stdout"
_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

log = logging.getLogger(__name__)


class FilterError(ValueError):
    """Raised when a log filter string cannot be understood."""


def _parse_level(text: str) -> int:
    try:
        return _LEVELS[text.strip().lower()]
    except KeyError:
        raise FilterError(f"unknown log level {text.strip()!r}") from None


def _parse_filter(spec: str) -> tuple[int, dict[str, int]]:
    """Split a filter such as ``info,hyperblow::tracker=debug`` into its parts."""
    default = logging.ERROR
    targets: dict[str, int] = {}
    for directive in (part.strip() for part in spec.split(",")):
        if not directive:
            continue
        if "=" in directive:
            target, _, level = directive.partition("=")
            target = target.strip()
            if not target:
                raise FilterError(f"directive {directive!r} has an empty target")
            targets[target.replace("::", ".")] = _parse_level(level)
        elif directive.lower() in _LEVELS:
            default = _LEVELS[directive.lower()]
        else:
            targets[directive.replace("::", ".")] = TRACE
    return default, targets


def _installed(root: logging.Logger) -> bool:
    return any(getattr(handler, _HANDLER_MARK, False) for handler in root.handlers)


def init_from_env(environ: Mapping[str, str] | None = None) -> bool:
    """Send log records to stdout when ``HYPERBLOW_LOG`` holds a filter.

    Returns True when logging was set up, False when it was left off.
    """
    env = os.environ if environ is None else environ
    spec = env.get(ENV_VARIABLE)
    if spec is None or not spec.strip():
        return False
    try:
        default, targets = _parse_filter(spec.strip())
    except FilterError as error:
        print(f"hyperblow stdout logging disabled: invalid {ENV_VARIABLE} value: {error}")
        return False

    root = logging.getLogger()
    if _installed(root):
        return False

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    setattr(handler, _HANDLER_MARK, True)
    root.addHandler(handler)
    root.setLevel(default)
    for target, level in targets.items():
        logging.getLogger(target).setLevel(level)

    log.debug("stdout logging initialized")
    return True