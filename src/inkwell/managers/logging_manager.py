"""
# Logging Manager

Central factory for application loggers. Every module obtains its logger here so that format,
level and handlers are configured exactly once.

Loggers are plain `logging.Logger` instances wrapped in a `logging.LoggerAdapter` that prepends a
bracketed prefix, which keeps grep-able component tags in every line:

```
2026-01-01 12:00:00,000 - InkWell - INFO - [Post Routes] Created post 65f... (hello-world)
```

Usage:

```python
from inkwell.managers.logging_manager import get_logger

logger = get_logger(prefix="[Post Routes]")
logger.info("Created post %s", post_id)
```
"""

import logging
import sys
from typing import Dict, Tuple

from inkwell.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured_roots: Dict[str, logging.Logger] = {}
_adapters: Dict[Tuple[str, str], logging.LoggerAdapter] = {}


class PrefixedLoggerAdapter(logging.LoggerAdapter):
    """Prepends a component prefix such as `[DATABASE]` to every message."""

    def process(self, msg, kwargs):
        prefix = self.extra.get("prefix") if self.extra else ""
        if prefix:
            return f"{prefix} {msg}", kwargs
        return msg, kwargs


def _configure_root(name: str) -> logging.Logger:
    base = _configured_roots.get(name)
    if base is not None:
        return base

    base = logging.getLogger(name)
    level = getattr(logging, settings.DEFAULT_LOG_LEVEL.upper(), logging.INFO)
    base.setLevel(level)
    if not base.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        base.addHandler(handler)
    base.propagate = False
    _configured_roots[name] = base
    return base


def get_logger(name: str = "InkWell", prefix: str = "") -> logging.LoggerAdapter:
    """
    Return a configured logger for `name`, tagged with `prefix`.

    Args:
        name (str): Logger name; all application loggers share the `InkWell` root by default.
        prefix (str): Component tag prepended to each message, e.g. `"[Auth Routes]"`.

    Returns:
        logging.LoggerAdapter: Cached adapter, one per `(name, prefix)` pair.
    """
    key = (name, prefix)
    adapter = _adapters.get(key)
    if adapter is None:
        adapter = PrefixedLoggerAdapter(_configure_root(name), {"prefix": prefix})
        _adapters[key] = adapter
    return adapter
