"""Optional MLflow spans for storyboard tools and video jobs.

With ``mlflow-tracing`` installed and ``MLFLOW_TRACKING_URI`` set, each tool
call is a ``TOOL`` span and ``mlflow.gemini.autolog()`` records the Gemini
requests beneath it. A video job's wait (submit, poll, download) gets its own
``CHAIN`` span, and handlers tag the active span with the scene id and the
storyboard epoch so a trace can be matched to the scene it produced.

Without mlflow, or with ``GEMINI_TRACING_ENABLED=false``, every helper here
is a no-op.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

try:
    import mlflow
    import mlflow.gemini

    _HAS_MLFLOW = True
except ImportError:
    _HAS_MLFLOW = False

F = TypeVar("F", bound=Callable[..., Any])

_ATTR_PREFIX = "storyboard."


def is_enabled() -> bool:
    if not _HAS_MLFLOW:
        return False
    from .config import get_config

    return get_config().tracing_enabled


def _attributes(values: dict[str, Any]) -> dict[str, Any]:
    return {_ATTR_PREFIX + k: v for k, v in values.items() if v is not None}


def tool_span(name: str) -> Callable[[F], F]:
    """Decorator: run an MCP tool inside a ``TOOL`` span called *name*.

    Decided at import time, like the tool registration itself.
    """

    def decorate(func: F) -> F:
        if not is_enabled():
            return func
        return mlflow.trace(func, name=name, span_type="TOOL", attributes=_attributes({"tool": name}))

    return decorate


@contextmanager
def span(name: str, *, span_type: str = "CHAIN", **attributes: Any) -> Iterator[None]:
    """Open a child span for a multi-step job, e.g. one Veo clip."""
    if not is_enabled():
        yield
        return
    with mlflow.start_span(name=name, span_type=span_type, attributes=_attributes(attributes)):
        yield


def annotate(**attributes: Any) -> None:
    """Attach ``storyboard.*`` attributes to the active span, if there is one."""
    if not is_enabled():
        return
    try:
        active = mlflow.get_current_active_span()
        if active is not None:
            active.set_attributes(_attributes(attributes))
    except Exception:
        logger.debug("Could not annotate span", exc_info=True)


def setup() -> bool:
    """Point MLflow at the tracking server and turn on Gemini autolog.

    Returns:
        True when tracing is live. Failures are logged and leave the server
        running without traces.
    """
    if not is_enabled():
        return False

    from .config import get_config

    cfg = get_config()
    try:
        mlflow.set_tracking_uri(cfg.mlflow_tracking_uri)
        mlflow.set_experiment(cfg.mlflow_experiment_name)
        mlflow.gemini.autolog()
    except Exception:
        logger.warning("MLflow setup failed; storyboard traces will not be recorded", exc_info=True)
        return False
    logger.info(
        "Tracing storyboard tools to %s (experiment %s)",
        cfg.mlflow_tracking_uri,
        cfg.mlflow_experiment_name,
    )
    return True


def shutdown() -> None:
    """Flush spans still queued for async logging."""
    if not is_enabled():
        return
    try:
        mlflow.flush_trace_async_logging()
    except Exception:
        logger.warning("MLflow trace flush failed", exc_info=True)
