from __future__ import annotations

import inspect
import logging
import reprlib
from functools import wraps
from typing import Any, Callable, Iterable, MutableMapping, Optional, Sequence, Set, TypeVar, cast

import numpy as np

F = TypeVar("F", bound=Callable[..., Any])

_repr = reprlib.Repr()
_repr.maxother = 160
_repr.maxdict = 8
_repr.maxlist = 8
_repr.maxtuple = 8
_repr.maxstring = 120


def summarize(value: Any, *, max_items: int = 6) -> str:
    """Compact, bounded rendering of solver arguments for DEBUG traces."""

    if isinstance(value, np.ndarray):
        if value.size == 0:
            return f"ndarray(shape={value.shape})"
        if value.size <= max_items:
            return f"ndarray(shape={value.shape}, values={np.round(value, 6).tolist()})"
        return (
            f"ndarray(shape={value.shape}, min={float(np.nanmin(value)):.6g}, "
            f"max={float(np.nanmax(value)):.6g})"
        )

    # Dual numbers and solver results both expose ``value``/``der`` or a
    # ``variables`` mapping; keep them short.
    der = getattr(value, "der", None)
    if isinstance(der, np.ndarray):
        return f"{type(value).__name__}(value={value.value:.6g}, der={summarize(der)})"

    if isinstance(value, dict):
        items = []
        for idx, (key, val) in enumerate(value.items()):
            if idx >= max_items:
                items.append(f"... ({len(value)} total)")
                break
            items.append(f"{key!r}: {summarize(val)}")
        return "{" + ", ".join(items) + "}"

    if isinstance(value, float):
        return f"{value:.6g}"

    try:
        return _repr.repr(value)
    except Exception as exc:  # pragma: no cover - repr of foreign objects
        return f"<repr-error {exc!r}>"


def _format_arguments(args: Sequence[Any], kwargs: MutableMapping[str, Any]) -> str:
    parts = [summarize(arg) for arg in args]
    parts.extend(f"{key}={summarize(value)}" for key, value in kwargs.items())
    return ", ".join(parts) if parts else "no-args"


def debug_log_call(
    logger: logging.Logger, *, name: Optional[str] = None, log_result: bool = True
) -> Callable[[F], F]:
    """Return a decorator that traces calls at DEBUG level."""

    def decorator(func: F) -> F:
        if getattr(func, "_debug_logging_wrapped", False):
            return func

        qualname = name or getattr(func, "__qualname__", getattr(func, "__name__", "<callable>"))

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any):
            if not logger.isEnabledFor(logging.DEBUG):
                return func(*args, **kwargs)
            logger.debug("-> %s(%s)", qualname, _format_arguments(args, kwargs))
            try:
                result = func(*args, **kwargs)
            except Exception:
                logger.debug("!! %s raised", qualname, exc_info=True)
                raise
            if log_result:
                logger.debug("<- %s = %s", qualname, summarize(result))
            else:
                logger.debug("<- %s", qualname)
            return result

        setattr(wrapper, "_debug_logging_wrapped", True)
        return cast(F, wrapper)

    return decorator


def apply_debug_logging(
    namespace: MutableMapping[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
    skip: Optional[Iterable[str]] = None,
) -> None:
    """Wrap the public module-level functions of ``namespace`` with DEBUG tracing.

    Private helpers (leading underscore) are left alone; they run once per
    solver iteration and would drown the trace.
    """

    module_name = namespace.get("__name__")
    logger = logger or logging.getLogger(module_name if isinstance(module_name, str) else __name__)
    skip_set: Set[str] = set(skip or [])

    for name, value in list(namespace.items()):
        if name in skip_set or name.startswith("_"):
            continue
        if inspect.isfunction(value) and getattr(value, "__module__", None) == module_name:
            namespace[name] = debug_log_call(logger, name=name)(value)
