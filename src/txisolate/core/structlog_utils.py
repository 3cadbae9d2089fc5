"""Utilities for structured logging with context binding."""

from __future__ import annotations

import functools
import inspect
from typing import Any, Callable, Optional, TypeVar

from txisolate.core.logging import set_isolation_context, unset_isolation_context

F = TypeVar("F", bound=Callable[..., Any])


def bind_context(*param_names: str, **renames: str) -> Callable[[F], F]:
    """Decorator to bind function/method parameters to the structlog context.

    The values are bound for the duration of the call and removed afterwards,
    whether the call returns or raises.

    Args:
        *param_names: Names of parameters to bind using their original names.
        **renames: Mapping of context keys to parameter paths. Paths may use
            dot notation to reach attributes (e.g. ``test_id="self.test_id"``).

    Example:
        >>> class TransactionalWrapper:
        ...     @bind_context(test_id="self.test_id")
        ...     def rollback(self):
        ...         logger.info("rolling_back")  # includes isolation_test_id
    """

    def decorator(func: F) -> F:
        signature = inspect.signature(func)
        positional_paths = tuple(param_names)
        rename_items = tuple(renames.items())

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            bound_args = signature.bind(*args, **kwargs)
            bound_args.apply_defaults()

            context_data = {}
            for param_name in positional_paths:
                value = _extract_value(bound_args.arguments, param_name)
                if value is not None:
                    context_data[param_name] = value

            for context_key, param_path in rename_items:
                value = _extract_value(bound_args.arguments, param_path)
                if value is not None:
                    context_data[context_key] = value

            if not context_data:
                return func(*args, **kwargs)

            set_isolation_context(**context_data)
            try:
                return func(*args, **kwargs)
            finally:
                unset_isolation_context(*context_data.keys())

        return wrapper  # type: ignore

    return decorator


def _extract_value(arguments: dict, param_path: str) -> Optional[Any]:
    """Extract a value from bound arguments using dot notation.

    Example:
        >>> _extract_value({"item": Item(nodeid="a::b")}, "item.nodeid")
        'a::b'
    """
    parts = param_path.split(".")
    value = arguments.get(parts[0])

    if value is None:
        return None

    for part in parts[1:]:
        try:
            value = getattr(value, part)
        except AttributeError:
            return None

    return value
