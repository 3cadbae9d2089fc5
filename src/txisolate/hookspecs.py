"""Hooks txisolate adds to pytest."""

from typing import Any

import pluggy

hookspec = pluggy.HookspecMarker("pytest")


@hookspec
def pytest_txisolate_register_aspects(registry: Any, config: Any) -> None:
    """Register auto-applied aspects for this test session.

    Called once, after collection, so every conftest file can take part.

    Args:
        registry: the session's ``txisolate.aspects.AspectRegistry``.
        config: the pytest config object.

    Example::

        def pytest_txisolate_register_aspects(registry, config):
            @registry.aspect(priority=10)
            def widget(request, applied):
                session = applied["transaction"].session
                widget = Widget(name="spanner")
                session.add(widget)
                yield widget
    """
