"""Registry of auto-applied aspects.

An aspect is a piece of per-test setup attached to every applicable test
without the test asking for it. Aspects run in ``(priority, registration
order)``; names never decide the order.

An aspect function takes ``(request, applied)``, where ``applied`` holds the
values of the aspects that already ran for this test. It either returns a
value, or is a generator that yields one value: code after the ``yield`` is
its teardown, registered as a finalizer as soon as setup succeeds.
"""

from __future__ import annotations

import functools
import inspect
import itertools
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Set

import structlog

from txisolate.core.constants import AspectPriority
from txisolate.core.exceptions import AspectError, AspectRegistrationError

logger = structlog.get_logger(__name__)

AspectFunc = Callable[[Any, "AppliedAspects"], Any]

SKIP_MARKER = "without_aspects"


class AppliedAspects(Dict[str, Any]):
    """Values of the aspects applied to one test, in the order they ran."""

    @property
    def names(self) -> List[str]:
        return list(self)


def _finish_generator(name: str, generator: Iterator[Any]) -> None:
    try:
        next(generator)
    except StopIteration:
        return
    raise AspectError(f"Aspect {name!r} yielded more than once")


@dataclass
class Aspect:
    """One auto-applied behaviour."""

    name: str
    func: AspectFunc
    priority: int = AspectPriority.DEFAULT
    applies_to: Optional[Callable[[Any], bool]] = None
    sequence: int = field(default=0, compare=False)

    @property
    def sort_key(self) -> tuple:
        return (self.priority, self.sequence)

    def applies(self, item: Any) -> bool:
        return self.applies_to is None or bool(self.applies_to(item))

    def enter(
        self,
        request: Any,
        applied: AppliedAspects,
        register_finalizer: Optional[Callable[[Callable[[], None]], Any]] = None,
    ) -> Any:
        """Run the setup half and register the teardown half.

        Args:
            request: the pytest ``FixtureRequest`` of the test.
            applied: values of aspects that already ran.
            register_finalizer: defaults to ``request.addfinalizer``.
        """
        if register_finalizer is None:
            register_finalizer = request.addfinalizer

        result = self.func(request, applied)
        if not inspect.isgenerator(result):
            return result

        try:
            value = next(result)
        except StopIteration:
            raise AspectError(f"Aspect {self.name!r} did not yield a value") from None
        register_finalizer(functools.partial(_finish_generator, self.name, result))
        return value


class AspectRegistry:
    """Ordered collection of aspects for a test session."""

    def __init__(self) -> None:
        self._aspects: Dict[str, Aspect] = {}
        self._sequence = itertools.count()

    def __contains__(self, name: object) -> bool:
        return name in self._aspects

    def __len__(self) -> int:
        return len(self._aspects)

    def __repr__(self) -> str:
        return f"AspectRegistry({[a.name for a in self.ordered()]})"

    def get(self, name: str) -> Aspect:
        return self._aspects[name]

    def register(
        self,
        name: str,
        func: AspectFunc,
        priority: int = AspectPriority.DEFAULT,
        applies_to: Optional[Callable[[Any], bool]] = None,
    ) -> Aspect:
        """Add an aspect.

        Raises:
            AspectRegistrationError: an aspect with this name already exists.
        """
        if name in self._aspects:
            raise AspectRegistrationError(f"Aspect {name!r} is already registered")
        aspect = Aspect(
            name=name,
            func=func,
            priority=priority,
            applies_to=applies_to,
            sequence=next(self._sequence),
        )
        self._aspects[name] = aspect
        logger.debug("aspect_registered", aspect=name, priority=priority)
        return aspect

    def aspect(
        self,
        name: Optional[str] = None,
        priority: int = AspectPriority.DEFAULT,
        applies_to: Optional[Callable[[Any], bool]] = None,
    ) -> Callable[[AspectFunc], AspectFunc]:
        """Decorator form of :meth:`register`; the name defaults to the function's."""

        def decorator(func: AspectFunc) -> AspectFunc:
            self.register(name or func.__name__, func, priority, applies_to)
            return func

        return decorator

    def unregister(self, name: str) -> Aspect:
        return self._aspects.pop(name)

    def ordered(self) -> List[Aspect]:
        """All aspects, lowest priority first, ties in registration order."""
        return sorted(self._aspects.values(), key=lambda aspect: aspect.sort_key)

    def applicable(self, item: Any) -> List[Aspect]:
        """Aspects that apply to ``item``, honouring ``@pytest.mark.without_aspects``."""
        skipped = _skipped_names(item)
        return [
            aspect
            for aspect in self.ordered()
            if aspect.name not in skipped and aspect.applies(item)
        ]


def _skipped_names(item: Any) -> Set[str]:
    iter_markers = getattr(item, "iter_markers", None)
    if iter_markers is None:
        return set()
    skipped: Set[str] = set()
    for marker in iter_markers(name=SKIP_MARKER):
        skipped.update(marker.args)
    return skipped
