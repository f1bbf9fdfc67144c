"""
Per-record functions: Mapper and Tap.

Both await each call to completion before pulling the next input, so no
two calls overlap and output order always matches input order, even for
I/O-bound async functions.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

from streamkit.errors import PipelineError, TransformError
from streamkit.pipeline.base import Stage, call_maybe_async, closing_upstream

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable


class MapShape(str, Enum):
    """How a Mapper's function hands back its output.

    RETURN: ``fn(value)`` returns one value, or None for no output.
    EMIT: ``fn(value, emit)`` calls ``emit`` zero or more times.
    """

    RETURN = "return"
    EMIT = "emit"


def _describe(fn: Callable[..., Any]) -> str:
    return getattr(fn, "__qualname__", None) or repr(fn)


class Mapper(Stage[Any, Any]):
    """Apply a function to each value, producing zero, one or many values.

    The shape is chosen by the caller, never inferred from the function's
    signature. Sync and async functions are both accepted.

    Values emitted by an EMIT-shaped call are released only after the call
    completes, so a call that fails contributes no output.

    Example:
        >>> double = Mapper.returning(lambda r: {**r, "n": int(r["n"]) * 2})
        >>> async def explode(r, emit):
        ...     for tag in r["tags"].split("|"):
        ...         emit({"id": r["id"], "tag": tag})
        >>> tags = Mapper.emitting(explode)
    """

    def __init__(
        self,
        fn: Callable[..., Any],
        shape: MapShape = MapShape.RETURN,
        *,
        name: str | None = None,
    ) -> None:
        """Initialize the mapper.

        Args:
            fn: Per-value function, sync or async
            shape: Output convention of ``fn``
            name: Stage name for logs and errors (default: function name)
        """
        if not callable(fn):
            raise TypeError(f"Mapper function must be callable, got {type(fn).__name__}")
        self._fn = fn
        self._shape = MapShape(shape)
        self._name = name

    @classmethod
    def returning(cls, fn: Callable[[Any], Any], *, name: str | None = None) -> Mapper:
        """Create a mapper whose function returns its output."""
        return cls(fn, MapShape.RETURN, name=name)

    @classmethod
    def emitting(
        cls, fn: Callable[[Any, Callable[[Any], None]], Any], *, name: str | None = None
    ) -> Mapper:
        """Create a mapper whose function emits through a callback."""
        return cls(fn, MapShape.EMIT, name=name)

    @property
    def name(self) -> str:
        return self._name or f"Mapper[{_describe(self._fn)}]"

    @property
    def shape(self) -> MapShape:
        return self._shape

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[Any]:
        """Map each input value.

        Args:
            inputs: Async iterator of values

        Yields:
            Mapped values, in input order

        Raises:
            TransformError: If the function raises
        """
        index = 0
        async with closing_upstream(inputs):
            async for value in inputs:
                index += 1
                for output in await self._invoke(value, index):
                    yield output

    async def _invoke(self, value: Any, index: int) -> list[Any]:
        emitted: list[Any] = []
        accepting = True

        def emit(item: Any) -> None:
            if not accepting:
                raise PipelineError(
                    "emit() called after the transform completed", operator=self.name
                )
            emitted.append(item)

        try:
            if self._shape is MapShape.EMIT:
                await call_maybe_async(self._fn, value, emit)
            else:
                result = await call_maybe_async(self._fn, value)
                if result is not None:
                    emitted.append(result)
        except Exception as e:
            raise TransformError(
                f"{self.name} failed on record {index}: {e}",
                stage=self.name,
                record_index=index,
                cause=e,
            ) from e
        finally:
            accepting = False

        return emitted

    def __repr__(self) -> str:
        return f"Mapper({_describe(self._fn)}, shape={self._shape.value})"


class Tap(Stage[Any, Any]):
    """Run a side effect for each value and pass the value on unchanged.

    Example:
        >>> seen = []
        >>> tap = Tap(seen.append)
    """

    def __init__(self, fn: Callable[[Any], Any], *, name: str | None = None) -> None:
        """Initialize the tap.

        Args:
            fn: Side-effect function, sync or async; its result is ignored
            name: Stage name for logs and errors (default: function name)
        """
        if not callable(fn):
            raise TypeError(f"Tap function must be callable, got {type(fn).__name__}")
        self._fn = fn
        self._name = name

    @property
    def name(self) -> str:
        return self._name or f"Tap[{_describe(self._fn)}]"

    async def process(self, inputs: AsyncIterator[Any]) -> AsyncIterator[Any]:
        """Observe each value.

        Args:
            inputs: Async iterator of values

        Yields:
            The same value objects, in input order

        Raises:
            TransformError: If the side effect raises
        """
        index = 0
        async with closing_upstream(inputs):
            async for value in inputs:
                index += 1
                try:
                    await call_maybe_async(self._fn, value)
                except Exception as e:
                    raise TransformError(
                        f"{self.name} failed on record {index}: {e}",
                        stage=self.name,
                        record_index=index,
                        cause=e,
                    ) from e
                yield value

    def __repr__(self) -> str:
        return f"Tap({_describe(self._fn)})"
