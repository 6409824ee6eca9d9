from __future__ import annotations

from typing import Any, Callable, Optional

import pytest

from evaluator import EvaluationContext, LogConsole, MemoryProvider
from functions import FunctionRegistry
from libraries import build_default_registry
from literals import Literal, PatternReference


class FakePattern(PatternReference):
    def __init__(self, text: str) -> None:
        self.text = text

    def to_string(self) -> str:
        return self.text


@pytest.fixture(scope="session")
def registry() -> FunctionRegistry:
    return build_default_registry()


@pytest.fixture
def make_context() -> Callable[..., EvaluationContext]:
    created = []

    def _make(data: bytes = b"", *, base_address: int = 0, **kwargs: Any) -> EvaluationContext:
        kwargs.setdefault("console", LogConsole())
        ctx = EvaluationContext(MemoryProvider(data, base_address=base_address), **kwargs)
        created.append(ctx)
        return ctx

    yield _make
    for ctx in created:
        ctx.file_handles.close_all()


@pytest.fixture
def call(registry: FunctionRegistry) -> Callable[..., Optional[Literal]]:
    def _call(ctx: EvaluationContext, name: str, *args: Literal) -> Optional[Literal]:
        return registry.invoke(ctx, name, list(args))

    return _call
