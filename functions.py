from __future__ import annotations
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Sequence, Tuple, Union

from literals import EvaluationAbort, Literal, PatternLanguageError, abort_evaluation

if TYPE_CHECKING:
    from evaluator import EvaluationContext


NAMESPACE_SEPARATOR = "::"

FunctionImpl = Callable[["EvaluationContext", List[Literal]], Optional[Literal]]


class FunctionRegistryError(PatternLanguageError):
    pass


@dataclass(frozen=True)
class Namespace:
    path: Tuple[str, ...]

    @classmethod
    def of(cls, spec: Union[str, Sequence[str], "Namespace"]) -> "Namespace":
        if isinstance(spec, Namespace):
            return spec
        if isinstance(spec, str):
            parts = [p for p in spec.replace(".", NAMESPACE_SEPARATOR).split(NAMESPACE_SEPARATOR) if p]
            return cls(tuple(parts))
        return cls(tuple(spec))

    def qualify(self, name: str) -> str:
        return NAMESPACE_SEPARATOR.join(self.path + (name,))

    def __str__(self) -> str:
        return NAMESPACE_SEPARATOR.join(self.path)


@dataclass(frozen=True)
class ParameterCount:
    min_args: int
    max_args: Optional[int]

    @classmethod
    def exactly(cls, count: int) -> "ParameterCount":
        return cls(count, count)

    @classmethod
    def at_least(cls, count: int) -> "ParameterCount":
        return cls(count, None)

    @classmethod
    def more_than(cls, count: int) -> "ParameterCount":
        return cls(count + 1, None)

    @classmethod
    def none(cls) -> "ParameterCount":
        return cls(0, 0)

    @classmethod
    def between(cls, lo: int, hi: int) -> "ParameterCount":
        if hi < lo:
            raise FunctionRegistryError(f"Invalid parameter range {lo}..{hi}")
        return cls(lo, hi)

    def validate(self, name: str, supplied: int) -> None:
        if self.max_args == 0 and supplied != 0:
            abort_evaluation(f"{name} expects no parameters")
        if supplied < self.min_args:
            abort_evaluation(f"{name} expects at least {self.min_args} parameters")
        if self.max_args is not None and supplied > self.max_args:
            abort_evaluation(f"{name} expects at most {self.max_args} parameters")


@dataclass(frozen=True)
class Function:
    namespace: Namespace
    name: str
    parameter_count: ParameterCount
    impl: FunctionImpl
    dangerous: bool = False
    doc: str = ""

    @property
    def qualified_name(self) -> str:
        return self.namespace.qualify(self.name)


class FunctionRegistry:
    def __init__(self) -> None:
        self.table: Dict[str, Function] = {}

    def _register(self, function: Function) -> None:
        name = function.qualified_name
        if not function.name:
            raise FunctionRegistryError("Function name must be non-empty")
        if name in self.table:
            raise FunctionRegistryError(f"Cannot override existing function '{name}'")
        self.table[name] = function

    def add_function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        impl: FunctionImpl,
        *,
        doc: str = "",
    ) -> Function:
        function = Function(Namespace.of(namespace), name, parameter_count, impl, dangerous=False, doc=doc)
        self._register(function)
        return function

    def add_dangerous_function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        impl: FunctionImpl,
        *,
        doc: str = "",
    ) -> Function:
        function = Function(Namespace.of(namespace), name, parameter_count, impl, dangerous=True, doc=doc)
        self._register(function)
        return function

    def function(
        self,
        namespace: Union[str, Sequence[str], Namespace],
        name: str,
        parameter_count: ParameterCount,
        *,
        dangerous: bool = False,
        doc: str = "",
    ):
        def deco(fn: FunctionImpl) -> FunctionImpl:
            if dangerous:
                self.add_dangerous_function(namespace, name, parameter_count, fn, doc=doc)
            else:
                self.add_function(namespace, name, parameter_count, fn, doc=doc)
            return fn

        return deco

    def lookup(self, name: str) -> Optional[Function]:
        # "std.mem.size" and "std::mem::size" name the same function
        return self.table.get(str(Namespace.of(name)))

    def names(self) -> List[str]:
        return sorted(self.table)

    def dangerous_names(self) -> List[str]:
        return sorted(name for name, fn in self.table.items() if fn.dangerous)

    def invoke(self, ctx: "EvaluationContext", name: str, params: List[Literal]) -> Optional[Literal]:
        function = self.lookup(name)
        if function is None:
            abort_evaluation(f"Unknown function '{name}'")
        qualified = function.qualified_name
        try:
            function.parameter_count.validate(qualified, len(params))
            if function.dangerous and not ctx.allow_dangerous:
                abort_evaluation(f"dangerous function '{qualified}' is not permitted")
            return function.impl(ctx, params)
        except EvaluationAbort as error:
            if error.function is None:
                error.function = qualified
            raise
