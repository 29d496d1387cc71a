"""
The core fscript interpreter: the Evaluator.
"""
import inspect
import os
import sys
from typing import Any, List, Optional

from fscript.fscript_datatypes import (
    Code, MemoryRef, Call, Memory,
    Function, Variable, Block, Native,
    TypeMismatch, UnresolvedName, RecursionLimit, type_name,
)
from fscript.fscript_scope import Scope, BlockScope, CallScope

DEFAULT_MAX_CALL_DEPTH = 100


def _max_call_depth_from_env() -> int:
    raw = os.environ.get("FSCRIPT_MAX_CALL_DEPTH")
    if raw is None:
        return DEFAULT_MAX_CALL_DEPTH
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_MAX_CALL_DEPTH
    return value if value > 0 else DEFAULT_MAX_CALL_DEPTH


class Evaluator:
    """The fscript execution engine.

    Statements run inside a BlockScope so `return` can stop them.
    Invoking a Block creates a CallScope whose parent is the block's
    closure and whose from_scope is the scope of the call site.
    """
    def __init__(self, stdout=None, max_call_depth: Optional[int] = None):
        # None means "whatever sys.stdout is when print runs".
        self.stdout = stdout
        if max_call_depth is None:
            max_call_depth = _max_call_depth_from_env()
        elif max_call_depth < 1:
            raise ValueError(f"max_call_depth must be positive, got {max_call_depth}")
        self.max_call_depth = max_call_depth
        self.call_stack = []
        self.current_node = None
        self.depth: int = 0
        self.side_effects: List[Any] = []

    def _push_frame(self, name, func, args, call_site_node):
        self.call_stack.append({
            'name': name,
            'func': func,
            'args': args,
            'call_site': call_site_node,
        })

    def _pop_frame(self):
        if self.call_stack:
            self.call_stack.pop()

    def _dbg(self, *parts):
        if os.environ.get("FSCRIPT_DEBUG"):
            print("[DBG]", *parts, file=sys.stderr)

    def output(self):
        return self.stdout if self.stdout is not None else sys.stdout

    async def eval(self, node: Any, scope: Scope) -> Any:
        """Public entry point: evaluates a Code block or a single term."""
        self.current_node = node
        if isinstance(node, Code):
            return await self.run(node, scope)
        return await self._eval(node, scope)

    async def run(self, code: Code, scope: Scope) -> Any:
        """Runs a statement sequence in a fresh BlockScope under scope."""
        return await self.run_in(code, BlockScope(parent=scope))

    async def run_in(self, code: Code, block_scope: BlockScope) -> Any:
        """Runs statements in block_scope until they end or `return` breaks it.

        The result is the return slot when a statement set it, otherwise the
        value of the last statement executed.
        """
        self._dbg("run", len(code), "statements")
        last = None
        for stmt in code:
            if block_scope.broken:
                break
            last = await self._eval(stmt, block_scope)
        if block_scope.has_return_value:
            return block_scope.return_value
        return last

    async def _eval(self, node: Any, scope: Scope) -> Any:
        """Recursive dispatcher for evaluating a term."""
        self.current_node = node
        match node:
            case None | bool() | int() | str():
                return node
            case MemoryRef():
                return await self._eval_memory_ref(node, scope)
            case Call():
                return await self._eval_call(node, scope)
            case Code():
                raise TypeMismatch(
                    "A block can only be attached to a call, not used as an argument.",
                    expected="term", actual="block",
                )
            case _:
                raise TypeMismatch(
                    f"Cannot evaluate {node!r}.",
                    expected="term", actual=type(node).__name__,
                )

    async def _eval_memory_ref(self, node: MemoryRef, scope: Scope) -> Memory:
        if node.target is None:
            return Memory(scope, node.name)
        target = await self._eval(node.target, scope)
        if not isinstance(target, Scope):
            raise TypeMismatch(
                f"Expected scope before .<{node.name}>, but instead got {type_name(target)}.",
                operator=".", expected="Scope", actual=type_name(target),
            )
        return Memory(target, node.name)

    async def _eval_call(self, node: Call, scope: Scope) -> Any:
        func = scope.get_function(node.name)
        if func is None:
            raise UnresolvedName(
                f"Unknown value or function '{node.name}'.",
                name=node.name, expected="bound name", actual=node.name,
            )
        args = [await self._eval(arg, scope) for arg in node.args]
        yield_fn = Block(node.block, scope) if node.block is not None else None
        self._push_frame(node.name, func, args, node)
        try:
            return await self.call(func, args, yield_fn, scope)
        except Exception as e:
            # Frames unwind on the way out; keep the innermost view for the report.
            if getattr(e, "fscript_stack", None) is None:
                e.fscript_stack = list(self.call_stack)
            raise
        finally:
            self._pop_frame()

    async def call(self, func: Function, args: List[Any], yield_fn: Optional[Function], scope: Scope):
        """Calls a function with positional args, an optional yield block and
        the scope of the call site."""
        self._dbg("Evaluator.call", type(func).__name__, "argc", len(args), "yield", yield_fn is not None)
        match func:
            case Variable():
                return func.value

            case Block():
                if self.depth >= self.max_call_depth:
                    raise RecursionLimit(
                        f"Maximum call depth of {self.max_call_depth} exceeded.",
                        expected=f"depth <= {self.max_call_depth}", actual=str(self.depth + 1),
                    )
                # The parent for name lookup is where the block was written (its closure);
                # from_scope is where it is being invoked from.
                call_scope = CallScope(func.closure, args, yield_fn, scope)
                for param, value in zip(func.code.params, args):
                    call_scope.set_function(param, Variable(value, False, param))
                self._dbg("Call-scope params", func.code.params, "argc", len(args))
                self.depth += 1
                try:
                    return await self.run(func.code, call_scope)
                except RecursionLimit:
                    raise
                except RecursionError as e:
                    # The Python stack ran out before max_call_depth did.
                    raise RecursionLimit(
                        f"Maximum call depth exceeded at depth {self.depth}.",
                        expected=f"depth <= {self.max_call_depth}", actual=str(self.depth),
                    ) from e
                finally:
                    self.depth -= 1

            case Native():
                if inspect.iscoroutinefunction(func.impl):
                    return await func.impl(args, yield_fn, scope)
                result = func.impl(args, yield_fn, scope)
                if inspect.isawaitable(result):
                    return await result
                return result

            case _:
                raise TypeMismatch(
                    f"Object is not callable: {func!r}",
                    expected="Function", actual=type(func).__name__,
                )
