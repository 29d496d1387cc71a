# fscript runtime

import inspect
from dataclasses import dataclass, field
from typing import Any, List, Optional, Literal, Dict

from fscript.fscript_interpreter import Evaluator
from fscript.fscript_printer import Printer
from fscript.fscript_scope import Scope, RootScope, BlockScope, ListScope
from fscript.fscript_datatypes import (
    Code, Memory, DataType, Function, Variable, Native,
    FScriptError, TypeMismatch, MissingBlock, UnresolvedName, ContextViolation, NumericDomain,
    type_name,
)

# ===================================================================
# 1. Module registration
# ===================================================================


class Module:
    """A named set of natives that can be installed on a scope.

    Installed modules are read-only mixins: their names resolve from the
    scope but `del` never removes them and user definitions shadow them.
    """
    def __init__(self, name: str):
        self.name = name
        self.scope = Scope()

    def function(self, name: str, impl) -> 'Module':
        self.scope.set_function(name, Native(name, impl))
        return self

    def names(self) -> List[str]:
        return sorted(self.scope.keys())

    def install(self, scope: Scope):
        """Exposes the module on scope, ahead of modules installed earlier."""
        if self.scope not in scope.mixins:
            scope.mixins.insert(0, self.scope)

    @classmethod
    def from_library(cls, name: str, library: Any) -> 'Module':
        """Registers every `_name` method of library as `name` (underscores become dashes)."""
        module = cls(name)
        for attr, member in inspect.getmembers(library):
            if attr.startswith('_') and not attr.startswith('__') and callable(member):
                module.function(attr[1:].replace('_', '-'), member)
        return module

    def __repr__(self) -> str:
        return f"<Module {self.name!r} functions={self.names()!r}>"


# ===================================================================
# 2. Builtins
# ===================================================================


def _expect_memory(args: List[Any], operator: str, role: str) -> Memory:
    memory = args[0] if args else None
    if not isinstance(memory, Memory):
        actual = type_name(memory) if args else "nothing"
        raise TypeMismatch(
            f"Expected memory as {role} for {operator}, but instead got {actual}.",
            operator=operator, expected="Memory", actual=actual,
        )
    return memory


def _expect_block(yield_fn: Optional[Function], operator: str, what: str) -> Function:
    if yield_fn is None:
        raise MissingBlock(
            f"To define {what} with {operator}, add a yield block.",
            operator=operator, expected="yield block", actual="nothing",
        )
    return yield_fn


def _require_call_scope(scope: Scope, operator: str):
    call_scope = scope.get_call_scope()
    if call_scope is None:
        raise ContextViolation(
            f"Cannot call {operator} outside a call scope.",
            operator=operator, expected="call scope", actual="no call scope",
        )
    return call_scope


class Runtime:
    """Python implementations of the fscript builtins.

    Every `_name` method is exposed as `name`; each receives the
    positional arguments, the caller's yield block (or None) and the
    scope the call was made from.
    """
    def __init__(self, evaluator: Evaluator, printer: Optional[Printer] = None):
        self.evaluator = evaluator
        self.printer = printer or Printer()

    # --- Memory ---

    def _fn(self, args, yield_fn, scope):
        memory = _expect_memory(args, "fn", "name of function")
        body = _expect_block(yield_fn, "fn", "a function")
        memory.scope.set_function(memory.name, body)
        return None

    async def _let(self, args, yield_fn, scope):
        memory = _expect_memory(args, "let", "name of variable")
        body = _expect_block(yield_fn, "let", "a variable")
        value = await self.evaluator.call(body, [], None, scope)
        memory.scope.set_function(memory.name, Variable(value, False, memory.name))
        return None

    async def _const(self, args, yield_fn, scope):
        memory = _expect_memory(args, "const", "name of constant")
        body = _expect_block(yield_fn, "const", "a constant")
        value = await self.evaluator.call(body, [], None, scope)
        memory.scope.set_function(memory.name, Variable(value, True, memory.name))
        return None

    def _del(self, args, yield_fn, scope):
        memory = _expect_memory(args, "del", "target")
        memory.scope.delete_function(memory.name)
        return None

    async def _call(self, args, yield_fn, scope):
        memory = _expect_memory(args, "call", "target")
        function = memory.scope.get_function(memory.name)
        if function is None:
            raise UnresolvedName(
                f"Unknown value or function for call '<{memory.name}>'.",
                name=memory.name, operator="call", expected="bound name", actual=memory.name,
            )
        return await self.evaluator.call(function, args[1:], yield_fn, scope)

    def _exists(self, args, yield_fn, scope):
        memory = _expect_memory(args, "exists", "target")
        return memory.scope.has_function(memory.name)

    # --- Scope ---

    def _p(self, args, yield_fn, scope):
        index = args[0] if args else None
        if not isinstance(index, int) or isinstance(index, bool):
            actual = type_name(index) if args else "nothing"
            raise TypeMismatch(
                f"Expected integer for p, but instead got {actual}.",
                operator="p", expected="Number", actual=actual,
            )
        arg_type = DataType.ANY
        if len(args) > 1:
            if not isinstance(args[1], str):
                raise TypeMismatch(
                    f"Expected type string for p, but instead got {type_name(args[1])}.",
                    operator="p", expected="String", actual=type_name(args[1]),
                )
            arg_type = DataType.from_string(args[1])
        if index < 0:
            raise NumericDomain(
                f"Expected positive integer for p, but instead got {index}.",
                operator="p", expected="index >= 0", actual=str(index),
            )
        arguments = _require_call_scope(scope, "p").args
        arg = arguments[index] if index < len(arguments) else None
        if not arg_type.matches(arg):
            raise TypeMismatch(
                f"Expected argument of type {arg_type}, but instead got "
                f"{type_name(arg)} ({self.printer.pformat(arg)}).",
                operator="p", expected=str(arg_type), actual=type_name(arg),
            )
        return arg

    def _args(self, args, yield_fn, scope):
        return ListScope(_require_call_scope(scope, "args").args)

    async def _yield(self, args, yield_fn, scope):
        call_scope = _require_call_scope(scope, "yield")
        block = call_scope.yield_fn
        if block is None:
            raise UnresolvedName(
                "Expected yield function.",
                operator="yield", expected="yield block", actual="nothing",
            )
        return await self.evaluator.call(block, args, yield_fn, call_scope.from_scope)

    def _return(self, args, yield_fn, scope):
        value = args[0] if args else None
        scope.set_return_value(value)
        handle = scope.supports_early_exit()
        if handle is not None:
            handle.break_self()
        return value

    def _pass(self, args, yield_fn, scope):
        value = args[0] if args else None
        scope.set_return_value(value)
        return value

    # --- Interface ---

    def _print(self, args, yield_fn, scope):
        line = " ".join(self.printer.to_string(a) for a in args)
        print(line, file=self.evaluator.output())
        return None


# ===================================================================
# 3. Script Execution
# ===================================================================


@dataclass
class ExecutionResult:
    """The structured result of running a block."""
    status: Literal['success', 'error']
    value: Any = None
    error_message: Optional[str] = None
    error: Optional[BaseException] = None
    side_effects: List[Dict] = field(default_factory=list)

    def format_error(self) -> str:
        if self.status != 'error':
            return ""
        return str(self.error_message or "Unknown error")


class ScriptRunner:
    """Runs fscript code against a persistent global scope."""

    def __init__(self, stdout=None, max_call_depth: Optional[int] = None):
        self.evaluator = Evaluator(stdout=stdout, max_call_depth=max_call_depth)
        self.printer = Printer()
        self.root_scope = RootScope()
        self.runtime = Runtime(self.evaluator, self.printer)
        self.modules: Dict[str, Module] = {}
        self.add_module(Module.from_library("runtime", self.runtime))
        # Top-level definitions live here and survive between runs.
        self.global_scope = BlockScope(parent=self.root_scope)

    def add_module(self, module: Module):
        """Installs a module on the root scope. Later modules win on name clashes."""
        self.modules[module.name] = module
        module.install(self.root_scope)

    def _format_runtime_error(self, e: BaseException) -> str:
        match e:
            case FScriptError():
                msg = f"{e.kind}: {e.message}"
            case RecursionError():
                msg = f"RecursionLimit: {e}"
            case _:
                msg = f"InternalError: {e}"
        st = self._format_stacktrace(getattr(e, "fscript_stack", None) or [])
        if st:
            msg += "\n" + st
        return msg

    def _format_stacktrace(self, stack) -> str:
        if not stack:
            return ""
        frames = []
        for frame in stack:
            name = frame.get('name') or '<call>'
            args_s = " ".join(self.printer.pformat(a) for a in frame.get('args') or [])
            frames.append(f"({name} {args_s})" if args_s else f"({name})")
        return "fscript stacktrace: " + " ".join(frames)

    async def handle_script(self, code: Code) -> ExecutionResult:
        """The main entry point to execute a block of statements."""
        self.evaluator.side_effects.clear()
        self.evaluator.call_stack.clear()
        self.evaluator.depth = 0
        self.global_scope.reset()
        try:
            result = await self.evaluator.run_in(code, self.global_scope)
        except Exception as e:
            err_msg = self._format_runtime_error(e)
            self.evaluator.side_effects.append({'topics': ['stderr'], 'message': err_msg})
            return ExecutionResult(
                status='error',
                error_message=err_msg,
                error=e,
                side_effects=list(self.evaluator.side_effects),
            )
        return ExecutionResult(
            status='success',
            value=result,
            side_effects=list(self.evaluator.side_effects),
        )
