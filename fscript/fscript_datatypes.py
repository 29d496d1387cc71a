"""
Defines the core data types for the fscript runtime.

This module provides the value model (including the `Memory` slot
reference), the type tags used by `p`, the callable variants the
evaluator dispatches on, the AST node types a host hands to the
evaluator, and the error taxonomy for every fatal condition.
"""

from abc import ABC
from enum import Enum
from typing import List, Any, Optional, Callable, TYPE_CHECKING
import collections.abc

if TYPE_CHECKING:
    from fscript.fscript_scope import Scope


# =================================================================
# Errors
# =================================================================

class FScriptError(Exception):
    """Base class for every fatal fscript condition.

    Carries the operator that failed, the shape it expected and what it
    actually received, so the top-level runner can report something
    actionable.
    """
    kind = "Error"

    def __init__(self, message: str, *, operator: Optional[str] = None,
                 expected: Optional[str] = None, actual: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operator = operator
        self.expected = expected
        self.actual = actual

    def __str__(self) -> str:
        return self.message


class TypeMismatch(FScriptError, TypeError):
    kind = "TypeMismatch"


class MissingBlock(FScriptError, TypeError):
    kind = "MissingBlock"


class UnresolvedName(FScriptError, LookupError):
    kind = "UnresolvedName"

    def __init__(self, message: str, *, name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name


class ContextViolation(FScriptError, RuntimeError):
    kind = "ContextViolation"


class NumericDomain(FScriptError, ValueError):
    kind = "NumericDomain"


class ConstantViolation(FScriptError, ValueError):
    kind = "ConstantViolation"

    def __init__(self, message: str, *, name: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.name = name


class RecursionLimit(FScriptError, RecursionError):
    kind = "RecursionLimit"


# =================================================================
# Values
# =================================================================

class Memory:
    """An unresolved reference to one binding slot: a scope plus a name.

    The scope is shared, not owned. Two memories are equal when they
    name the same slot of the same scope object.
    """
    __slots__ = ("scope", "name")

    def __init__(self, scope: 'Scope', name: str):
        self.scope = scope
        self.name = name

    def __eq__(self, other):
        if not isinstance(other, Memory):
            return NotImplemented
        return self.scope is other.scope and self.name == other.name

    def __hash__(self):
        return hash((id(self.scope), self.name))

    def __repr__(self) -> str:
        return f"Memory<{self.name!r}>"


class DataType(Enum):
    """Type tags for runtime values. `Any` matches everything."""
    ANY = "Any"
    NONE = "None"
    BOOLEAN = "Boolean"
    NUMBER = "Number"
    STRING = "String"
    MEMORY = "Memory"
    SCOPE = "Scope"

    @classmethod
    def of(cls, value: Any) -> 'DataType':
        from fscript.fscript_scope import Scope
        match value:
            case None:
                return cls.NONE
            case bool():
                return cls.BOOLEAN
            case int():
                return cls.NUMBER
            case str():
                return cls.STRING
            case Memory():
                return cls.MEMORY
            case Scope():
                return cls.SCOPE
        raise TypeMismatch(
            f"Not an fscript value: {value!r}.",
            expected="value", actual=type(value).__name__,
        )

    @classmethod
    def from_string(cls, text: str) -> 'DataType':
        """Parses a tag from its textual name, case-insensitively."""
        if isinstance(text, str):
            wanted = text.strip().lower()
            for tag in cls:
                if tag.value.lower() == wanted:
                    return tag
        raise TypeMismatch(
            f"Expected a type name ({', '.join(t.value for t in cls)}), but instead got {text!r}.",
            expected="type name", actual=repr(text),
        )

    def matches(self, value: Any) -> bool:
        if self is DataType.ANY:
            return True
        return DataType.of(value) is self

    def __str__(self) -> str:
        return self.value


def type_name(value: Any) -> str:
    """Name of a value's type tag, or the Python type for foreign objects."""
    try:
        return DataType.of(value).value
    except TypeMismatch:
        return type(value).__name__


# =================================================================
# AST
# =================================================================

class Code(collections.abc.MutableSequence):
    """An unevaluated statement sequence (`{ ... }`).

    `params` optionally names the positional arguments (`{ |n| ... }`);
    they are bound in the call scope when the block is invoked.
    """
    def __init__(self, statements: List[Any], params: Optional[List[str]] = None):
        self.nodes = list(statements)
        self.params = list(params or [])

    def __getitem__(self, index):
        return self.nodes[index]

    def __setitem__(self, index, value):
        self.nodes[index] = value

    def __delitem__(self, index):
        del self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def insert(self, index, value):
        self.nodes.insert(index, value)

    def __repr__(self) -> str:
        return f"Code({self.nodes!r}, params={self.params!r})"

    def __eq__(self, other):
        return isinstance(other, Code) and self.nodes == other.nodes and self.params == other.params


class MemoryRef:
    """A `<name>` term. Evaluates to a Memory in the current scope, or in
    the Scope value produced by `target` (`target.<name>`)."""
    def __init__(self, name: str, target: Any = None):
        self.name = name
        self.target = target

    def __repr__(self) -> str:
        if self.target is None:
            return f"MemoryRef<{self.name!r}>"
        return f"MemoryRef<{self.target!r}.{self.name!r}>"

    def __eq__(self, other):
        return isinstance(other, MemoryRef) and self.name == other.name and self.target == other.target


class Call:
    """A named call: `name arg... { block }`."""
    def __init__(self, name: str, args: Optional[List[Any]] = None, block: Optional[Code] = None):
        self.name = name
        self.args = list(args or [])
        self.block = block

    def __repr__(self) -> str:
        return f"Call({self.name!r}, {self.args!r}, block={self.block!r})"

    def __eq__(self, other):
        return (
            isinstance(other, Call) and
            self.name == other.name and
            self.args == other.args and
            self.block == other.block
        )


# =================================================================
# Functions
# =================================================================

class Function(ABC):
    """Abstract base class for everything a scope can bind."""
    pass


class Variable(Function):
    """A stored value. Calling it yields the value."""
    def __init__(self, value: Any, constant: bool = False, name: str = ""):
        self.value = value
        self.constant = constant
        self.name = name

    def __repr__(self) -> str:
        kind = "const" if self.constant else "let"
        return f"<Variable {kind} {self.name!r}={self.value!r}>"

    def __eq__(self, other):
        if not isinstance(other, Variable):
            return NotImplemented
        return self.value == other.value and self.constant == other.constant and self.name == other.name


class Block(Function):
    """A code block closed over the scope it was written in.

    This is both the body of an `fn` definition and the yield block
    attached to a call.
    """
    def __init__(self, code: Code, closure: 'Scope'):
        self.code = code
        self.closure = closure

    def __repr__(self) -> str:
        return f"<Block statements={len(self.code)} params={self.code.params!r}>"

    def __eq__(self, other):
        if not isinstance(other, Block):
            return NotImplemented
        # closures compare by identity
        return self.code == other.code and self.closure is other.closure


NativeImpl = Callable[[List[Any], Optional[Function], 'Scope'], Any]


class Native(Function):
    """A host-implemented callable, invoked with (args, yield_fn, scope)."""
    def __init__(self, name: str, impl: NativeImpl):
        self.name = name
        self.impl = impl

    def __repr__(self) -> str:
        return f"<Native {self.name!r}>"
