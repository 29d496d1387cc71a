"""
Scope variants for the fscript runtime.

Every scope is a binding table (define/lookup/delete/has), a return slot,
and a source of call context. Only call scopes carry arguments and a
yield block; only block scopes can be asked to stop early.
"""

from typing import List, Dict, Any, Optional, Iterator
import collections.abc

from fscript.fscript_datatypes import (
    Function, Variable, ConstantViolation, NumericDomain, TypeMismatch,
)


class Scope:
    """A binding table with a lexical parent and read-only mixins.

    Lookup walks self, then mixins in order, then the parent chain; the
    nearest owner wins. Definitions always land in this scope.
    """
    def __init__(self, parent: Optional['Scope'] = None):
        self.bindings: Dict[str, Function] = {}
        self.meta: Dict[str, Any] = {
            "parent": parent,
            "mixins": []  # List[Scope]
        }
        self._return_value: Any = None
        self.has_return_value: bool = False

    # --- Binding table ---

    def find_owner(self, name: str) -> Optional['Scope']:
        """Finds the scope in the lookup chain (self → mixins → parent) that owns name."""
        if name in self.bindings:
            return self
        for mixin in self.meta.get("mixins", []):
            owner = mixin.find_owner(name)
            if owner is not None:
                return owner
        parent = self.meta.get("parent")
        if parent is not None:
            return parent.find_owner(name)
        return None

    def get_function(self, name: str) -> Optional[Function]:
        owner = self.find_owner(name)
        if owner is None:
            return None
        return owner.bindings[name]

    def set_function(self, name: str, function: Function):
        existing = self.bindings.get(name)
        if isinstance(existing, Variable) and existing.constant:
            raise ConstantViolation(
                f"Cannot redefine constant '{name}'.",
                name=name, expected="non-constant binding", actual="constant",
            )
        self.bindings[name] = function

    def delete_function(self, name: str):
        """Removes name from the nearest owner on the parent chain. Mixins are never touched."""
        scope = self
        while scope is not None:
            if name in scope.bindings:
                del scope.bindings[name]
                return
            scope = scope.parent

    def has_function(self, name: str) -> bool:
        return self.find_owner(name) is not None

    # --- Call context ---

    def get_call_scope(self) -> Optional['CallScope']:
        parent = self.parent
        if parent is None:
            return None
        return parent.get_call_scope()

    # --- Return slot and early exit ---

    def set_return_value(self, value: Any):
        self._return_value = value
        self.has_return_value = True

    @property
    def return_value(self) -> Any:
        return self._return_value

    def supports_early_exit(self) -> Optional['BlockScope']:
        """Returns a break handle when this scope can stop its own execution."""
        return None

    # --- Structure ---

    @property
    def parent(self) -> Optional['Scope']:
        return self.meta.get("parent")

    @property
    def mixins(self) -> List['Scope']:
        """Returns the live list of mixin scopes."""
        return self.meta.setdefault("mixins", [])

    def add_mixin(self, *sources: 'Scope'):
        """Adds one or more mixin scopes, preserving order and avoiding duplicates."""
        mixins: List['Scope'] = self.meta.setdefault("mixins", [])
        for src in sources:
            if src not in mixins:
                mixins.append(src)

    def keys(self) -> collections.abc.KeysView:
        """Returns a view of names bound in this scope only."""
        return self.bindings.keys()

    def __contains__(self, name: Any) -> bool:
        return isinstance(name, str) and self.has_function(name)

    def __repr__(self) -> str:
        keys = ', '.join(self.bindings.keys())
        parent_id = f", parent=#{id(self.parent)}" if self.parent is not None else ""
        return f"<{type(self).__name__} bindings=[{keys}]{parent_id}>"


class RootScope(Scope):
    """The global scope. Runtime modules are installed on it as mixins."""
    def __init__(self):
        super().__init__(parent=None)

    def get_call_scope(self) -> Optional['CallScope']:
        return None


class BlockScope(Scope):
    """The scope of one executing statement sequence.

    `return` uses this scope's break handle to stop the sequence; the
    evaluator checks `broken` before every statement.
    """
    def __init__(self, parent: Optional[Scope] = None):
        super().__init__(parent)
        self.broken: bool = False

    def break_self(self):
        self.broken = True

    def supports_early_exit(self) -> Optional['BlockScope']:
        return self

    def reset(self):
        """Clears the break flag and return slot so the scope can run again."""
        self.broken = False
        self._return_value = None
        self.has_return_value = False


class CallScope(Scope):
    """The activation record of one invocation.

    `args`, `yield_fn` and `from_scope` are fixed at construction; only
    the bindings and the return slot change afterwards.
    """
    def __init__(self, parent: Optional[Scope], args: List[Any],
                 yield_fn: Optional[Function] = None, from_scope: Optional[Scope] = None):
        super().__init__(parent)
        self._args = tuple(args)
        self._yield_fn = yield_fn
        self._from_scope = from_scope

    @property
    def args(self) -> List[Any]:
        return list(self._args)

    @property
    def yield_fn(self) -> Optional[Function]:
        return self._yield_fn

    @property
    def from_scope(self) -> Optional[Scope]:
        """The scope active where the yield block was attached."""
        return self._from_scope

    def get_call_scope(self) -> Optional['CallScope']:
        return self


class ListScope(Scope):
    """A list of values exposed as a scope.

    Slots are named by decimal index; `length` is a read-only slot.
    Behaves as a sequence from Python.
    """
    def __init__(self, items: Optional[List[Any]] = None, parent: Optional[Scope] = None):
        super().__init__(parent)
        self.items: List[Any] = list(items or [])

    def _index(self, name: str) -> Optional[int]:
        if isinstance(name, str) and name.isascii() and name.isdecimal():
            return int(name)
        return None

    def get_function(self, name: str) -> Optional[Function]:
        if name == "length":
            return Variable(len(self.items), True, name)
        i = self._index(name)
        if i is not None:
            if i < len(self.items):
                return Variable(self.items[i], False, name)
            return None
        return super().get_function(name)

    def set_function(self, name: str, function: Function):
        if name == "length":
            raise ConstantViolation("Cannot redefine constant 'length'.", name=name,
                                    expected="non-constant binding", actual="constant")
        i = self._index(name)
        if i is None:
            super().set_function(name, function)
            return
        if not isinstance(function, Variable):
            raise TypeMismatch(
                f"Expected a value for list slot {name}, but instead got {type(function).__name__}.",
                expected="Variable", actual=type(function).__name__,
            )
        if i < len(self.items):
            self.items[i] = function.value
        elif i == len(self.items):
            self.items.append(function.value)
        else:
            raise NumericDomain(
                f"List index {i} is out of range for a list of length {len(self.items)}.",
                expected=f"index <= {len(self.items)}", actual=str(i),
            )

    def delete_function(self, name: str):
        i = self._index(name)
        if i is None:
            super().delete_function(name)
        elif i < len(self.items):
            del self.items[i]

    def has_function(self, name: str) -> bool:
        if name == "length":
            return True
        i = self._index(name)
        if i is not None:
            return i < len(self.items)
        return super().has_function(name)

    def get_call_scope(self) -> Optional['CallScope']:
        return None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __contains__(self, item: Any) -> bool:
        return item in self.items

    def __eq__(self, other):
        if isinstance(other, ListScope):
            return self.items == other.items
        if isinstance(other, list):
            return self.items == other
        return NotImplemented

    __hash__ = Scope.__hash__

    def __repr__(self) -> str:
        return f"<ListScope items={self.items!r}>"
