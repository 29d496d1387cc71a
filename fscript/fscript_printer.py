"""
A printer for fscript values and AST nodes.
"""
from fscript.fscript_datatypes import (
    Memory, Code, MemoryRef, Call, Variable, Block, Native,
)
from fscript.fscript_scope import Scope, ListScope


class Printer:
    """Formats fscript objects.

    `to_string` is the canonical display form used by `print` and is
    total over values. `pformat` renders source-like text (quoted
    strings, blocks, calls) for diagnostics and stacktraces.
    """

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()

    def to_string(self, value) -> str:
        match value:
            case None:
                return "null"
            case bool():
                return "true" if value else "false"
            case int():
                return str(value)
            case str():
                return value
            case Memory():
                return f"<{value.name}>"
            case ListScope():
                return "[" + ", ".join(self.to_string(v) for v in value) + "]"
            case Scope():
                return "<scope>"
        return self.pformat(value)

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def _get_handler(self, obj):
        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, ListScope): return self._pformat_list_scope
        if isinstance(obj, Scope): return self._pformat_scope
        if isinstance(obj, list): return self._pformat_terms
        # Default to Python's repr for unknown types
        return lambda o, l: repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            int: self._pformat_primitive,
            bool: self._pformat_bool,
            type(None): self._pformat_none,
            Memory: self._pformat_memory,
            MemoryRef: self._pformat_memory_ref,
            Call: self._pformat_call,
            Code: self._pformat_code,
            Variable: self._pformat_variable,
            Block: self._pformat_block,
            Native: self._pformat_native,
        }

    def _pformat_primitive(self, obj, level):
        return str(obj)

    def _pformat_str(self, obj, level):
        # Basic string formatting, does not handle complex escapes
        return f'"{obj}"'

    def _pformat_bool(self, obj, level):
        return 'true' if obj else 'false'

    def _pformat_none(self, obj, level):
        return 'null'

    def _pformat_memory(self, obj, level):
        return f"<{obj.name}>"

    def _pformat_memory_ref(self, obj, level):
        if obj.target is None:
            return f"<{obj.name}>"
        return f"{self._pformat_term(obj.target, level)}.<{obj.name}>"

    def _pformat_list_scope(self, obj, level):
        return "[" + ", ".join(self.pformat(v, level) for v in obj) + "]"

    def _pformat_scope(self, obj, level):
        return "<scope>"

    def _pformat_terms(self, obj, level):
        return " ".join(self._pformat_term(t, level) for t in obj)

    def _pformat_term(self, term, level):
        # A call used as an argument needs parentheses unless it is a bare name.
        if isinstance(term, Call) and (term.args or term.block is not None):
            return f"({self.pformat(term, level)})"
        return self.pformat(term, level)

    def _pformat_call(self, obj, level):
        parts = [obj.name] + [self._pformat_term(a, level) for a in obj.args]
        if obj.block is not None:
            parts.append(self._pformat_code(obj.block, level))
        return " ".join(parts)

    def _pformat_code(self, obj, level):
        params = f"|{' '.join(obj.params)}| " if obj.params else ""
        if not obj.nodes:
            return "{ " + params + "}"
        if len(obj.nodes) == 1 and '\n' not in self.pformat(obj.nodes[0], level):
            return "{ " + params + self.pformat(obj.nodes[0], level) + " }"
        indent = self._indent_char * (level + 1)
        closing = self._indent_char * level
        lines = [f"{indent}{self.pformat(stmt, level + 1)}" for stmt in obj.nodes]
        header = "{ " + params.rstrip() if params else "{"
        return header + "\n" + "\n".join(lines) + f"\n{closing}}}"

    def _pformat_variable(self, obj, level):
        return self.pformat(obj.value, level)

    def _pformat_block(self, obj, level):
        return self._pformat_code(obj.code, level)

    def _pformat_native(self, obj, level):
        return obj.name
