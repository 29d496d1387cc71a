import pytest

from fscript.fscript_datatypes import (
    Memory, DataType, Code, MemoryRef, Call, Variable, Block, Native,
    FScriptError, TypeMismatch, MissingBlock, UnresolvedName, ContextViolation,
    NumericDomain, ConstantViolation, RecursionLimit, type_name,
)
from fscript.fscript_scope import Scope, ListScope


@pytest.mark.parametrize("value, expected", [
    (None, DataType.NONE),
    (True, DataType.BOOLEAN),
    (False, DataType.BOOLEAN),
    (0, DataType.NUMBER),
    (-12, DataType.NUMBER),
    ("", DataType.STRING),
    ("abc", DataType.STRING),
])
def test_data_type_of_primitives(value, expected):
    assert DataType.of(value) is expected


def test_data_type_of_memory_and_scope():
    scope = Scope()
    assert DataType.of(Memory(scope, "x")) is DataType.MEMORY
    assert DataType.of(scope) is DataType.SCOPE
    assert DataType.of(ListScope([1, 2])) is DataType.SCOPE


def test_boolean_is_never_a_number():
    assert not DataType.NUMBER.matches(True)
    assert not DataType.NUMBER.matches(False)
    assert DataType.BOOLEAN.matches(False)


def test_foreign_values_are_rejected():
    with pytest.raises(TypeMismatch):
        DataType.of(1.5)
    assert type_name(1.5) == "float"
    assert type_name("x") == "String"


@pytest.mark.parametrize("text, expected", [
    ("Number", DataType.NUMBER),
    ("number", DataType.NUMBER),
    ("STRING", DataType.STRING),
    ("Any", DataType.ANY),
    ("None", DataType.NONE),
    (" Boolean ", DataType.BOOLEAN),
    ("memory", DataType.MEMORY),
    ("Scope", DataType.SCOPE),
])
def test_data_type_from_string(text, expected):
    assert DataType.from_string(text) is expected


@pytest.mark.parametrize("text", ["Int", "", "Numbers", None, 3])
def test_data_type_from_string_rejects_unknown_names(text):
    with pytest.raises(TypeMismatch) as exc:
        DataType.from_string(text)
    assert exc.value.expected == "type name"


def test_any_matches_everything():
    scope = Scope()
    for value in (None, True, 1, "s", Memory(scope, "x"), scope):
        assert DataType.ANY.matches(value)


def test_matches_is_exact_for_other_tags():
    assert DataType.STRING.matches("a")
    assert not DataType.STRING.matches(1)
    assert DataType.NONE.matches(None)
    assert not DataType.NONE.matches(0)
    assert str(DataType.NUMBER) == "Number"


def test_memory_equality_is_scope_identity_plus_name():
    a, b = Scope(), Scope()
    assert Memory(a, "x") == Memory(a, "x")
    assert Memory(a, "x") != Memory(a, "y")
    assert Memory(a, "x") != Memory(b, "x")
    assert len({Memory(a, "x"), Memory(a, "x"), Memory(b, "x")}) == 2
    assert repr(Memory(a, "x")) == "Memory<'x'>"


def test_code_is_a_mutable_sequence_with_params():
    code = Code([1, 2], params=["n"])
    code.append(3)
    code.insert(0, 0)
    del code[1]
    assert list(code) == [0, 2, 3]
    assert len(code) == 3
    assert code.params == ["n"]
    assert code == Code([0, 2, 3], ["n"])
    assert code != Code([0, 2, 3])


def test_ast_node_equality():
    assert Call("f", [1, MemoryRef("x")]) == Call("f", [1, MemoryRef("x")])
    assert Call("f", [1]) != Call("f", [1], Code([]))
    assert MemoryRef("x", Call("args")) == MemoryRef("x", Call("args"))
    assert MemoryRef("x") != MemoryRef("y")


def test_function_variants():
    scope = Scope()
    assert Variable(1, True, "c") == Variable(1, True, "c")
    assert Variable(1, True, "c") != Variable(1, False, "c")
    code = Code([1])
    assert Block(code, scope) == Block(Code([1]), scope)
    assert Block(code, scope) != Block(code, Scope())
    native = Native("id", lambda args, y, s: args)
    assert native.name == "id"
    assert "id" in repr(native)


@pytest.mark.parametrize("cls, builtin", [
    (TypeMismatch, TypeError),
    (MissingBlock, TypeError),
    (UnresolvedName, LookupError),
    (ContextViolation, RuntimeError),
    (NumericDomain, ValueError),
    (ConstantViolation, ValueError),
    (RecursionLimit, RecursionError),
])
def test_error_taxonomy_bases(cls, builtin):
    err = cls("boom", operator="op", expected="x", actual="y")
    assert isinstance(err, FScriptError)
    assert isinstance(err, builtin)
    assert str(err) == "boom"
    assert (err.operator, err.expected, err.actual) == ("op", "x", "y")


def test_named_errors_carry_the_name():
    assert UnresolvedName("missing", name="f").name == "f"
    assert ConstantViolation("const", name="c").name == "c"
    assert TypeMismatch.kind == "TypeMismatch"
