import io

import pytest

from fscript.fscript_runtime import ScriptRunner
from fscript.fscript_datatypes import Code, MemoryRef, Call


def call(name, *args, block=None):
    return Call(name, list(args), block)


async def run_fscript(runner, *statements):
    res = await runner.handle_script(Code(list(statements)))
    assert res.status == 'success', res.error_message
    return res


@pytest.mark.asyncio
async def test_print_joins_arguments_with_spaces(capsys):
    res = await run_fscript(ScriptRunner(), call("print", 1, "a", True))
    assert res.value is None
    assert capsys.readouterr().out == "1 a true\n"


@pytest.mark.asyncio
async def test_print_without_arguments_prints_empty_line(capsys):
    await run_fscript(ScriptRunner(), call("print"))
    assert capsys.readouterr().out == "\n"


@pytest.mark.asyncio
async def test_print_canonical_forms(capsys):
    await run_fscript(ScriptRunner(), call("print", None, False, -3, "", MemoryRef("x")))
    assert capsys.readouterr().out == "null false -3  <x>\n"


@pytest.mark.asyncio
async def test_print_list_scope(capsys):
    runner = ScriptRunner()
    await run_fscript(runner,
        call("fn", MemoryRef("show"), block=Code([call("print", call("args"))])),
        call("call", MemoryRef("show"), 1, "a", None),
    )
    assert capsys.readouterr().out == "[1, a, null]\n"


@pytest.mark.asyncio
async def test_print_result_of_a_call(capsys):
    runner = ScriptRunner()
    await run_fscript(runner,
        call("let", MemoryRef("x"), block=Code(["hello"])),
        call("print", call("x"), "world"),
    )
    assert capsys.readouterr().out == "hello world\n"


@pytest.mark.asyncio
async def test_print_to_configured_stream(capsys):
    buffer = io.StringIO()
    runner = ScriptRunner(stdout=buffer)
    await run_fscript(runner, call("print", "one"), call("print", "two"))
    assert buffer.getvalue() == "one\ntwo\n"
    assert capsys.readouterr().out == ""
