import io

import pytest

from cexpr.cexpr_equation import Equation
from cexpr.cexpr_script import ScriptParser


@pytest.fixture  # type: ignore[misc]
def output() -> io.StringIO:
    return io.StringIO()


@pytest.fixture  # type: ignore[misc]
def equation(output: io.StringIO) -> Equation:
    return Equation(output=output)


@pytest.fixture  # type: ignore[misc]
def script(output: io.StringIO) -> ScriptParser:
    return ScriptParser(output=output)
