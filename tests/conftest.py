"""Shared fixtures for the GenBench test suite"""

import json
from typing import List, Union

import pytest

from genbench.core.config import APIConfig, BenchmarkConfig, Config, DataConfig, ValidationConfig
from genbench.core.errors import ProviderCallError
from genbench.generation.provider_client import ProviderClient, ProviderTransport

OPENAI_TEST_KEY = "sk-test" + "a" * 40

ScriptedReply = Union[str, Exception]


class FakeTransport(ProviderTransport):
    """Replays scripted replies in order; exceptions in the script are raised"""

    name = "fake"
    simulated = True

    def __init__(self, replies: List[ScriptedReply] = None, tokens: int = 10):
        self.replies = list(replies or [])
        self.tokens = tokens
        self.calls = []
        self.closed = False

    async def complete(self, messages, model, max_tokens, temperature):
        self.calls.append({"messages": messages, "model": model, "max_tokens": max_tokens})
        if not self.replies:
            raise ProviderCallError(self.name, "EMPTY_RESPONSE", "script exhausted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply, self.tokens

    async def aclose(self):
        self.closed = True


@pytest.fixture
def config(tmp_path):
    """Offline configuration writing everything under tmp_path"""
    return Config(
        api=APIConfig(openai_api_key=OPENAI_TEST_KEY, max_retries=0),
        data=DataConfig(
            metrics_dir=str(tmp_path / "metrics"),
            log_dir=str(tmp_path / "logs"),
            workspace_root=str(tmp_path / "workspaces"),
        ),
        validation=ValidationConfig(compile_timeout=60.0, install_timeout=120.0, test_timeout=120.0),
        benchmark=BenchmarkConfig(),
    )


@pytest.fixture
def make_client(config):
    def _make(replies=None, tokens=10):
        transport = FakeTransport(replies, tokens=tokens)
        return ProviderClient(config, transports={"openai": transport}), transport
    return _make


CALC_INIT = '''"""Tiny calculator package."""

from .main import add, divide

__all__ = ["add", "divide"]
'''

CALC_MAIN = '''"""Calculator entry point."""

import sys


def add(a: float, b: float) -> float:
    """Return the sum of two numbers."""
    return a + b


def divide(a: float, b: float) -> float:
    """Divide a by b, rejecting zero divisors."""
    if b == 0:
        raise ValueError("division by zero")
    return a / b


def main(argv=None) -> int:
    """Print the sum of the command line arguments."""
    args = sys.argv[1:] if argv is None else argv
    total = 0.0
    for value in args:
        total = add(total, float(value))
    print(total)
    return 0


if __name__ == "__main__":
    sys.exit(main())
'''

CALC_TEST = '''import pytest

from calc.main import add, divide, main


def test_add():
    assert add(2, 3) == 5


def test_divide():
    assert divide(9, 3) == 3


def test_divide_by_zero():
    with pytest.raises(ValueError):
        divide(1, 0)


def test_main_prints_total(capsys):
    assert main(["1", "2.5"]) == 0
    assert capsys.readouterr().out.strip() == "3.5"
'''

CALC_REQUIREMENTS = "# standard library only\n"


@pytest.fixture
def calc_files():
    return {
        "src/calc/__init__.py": CALC_INIT,
        "src/calc/main.py": CALC_MAIN,
        "tests/test_calc.py": CALC_TEST,
        "requirements.txt": CALC_REQUIREMENTS,
    }


@pytest.fixture
def analyze_reply():
    return json.dumps({
        "projectName": "Calc",
        "features": ["addition", "division"],
        "dependencies": [],
        "architecture": "single module",
        "fileStructure": ["src/calc/__init__.py", "src/calc/main.py", "tests/test_calc.py", "requirements.txt"],
        "testStrategy": "pytest unit tests",
    })


@pytest.fixture
def generate_reply(calc_files):
    return "Here is the project:\n```json\n" + json.dumps({"files": calc_files}) + "\n```"


@pytest.fixture
def score_reply():
    return json.dumps({"scores": {"codeQuality": 90, "testCoverage": 80}, "overall": 88})
