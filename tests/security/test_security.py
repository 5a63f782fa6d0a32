import os

import pytest

from stackplan.EXECUTORS.command_executor import CommandExecutor
from stackplan.MODELS.errors import ParseError
from stackplan.MODELS.plan import CreateVolume, StartService
from stackplan.PARSERS.topology_parser import TopologyParser, parse


def test_command_injection_attempt(tmp_path):
    """
    Shell metacharacters in engine arguments must stay literal.
    ``echo`` stands in for the engine so the argument list is printed, not run.
    """
    injected_file = tmp_path / "injected.txt"
    executor = CommandExecutor(engine="echo")
    step = CreateVolume(volume="data", engine_name=f"data; touch {injected_file}")

    result = executor.run_step(step)

    assert result.success
    assert f"touch {injected_file}" in result.detail
    assert not injected_file.exists(), "Command injection successful! Security vulnerability found."


def test_environment_values_are_not_evaluated(tmp_path):
    injected_file = tmp_path / "injected.txt"
    step = StartService(
        service="web",
        container_name="p-web",
        image="nginx",
        environment={"GREETING": f"$(touch {injected_file})"},
    )
    result = CommandExecutor(engine="echo").run_step(step)

    assert result.success
    assert f"GREETING=$(touch {injected_file})" in result.detail
    assert not os.path.exists(injected_file)


def test_yaml_object_tags_rejected():
    """The topology loader must not construct arbitrary Python objects."""
    content = "services: !!python/object/apply:os.system ['echo pwned']\n"
    with pytest.raises(ParseError):
        TopologyParser().parse_from_string(content)


def test_path_traversal_parse():
    parser = TopologyParser()
    with pytest.raises(ParseError, match="cannot read topology file"):
        parser.parse("../../../../nonexistent/stack.yml")


def test_billion_laughs_style_aliases():
    """Aliases expand to shared objects and are rejected where a scalar is needed."""
    content = (
        "x: &a [lol, lol, lol]\n"
        "services:\n"
        "  web:\n"
        "    image: *a\n"
    )
    with pytest.raises(ParseError):
        parse(content)
