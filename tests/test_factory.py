"""Tests for assembling the component graph and running it end to end."""

from unittest.mock import MagicMock

import pytest
from langchain_core.messages import AIMessage

from conftest import ai_response
from sorcerer.factory import create_chat_api, create_crawler, create_runner, create_sorcerer_app
from sorcerer.generation import PytestUnitTestGenerator
from sorcerer.models import TestCaseResult, TestRunResult
from sorcerer.runners import PytestTestRunner, RemoteTestRunner


def _model(*answers: str) -> MagicMock:
    runnable = MagicMock()
    runnable.invoke.side_effect = [AIMessage(content=answer) for answer in answers]
    model = MagicMock()
    model.bind_tools.return_value = runnable
    model.invoke = runnable.invoke
    return model


def _configured(config, py_workspace, **sorcerer):
    updates = {"file_to_test": str(py_workspace / "src/calc/service.py"), **sorcerer}
    return config.model_copy(update={"sorcerer": config.sorcerer.model_copy(update=updates)})


@pytest.mark.parametrize("mode, expected", [("local", PytestTestRunner), ("remote", RemoteTestRunner)])
def test_create_runner_by_mode(config, mode, expected):
    config = config.model_copy(update={"sorcerer": config.sorcerer.model_copy(update={"mode": mode})})

    runner = create_runner(config)

    assert isinstance(runner, expected)
    runner.close()


def test_chat_api_functions_follow_config(config, py_workspace):
    target = py_workspace / "src/calc/service.py"

    api, _ = create_chat_api(config, target, model=_model())
    disabled = config.model_copy(update={"llm": config.llm.model_copy(update={"enable_functions": False})})
    bare, _ = create_chat_api(disabled, target, model=_model())

    assert api.function_names == ["enumerate_files", "evaluate_expression", "function_chain", "get_file_content"]
    assert bare.function_names == []


def test_crawler_and_runner_exposed_as_functions(config, py_workspace):
    crawler, analyzer = create_crawler(config)

    api, _ = create_chat_api(
        config,
        py_workspace / "src/calc/service.py",
        model=_model(),
        crawler=crawler,
        analyzer=analyzer,
        runner=MagicMock(),
    )

    assert "get_code_definitions_for_files" in api.function_names
    assert "run_unit_tests" in api.function_names
    crawler.close()


def test_requires_file_to_test(config):
    with pytest.raises(ValueError):
        create_sorcerer_app(config, model=_model())


def test_generate_save_and_run(config, py_workspace):
    runner = MagicMock()
    runner.prepare.return_value = ""
    runner.run_tests.return_value = TestRunResult(
        passed_tests=[TestCaseResult(full_name="tests/calc/serviceTests.py::test_add", result="Passed")]
    )
    model = _model(ai_response("def test_add():\n    assert True\n"))
    messages = []

    with create_sorcerer_app(_configured(config, py_workspace), model=model, runner=runner) as app:
        for component in app.components:
            component.subscribe(lambda sender, message: messages.append((type(sender).__name__, message)))
        success = app.run()

    test_file = py_workspace / "tests/calc/serviceTests.py"
    assert success
    assert isinstance(app.sorcerer.generator, PytestUnitTestGenerator)
    assert test_file.read_text() == "def test_add():\n    assert True\n"
    assert app.sorcerer.test_file_path == test_file
    runner.run_tests.assert_called_once_with(str(py_workspace), "serviceTests")
    runner.close.assert_called_once()
    assert ("Sorcerer", "Success!") in messages
    assert any(sender == "DefinitionCrawler" for sender, _ in messages)


def test_generate_then_fix(config, py_workspace):
    failing = TestRunResult(
        failed_tests=[
            TestCaseResult(
                full_name="tests/calc/serviceTests.py::test_add",
                result="Failed",
                message="assert 1 == 2",
                stack_trace="tests/calc/serviceTests.py:2: AssertionError",
            )
        ]
    )
    passing = TestRunResult(passed_tests=[TestCaseResult(full_name="t", result="Passed")])
    runner = MagicMock()
    runner.prepare.return_value = ""
    runner.run_tests.side_effect = [failing, passing]
    model = _model(
        ai_response("def test_add():\n    assert 1 == 2\n"),
        ai_response("def test_add():\n    assert 1 == 1\n"),
    )

    with create_sorcerer_app(_configured(config, py_workspace), model=model, runner=runner) as app:
        assert app.run()

    fix_prompt = model.bind_tools.return_value.invoke.call_args_list[1][0][0][-1].content
    assert "assert 1 == 2  # <-- Issue here" in fix_prompt
    assert (py_workspace / "tests/calc/serviceTests.py").read_text() == "def test_add():\n    assert 1 == 1\n"
