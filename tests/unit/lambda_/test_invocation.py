import pytest

from cumulus_ecs_task.exceptions import HandlerError
from cumulus_ecs_task.lambda_.installer import EntryPoint
from cumulus_ecs_task.lambda_.invocation import Err, InvocationAdapter, LambdaContext, Ok


@pytest.fixture
def fake_lambda(tmp_path, isolated_imports, fake_lambda_source):
    from cumulus_ecs_task.lambda_.installer import load_handler

    (tmp_path / "fake_lambda.py").write_text(fake_lambda_source)

    def _load(function_name: str = "handler"):
        return load_handler(str(tmp_path), f"fake_lambda.{function_name}")

    return _load


class TestInvocationAdapter:
    def test_invoke_returns_output(self, fake_lambda):
        result = InvocationAdapter().invoke(fake_lambda(), {"hi": "bye"})

        assert result == Ok({"hi": "bye"})

    def test_invoke_captures_error(self, fake_lambda):
        result = InvocationAdapter().invoke(fake_lambda(), {"hi": "bye", "error": "it failed"})

        assert isinstance(result, Err)
        assert isinstance(result.error, HandlerError)
        assert result.error.error_type == "Error"
        assert result.error.error_message == "it failed"
        assert str(result.error) == "Error: it failed"

    def test_invoke_awaits_coroutine(self, fake_lambda):
        adapter = InvocationAdapter()

        assert adapter.invoke(fake_lambda("async_handler"), {"hi": "bye"}) == Ok(
            {"async": True, "hi": "bye"}
        )

        result = adapter.invoke(fake_lambda("async_handler"), {"error": "async failure"})
        assert isinstance(result, Err)
        assert result.error.error_type == "Error"
        assert result.error.error_message == "async failure"

    def test_context_marks_container_invocation(self, fake_lambda):
        entry_point = EntryPoint(
            handler=fake_lambda("context_handler"), function_name="fake-function", memory_size=512
        )

        result = InvocationAdapter().invoke(entry_point, {})

        assert result == Ok({"via": "ECS", "function_name": "fake-function", "memory_limit_in_mb": 512})

    def test_context_of_plain_callable(self):
        contexts = []

        def handler(event, context):
            contexts.append(context)

        result = InvocationAdapter(function_name="plain").invoke(handler, None)

        assert result == Ok(None)
        context = contexts[0]
        assert context.via == "ECS"
        assert context.function_name == "plain"
        assert context.memory_limit_in_mb == LambdaContext.DEFAULT_MEMORY_LIMIT
        assert context.aws_request_id

    def test_builtin_exception_name(self):
        def handler(event, context):
            return event["missing"]

        result = InvocationAdapter().invoke(handler, {})

        assert isinstance(result, Err)
        assert result.error.error_type == "KeyError"


class TestLambdaContext:
    def test_remaining_time_with_timeout(self):
        context = LambdaContext("fn", timeout=10)

        assert 9000 < context.get_remaining_time_in_millis() <= 10000

    def test_remaining_time_without_timeout(self):
        assert LambdaContext("fn").get_remaining_time_in_millis() > 0
