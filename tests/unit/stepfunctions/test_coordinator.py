import decimal
import json
import time
from unittest.mock import MagicMock

import pytest

from cumulus_ecs_task.exceptions import ProtocolError, TransportError
from cumulus_ecs_task.runtime.shutdown import LoopState
from cumulus_ecs_task.stepfunctions.client import ActivityClient
from cumulus_ecs_task.stepfunctions.coordinator import IterationOutcome, TaskLifecycleCoordinator

ACTIVITY_ARN = "arn:aws:states:us-east-1:123456789012:activity:fake-activity"

# valid JSON, but nested deeper than the decoder can recurse
DEEPLY_NESTED = "[" * 200000 + "]" * 200000


class Error(Exception):
    pass


def echo_handler(event, context):
    if event.get("error"):
        raise Error(event["error"])
    return event


def work(payload, token="token-1") -> dict:
    return {"taskToken": token, "input": json.dumps(payload)}


@pytest.fixture
def client():
    return MagicMock(spec=ActivityClient)


def create_coordinator(client, entry_point=echo_handler, **kwargs) -> TaskLifecycleCoordinator:
    return TaskLifecycleCoordinator(ACTIVITY_ARN, entry_point, client, **kwargs)


class TestRunIteration:
    def test_success(self, client):
        client.get_activity_task.return_value = work({"hi": "bye"})

        outcome = create_coordinator(client).run_iteration()

        assert outcome == IterationOutcome.SUCCEEDED
        client.send_success.assert_called_once()
        token, output = client.send_success.call_args.args
        assert token == "token-1"
        assert json.loads(output) == {"hi": "bye"}
        client.send_failure.assert_not_called()

    def test_handler_failure(self, client):
        client.get_activity_task.return_value = work({"hi": "bye", "error": "it failed"})

        outcome = create_coordinator(client).run_iteration()

        assert outcome == IterationOutcome.FAILED
        client.send_failure.assert_called_once_with("token-1", "Error", "it failed")
        client.send_success.assert_not_called()

    def test_no_work(self, client):
        client.get_activity_task.return_value = {}
        entry_point = MagicMock()
        coordinator = create_coordinator(client, entry_point, heartbeat_interval=10)

        for _ in range(3):
            assert coordinator.run_iteration() == IterationOutcome.NO_WORK

        entry_point.assert_not_called()
        client.send_heartbeat.assert_not_called()
        client.send_success.assert_not_called()
        client.send_failure.assert_not_called()

    def test_poll_error(self, client):
        client.get_activity_task.side_effect = TransportError("connection reset")
        entry_point = MagicMock()

        outcome = create_coordinator(client, entry_point).run_iteration()

        assert outcome == IterationOutcome.POLL_ERROR
        entry_point.assert_not_called()
        client.send_success.assert_not_called()
        client.send_failure.assert_not_called()

    def test_malformed_input_fails_task(self, client):
        client.get_activity_task.return_value = {"taskToken": "token-1", "input": "{not json"}
        entry_point = MagicMock()

        outcome = create_coordinator(client, entry_point).run_iteration()

        assert outcome == IterationOutcome.FAILED
        entry_point.assert_not_called()
        client.send_failure.assert_called_once()
        token, error, _ = client.send_failure.call_args.args
        assert token == "token-1"
        assert error == "ProtocolError"

    def test_unserializable_output_fails_task(self, client):
        client.get_activity_task.return_value = work({})

        outcome = create_coordinator(client, lambda event, context: {"value": object()}).run_iteration()

        assert outcome == IterationOutcome.FAILED
        client.send_success.assert_not_called()
        token, error, _ = client.send_failure.call_args.args
        assert token == "token-1"
        assert error == "TypeError"

    @pytest.mark.parametrize("value", ["NaN", "Infinity"])
    def test_non_finite_decimal_output_fails_task(self, client, value):
        client.get_activity_task.return_value = work({})
        coordinator = create_coordinator(
            client, lambda event, context: {"v": decimal.Decimal(value)}
        )

        assert coordinator.run(LoopState(), run_forever=False) == 1

        client.send_success.assert_not_called()
        client.send_failure.assert_called_once()
        token, error, _ = client.send_failure.call_args.args
        assert token == "token-1"
        assert error == "ValueError"

    def test_deeply_nested_input_fails_task(self, client):
        client.get_activity_task.return_value = {"taskToken": "token-1", "input": DEEPLY_NESTED}
        entry_point = MagicMock()

        outcome = create_coordinator(client, entry_point).run_iteration()

        assert outcome == IterationOutcome.FAILED
        entry_point.assert_not_called()
        token, error, _ = client.send_failure.call_args.args
        assert token == "token-1"
        assert error == "ProtocolError"

    @pytest.mark.parametrize(
        "error", [TransportError("connection reset"), ProtocolError("TaskTimedOut", token="token-1")]
    )
    def test_report_errors_are_not_raised(self, client, error):
        client.get_activity_task.return_value = work({"hi": "bye"})
        client.send_success.side_effect = error
        client.send_failure.side_effect = error
        coordinator = create_coordinator(client)

        assert coordinator.run_iteration() == IterationOutcome.SUCCEEDED

        client.get_activity_task.return_value = work({"error": "it failed"})
        assert coordinator.run_iteration() == IterationOutcome.FAILED

        # reports are not retried
        assert client.send_success.call_count == 1
        assert client.send_failure.call_count == 1

    @pytest.mark.parametrize("payload", [{"hi": "bye"}, {"error": "it failed"}])
    def test_heartbeat_stopped_before_report(self, client, payload):
        client.get_activity_task.return_value = work(payload)

        def slow_handler(event, context):
            time.sleep(0.2)
            return echo_handler(event, context)

        create_coordinator(client, slow_handler, heartbeat_interval=20).run_iteration()
        time.sleep(0.1)

        calls = [name for name, _, _ in client.mock_calls]
        assert "send_heartbeat" in calls
        report = "send_failure" if "error" in payload else "send_success"
        assert calls[-1] == report
        assert calls.count(report) == 1

    def test_heartbeats_use_task_token(self, client):
        client.get_activity_task.return_value = work({}, token="token-42")

        def slow_handler(event, context):
            time.sleep(0.1)
            return event

        create_coordinator(client, slow_handler, heartbeat_interval=20).run_iteration()

        assert client.send_heartbeat.call_count >= 1
        for call in client.send_heartbeat.call_args_list:
            assert call.args == ("token-42",)


class TestRun:
    def test_run_once(self, client):
        client.get_activity_task.return_value = {}

        assert create_coordinator(client).run(LoopState(), run_forever=False) == 1
        assert client.get_activity_task.call_count == 1

    def test_run_until_termination(self, client):
        loop_state = LoopState()
        responses = [{}, work({"hi": "bye"}), {}]

        def _get_activity_task(*args, **kwargs):
            response = responses.pop(0)
            if not responses:
                loop_state.request_termination()
            return response

        client.get_activity_task.side_effect = _get_activity_task

        assert create_coordinator(client).run(loop_state) == 3
        client.send_success.assert_called_once()
        assert not loop_state.running

    def test_poll_errors_do_not_end_loop(self, client):
        loop_state = LoopState()
        calls = []

        def _get_activity_task(*args, **kwargs):
            calls.append(1)
            if len(calls) == 3:
                loop_state.request_termination()
                return work({"hi": "bye"})
            raise TransportError("connection reset")

        client.get_activity_task.side_effect = _get_activity_task

        assert create_coordinator(client).run(loop_state) == 3
        client.send_success.assert_called_once()

    def test_unexpected_errors_do_not_end_loop(self, client):
        loop_state = LoopState()
        calls = []

        def _get_activity_task(*args, **kwargs):
            calls.append(1)
            if len(calls) == 3:
                loop_state.request_termination()
                return work({"hi": "bye"})
            raise RuntimeError("unexpected")

        client.get_activity_task.side_effect = _get_activity_task

        assert create_coordinator(client).run(loop_state) == 3
        client.send_success.assert_called_once()
        assert not loop_state.running

    def test_termination_completes_in_flight_task(self, client):
        loop_state = LoopState()
        client.get_activity_task.return_value = work({"hi": "bye"})

        def handler(event, context):
            loop_state.request_termination()
            time.sleep(0.05)
            return event

        assert create_coordinator(client, handler).run(loop_state) == 1
        client.send_success.assert_called_once()
        assert json.loads(client.send_success.call_args.args[1]) == {"hi": "bye"}
