"""
Tests unitaires des modèles et exceptions.
"""
import pytest

from mcp_http_adapter.core.exceptions import (
    AdapterError,
    ConfigurationError,
    ExecutionCancelledError,
    ExecutionError,
    ProcessExitError,
)
from mcp_http_adapter.core.models import ExecutionRequest, ExecutionResult

pytestmark = pytest.mark.unit


class TestExecutionRequest:

    def test_copies_caller_collections(self):
        args = ["--a", "1"]
        env = {"A": "1"}
        request = ExecutionRequest(command="cat", args=args, env=env, input=b"x")
        args.append("--b")
        env["B"] = "2"
        assert request.args == ("--a", "1")
        assert dict(request.env) == {"A": "1"}
        assert request.argv == ["cat", "--a", "1"]

    def test_empty_command_rejected(self):
        with pytest.raises(ValueError):
            ExecutionRequest(command="")

    def test_result_text(self):
        assert ExecutionResult(output="é".encode()).text == "é"


class TestExceptions:

    def test_hierarchy(self):
        assert issubclass(ConfigurationError, AdapterError)
        assert issubclass(ProcessExitError, ExecutionError)
        assert issubclass(ExecutionCancelledError, ExecutionError)

    def test_str_includes_code_and_details(self):
        err = ProcessExitError("échec", returncode=3, pid=42, stderr=b"boom")
        assert str(err) == "[process_error] échec - Détails: {'returncode': 3, 'pid': 42}"
        assert err.stderr_text == "boom"

    def test_configuration_error_key(self):
        err = ConfigurationError("Port invalide", config_key="port")
        assert err.code == "config_error"
        assert err.details == {"key": "port"}
