"""
tests/core/parallel/test_executor.py - parallel_map / get_client 테스트
"""

import threading
import time
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from core.parallel.client import DEFAULT_MAX_ATTEMPTS, DEFAULT_RETRY_MODE, get_client
from core.parallel.executor import ParallelConfig, parallel_map
from core.parallel.types import ErrorCategory


class TestParallelConfig:
    """ParallelConfig 테스트"""

    def test_default_is_sequential(self):
        assert ParallelConfig().max_workers == 1

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            ParallelConfig(max_workers=0)

    def test_capped_at_50(self):
        assert ParallelConfig(max_workers=500).max_workers == 50


class TestParallelMap:
    """parallel_map 테스트"""

    def test_empty(self):
        result = parallel_map([], lambda x: x)

        assert len(result) == 0

    def test_sequential_runs_in_current_thread(self):
        main = threading.get_ident()

        result = parallel_map(["a", "b"], lambda _: threading.get_ident())

        assert result.get_data() == [main, main]

    def test_preserves_input_order(self):
        """완료 순서와 무관하게 입력 순서로 반환"""
        delays = {"a.com": 0.05, "b.com": 0.0, "c.com": 0.02}

        def work(domain):
            time.sleep(delays[domain])
            return domain.upper()

        result = parallel_map(list(delays), work, config=ParallelConfig(max_workers=3))

        assert [r.identifier for r in result] == ["a.com", "b.com", "c.com"]
        assert result.get_data() == ["A.COM", "B.COM", "C.COM"]

    def test_failures_recorded(self):
        def work(domain):
            if domain == "bad.com":
                raise ClientError({"Error": {"Code": "AccessDenied", "Message": "no"}}, "ListHostedZonesByName")
            return [domain]

        result = parallel_map(["ok.com", "bad.com"], work, config=ParallelConfig(max_workers=2))

        assert result.success_count == 1
        error = result.get_errors()[0]
        assert error.identifier == "bad.com"
        assert error.category == ErrorCategory.ACCESS_DENIED
        assert error.error_code == "AccessDenied"
        assert error.original_exception.__traceback__ is None

    def test_custom_identifier(self):
        result = parallel_map([("example.com", 1)], lambda item: item[1], identifier=lambda item: item[0])

        assert result.results[0].identifier == "example.com"

    def test_on_complete_called_for_each(self):
        completed = []

        parallel_map([1, 2, 3], lambda x: x * 2, config=ParallelConfig(max_workers=2), on_complete=completed.append)

        assert sorted(r.data for r in completed) == [2, 4, 6]


class TestGetClient:
    """get_client 테스트"""

    def test_retry_config_applied(self):
        session = MagicMock()

        get_client(session, "route53")

        _, kwargs = session.client.call_args
        config = kwargs["config"]
        assert config.retries == {"max_attempts": DEFAULT_MAX_ATTEMPTS, "mode": DEFAULT_RETRY_MODE}
        assert kwargs["region_name"] is None

    def test_region_and_extra_config(self):
        from botocore.config import Config

        session = MagicMock()

        get_client(session, "elbv2", region_name="us-east-1", config=Config(user_agent_extra="dnsops"))

        args, kwargs = session.client.call_args
        assert args[0] == "elbv2"
        assert kwargs["region_name"] == "us-east-1"
        assert kwargs["config"].user_agent_extra == "dnsops"
