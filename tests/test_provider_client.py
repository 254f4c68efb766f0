"""Tests for credential validation, usage accounting and error mapping"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from genbench.core.config import APIConfig, Config
from genbench.core.errors import ConfigurationError, ProviderCallError
from genbench.core.metrics import ProviderResponse, UsageSnapshot
from genbench.generation.provider_client import ProviderClient, UsageAccumulator, validate_credential

from conftest import FakeTransport, OPENAI_TEST_KEY

MESSAGES = [{"role": "user", "content": "hello"}]


class TestCredentialValidation:

    def test_absent_key_is_not_an_error(self):
        assert validate_credential("openai", None) is False
        assert validate_credential("openai", "   ") is False

    def test_well_formed_keys_accepted(self):
        assert validate_credential("openai", OPENAI_TEST_KEY) is True
        assert validate_credential("anthropic", "sk-ant-" + "x" * 30) is True
        assert validate_credential("google", "AIza" + "y" * 35) is True

    def test_short_key_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            validate_credential("openai", "sk-short")
        assert exc_info.value.provider == "openai"

    def test_wrong_prefix_rejected(self):
        with pytest.raises(ConfigurationError, match="expected prefix 'sk-ant-'"):
            validate_credential("anthropic", "sk-" + "x" * 40)

    def test_whitespace_rejected(self):
        with pytest.raises(ConfigurationError, match="whitespace"):
            validate_credential("openai", "sk-abc def" + "x" * 20)

    def test_prefix_not_enforced_for_gateways(self):
        assert validate_credential("openai", "gateway-" + "z" * 30, enforce_prefix=False) is True

    def test_client_construction_fails_fast_on_malformed_key(self):
        config = Config(api=APIConfig(anthropic_api_key="not-a-real-key-but-long-enough"))
        with pytest.raises(ConfigurationError):
            ProviderClient(config, transports={})


class TestProviderResponse:

    def test_failed_response_cannot_carry_data(self):
        with pytest.raises(ValueError):
            ProviderResponse(success=False, duration_ms=1.0, data="oops", error="bad")

    def test_successful_response_requires_data(self):
        with pytest.raises(ValueError):
            ProviderResponse(success=True, duration_ms=1.0)


class TestUsageAccounting:

    def test_empty_snapshot_has_zero_rates(self):
        snapshot = UsageAccumulator().snapshot()
        assert snapshot.total_requests == 0
        assert snapshot.average_response_time == 0.0
        assert snapshot.error_rate == 0.0

    def test_snapshot_and_delta(self):
        usage = UsageAccumulator()
        usage.record(100.0, tokens=50)
        before = usage.snapshot()
        usage.record(300.0, tokens=20)
        usage.record(200.0, error=True)
        after = usage.snapshot()

        assert after.total_requests == 3
        assert after.total_tokens == 70
        assert after.average_response_time == pytest.approx(200.0)
        assert after.error_rate == pytest.approx(1 / 3)

        delta = after.delta(before)
        assert delta == UsageSnapshot(total_requests=2, total_tokens=20, total_duration_ms=500.0, errors=1)

    def test_concurrent_records_from_threads(self):
        usage = UsageAccumulator()

        def record_many():
            for _ in range(500):
                usage.record(1.0, tokens=2)

        with ThreadPoolExecutor(max_workers=8) as pool:
            for future in [pool.submit(record_many) for _ in range(8)]:
                future.result()

        snapshot = usage.snapshot()
        assert snapshot.total_requests == 4000
        assert snapshot.total_tokens == 8000
        assert snapshot.total_duration_ms == pytest.approx(4000.0)

    async def test_concurrent_client_calls(self, make_client):
        client, _ = make_client([f"reply {i}" for i in range(20)], tokens=3)

        responses = await asyncio.gather(*(client.call("openai", MESSAGES) for _ in range(20)))

        assert all(r.success for r in responses)
        metrics = client.get_metrics()
        assert metrics.total_requests == 20
        assert metrics.total_tokens == 60
        assert metrics.errors == 0

    def test_reset(self):
        usage = UsageAccumulator()
        usage.record(10.0, tokens=5, error=True)
        usage.reset()
        assert usage.snapshot() == UsageSnapshot()


class TestProviderClientCalls:

    async def test_successful_call(self, make_client):
        client, transport = make_client(["generated text"], tokens=42)
        response = await client.call("openai", MESSAGES)

        assert response.success
        assert response.data == "generated text"
        assert response.tokens_used == 42
        assert response.provider == "openai"
        assert response.model == client.config.api.default_model_openai
        assert transport.calls[0]["messages"] == MESSAGES

        metrics = client.get_metrics()
        assert metrics.total_requests == 1
        assert metrics.total_tokens == 42
        assert metrics.errors == 0

    async def test_transport_error_becomes_failed_response(self, make_client):
        client, _ = make_client([ProviderCallError("openai", "AUTH_FAILED", "HTTP 401: invalid key")])
        response = await client.call("openai", MESSAGES)

        assert not response.success
        assert response.data is None
        assert response.error == "HTTP 401: invalid key"
        assert client.get_metrics().errors == 1
        assert client.get_metrics().error_rate == 1.0

    async def test_retryable_error_is_retried(self, config, monkeypatch):
        sleeps = []

        async def fake_sleep(delay):
            sleeps.append(delay)

        monkeypatch.setattr("genbench.generation.provider_client.asyncio.sleep", fake_sleep)
        config.api.max_retries = 2
        transport = FakeTransport([
            ProviderCallError("openai", "RATE_LIMIT", "HTTP 429: slow down", should_retry=True),
            "second time lucky",
        ])
        client = ProviderClient(config, transports={"openai": transport})

        response = await client.call("openai", MESSAGES)
        assert response.success
        assert response.data == "second time lucky"
        assert len(transport.calls) == 2
        assert sleeps == [1.0]

    async def test_non_retryable_error_is_not_retried(self, config):
        config.api.max_retries = 3
        transport = FakeTransport([ProviderCallError("openai", "HTTP_ERROR", "HTTP 400: bad request")])
        client = ProviderClient(config, transports={"openai": transport})

        response = await client.call("openai", MESSAGES)
        assert not response.success
        assert len(transport.calls) == 1

    async def test_unavailable_provider(self, make_client):
        client, _ = make_client()
        response = await client.call("google", MESSAGES)
        assert not response.success
        assert "not available" in response.error
        # Nothing was sent, so nothing is counted
        assert client.get_metrics().total_requests == 0

    async def test_availability_flags(self, make_client):
        client, _ = make_client()
        assert client.available_providers() == ["openai"]
        assert client.is_available("openai")
        assert not client.is_available("anthropic")
        assert client.is_simulated("openai")
        assert client.is_simulated("anthropic")
        assert client.has_real_credentials("openai")
        assert not client.has_real_credentials("google")

    async def test_reset_and_close(self, make_client):
        client, transport = make_client(["a"])
        await client.call("openai", MESSAGES)
        client.reset()
        assert client.get_metrics().total_requests == 0
        async with client:
            pass
        assert transport.closed
