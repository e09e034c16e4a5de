"""Tests for connection resolution.

The real ``CosmosClient`` and ``DefaultAzureCredential`` are replaced with
recorders so no test opens a network connection.
"""

import pytest

from cosmosdb_mcp import connection
from cosmosdb_mcp.connection import (
    DEFAULT_EMULATOR_ENDPOINT,
    EMULATOR_KEY,
    ClientHandle,
    ConnectionConfig,
    CosmosClientFactory,
)
from cosmosdb_mcp.errors import ConnectionResolutionError


class RecordingClient:
    instances: list["RecordingClient"] = []

    def __init__(self, endpoint, credential=None, **kwargs):
        self.endpoint = endpoint
        self.credential = credential
        self.kwargs = kwargs
        self.entered = False
        self.closed = False
        RecordingClient.instances.append(self)

    async def __aenter__(self):
        self.entered = True
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True


class RecordingCredential:
    def __init__(self):
        self.closed = False

    async def close(self):
        self.closed = True


class FailingClient(RecordingClient):
    async def __aenter__(self):
        raise ConnectionError("connection refused")


@pytest.fixture(autouse=True)
def recorders(monkeypatch):
    RecordingClient.instances = []
    monkeypatch.setattr(connection, "CosmosClient", RecordingClient)
    monkeypatch.setattr(connection, "DefaultAzureCredential", RecordingCredential)


class TestConnectionConfig:
    """Test endpoint derivation from per-call settings."""

    def test_service_endpoint(self):
        config = ConnectionConfig(account="contoso")
        assert config.endpoint == "https://contoso.documents.azure.com:443/"

    def test_emulator_default_endpoint(self):
        config = ConnectionConfig(use_emulator=True)
        assert config.endpoint == DEFAULT_EMULATOR_ENDPOINT == "http://localhost:8081"

    def test_emulator_custom_endpoint(self):
        config = ConnectionConfig.model_validate(
            {"useEmulator": True, "emulatorEndpoint": "http://cosmos:8081"}
        )
        assert config.endpoint == "http://cosmos:8081"

    def test_account_required_without_emulator(self):
        with pytest.raises(ConnectionResolutionError, match="account name is required"):
            ConnectionConfig(account="   ").validate_connection()

    def test_emulator_ignores_missing_account(self):
        ConnectionConfig(use_emulator=True).validate_connection()


class TestCosmosClientFactory:
    """Test credential selection."""

    def test_emulator_uses_well_known_key(self):
        handle = CosmosClientFactory().resolve(ConnectionConfig(use_emulator=True))

        client = RecordingClient.instances[-1]
        assert handle.mode == connection.MODE_EMULATOR
        assert client.endpoint == DEFAULT_EMULATOR_ENDPOINT
        assert client.credential == EMULATOR_KEY
        assert client.kwargs == {"connection_verify": False}

    def test_account_key_preferred_over_identity(self):
        handle = CosmosClientFactory(account_key="abc==").resolve(ConnectionConfig(account="acct"))

        client = RecordingClient.instances[-1]
        assert handle.mode == connection.MODE_KEY
        assert client.endpoint == "https://acct.documents.azure.com:443/"
        assert client.credential == "abc=="

    def test_identity_fallback(self):
        handle = CosmosClientFactory().resolve(ConnectionConfig(account="acct"))

        assert handle.mode == connection.MODE_IDENTITY
        assert isinstance(RecordingClient.instances[-1].credential, RecordingCredential)

    def test_missing_account_fails_before_client_creation(self):
        with pytest.raises(ConnectionResolutionError, match="account name is required"):
            CosmosClientFactory().resolve(ConnectionConfig())

        assert RecordingClient.instances == []

    def test_resolution_does_not_open_client(self):
        CosmosClientFactory().resolve(ConnectionConfig(account="acct"))
        assert RecordingClient.instances[-1].entered is False

    def test_client_construction_failure_is_wrapped(self, monkeypatch):
        def broken(*args, **kwargs):
            raise ValueError("bad endpoint")

        monkeypatch.setattr(connection, "CosmosClient", broken)

        with pytest.raises(ConnectionResolutionError, match="bad endpoint"):
            CosmosClientFactory(account_key="k").resolve(ConnectionConfig(account="acct"))


class TestClientHandle:
    """Test that handles release every resource they own."""

    @pytest.mark.asyncio
    async def test_closes_client_and_credential(self):
        handle = CosmosClientFactory().resolve(ConnectionConfig(account="acct"))
        credential = handle.client.credential

        async with handle as client:
            assert client.entered is True

        assert client.closed is True
        assert credential.closed is True

    @pytest.mark.asyncio
    async def test_closes_on_error(self):
        handle = CosmosClientFactory().resolve(ConnectionConfig(account="acct"))

        with pytest.raises(RuntimeError):
            async with handle:
                raise RuntimeError("boom")

        assert handle.client.closed is True
        assert handle.client.credential.closed is True

    @pytest.mark.asyncio
    async def test_credential_closed_when_open_fails(self):
        credential = RecordingCredential()
        handle = ClientHandle(
            FailingClient("https://acct.documents.azure.com:443/", credential),
            "https://acct.documents.azure.com:443/",
            connection.MODE_IDENTITY,
            credential=credential,
        )

        with pytest.raises(ConnectionError):
            async with handle:
                pass

        assert credential.closed is True
