import time
from unittest.mock import MagicMock

import pytest

from layr.adapters.channel import ManagedChannelClient
from layr.constants import ServiceFamily
from layr.exceptions import ChannelError, ChannelUnavailableError, OperationTimeoutError
from layr.settings import LayrSettings


def test_all_families_unavailable_by_default():
    client = ManagedChannelClient()
    assert client.availability() == dict.fromkeys(ServiceFamily, False)


def test_availability_from_settings():
    settings = LayrSettings(managed_channel_enabled=True, managed_channels={"stripe": False})
    client = ManagedChannelClient.from_settings(settings)

    assert client.is_available(ServiceFamily.VERCEL)
    assert client.is_available("supabase")
    assert not client.is_available(ServiceFamily.STRIPE)


def test_set_availability():
    client = ManagedChannelClient({"vercel": True})
    client.set_availability("vercel", False)
    assert not client.is_available(ServiceFamily.VERCEL)


def test_unavailable_family_raises():
    client = ManagedChannelClient({"vercel": True})
    with pytest.raises(ChannelUnavailableError, match="clerk"):
        client.execute(ServiceFamily.CLERK, "createApp")


def test_echo_without_transport():
    client = ManagedChannelClient({"supabase": True})
    response = client.execute("supabase", "createProject", {"name": "demo"})

    assert response["success"] is True
    assert response["service"] == "supabase"
    assert response["command"] == "createProject"
    assert response["params"] == {"name": "demo"}
    assert "projectId" not in response


def test_transport_receives_call():
    transport = MagicMock(return_value={"success": True, "projectId": "prj_1"})
    client = ManagedChannelClient({"vercel": True}, transport=transport)

    response = client.execute("vercel", "createProject", {"name": "demo"})

    transport.assert_called_once_with(ServiceFamily.VERCEL, "createProject", {"name": "demo"})
    assert response["projectId"] == "prj_1"


def test_malformed_transport_response():
    client = ManagedChannelClient({"vercel": True}, transport=lambda family, op, params: "ok")
    with pytest.raises(ChannelError, match="Malformed response"):
        client.execute("vercel", "deploy")


def test_transport_timeout():
    def slow(family, operation, params):
        time.sleep(0.5)
        return {"success": True}

    client = ManagedChannelClient({"vercel": True}, transport=slow)
    with pytest.raises(OperationTimeoutError, match="timed out"):
        client.execute("vercel", "deploy", timeout=0.05)


def test_unknown_family():
    with pytest.raises(ValueError):
        ManagedChannelClient({"heroku": True})
