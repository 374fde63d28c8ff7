"""Tests for running commands through scheduled scene tasks."""

import json
from datetime import datetime

import pytest

from shellenabler.errors import ProtocolError, ScheduleError, TriggerError
from shellenabler.routers.ax5400pro import AX5400ProClient

SMART_CONTROLLER = AX5400ProClient.API_SMART_CONTROLLER


def payloads(transport):
    """Decoded smart controller payloads, in the order they were posted."""
    return [json.loads(data["payload"]) for _, _, data in transport.posts]


class TestSetSmartControllerTask:
    """Scheduling a scene task."""

    @pytest.mark.asyncio
    async def test_payload_shape(self, client, transport):
        await client.set_smart_controller_task("'$(id)'", "12:31")

        _, path, data = transport.requests[0]
        assert path == SMART_CONTROLLER
        assert set(data) == {"payload"}

        payload = json.loads(data["payload"])
        assert payload["command"] == "scene_setting"
        assert payload["name"] == "'$(id)'"
        assert payload["launch"] == {"timer": {"time": "12:31", "repeat": "0", "enabled": True}}
        assert payload["action_list"] == [{
            "thirdParty": "xmrouter",
            "delay": 17,
            "type": "wan_block",
            "payload": {"command": "wan_block", "mac": "00:00:00:00:00:00"},
        }]

    @pytest.mark.asyncio
    async def test_quotes_in_name_survive_encoding(self, client, transport):
        name = """'$(echo "hi" > /tmp/x)'"""
        await client.set_smart_controller_task(name, "1:2")
        assert payloads(transport)[0]["name"] == name

    @pytest.mark.asyncio
    async def test_rejection_raises_schedule_error(self, client, transport):
        transport.post_responses = [b'{"code":1523,"msg":"invalid scene"}']

        with pytest.raises(ScheduleError) as exc_info:
            await client.set_smart_controller_task("'$(id)'", "12:31")

        assert exc_info.value.code == 1523
        assert "invalid scene" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_reply_without_code_is_rejection(self, client, transport):
        transport.post_responses = [b'{"msg":"?"}']

        with pytest.raises(ScheduleError):
            await client.set_smart_controller_task("'$(id)'", "12:31")

    @pytest.mark.asyncio
    async def test_non_json_reply_raises_protocol_error(self, client, transport):
        transport.post_responses = [b"<html>oops</html>"]

        with pytest.raises(ProtocolError):
            await client.set_smart_controller_task("'$(id)'", "12:31")


class TestStartSmartControllerTask:
    """Firing a scheduled scene task."""

    @pytest.mark.asyncio
    async def test_payload_shape(self, client, transport):
        await client.start_smart_controller_task("12:31")

        assert payloads(transport) == [{"command": "scene_start_by_crontab", "time": "12:31", "week": 0}]

    @pytest.mark.asyncio
    async def test_rejection_raises_trigger_error(self, client, transport):
        transport.post_responses = [b'{"code":1,"msg":"no such task"}']

        with pytest.raises(TriggerError) as exc_info:
            await client.start_smart_controller_task("12:31")

        assert exc_info.value.code == 1


class TestExecuteCustomCommand:
    """Schedule-then-fire with a fresh task time per command."""

    @pytest.mark.asyncio
    async def test_schedules_then_fires_at_same_time(self, client, transport):
        await client.execute_custom_command("nvram set ssh_en=1")

        scheduled, fired = payloads(transport)
        assert scheduled["command"] == "scene_setting"
        assert scheduled["name"] == "'$(nvram set ssh_en=1)'"
        assert scheduled["launch"]["timer"]["time"] == "12:31"
        assert fired == {"command": "scene_start_by_crontab", "time": "12:31", "week": 0}

    @pytest.mark.asyncio
    async def test_each_command_gets_next_minute(self, client, transport):
        await client.execute_custom_command("true")
        await client.execute_custom_command("true")

        times = [p["time"] for p in payloads(transport) if p["command"] == "scene_start_by_crontab"]
        assert times == ["12:31", "12:32"]
        assert str(client.task_time_store.read()) == "12:32"

    @pytest.mark.asyncio
    async def test_schedule_failure_skips_trigger(self, client, transport):
        transport.post_responses = [b'{"code":1523,"msg":"bad"}']

        with pytest.raises(ScheduleError):
            await client.execute_custom_command("id")

        assert len(transport.posts) == 1

    @pytest.mark.asyncio
    async def test_trigger_failure(self, client, transport):
        transport.post_responses = [b'{"code":0}', b'{"code":3,"msg":"busy"}']

        with pytest.raises(TriggerError):
            await client.execute_custom_command("id")

        assert len(transport.posts) == 2

    @pytest.mark.asyncio
    async def test_sync_router_time(self, client, transport):
        await client.sync_router_time(datetime(2024, 3, 5, 7, 8, 9))

        assert payloads(transport)[0]["name"] == "'$(date -s '2024.03.05-07:08:09')'"
