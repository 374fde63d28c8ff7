"""Tests for the enable/disable sequences."""

import json

import pytest

from shellenabler.errors import (
    NetworkError,
    ScheduleError,
    StepFailedError,
    UnsupportedOperationError,
)
from shellenabler.routers.ax5400pro import AX5400ProClient
from shellenabler.routers.base import BaseRouterClient, Capability, ShellPhase, Step
from shellenabler.task_time import MemoryTaskTimeStore

FAC_INFO = BaseRouterClient.API_FAC_INFO
SET_SYS_TIME = BaseRouterClient.API_SET_SYS_TIME
REJECTED = b'{"code":1523,"msg":"bad"}'


def executed_commands(transport):
    """Commands in the order they were scheduled."""
    names = []
    for _, _, data in transport.posts:
        payload = json.loads(data["payload"])
        if payload["command"] == "scene_setting":
            names.append(payload["name"][3:-2])
    return names


def fac_info_requests(transport):
    return [r for r in transport.requests if r[1] == FAC_INFO]


class TestEnableSSH:
    """enable_ssh() on a fake router."""

    @pytest.mark.asyncio
    async def test_full_run(self, client, transport):
        transport.get_responses[FAC_INFO] = b'{"ssh":true,"telnet":true}'
        transport.open_ports.update({22, 23})
        progress = []

        async def on_progress(step, success, detail):
            progress.append((step, success))

        result = await client.enable_ssh(on_progress=on_progress)

        assert result.success is True
        assert result.verified is True
        assert result.steps_completed == [s.name for s in AX5400ProClient.ENABLE_STEPS]
        assert result.phases_completed == [
            ShellPhase.SETTING_TIME,
            ShellPhase.RUNNING_STEPS,
            ShellPhase.VERIFYING,
            ShellPhase.SYNCING_TIME,
            ShellPhase.COMPLETED,
        ]
        assert "SSH is fully enabled and reachable" in result.report
        assert result.completed_at >= result.started_at

        assert transport.requests[0][1] == SET_SYS_TIME
        commands = executed_commands(transport)
        assert commands[:5] == [s.command for s in AX5400ProClient.ENABLE_STEPS]
        assert commands[0] == "sed -i s/release/debug/g /etc/init.d/dropbear"
        assert commands[5].startswith("date -s '")
        assert progress[0] == ("set_system_time", True)
        assert all(ok for _, ok in progress)
        assert len(progress) == 6

    @pytest.mark.asyncio
    async def test_step_failure_stops_sequence(self, client, transport):
        # Steps 1 and 2 succeed (schedule + trigger each), step 3 is refused
        transport.post_responses = [b'{"code":0}'] * 4 + [REJECTED]
        progress = []

        async def on_progress(step, success, detail):
            progress.append((step, success))

        with pytest.raises(StepFailedError) as exc_info:
            await client.enable_ssh(on_progress=on_progress)

        error = exc_info.value
        assert error.index == 3
        assert error.total == 5
        assert error.name == "Enable Telnet in nvram"
        assert isinstance(error.cause, ScheduleError)
        assert "Step 3/5" in str(error)
        assert len(transport.posts) == 5
        assert fac_info_requests(transport) == []
        assert progress[-1] == ("Enable Telnet in nvram", False)

    @pytest.mark.asyncio
    async def test_set_system_time_failure_aborts(self, client, transport):
        transport.get_responses[SET_SYS_TIME] = NetworkError("unreachable")

        with pytest.raises(NetworkError):
            await client.enable_ssh()

        assert transport.posts == []

    @pytest.mark.asyncio
    async def test_inconclusive_verification(self, client, transport):
        transport.get_responses[FAC_INFO] = NetworkError("timed out")

        result = await client.enable_ssh()

        assert result.success is True
        assert result.verified is None
        assert "inconclusive" in result.report
        assert ShellPhase.VERIFYING not in result.phases_completed
        assert ShellPhase.SYNCING_TIME not in result.phases_completed
        assert len(executed_commands(transport)) == 5

    @pytest.mark.asyncio
    async def test_not_working_skips_time_sync(self, client, transport):
        transport.get_responses[FAC_INFO] = b'{"ssh":true}'

        result = await client.enable_ssh()

        assert result.success is True
        assert result.verified is False
        assert "SSH is enabled in config but not reachable" in result.report
        assert len(executed_commands(transport)) == 5

    @pytest.mark.asyncio
    async def test_time_sync_failure_is_not_fatal(self, client, transport):
        transport.get_responses[FAC_INFO] = b'{"ssh":true}'
        transport.open_ports.add(22)
        # 5 steps x (schedule + trigger) succeed, then the date -s schedule fails
        transport.post_responses = [b'{"code":0}'] * 10 + [REJECTED]

        result = await client.enable_ssh()

        assert result.verified is True
        assert ShellPhase.SYNCING_TIME not in result.phases_completed
        assert result.phases_completed[-1] is ShellPhase.COMPLETED

    @pytest.mark.asyncio
    async def test_failing_progress_callback_is_ignored(self, client, transport):
        async def on_progress(step, success, detail):
            raise RuntimeError("display gone")

        result = await client.enable_ssh(on_progress=on_progress)

        assert result.success is True


class TestDisableSSH:
    """disable_ssh() on a fake router."""

    @pytest.mark.asyncio
    async def test_full_run(self, client, transport):
        result = await client.disable_ssh()

        assert result.success is True
        assert result.verified is True
        assert executed_commands(transport) == [s.command for s in AX5400ProClient.DISABLE_STEPS]
        assert "sed -i s/debug/release/g /etc/init.d/dropbear" in executed_commands(transport)
        assert transport.requests[0][0] == "POST"
        assert result.phases_completed == [ShellPhase.RUNNING_STEPS, ShellPhase.VERIFYING, ShellPhase.COMPLETED]

    @pytest.mark.asyncio
    async def test_still_reachable_is_reported(self, client, transport):
        transport.get_responses[FAC_INFO] = b'{"telnet":true}'
        transport.open_ports.add(23)

        result = await client.disable_ssh()

        assert result.success is True
        assert result.verified is False
        assert "Telnet is fully enabled and reachable" in result.report

    @pytest.mark.asyncio
    async def test_inconclusive_verification(self, client, transport):
        transport.get_responses[FAC_INFO] = NetworkError("timed out")

        result = await client.disable_ssh()

        assert result.verified is None

    @pytest.mark.asyncio
    async def test_first_step_failure(self, client, transport):
        transport.post_responses = [REJECTED]

        with pytest.raises(StepFailedError) as exc_info:
            await client.disable_ssh()

        assert exc_info.value.index == 1
        assert exc_info.value.name == "Disable SSH in nvram"


class TestCapabilities:
    """Operations gated by the model's capability set."""

    def test_ax5400pro_capabilities(self, client):
        for capability in Capability:
            assert client.supports(capability)

    def test_base_client_has_no_command_channel(self, transport):
        base = BaseRouterClient(transport, task_time_store=MemoryTaskTimeStore(), step_delay=0)

        assert base.supports(Capability.CHECK_SHELL_STATUS)
        assert not base.supports(Capability.ENABLE_SSH)
        with pytest.raises(UnsupportedOperationError):
            base.require(Capability.ENABLE_SSH)

    @pytest.mark.asyncio
    async def test_base_client_cannot_run_steps(self, transport):
        base = BaseRouterClient(transport, task_time_store=MemoryTaskTimeStore(), step_delay=0)

        with pytest.raises(UnsupportedOperationError) as exc_info:
            await base.run_steps([Step("noop", "true")], "TEST")

        assert exc_info.value.operation == "execute_custom_command"
        assert transport.requests == []

    def test_base_commands(self, transport):
        base = BaseRouterClient(transport, task_time_store=MemoryTaskTimeStore())

        assert base.get_ssh_command() == "ssh root@192.168.31.1"
        assert base.get_telnet_command() == "telnet 192.168.31.1"
