"""Redmi AX5400 Pro client.

API Endpoints (from the web UI and the smart home app):
- POST api/xqsmarthome/request_smartcontroller - payload=<JSON>
    {"command":"scene_setting", ...}          store a scene task
    {"command":"scene_start_by_crontab", ...} fire the task scheduled at a given time
- GET api/xqsystem/fac_info - factory info, includes ssh/telnet flags
- GET api/misystem/set_sys_time?time=...&timezone=CST-8

There is no endpoint to run a command. The scene scheduler stores the task
name and, on this firmware, expands it in a shell when the task runs, so a
name of '$(cmd)' executes cmd as root. Every command below is a scene task
scheduled at a fresh minute and fired immediately.
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Dict, Optional

from ..errors import ProtocolError, RouterError, ScheduleError, TriggerError
from ..task_time import next_task_time
from .base import (
    BaseRouterClient,
    Capability,
    ProgressCallback,
    ShellOperationResult,
    ShellPhase,
    Step,
)


class AX5400ProClient(BaseRouterClient):
    """Shell enabler for the Redmi AX5400 Pro (SHA-256 login)."""

    MODEL = "redmi_ax5400pro"
    CAPABILITIES = BaseRouterClient.CAPABILITIES | {
        Capability.ENABLE_SSH,
        Capability.DISABLE_SSH,
        Capability.EXECUTE_CUSTOM_COMMAND,
        Capability.SYNC_ROUTER_TIME,
    }

    API_SMART_CONTROLLER = "api/xqsmarthome/request_smartcontroller"

    # Harmless action the scene needs to be accepted
    PLACEHOLDER_ACTION = {
        "thirdParty": "xmrouter",
        "delay": 17,
        "type": "wan_block",
        "payload": {"command": "wan_block", "mac": "00:00:00:00:00:00"},
    }

    ENABLE_STEPS = [
        Step("Unlock dropbear config", "sed -i s/release/debug/g /etc/init.d/dropbear"),
        Step("Enable SSH in nvram", "nvram set ssh_en=1"),
        Step("Enable Telnet in nvram", "nvram set telnet_en=1"),
        Step("Commit nvram", "nvram commit"),
        Step("Restart dropbear", "/etc/init.d/dropbear restart"),
    ]

    DISABLE_STEPS = [
        Step("Disable SSH in nvram", "nvram set ssh_en=0"),
        Step("Disable Telnet in nvram", "nvram set telnet_en=0"),
        Step("Commit nvram", "nvram commit"),
        Step("Lock dropbear config", "sed -i s/debug/release/g /etc/init.d/dropbear"),
        Step("Restart dropbear", "/etc/init.d/dropbear restart"),
    ]

    def get_ssh_command(self) -> str:
        # Dropbear on this firmware only offers ssh-rsa host keys
        return f"ssh -o HostKeyAlgorithms=+ssh-rsa -o PubkeyAcceptedKeyTypes=+ssh-rsa root@{self.host}"

    async def _smart_controller(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST a smart controller request and decode the {"code","msg"} reply."""
        raw = json.dumps(payload, separators=(",", ":"))
        self.logger.debug(f"[TASK] Smart controller payload: {raw}")

        body = await self.transport.post(self.API_SMART_CONTROLLER, {"payload": raw})
        try:
            data = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"Smart controller reply is not JSON: {body[:200]!r}") from e
        if not isinstance(data, dict):
            raise ProtocolError(f"Unexpected smart controller reply: {data!r}")

        self.logger.debug(f"[TASK] Reply: code={data.get('code')} msg={data.get('msg')}")
        return data

    @staticmethod
    def _reply_code(data: Dict[str, Any]) -> int:
        try:
            return int(data.get("code", -1))
        except (TypeError, ValueError):
            return -1

    async def set_smart_controller_task(self, name: str, task_time: str) -> None:
        """Store a one-shot scene task named `name` at task_time ("H:M").

        Raises:
            ScheduleError: The router answered with a non-zero code.
        """
        data = await self._smart_controller({
            "command": "scene_setting",
            "name": name,
            "action_list": [self.PLACEHOLDER_ACTION],
            "launch": {"timer": {"time": task_time, "repeat": "0", "enabled": True}},
        })
        code = self._reply_code(data)
        if code != 0:
            raise ScheduleError(code, str(data.get("msg", "")))

    async def start_smart_controller_task(self, task_time: str, week: int = 0) -> None:
        """Run the scene task scheduled at task_time now instead of waiting for the clock.

        Raises:
            TriggerError: The router answered with a non-zero code.
        """
        data = await self._smart_controller({
            "command": "scene_start_by_crontab",
            "time": task_time,
            "week": week,
        })
        code = self._reply_code(data)
        if code != 0:
            raise TriggerError(code, str(data.get("msg", "")))

    async def execute_custom_command(self, command: str) -> None:
        """Run a shell command on the router as root.

        The router gives no output back; success only means both scene
        requests were accepted.
        """
        self.logger.info(f"[TASK] Executing: {command}")
        name = f"'$({command})'"
        task_time = str(next_task_time(self.task_time_store))

        await self.set_smart_controller_task(name, task_time)
        await self.start_smart_controller_task(task_time, 0)

        # Execution on the router is asynchronous
        await asyncio.sleep(self.post_trigger_delay)
        self.logger.info("[TASK] Command sent")

    async def sync_router_time(self, now: Optional[datetime] = None) -> None:
        """Set the router clock with `date -s` through the command channel."""
        time_str = (now or datetime.now()).strftime("%Y.%m.%d-%H:%M:%S")
        self.logger.info(f"Syncing router time: {time_str}")
        await self.execute_custom_command(f"date -s '{time_str}'")
        self.logger.info("Router time synced")

    async def enable_ssh(self, on_progress: Optional[ProgressCallback] = None) -> ShellOperationResult:
        """Enable SSH and Telnet, then check that they came up.

        Flow:
        1. Set system time via the web API
        2. Unlock dropbear, set ssh_en/telnet_en, commit, restart dropbear
        3. Check shell status
        4. If a shell is working, sync the router clock with date -s

        Raises:
            StepFailedError: A step failed; later steps were not run.
            NetworkError: Setting the system time failed.
        """
        result = ShellOperationResult(success=False, started_at=datetime.now())

        self.logger.info(f"[ENABLE] Enabling SSH and Telnet on {self.model} at {self.host}")
        await self.set_system_time()
        result.phases_completed.append(ShellPhase.SETTING_TIME)
        await self._notify(on_progress, "set_system_time", True)

        result.steps_completed = await self.run_steps(self.ENABLE_STEPS, "ENABLE", on_progress)
        result.phases_completed.append(ShellPhase.RUNNING_STEPS)
        result.success = True

        result.verified = await self._verify(result, "ENABLE")
        if result.verified:
            self.logger.info("[ENABLE] SSH/Telnet enabled and reachable")
            try:
                await self.sync_router_time()
                result.phases_completed.append(ShellPhase.SYNCING_TIME)
            except RouterError as e:
                self.logger.warning(f"[ENABLE] Router time sync failed: {e}")
        elif result.verified is False:
            self.logger.warning("[ENABLE] SSH/Telnet may not be enabled, see status report")

        result.phases_completed.append(ShellPhase.COMPLETED)
        result.completed_at = datetime.now()
        return result

    async def disable_ssh(self, on_progress: Optional[ProgressCallback] = None) -> ShellOperationResult:
        """Disable SSH and Telnet and re-lock the dropbear init script.

        A shell that still answers afterwards is reported, not raised.

        Raises:
            StepFailedError: A step failed; later steps were not run.
        """
        result = ShellOperationResult(success=False, started_at=datetime.now())

        self.logger.info(f"[DISABLE] Disabling SSH and Telnet on {self.model} at {self.host}")
        result.steps_completed = await self.run_steps(self.DISABLE_STEPS, "DISABLE", on_progress)
        result.phases_completed.append(ShellPhase.RUNNING_STEPS)
        result.success = True

        still_working = await self._verify(result, "DISABLE")
        if still_working is None:
            result.verified = None
        else:
            result.verified = not still_working
            if still_working:
                self.logger.warning("[DISABLE] SSH/Telnet still reachable, see status report")
            else:
                self.logger.info("[DISABLE] SSH/Telnet disabled")

        result.phases_completed.append(ShellPhase.COMPLETED)
        result.completed_at = datetime.now()
        return result
