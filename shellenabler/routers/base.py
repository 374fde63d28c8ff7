"""Base router client shared by every supported model."""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Callable, Awaitable, NamedTuple, Tuple, List

from ..errors import NetworkError, StepFailedError, UnsupportedOperationError
from ..task_time import TaskTimeStore, FileTaskTimeStore
from ..transport import Transport

ProgressCallback = Callable[[str, bool, Optional[str]], Awaitable[None]]


class Capability(str, Enum):
    """Operations a router client may offer."""
    ENABLE_SSH = "enable_ssh"
    DISABLE_SSH = "disable_ssh"
    CHECK_SHELL_STATUS = "check_shell_status"
    VERIFY_SSH_STATUS = "verify_ssh_status"
    GET_SSH_COMMAND = "get_ssh_command"
    GET_TELNET_COMMAND = "get_telnet_command"
    EXECUTE_CUSTOM_COMMAND = "execute_custom_command"
    SYNC_ROUTER_TIME = "sync_router_time"


class ShellPhase(str, Enum):
    """Phases of an enable/disable run."""
    SETTING_TIME = "setting_time"
    RUNNING_STEPS = "running_steps"
    VERIFYING = "verifying"
    SYNCING_TIME = "syncing_time"
    COMPLETED = "completed"


class ServiceVerdict(str, Enum):
    """How a single service (SSH or Telnet) looks from the outside."""
    FULLY_ENABLED = "fully enabled and reachable"
    CONFIGURED_UNREACHABLE = "enabled in config but not reachable"
    REACHABLE_UNCONFIGURED = "reachable but not enabled in config"
    DISABLED = "disabled"

    @classmethod
    def of(cls, enabled: bool, port_open: bool) -> "ServiceVerdict":
        if enabled and port_open:
            return cls.FULLY_ENABLED
        if enabled:
            return cls.CONFIGURED_UNREACHABLE
        if port_open:
            return cls.REACHABLE_UNCONFIGURED
        return cls.DISABLED


@dataclass
class ShellStatusResult:
    """Declared configuration (from the API) and observed reachability (from port probes)."""
    ssh_enabled: bool = False
    telnet_enabled: bool = False
    ssh_port_open: bool = False
    telnet_port_open: bool = False

    @property
    def ssh_verdict(self) -> ServiceVerdict:
        return ServiceVerdict.of(self.ssh_enabled, self.ssh_port_open)

    @property
    def telnet_verdict(self) -> ServiceVerdict:
        return ServiceVerdict.of(self.telnet_enabled, self.telnet_port_open)

    @property
    def ssh_working(self) -> bool:
        return self.ssh_enabled and self.ssh_port_open

    @property
    def telnet_working(self) -> bool:
        return self.telnet_enabled and self.telnet_port_open

    @property
    def overall(self) -> bool:
        """A service only counts if config and reachability agree."""
        return self.ssh_working or self.telnet_working


@dataclass
class ShellOperationResult:
    """Outcome of enable_ssh()/disable_ssh()."""
    success: bool
    verified: Optional[bool] = None  # None = verification could not run
    report: str = ""
    steps_completed: List[str] = field(default_factory=list)
    phases_completed: List[ShellPhase] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class Step(NamedTuple):
    name: str
    command: str


# Markers for bodies that json.loads() can't handle (or where flags sit somewhere unexpected)
SSH_MARKERS = (
    '"ssh":true', '"ssh": true',
    '"ssh_en":"1"', '"ssh_en": "1"',
    '"ssh_en":1', '"ssh_en": 1',
)
TELNET_MARKERS = (
    '"telnet":true', '"telnet": true',
    '"telnet_en":"1"', '"telnet_en": "1"',
    '"telnet_en":1', '"telnet_en": 1',
)


def _flag_on(value) -> bool:
    return value is True or value == "1"


def parse_shell_flags(body: bytes, logger: Optional[logging.Logger] = None) -> Tuple[bool, bool]:
    """Extract (ssh_enabled, telnet_enabled) from a fac_info response.

    Accepts top-level "ssh"/"telnet" booleans, "data.ssh_en"/"data.telnet_en"
    as "1" or true, and finally plain substring matches on the raw body.
    A flag once found stays set. A JSON body with a non-zero "code" is an
    API error and yields (False, False).
    """
    log = logger or logging.getLogger(__name__)
    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else str(body)
    ssh_enabled = False
    telnet_enabled = False

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        log.debug(f"[STATUS] fac_info is not valid JSON: {e}")
        data = None

    if isinstance(data, dict):
        code = data.get("code")
        if isinstance(code, (int, float)) and not isinstance(code, bool) and code != 0:
            log.debug(f"[STATUS] API returned code {code}: {data.get('msg')}")
            return False, False

        if data.get("ssh") is True:
            ssh_enabled = True
        if data.get("telnet") is True:
            telnet_enabled = True

        inner = data.get("data")
        if isinstance(inner, dict):
            if _flag_on(inner.get("ssh_en")):
                ssh_enabled = True
            if _flag_on(inner.get("telnet_en")):
                telnet_enabled = True

    if any(marker in text for marker in SSH_MARKERS):
        ssh_enabled = True
    if any(marker in text for marker in TELNET_MARKERS):
        telnet_enabled = True

    log.debug(f"[STATUS] Declared state: ssh={ssh_enabled} telnet={telnet_enabled}")
    return ssh_enabled, telnet_enabled


def build_status_report(status: ShellStatusResult, ssh_command: str, telnet_command: str) -> str:
    """Human-readable summary of a ShellStatusResult."""
    lines = [
        "SSH status:",
        f"  - Enabled in config: {status.ssh_enabled}",
        f"  - Port 22 open: {status.ssh_port_open}",
        f"  - Verdict: SSH is {status.ssh_verdict.value}",
        "",
        "Telnet status:",
        f"  - Enabled in config: {status.telnet_enabled}",
        f"  - Port 23 open: {status.telnet_port_open}",
        f"  - Verdict: Telnet is {status.telnet_verdict.value}",
        "",
        "Connection:",
    ]
    if status.ssh_working:
        lines.append(f"  - SSH: {ssh_command}")
    if status.telnet_working:
        lines.append(f"  - Telnet: {telnet_command}")
    if not status.overall:
        lines.append("  - No working shell service")
    return "\n".join(lines) + "\n"


class BaseRouterClient:
    """Operations common to Xiaomi/Redmi routers behind the LuCI API.

    Subclasses list what they can do in CAPABILITIES; callers check with
    supports()/require() before invoking an operation.
    """

    MODEL = "generic"
    CAPABILITIES = frozenset({
        Capability.CHECK_SHELL_STATUS,
        Capability.VERIFY_SSH_STATUS,
        Capability.GET_SSH_COMMAND,
        Capability.GET_TELNET_COMMAND,
    })

    # API endpoints
    API_FAC_INFO = "api/xqsystem/fac_info"
    API_SET_SYS_TIME = "api/misystem/set_sys_time"

    SSH_PORT = 22
    TELNET_PORT = 23
    TIMEZONE = "CST-8"

    def __init__(
        self,
        transport: Transport,
        task_time_store: Optional[TaskTimeStore] = None,
        step_delay: float = 2,
        post_trigger_delay: float = 1,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the client.

        Args:
            transport: Logged-in transport (host + stok).
            task_time_store: Where scene task times are persisted.
            step_delay: Seconds to wait between enable/disable steps.
            post_trigger_delay: Seconds to wait after firing a scene task.
            logger: Logger to report progress on (default: module logger).
        """
        self.transport = transport
        self.task_time_store = task_time_store or FileTaskTimeStore()
        self.step_delay = step_delay
        self.post_trigger_delay = post_trigger_delay
        self.logger = logger or logging.getLogger(__name__)

    @property
    def host(self) -> str:
        return self.transport.host

    @property
    def model(self) -> str:
        return self.MODEL

    def supports(self, capability: Capability) -> bool:
        return capability in self.CAPABILITIES

    def require(self, capability: Capability) -> None:
        """Raise UnsupportedOperationError unless this model offers the capability."""
        if not self.supports(capability):
            raise UnsupportedOperationError(self.model, capability.value)

    def get_ssh_command(self) -> str:
        return f"ssh root@{self.host}"

    def get_telnet_command(self) -> str:
        return f"telnet {self.host}"

    async def set_system_time(self, now: Optional[datetime] = None) -> None:
        """Push the local wall-clock time to the router through the web API.

        An unexpected reply is only logged: the router often applies the time
        anyway.
        """
        now = now or datetime.now()
        time_str = f"{now.year}-{now.month}-{now.day} {now.hour}:{now.minute}:{now.second}"
        self.logger.info(f"Setting router system time to {time_str}")

        body = await self.transport.get(
            self.API_SET_SYS_TIME,
            params={"time": time_str, "timezone": self.TIMEZONE},
        )
        text = body.decode("utf-8", errors="replace")
        if '"code":0' not in text and '"success":true' not in text:
            self.logger.warning(f"Setting system time may have failed, response: {text[:200]}")
        else:
            self.logger.info("System time set")

    async def collect_shell_status(self) -> ShellStatusResult:
        """Gather declared flags from fac_info and probe the SSH/Telnet ports.

        Raises:
            NetworkError: fac_info could not be fetched.
        """
        body = await self.transport.get(self.API_FAC_INFO)
        ssh_enabled, telnet_enabled = parse_shell_flags(body, self.logger)

        status = ShellStatusResult(ssh_enabled=ssh_enabled, telnet_enabled=telnet_enabled)
        status.ssh_port_open = await self.transport.probe_port(self.SSH_PORT)
        status.telnet_port_open = await self.transport.probe_port(self.TELNET_PORT)
        return status

    async def check_shell_status(self) -> Tuple[bool, str]:
        """Return (overall, report) for SSH and Telnet."""
        self.logger.info(f"[STATUS] Checking SSH and Telnet on {self.model} at {self.host}")
        status = await self.collect_shell_status()
        report = build_status_report(status, self.get_ssh_command(), self.get_telnet_command())
        return status.overall, report

    async def verify_ssh_status(self) -> bool:
        """Log a per-service verdict and return whether SSH itself is working."""
        status = await self.collect_shell_status()

        self.logger.info(f"[STATUS] SSH enabled in config: {status.ssh_enabled}, port {self.SSH_PORT} open: {status.ssh_port_open}")
        self.logger.info(f"[STATUS] Telnet enabled in config: {status.telnet_enabled}, port {self.TELNET_PORT} open: {status.telnet_port_open}")

        for service, verdict in (("SSH", status.ssh_verdict), ("Telnet", status.telnet_verdict)):
            if verdict is ServiceVerdict.FULLY_ENABLED:
                self.logger.info(f"[STATUS] {service} is {verdict.value}")
            else:
                self.logger.warning(f"[STATUS] {service} is {verdict.value}")

        return status.ssh_working

    async def _notify(self, on_progress: Optional[ProgressCallback], step: str,
                      success: bool, detail: Optional[str] = None) -> None:
        """Call progress callback if set."""
        if not on_progress:
            return
        try:
            await on_progress(step, success, detail)
        except Exception as e:
            self.logger.warning(f"Progress callback failed for {step}: {e}")

    async def run_steps(self, steps: List[Step], tag: str,
                        on_progress: Optional[ProgressCallback] = None) -> List[str]:
        """Execute steps in order through execute_custom_command().

        Stops at the first failure and raises StepFailedError naming the step
        and its 1-based position. Waits step_delay seconds after each step.

        Returns:
            Names of the completed steps.
        """
        self.require(Capability.EXECUTE_CUSTOM_COMMAND)
        completed = []
        total = len(steps)

        for index, step in enumerate(steps, start=1):
            self.logger.info(f"[{tag}] [{index}/{total}] {step.name}...")
            try:
                await self.execute_custom_command(step.command)
            except Exception as e:
                self.logger.error(f"[{tag}] {step.name} failed: {e}")
                await self._notify(on_progress, step.name, False, str(e))
                raise StepFailedError(index, total, step.name, e) from e

            completed.append(step.name)
            self.logger.info(f"[{tag}] {step.name} done")
            await self._notify(on_progress, step.name, True, step.command)
            await asyncio.sleep(self.step_delay)

        return completed

    async def _verify(self, result: ShellOperationResult, tag: str) -> Optional[bool]:
        """Run check_shell_status() for an enable/disable run.

        Network failures make the verification inconclusive rather than
        failing the operation.
        """
        self.logger.info(f"[{tag}] Verifying SSH and Telnet state...")
        try:
            overall, report = await self.check_shell_status()
        except NetworkError as e:
            self.logger.warning(f"[{tag}] Could not verify shell status: {e}")
            result.report = "Verification inconclusive: could not query the router\n"
            return None
        result.report = report
        result.phases_completed.append(ShellPhase.VERIFYING)
        return overall
