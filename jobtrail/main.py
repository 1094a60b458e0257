"""Main entry point for the jobtrail CLI.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
and defines commands to inspect the resilience configuration and to simulate
throttled logins and retried outbound calls.
"""

import asyncio
import logging
import smtplib
from typing import Annotated, Any, Callable, Coroutine, Dict, List

import typer

# --- Setup Logging Early ---
# Use basic config until setup_logging is called with settings
logging.basicConfig(level=logging.WARNING, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# --- Core Layer ---
from jobtrail.core.services.email_delivery import EmailDeliveryService
from jobtrail.core.services.login_guard import LoginGuard, format_lockout_duration

# --- Domain Layer ---
from jobtrail.domain.events.resilience_events import DomainEvent
from jobtrail.domain.models.retry import RetryOptions

# --- Infrastructure Layer ---
# Config
from jobtrail.infrastructure.config.settings import (
    get_config, get_rate_limit_max_buckets, get_retry_options, get_smtp_settings,
    get_throttle_config, load_configuration
)
# UI
from jobtrail.infrastructure.cli.display import ConsoleDisplay
# Monitoring
from jobtrail.infrastructure.monitoring.event_dispatcher import default_dispatcher
from jobtrail.infrastructure.monitoring.logger_setup import resolve_log_level, setup_logging
# Notifications
from jobtrail.infrastructure.notifications.smtp_transport import SmtpTransport
# Resilience
from jobtrail.infrastructure.resilience.api_retry import RetryExecutor
from jobtrail.infrastructure.resilience.attempt_throttle import AttemptThrottle
from jobtrail.infrastructure.resilience.clock import ManualClock, SystemClock
from jobtrail.infrastructure.resilience.memory_store import InMemoryAttemptStore
from jobtrail.infrastructure.resilience.policies import POLICIES
from jobtrail.infrastructure.resilience.rate_limiter import RequestRateLimiter
from jobtrail.infrastructure.resilience.sweeper import PeriodicSweeper

audit_logger = logging.getLogger("jobtrail.audit")


def audit_event(event: DomainEvent) -> None:
    """Default audit sink: one log line per resilience event."""
    audit_logger.info(f"{type(event).__name__}: {event}")


# --- Dependency Injection Container (Manual) ---

def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Load Configuration First
    load_configuration()
    log_level = resolve_log_level(get_config('logging.level', 'WARNING'))
    log_file = get_config('logging.file')
    log_format = get_config('logging.format', '%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    setup_logging(log_level=log_level, log_file=log_file, log_format=log_format)

    # 2. Infrastructure Adapters & Services
    dependencies['ui'] = ConsoleDisplay()
    dependencies['clock'] = SystemClock()
    dependencies['throttle_config'] = get_throttle_config()
    dependencies['throttle'] = AttemptThrottle(
        config=dependencies['throttle_config'],
        store=InMemoryAttemptStore(),
        clock=dependencies['clock'],
    )
    dependencies['rate_limiter'] = RequestRateLimiter(
        max_buckets=get_rate_limit_max_buckets(),
        clock=dependencies['clock'],
    )
    dependencies['retry_options'] = get_retry_options()
    dependencies['retry_executor'] = RetryExecutor(default_options=dependencies['retry_options'])
    dependencies['smtp_settings'] = get_smtp_settings()
    dependencies['smtp_transport'] = SmtpTransport(dependencies['smtp_settings'])

    # 3. Core Services
    dependencies['login_guard'] = LoginGuard(dependencies['throttle'])
    dependencies['email_service'] = EmailDeliveryService(
        send=dependencies['smtp_transport'].send,
        sender=dependencies['smtp_settings'].sender,
        executor=dependencies['retry_executor'],
    )

    default_dispatcher.subscribe(audit_event)

    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Get Wired-up Dependencies ---
_dependencies: Dict[str, Any] = create_dependencies()

# --- Typer App Definition ---
app = typer.Typer(
    name="jobtrail",
    help="jobtrail resilience tools: login throttling and retried outbound calls.",
    add_completion=False,
)


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs an async command body from a sync Typer command."""
    return asyncio.run(coro)


# --- CLI Commands ---

@app.command(name="show-config")
def show_config_command() -> None:
    """Shows the effective throttle and retry configuration."""
    ui: ConsoleDisplay = _dependencies['ui']
    cfg = _dependencies['throttle_config']
    ui.display_table(
        "Login throttle",
        ["Setting", "Value"],
        [
            ["max_attempts", cfg.max_attempts],
            ["attempt_window", format_lockout_duration(cfg.attempt_window_ms)],
            ["initial_lockout", format_lockout_duration(cfg.initial_lockout_ms)],
            ["max_lockout", format_lockout_duration(cfg.max_lockout_ms)],
            ["lockout_multiplier", cfg.lockout_multiplier],
            ["sweep_interval", format_lockout_duration(cfg.sweep_interval_ms)],
        ],
    )
    rows = [["default", *_option_row(_dependencies['retry_options'])]]
    rows += [[name, *_option_row(policy.options)] for name, policy in POLICIES.items()]
    ui.display_table("Retry policies", ["Policy", "max_retries", "initial_ms", "max_ms", "multiplier"], rows)


def _option_row(options: RetryOptions) -> List[Any]:
    return [options.max_retries, int(options.initial_delay_ms), int(options.max_delay_ms), options.backoff_multiplier]


@app.command(name="simulate-login")
def simulate_login_command(
    email: Annotated[str, typer.Option("--email", "-e", help="Account identity to attack.")] = "user@example.com",
    ip: Annotated[str, typer.Option("--ip", help="Client address the attempts come from.")] = "203.0.113.7",
    failures: Annotated[int, typer.Option("--failures", "-n", min=1, help="Failed logins to record.")] = 5,
    interval_seconds: Annotated[int, typer.Option("--interval", help="Seconds between attempts.")] = 1,
    wait_seconds: Annotated[int, typer.Option("--wait", help="Seconds to wait before a final admission check.")] = 0,
) -> None:
    """Replays failed logins against a throttle on a simulated clock."""
    ui: ConsoleDisplay = _dependencies['ui']
    clock = ManualClock(start_ms=0)
    throttle = AttemptThrottle(config=_dependencies['throttle_config'], clock=clock)
    guard = LoginGuard(throttle)
    sweeper = PeriodicSweeper([throttle], interval_ms=_dependencies['throttle_config'].sweep_interval_ms)

    async def reject() -> bool:
        return False

    async def scenario() -> List[List[Any]]:
        rows: List[List[Any]] = []
        for attempt in range(1, failures + 1):
            result = await guard.attempt_login(ip, email, reject)
            rows.append([attempt, f"{clock.now_ms() // 1000}s", result.status, result.remaining_attempts, result.message])
            clock.advance(interval_seconds * 1000)
        return rows

    rows = run_async(scenario())
    if wait_seconds:
        clock.advance(wait_seconds * 1000)
        admission = guard.check_admission(ip, email)
        verdict = "admitted" if admission.allowed else "denied"
        rows.append(["check", f"{clock.now_ms() // 1000}s", verdict, admission.remaining_attempts, ""])
        removed = sweeper.sweep_once()
        ui.display_info(f"Sweep after waiting removed {removed} record(s).")
    ui.display_table(f"Login attempts for {email} from {ip}", ["#", "t", "status", "remaining", "message"], rows)


# Error raised by the simulated operation, per policy
_SIMULATED_ERRORS: Dict[str, Callable[[], Exception]] = {
    "default": lambda: ConnectionResetError("connection reset by peer"),
    "payment": lambda: _SimulatedProviderError("service unavailable", http_status=503),
    "email": lambda: smtplib.SMTPResponseException(421, b"Service not available, try again later"),
}


class _SimulatedProviderError(Exception):
    def __init__(self, message: str, http_status: int):
        super().__init__(message)
        self.http_status = http_status


@app.command(name="simulate-retry")
def simulate_retry_command(
    failures: Annotated[int, typer.Option("--failures", "-n", min=0, help="Failures before the call succeeds.")] = 3,
    policy: Annotated[str, typer.Option("--policy", "-p", help="Policy: default, payment or email.")] = "default",
    sleep: Annotated[bool, typer.Option("--sleep/--no-sleep", help="Actually wait between attempts.")] = False,
) -> None:
    """Runs a flaky operation through a retry policy and shows the backoff schedule."""
    ui: ConsoleDisplay = _dependencies['ui']
    if policy not in _SIMULATED_ERRORS:
        ui.display_error(f"Unknown policy '{policy}'. Choose from: {', '.join(_SIMULATED_ERRORS)}")
        raise typer.Exit(code=2)

    rows: List[List[Any]] = []
    calls = {"count": 0}

    async def no_sleep(_seconds: float) -> None:
        return None

    async def flaky() -> str:
        calls["count"] += 1
        if calls["count"] <= failures:
            raise _SIMULATED_ERRORS[policy]()
        return f"succeeded on call {calls['count']}"

    def on_retry(attempt: int, error: BaseException, delay_ms: float) -> None:
        rows.append([attempt, type(error).__name__, f"{delay_ms:.0f}"])

    base = _dependencies['retry_options'] if policy == "default" else POLICIES[policy].options
    options = base.with_overrides(on_retry=on_retry)
    executor = RetryExecutor(sleep=None if sleep else no_sleep)

    try:
        outcome = run_async(executor.execute(flaky, options, operation_name="simulated-call", policy_name=policy))
    except Exception as e:
        ui.display_table(f"Retries ({policy})", ["retry", "error", "delay_ms"], rows)
        ui.display_error(f"Gave up after {calls['count']} call(s): {type(e).__name__}: {e}")
        raise typer.Exit(code=1)

    ui.display_table(f"Retries ({policy})", ["retry", "error", "delay_ms"], rows)
    ui.display_info(outcome)


@app.command(name="send-test-email")
def send_test_email_command(
    to: Annotated[str, typer.Argument(help="Recipient address.")],
    subject: Annotated[str, typer.Option("--subject", "-s", help="Subject line.")] = "jobtrail SMTP check",
) -> None:
    """Sends a test message through the configured SMTP relay (with email retries)."""
    ui: ConsoleDisplay = _dependencies['ui']
    service: EmailDeliveryService = _dependencies['email_service']
    try:
        run_async(service.send(to, subject, "This is a test message from jobtrail.", operation_name="test-email"))
    except (smtplib.SMTPException, OSError) as e:
        ui.display_error(f"Email delivery failed: {type(e).__name__}: {e}")
        raise typer.Exit(code=1)
    ui.display_info(f"Test email sent to {to}.")


# --- Main Execution Guard ---

def cli_entry_point() -> None:
    """Function to be called by the script entry point in pyproject.toml."""
    app()


if __name__ == "__main__":
    cli_entry_point()
