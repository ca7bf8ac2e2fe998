"""tmux subprocess wrappers for messaging agent panes."""

import logging
import subprocess
import time

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from shogun.errors import CommunicationError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY = 1.0
SEND_DELAY = 0.1

_NO_SERVER = ("no server running", "no sessions", "error connecting to")


class TmuxError(Exception):
    """Raised when a single tmux invocation fails."""


def run_tmux(args: list[str]) -> str:
    """Run a tmux command and return stdout. Raises TmuxError on failure."""
    cmd = ["tmux"] + args
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except subprocess.CalledProcessError as e:
        raise TmuxError(f"tmux {' '.join(args)} failed: {(e.stderr or '').strip()}") from e
    except FileNotFoundError as e:
        raise TmuxError("tmux executable not found") from e


class TmuxBridge:
    """Deliver text to tmux panes with bounded retries.

    Text is sent with ``send-keys -l`` as a single argv element, so the pane
    receives it literally: quotes and key names inside the message cannot
    escape. Enter is sent as a separate delivery after a short delay so the
    receiving program has buffered the text first.
    """

    def __init__(
        self,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = RETRY_DELAY,
        send_delay: float = SEND_DELAY,
    ):
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.send_delay = send_delay

    def _retrying(self, target: str) -> Retrying:
        def log_retry(state):
            logger.warning(
                "tmux call for %s failed (attempt %d/%d): %s",
                target,
                state.attempt_number,
                self.max_retries,
                state.outcome.exception(),
            )

        return Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_fixed(self.retry_delay),
            retry=retry_if_exception_type(TmuxError),
            before_sleep=log_retry,
            reraise=True,
        )

    def _call(self, target: str, fn, *args, payload: str | None = None):
        try:
            return self._retrying(target)(fn, *args)
        except TmuxError as e:
            raise CommunicationError(
                f"Failed to reach {target} after {self.max_retries} attempts: {e}",
                target=target,
                payload=payload,
                attempts=self.max_retries,
            ) from e

    # ── Delivery ──────────────────────────────────────────────────────────────

    def send_to_pane(self, target: str, text: str) -> None:
        self._call(target, run_tmux, ["send-keys", "-t", target, "-l", text], payload=text)
        logger.debug("Sent text to %s", target)

    def send_enter(self, target: str) -> None:
        self._call(target, run_tmux, ["send-keys", "-t", target, "Enter"], payload="Enter")

    def send_message(self, target: str, text: str) -> None:
        """Type ``text`` into the pane and submit it."""
        self.send_to_pane(target, text)
        time.sleep(self.send_delay)
        self.send_enter(target)
        logger.info("Message delivered to %s", target)

    # ── Diagnostics ───────────────────────────────────────────────────────────

    def capture_pane(self, target: str, lines: int = 20) -> str:
        return self._call(target, run_tmux, ["capture-pane", "-t", target, "-p", "-S", f"-{lines}"])

    def list_sessions(self) -> list[str]:
        def _list():
            try:
                output = run_tmux(["list-sessions", "-F", "#{session_name}"])
            except TmuxError as e:
                if any(marker in str(e) for marker in _NO_SERVER):
                    return []
                raise
            return [line for line in output.splitlines() if line]

        return self._call("tmux", _list)

    def has_session(self, name: str) -> bool:
        def _has():
            try:
                run_tmux(["has-session", "-t", name])
            except TmuxError as e:
                if "can't find session" in str(e) or any(m in str(e) for m in _NO_SERVER):
                    return False
                raise
            return True

        return self._call(name, _has)

    def get_pane_id(self, target: str) -> str:
        return self._call(target, run_tmux, ["display-message", "-p", "-t", target, "#{pane_id}"])
