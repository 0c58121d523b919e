import logging
import subprocess
import sys

from config import MEETING_KEYWORDS, MEETING_PROBE_TIMEOUT

logger = logging.getLogger(__name__)


class ProbeUnavailable(RuntimeError):
    """The process listing could not be obtained."""


def default_command():
    if sys.platform == 'win32':
        # Verbose listing includes window titles (e.g. a browser tab on meet.google.com)
        return ['tasklist', '/v']
    return ['ps', '-eo', 'args']


class ProcessMeetingProbe:
    """Reports busy when any running process mentions a known meeting app."""

    def __init__(self, keywords=None, command=None, timeout=MEETING_PROBE_TIMEOUT):
        self.keywords = [kw.lower() for kw in (keywords or MEETING_KEYWORDS)]
        self.command = command or default_command()
        self.timeout = timeout

    def is_busy(self):
        try:
            result = subprocess.run(
                self.command,
                capture_output=True, text=True, timeout=self.timeout
            )
        except (OSError, subprocess.SubprocessError) as e:
            raise ProbeUnavailable(f"Could not list processes with {self.command[0]}: {e}")

        if result.returncode != 0:
            raise ProbeUnavailable(f"{self.command[0]} exited with status {result.returncode}")

        output = result.stdout.lower()
        found = [kw for kw in self.keywords if kw in output]
        if found:
            logger.info(f"Meeting status check: True ({', '.join(found)})")
        else:
            logger.info("Meeting status check: False")
        return bool(found)
