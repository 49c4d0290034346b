"""
Dialer Commands

WanDialer implementation for NetworkManager PPPoE profiles:
- dial: `nmcli connection up` with the username set on the profile for the
  attempt only and the password supplied through a private passwd-file
- disconnect: `nmcli connection down`
- saved_credentials: the username/password stored in the profile
- profile_exists: whether the named profile is configured

The password never appears on a command line, in a log line, or in the
returned output.
"""

import logging
import os
import tempfile
from typing import Optional, Tuple

from core.diagnostics.models import DialResult

from .base import CommandResult, ResultStatus, run_tool

logger = logging.getLogger(__name__)

# nmcli exit codes
NMCLI_TIMEOUT = 3
NMCLI_ACTIVATION_FAILED = 4
NMCLI_NOT_FOUND = 10

AUTH_FAILURE_MARKERS = (
    'secrets were required',
    'authentication',
    'auth failed',
    'pap authentication failed',
    'chap authentication failed',
    'login incorrect',
)


def is_auth_failure(exit_code: int, output: str) -> bool:
    """True if a failed dial looks like a bad username/password."""
    if exit_code == 0:
        return False
    lowered = (output or '').lower()
    return any(marker in lowered for marker in AUTH_FAILURE_MARKERS)


def _scrub(text: str, secret: str) -> str:
    if secret and text:
        return text.replace(secret, '********')
    return text or ''


class NmcliDialer:
    """PPPoE dialing through NetworkManager."""

    def __init__(self, wait: int = 45):
        self.wait = wait

    def _profile_username(self, connection_name: str) -> CommandResult:
        return run_tool(['nmcli', '-g', 'pppoe.username', 'connection', 'show', 'id', connection_name],
                        timeout=10)

    def _set_username(self, connection_name: str, username: str) -> CommandResult:
        return run_tool(
            ['nmcli', 'connection', 'modify', 'id', connection_name, 'pppoe.username', username],
            timeout=15
        )

    def dial(self, connection_name: str, username: str, password: str) -> DialResult:
        """
        Bring the profile up with username/password.

        The profile's stored username is only changed for the duration of
        the attempt and is written back afterwards, so the saved profile is
        left as it was found.
        """
        current = self._profile_username(connection_name)
        if not current:
            exit_code = current.data.get('returncode', -1)
            if current.status is ResultStatus.NOT_FOUND:
                exit_code = NMCLI_NOT_FOUND
            return DialResult(
                success=False,
                exit_code=exit_code,
                output=_scrub(current.error or current.message, password),
            )
        original = (current.raw_output or '').strip()

        changed = username != original
        if changed:
            modify = self._set_username(connection_name, username)
            if not modify:
                return DialResult(
                    success=False,
                    exit_code=modify.data.get('returncode', -1),
                    output=_scrub(modify.error or modify.message, password),
                )

        try:
            result = self._activate(connection_name, password)
        finally:
            if changed:
                restore = self._set_username(connection_name, original)
                if not restore:
                    logger.error(f"Could not restore the username of profile '{connection_name}': "
                                 f"{restore.message}")

        output = _scrub(' '.join(filter(None, [result.raw_output, result.error])), password).strip()
        if result:
            return DialResult(success=True, exit_code=0, output=output)

        exit_code = result.data.get('returncode', -1)
        if result.status is ResultStatus.TIMEOUT:
            exit_code = NMCLI_TIMEOUT
        return DialResult(
            success=False,
            exit_code=exit_code,
            output=output or result.message,
            auth_failure=is_auth_failure(exit_code, output),
        )

    def _activate(self, connection_name: str, password: str) -> CommandResult:
        """`nmcli connection up` with the password in a private passwd-file."""
        fd, passwd_path = tempfile.mkstemp(prefix='pppoe-diag-', suffix='.secrets')
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(f"pppoe.password:{password}\n")
            return run_tool(
                ['nmcli', '--wait', str(self.wait), 'connection', 'up', 'id', connection_name,
                 'passwd-file', passwd_path],
                timeout=self.wait + 15
            )
        finally:
            try:
                os.unlink(passwd_path)
            except OSError as e:
                logger.error(f"Could not remove temporary secrets file {passwd_path}: {e}")

    def disconnect(self, connection_name: str) -> CommandResult:
        result = run_tool(['nmcli', 'connection', 'down', 'id', connection_name], timeout=30)
        if result:
            return CommandResult.ok(f"Disconnected {connection_name}")
        return CommandResult.fail(f"Could not disconnect {connection_name}",
                                  error=result.error, status=result.status)

    def saved_credentials(self, connection_name: str) -> Optional[Tuple[str, str]]:
        """Username and password saved in the NetworkManager profile, if any."""
        result = run_tool(
            ['nmcli', '--show-secrets', '-g', 'pppoe.username,pppoe.password',
             'connection', 'show', 'id', connection_name],
            timeout=10
        )
        if not result:
            logger.debug(f"No saved profile credentials for {connection_name}: {result.message}")
            return None
        lines = (result.raw_output or '').splitlines()
        if len(lines) < 2:
            return None
        username, password = lines[0].strip(), lines[1].strip()
        if not username or not password:
            return None
        return username, password

    def profile_exists(self, connection_name: str) -> bool:
        result = run_tool(['nmcli', '-g', 'connection.id', 'connection', 'show', 'id', connection_name],
                          timeout=10)
        return bool(result)
