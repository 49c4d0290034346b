"""
Credential Resolution

Resolves a username/password pair from an ordered set of sources:

    1. Parameters  - explicit user and password passed by the caller
    2. File        - a KEY=VALUE credentials file
    3. SavedStore  - credentials saved with the connection profile

First success wins. Only NoCredentials (all sources exhausted) is raised;
missing or malformed sources fall through silently.

Passwords are never logged and never placed in returned text.
"""

import logging
import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .errors import NoCredentials
from .models import (
    ConnectResult,
    CredentialSource,
    CredentialSourceKind,
)

logger = logging.getLogger(__name__)

SavedStoreLookup = Callable[[str], Optional[Tuple[str, str]]]

# Canonical credential-file keys and the historical aliases accepted for each.
# Keys are compared case-insensitively with '-', '_' and spaces removed.
CREDENTIAL_KEY_ALIASES: Dict[str, Tuple[str, ...]] = {
    'username': (
        'username', 'user', 'login', 'pppoeuser', 'pppoeusername',
        'wanuser', 'account',
    ),
    'password': (
        'password', 'pass', 'passwd', 'pwd', 'pppoepassword',
        'pppoepass', 'wanpassword', 'secret',
    ),
    'connection': (
        'connection', 'connectionname', 'pppoename', 'pppoeconnection',
        'name', 'entry', 'profile',
    ),
}

_ALIAS_LOOKUP = {
    alias: canonical
    for canonical, aliases in CREDENTIAL_KEY_ALIASES.items()
    for alias in aliases
}

_LINE_RE = re.compile(r'^\s*(?:export\s+|set\s+)?\$?([A-Za-z][\w\- ]*?)\s*[=:]\s*(.*)$')


def _normalize_key(key: str) -> str:
    return re.sub(r'[\s_\-]', '', key).lower()


def _strip_quotes(value: str) -> str:
    value = value.strip()
    # Script-style `$Password = "secret";`
    if len(value) >= 3 and value.endswith(';') and value[-2] in ('"', "'"):
        value = value[:-1]
    if len(value) >= 2 and value[0] in ('"', "'") and value[-1] == value[0]:
        return value[1:-1]
    return value


def parse_credentials_text(text: str) -> Dict[str, str]:
    """
    Parse credential-file content into canonical keys.

    Accepts KEY=VALUE and KEY: VALUE lines, optional 'export'/'set'/'$'
    prefixes, quoted values, and '#' comments. Unknown keys are ignored.
    The first occurrence of a canonical key wins.
    """
    parsed: Dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith('#') or stripped.startswith(';'):
            continue
        match = _LINE_RE.match(stripped)
        if not match:
            continue
        canonical = _ALIAS_LOOKUP.get(_normalize_key(match.group(1)))
        if canonical and canonical not in parsed:
            parsed[canonical] = _strip_quotes(match.group(2))
    return parsed


def read_credentials_file(path, connection_name: str = "") -> Optional[Tuple[str, str]]:
    """
    Read (username, password) from a credentials file.

    Returns None when the file is missing, unreadable, incomplete, or names
    a different connection than connection_name.
    """
    if not path:
        return None
    file_path = Path(path).expanduser()
    try:
        text = file_path.read_text(encoding='utf-8-sig')
    except FileNotFoundError:
        logger.debug(f"Credentials file not found: {file_path}")
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning(f"Could not read credentials file {file_path}: {e}")
        return None

    values = parse_credentials_text(text)
    username = values.get('username', '').strip()
    password = values.get('password', '')
    if not username or not password:
        logger.info(f"Credentials file {file_path} has no usable username/password pair")
        return None

    file_connection = values.get('connection', '').strip()
    if connection_name and file_connection and file_connection.lower() != connection_name.lower():
        logger.info(f"Credentials file {file_path} is for connection '{file_connection}', "
                    f"not '{connection_name}'")
        return None
    return username, password


class CredentialResolver:
    """
    Credential waterfall for one workflow invocation.

    Usage:
        resolver = CredentialResolver(saved_store_lookup=dialer.saved_credentials)
        creds = resolver.resolve(user, password, "~/.config/pppoe-diag/credentials.env", "PPPoE")
    """

    ORDER = (
        CredentialSourceKind.PARAMETERS,
        CredentialSourceKind.FILE,
        CredentialSourceKind.SAVED_STORE,
    )

    def __init__(self, saved_store_lookup: Optional[SavedStoreLookup] = None):
        self._saved_store_lookup = saved_store_lookup

    def _from_parameters(self, explicit_user, explicit_pass) -> Optional[CredentialSource]:
        if explicit_user and explicit_pass:
            return CredentialSource(CredentialSourceKind.PARAMETERS, explicit_user, explicit_pass)
        return None

    def _from_file(self, credentials_file, connection_name) -> Optional[CredentialSource]:
        pair = read_credentials_file(credentials_file, connection_name)
        if pair:
            return CredentialSource(CredentialSourceKind.FILE, pair[0], pair[1])
        return None

    def _from_saved_store(self, connection_name) -> Optional[CredentialSource]:
        if self._saved_store_lookup is None or not connection_name:
            return None
        try:
            pair = self._saved_store_lookup(connection_name)
        except Exception as e:
            # The saved store is an OS capability; any failure means "unavailable"
            logger.warning(f"Saved credential lookup failed: {e}")
            return None
        if not pair or len(pair) != 2:
            return None
        username, password = pair
        if username and password:
            return CredentialSource(CredentialSourceKind.SAVED_STORE, username, password)
        return None

    def candidates(self, explicit_user: str = "", explicit_pass: str = "",
                   credentials_file=None, connection_name: str = "") -> List[CredentialSource]:
        """Every usable source, in waterfall order."""
        found = []
        for kind in self.ORDER:
            if kind is CredentialSourceKind.PARAMETERS:
                source = self._from_parameters(explicit_user, explicit_pass)
            elif kind is CredentialSourceKind.FILE:
                source = self._from_file(credentials_file, connection_name)
            else:
                source = self._from_saved_store(connection_name)
            if source is not None:
                found.append(source)
        return found

    def resolve(self, explicit_user: str = "", explicit_pass: str = "",
                credentials_file=None, connection_name: str = "") -> CredentialSource:
        """
        Return the first usable credential source.

        Raises:
            NoCredentials: when no source yields a username/password pair
        """
        source = self._from_parameters(explicit_user, explicit_pass)
        if source is None:
            source = self._from_file(credentials_file, connection_name)
        if source is None:
            source = self._from_saved_store(connection_name)
        if source is None:
            raise NoCredentials(
                "No credentials found (checked parameters, credentials file, saved store)"
            )
        logger.info(f"Credentials resolved from {source.describe()}")
        return source

    def connect_with_fallback(self, dialer, connection_name: str,
                              explicit_user: str = "", explicit_pass: str = "",
                              credentials_file=None,
                              preferred: Optional[CredentialSourceKind] = None,
                              sources: Optional[List[CredentialSource]] = None) -> ConnectResult:
        """
        Dial using each available source in turn.

        Starts at preferred (or the top of the waterfall). Only
        authentication-class failures advance to the next source; at most
        one attempt is made per source. Pass sources (from candidates())
        to dial with an already resolved list instead of reading the file
        and saved store again.

        Raises:
            NoCredentials: when no source is available at all
        """
        if sources is None:
            sources = self.candidates(explicit_user, explicit_pass, credentials_file, connection_name)
        if not sources:
            raise NoCredentials(
                "No credentials found (checked parameters, credentials file, saved store)"
            )
        if preferred is not None:
            preferred_first = [s for s in sources if s.source is preferred]
            sources = preferred_first + [s for s in sources if s.source is not preferred]

        result = ConnectResult(success=False)
        for source in sources:
            result.attempts += 1
            result.tried_sources.append(source.source)
            logger.info(f"Dialing '{connection_name}' with credentials from {source.describe()}")
            dial = dialer.dial(connection_name, source.username, source.password)
            result.exit_code = dial.exit_code
            if dial.success:
                result.success = True
                result.source = source.source
                result.message = f"Connected using {source.describe()} credentials"
                return result
            if not dial.auth_failure:
                result.message = (f"Dial failed with exit code {dial.exit_code} "
                                  f"using {source.describe()} credentials")
                logger.warning(result.message)
                return result
            logger.warning(f"Authentication failed with {source.describe()} credentials")

        result.message = f"Authentication failed with all {result.attempts} credential source(s)"
        return result


def resolve_credentials(explicit_user: str, explicit_pass: str, credentials_file,
                        saved_store_lookup: Optional[SavedStoreLookup] = None,
                        connection_name: str = "") -> CredentialSource:
    """Functional form of CredentialResolver.resolve."""
    resolver = CredentialResolver(saved_store_lookup)
    return resolver.resolve(explicit_user, explicit_pass, credentials_file, connection_name)
