"""
PPPoE Diag Path Constants

Centralized path definitions to reduce hardcoding across the codebase.

IMPORTANT: Always use get_real_user_home() instead of Path.home() when
the path should be in the user's home directory. Adapter toggling and
route changes need root, so the tool is usually run with sudo, but the
config, credentials and reports belong to the real user.
"""

from pathlib import Path
import os


# ============================================================================
# Core utility functions - use these instead of Path.home()
# ============================================================================

def get_real_user_home() -> Path:
    """
    Get the real user's home directory, even when running as root via sudo.

    Returns:
        Path to the real user's home directory
    """
    # Check SUDO_USER first
    sudo_user = os.environ.get('SUDO_USER')
    if sudo_user and sudo_user != 'root':
        return Path(f'/home/{sudo_user}')

    # Fallback to current user
    return Path.home()


# ============================================================================
# Path classes
# ============================================================================

class PppoeDiagPaths:
    """Paths related to the diagnostic tool"""

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get config directory (.env and credentials file)"""
        return get_real_user_home() / '.config' / 'pppoe-diag'

    @classmethod
    def get_credentials_file(cls) -> Path:
        """Get default credentials file"""
        return cls.get_config_dir() / 'credentials.env'

    @classmethod
    def get_state_dir(cls) -> Path:
        """
        Get state directory (adapter toggle record).

        Honours PPPOE_DIAG_STATE_DIR so that a root run and a later user run
        find the same record.
        """
        override = os.environ.get('PPPOE_DIAG_STATE_DIR')
        if override:
            return Path(override)
        return get_real_user_home() / '.local' / 'state' / 'pppoe-diag'

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get transcript log directory"""
        return get_real_user_home() / '.local' / 'share' / 'pppoe-diag' / 'logs'

    @classmethod
    def get_reports_dir(cls) -> Path:
        """Get JSON report directory"""
        return get_real_user_home() / '.local' / 'share' / 'pppoe-diag' / 'reports'


class SystemPaths:
    """System-level paths"""

    SYS_CLASS_NET = Path('/sys/class/net')
    RESOLV_CONF = Path('/etc/resolv.conf')

    @classmethod
    def is_wireless(cls, ifname: str) -> bool:
        """True if the kernel exposes wireless extensions for ifname"""
        return (cls.SYS_CLASS_NET / ifname / 'wireless').exists() or \
            (cls.SYS_CLASS_NET / ifname / 'phy80211').exists()

    @classmethod
    def get_nameservers(cls) -> list:
        """Nameservers listed in resolv.conf (always a list)"""
        try:
            lines = cls.RESOLV_CONF.read_text().splitlines()
        except OSError:
            return []
        servers = []
        for line in lines:
            parts = line.split()
            if len(parts) >= 2 and parts[0] == 'nameserver':
                servers.append(parts[1])
        return servers
