"""
Tests for system utilities (privilege detection, system info, tools).

Run: python3 -m pytest tests/test_system.py -v
"""

import sys
from pathlib import Path
from unittest.mock import patch

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from commands.base import CommandResult
from utils.system import (
    check_root,
    find_missing_tools,
    get_service_status,
    get_system_info,
    is_service_running,
)


class TestCheckRoot:
    """Tests for check_root function."""

    def test_root_when_euid_zero(self):
        """Test returns True when effective UID is 0."""
        with patch('os.geteuid', return_value=0):
            assert check_root() is True

    def test_not_root_when_euid_nonzero(self):
        """Test returns False when effective UID is not 0."""
        with patch('os.geteuid', return_value=1000):
            assert check_root() is False


class TestGetSystemInfo:
    """Tests for get_system_info function."""

    def test_distro_and_platform(self):
        """Test distro facts and platform facts are combined."""
        with patch('utils.system.distro.name', return_value='Debian GNU/Linux'), \
             patch('utils.system.distro.version', return_value='12'), \
             patch('utils.system.platform.release', return_value='6.1.0-18-amd64'):
            info = get_system_info()

        assert set(info) == {'os', 'os_version', 'arch', 'platform', 'python', 'kernel'}
        assert info['os'] == 'Debian GNU/Linux'
        assert info['kernel'] == '6.1.0-18-amd64'

    def test_unknown_distro(self):
        """Test empty distro fields fall back to placeholders."""
        with patch('utils.system.distro.name', return_value=''), \
             patch('utils.system.distro.version', return_value=''):
            info = get_system_info()
        assert info['os'] == 'Unknown Linux'
        assert info['os_version'] == 'Unknown'


class TestFindMissingTools:
    """Tests for find_missing_tools function."""

    def test_reports_missing(self):
        """Test only tools not on PATH are returned."""
        with patch('utils.system.shutil.which', side_effect=lambda t: None if t == 'traceroute' else f'/usr/bin/{t}'):
            assert find_missing_tools(['ip', 'traceroute', 'ping']) == ['traceroute']

    def test_empty(self):
        """Test an empty list returns an empty list."""
        assert find_missing_tools([]) == []


class TestServiceStatus:
    """Tests for the systemd helpers."""

    @patch('commands.base.run_tool')
    def test_active(self, mock_run):
        """Test an active unit."""
        mock_run.return_value = CommandResult.ok("systemctl completed", raw="active\n")
        assert is_service_running('NetworkManager') is True
        assert mock_run.call_args[0][0] == ['systemctl', 'is-active', 'NetworkManager']

    @patch('commands.base.run_tool')
    def test_inactive_exit_code(self, mock_run):
        """Test a non-zero exit still reports the printed state."""
        mock_run.return_value = CommandResult.fail("systemctl exited with code 3",
                                                   raw="inactive\n", data={'returncode': 3})
        assert get_service_status('NetworkManager') == 'inactive'
        assert is_service_running('NetworkManager') is False

    @patch('commands.base.run_tool')
    def test_systemctl_missing(self, mock_run):
        """Test a missing systemctl is unknown."""
        mock_run.return_value = CommandResult.not_available("systemctl command not available")
        assert get_service_status('NetworkManager') == 'unknown'
