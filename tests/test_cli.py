"""
Tests for the pppoe-diag command line.

The workflows are mocked; these tests cover option handling, output and
exit codes.

Run: python3 -m pytest tests/test_cli.py -v
"""

import json
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cli import diagnose
from core.diagnostics import CheckStatus, HealthLedger
from core.diagnostics.models import WorkflowResult


def make_result(*statuses):
    ledger = HealthLedger()
    for i, status in enumerate(statuses):
        ledger.add(f"Check {i}", status, f"detail {i}", rank=i)
    return WorkflowResult(health=ledger)


@pytest.fixture(autouse=True)
def quiet_startup():
    valid = {'valid': True, 'warnings': [], 'errors': [], 'config': {}}
    with patch.dict(os.environ), \
         patch('cli.diagnose.initialize_config', return_value=valid), \
         patch('cli.diagnose.setup_logging'):
        for key in [k for k in os.environ if k.startswith('PPPOE_')]:
            del os.environ[key]
        yield


@pytest.fixture
def runner():
    return CliRunner()


class TestExitCodes:
    """Exit code follows the overall status."""

    @pytest.mark.parametrize("status,code", [
        (CheckStatus.OK, 0),
        (CheckStatus.WARN, 1),
        (CheckStatus.FAIL, 2),
    ])
    def test_overall_status(self, runner, status, code):
        """Test OK/WARN/FAIL map to 0/1/2."""
        with patch('cli.diagnose.run_quick_workflow',
                   return_value=make_result(CheckStatus.OK, status)):
            result = runner.invoke(diagnose.main, [])
        assert result.exit_code == code
        assert "Check 1" in result.output

    def test_invalid_config(self, runner):
        """Test an invalid configuration stops before any checks."""
        invalid = {'valid': False, 'warnings': [], 'errors': ['PPPOE_NAME is empty'], 'config': {}}
        with patch('cli.diagnose.initialize_config', return_value=invalid), \
             patch('cli.diagnose.run_quick_workflow') as mock_run:
            result = runner.invoke(diagnose.main, [])
        assert result.exit_code == 2
        assert "PPPOE_NAME is empty" in result.output
        mock_run.assert_not_called()


class TestOptions:
    """Command-line options reach the workflow."""

    def test_full_workflow(self, runner):
        """Test --full runs the full workflow."""
        with patch('cli.diagnose.run_full_workflow', return_value=make_result()) as mock_full, \
             patch('cli.diagnose.run_quick_workflow') as mock_quick:
            result = runner.invoke(diagnose.main, ['--full', '--stability'])
        assert result.exit_code == 0
        mock_quick.assert_not_called()
        assert mock_full.call_args[0][0].run_stability_test is True

    def test_connection_options(self, runner):
        """Test name, adapter, credentials and Wi-Fi toggle options."""
        with patch('cli.diagnose.run_quick_workflow', return_value=make_result()) as mock_run:
            runner.invoke(diagnose.main, ['--name', 'Fiber', '--adapter', 'eth1', '--user', 'bob',
                                          '--password', 'pw', '--skip-wifi-toggle'])
        options = mock_run.call_args[0][0]
        assert options.pppoe_name == 'Fiber'
        assert options.target_adapter == 'eth1'
        assert (options.user_name, options.password) == ('bob', 'pw')
        assert options.skip_wifi_toggle is True
        assert callable(options.write_log)

    def test_version(self, runner):
        """Test --version prints the version and runs nothing."""
        with patch('cli.diagnose.run_quick_workflow') as mock_run:
            result = runner.invoke(diagnose.main, ['--version'])
        assert result.exit_code == 0
        assert "PPPoE Diagnostics v" in result.output
        mock_run.assert_not_called()

    def test_version_history_matches_current(self):
        """Test the history holds only the current release."""
        import __version__ as version

        assert [h['version'] for h in version.VERSION_HISTORY] == [version.get_version()]
        assert version.VERSION_HISTORY[0]['date'] == version.__release_date__

    def test_sweep(self, runner):
        """Test --sweep only recovers adapters."""
        with patch('cli.diagnose.run_sweep', return_value=0) as mock_sweep, \
             patch('cli.diagnose.run_quick_workflow') as mock_run:
            result = runner.invoke(diagnose.main, ['--sweep'])
        assert result.exit_code == 0
        mock_sweep.assert_called_once()
        mock_run.assert_not_called()


class TestReport:
    """JSON report export."""

    def test_report_written_without_password(self, runner, tmp_path):
        """Test --report writes the result and never the password."""
        report = tmp_path / "out" / "report.json"
        with patch('cli.diagnose.run_quick_workflow', return_value=make_result(CheckStatus.WARN)):
            result = runner.invoke(diagnose.main, ['--password', 'TopSecret!',
                                                   '--report', str(report)])
        assert result.exit_code == 1
        data = json.loads(report.read_text())
        assert data['overall_status'] == 'warn'
        assert data['tool_version']
        assert 'TopSecret!' not in report.read_text()

    def test_save_report_uses_reports_dir(self, runner, tmp_path):
        """Test --save-report writes a timestamped file to the reports directory."""
        with patch('cli.diagnose.run_quick_workflow', return_value=make_result()), \
             patch('cli.diagnose.PppoeDiagPaths.get_reports_dir', return_value=tmp_path):
            result = runner.invoke(diagnose.main, ['--save-report'])
        assert result.exit_code == 0
        saved = list(tmp_path.glob("pppoe-diag-*.json"))
        assert len(saved) == 1
