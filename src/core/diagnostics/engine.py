"""
PPPoE Diagnostic Workflow Engine

Runs the quick and full diagnostic workflows: a fixed, ordered sequence of
check stages wrapped in the Wi-Fi adapter toggle.

Design Principles:
1. One run, one ledger - no module-level mutable state
2. Contained stages - a stage that raises or returns a malformed
   outcome becomes a FAIL record; the run continues
3. Guaranteed restoration - adapters disabled for the run are re-enabled
   on every exit path, and a crashed run is recovered by the next sweep
4. The caller's write_log callback is the only thing allowed to abort a run

Usage:
    options = WorkflowOptions(pppoe_name="PPPoE", write_log=print)
    result = run_quick_workflow(options)
    result.health.summarize().overall_status
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from .adapter_guard import RECORD_FILENAME, AdapterToggleGuard
from .credentials import CredentialResolver
from .errors import CallerContractViolation, NoCredentials, StageShapeViolation
from .ledger import HealthLedger
from .models import (
    AdapterInfo, CheckStatus, ConnectResult, PppDiscovery,
    WorkflowOptions, WorkflowResult,
)
from . import stages as st

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Stage:
    """A pipeline stage: display name, function, rank and accepted output types."""
    name: str
    func: Callable[..., Any]
    rank: int
    output_types: Tuple[type, ...] = ()


# Stage ids, usable as keys in WorkflowDriver(stages={...}) overrides
SYSTEM = 'system'
ADAPTER = 'adapter'
DIAL = 'dial'
PPP = 'ppp'
CONNECTIVITY = 'connectivity'
ADVANCED = 'advanced'
STABILITY = 'stability'

DEFAULT_STAGES: Dict[str, Stage] = {
    SYSTEM: Stage("Basic system", st.check_basic_system, st.RANK_SYSTEM),
    ADAPTER: Stage("Network adapter", st.check_adapter, st.RANK_ADAPTER, (AdapterInfo,)),
    DIAL: Stage("Credentials and dial", st.check_credentials_and_dial, st.RANK_DIAL,
                (ConnectResult,)),
    PPP: Stage("PPP interface", st.check_ppp_interface, st.RANK_PPP_INTERFACE, (PppDiscovery,)),
    CONNECTIVITY: Stage("Connectivity", st.check_connectivity, st.RANK_CONNECTIVITY),
    ADVANCED: Stage("Advanced connectivity", st.check_advanced_connectivity, st.RANK_ADVANCED),
    STABILITY: Stage("Stability test", st.check_stability, st.RANK_STABILITY),
}


def default_capabilities() -> Dict[str, Any]:
    """Linux implementations of every capability the workflows need."""
    # Imported here: the commands package imports core.diagnostics.models
    from commands.adapters import LinuxAdapterProvider
    from commands.dialer import NmcliDialer
    from commands.netprobe import LinuxNetProbe
    from commands.routes import LinuxRouteTable

    return {
        'adapters': LinuxAdapterProvider(),
        'probe': LinuxNetProbe(),
        'dialer': NmcliDialer(),
        'routes': LinuxRouteTable(),
    }


class WorkflowDriver:
    """
    Sequences the check stages for one workflow run.

    Capabilities not passed in are taken from default_capabilities().
    """

    def __init__(self, adapters=None, probe=None, dialer=None, routes=None,
                 record_path: Optional[Path] = None,
                 stages: Optional[Dict[str, Callable[..., Any]]] = None,
                 sleep: Callable[[float], None] = time.sleep):
        if None in (adapters, probe, dialer, routes):
            defaults = default_capabilities()
            adapters = defaults['adapters'] if adapters is None else adapters
            probe = defaults['probe'] if probe is None else probe
            dialer = defaults['dialer'] if dialer is None else dialer
            routes = defaults['routes'] if routes is None else routes
        self.adapters = adapters
        self.probe = probe
        self.dialer = dialer
        self.routes = routes
        self.record_path = record_path
        self.sleep = sleep

        self.stages = dict(DEFAULT_STAGES)
        for stage_id, func in (stages or {}).items():
            if stage_id not in self.stages:
                raise ValueError(f"Unknown stage: {stage_id}")
            self.stages[stage_id] = Stage(self.stages[stage_id].name, func,
                                          self.stages[stage_id].rank,
                                          self.stages[stage_id].output_types)

    # === Public API ===

    def run_quick(self, options: Optional[WorkflowOptions] = None) -> WorkflowResult:
        return self.run(options or WorkflowOptions(), full=False)

    def run_full(self, options: Optional[WorkflowOptions] = None) -> WorkflowResult:
        return self.run(options or WorkflowOptions(), full=True)

    def run(self, options: WorkflowOptions, full: bool) -> WorkflowResult:
        """
        Run one workflow to completion.

        Raises:
            CallerContractViolation: if options.write_log raises
        """
        ledger = HealthLedger()
        result = WorkflowResult(health=ledger)
        ctx = st.StageContext(
            options=options,
            adapters=self.adapters,
            probe=self.probe,
            dialer=self.dialer,
            routes=self.routes,
            resolver=CredentialResolver(saved_store_lookup=self._saved_store_lookup()),
            full=full,
            sleep=self.sleep,
        )
        guard = AdapterToggleGuard(self.adapters, record_path=self._record_path(options))

        variant = "full" if full else "quick"
        ctx.log(f"Starting {variant} PPPoE diagnostics for '{options.pppoe_name}'")

        self._sweep(guard, ledger)

        try:
            if options.skip_wifi_toggle:
                ctx.log("Wi-Fi toggle skipped")
            else:
                disabled = guard.disable_all(self._wifi_adapters(ledger))
                result.disabled_wifi_adapters = list(disabled)
                if disabled:
                    ledger.add("Wi-Fi adapters", CheckStatus.OK,
                               f"Temporarily disabled: {', '.join(disabled)}", st.RANK_WIFI)
                    ctx.log(f"Disabled Wi-Fi adapters: {', '.join(disabled)}")

            self._run_stages(ledger, ctx, result, full)
        finally:
            held = list(guard.held)
            if held:
                if guard.restore_all(held):
                    ledger.add("Wi-Fi restore", CheckStatus.OK,
                               f"Re-enabled: {', '.join(held)}", st.RANK_RESTORE)
                else:
                    ledger.add("Wi-Fi restore", CheckStatus.FAIL,
                               str(guard.last_error), st.RANK_RESTORE)
            self._maybe_disconnect(options, result)

        summary = ledger.summarize()
        ctx.log(f"Diagnostics complete: {summary.overall_status.value.upper()} "
                f"({len(summary.records)} checks)")
        return result

    # === Internals ===

    def _sweep(self, guard: AdapterToggleGuard, ledger: HealthLedger) -> None:
        try:
            swept = guard.sweep_orphans()
        except Exception as e:
            logger.error(f"Adapter recovery sweep raised {type(e).__name__}: {e}", exc_info=True)
            ledger.add("Adapter recovery", CheckStatus.FAIL,
                       f"Could not check for adapters left disabled: {e}", st.RANK_WIFI)
            return
        if swept:
            ledger.add("Adapter recovery", CheckStatus.WARN,
                       f"Re-enabled {swept} adapter(s) left disabled by a previous run", st.RANK_WIFI)

    def _wifi_adapters(self, ledger: HealthLedger) -> list:
        try:
            adapters = list(self.adapters.list_adapters() or [])
        except Exception as e:
            logger.error(f"Listing adapters raised {type(e).__name__}: {e}")
            ledger.add("Wi-Fi adapters", CheckStatus.WARN,
                       f"Could not list adapters, Wi-Fi left as is: {e}", st.RANK_WIFI)
            return []
        return [a for a in adapters if isinstance(a, AdapterInfo) and a.is_wireless]

    def _run_stages(self, ledger: HealthLedger, ctx: st.StageContext,
                    result: WorkflowResult, full: bool) -> None:
        self._run_stage(SYSTEM, ledger, ctx)

        adapter = self._run_stage(ADAPTER, ledger, ctx)
        result.adapter = adapter

        connection = None
        if full:
            connection = self._run_stage(DIAL, ledger, ctx, adapter)
            result.connection_result = connection

        ppp = self._run_stage(PPP, ledger, ctx, adapter, connection)
        if ppp is not None:
            result.ppp_interface = ppp.interface
            result.ppp_ip = ppp.address

        self._run_stage(CONNECTIVITY, ledger, ctx, adapter, ppp)

        if full:
            self._run_stage(ADVANCED, ledger, ctx, ppp)
            if ctx.options.run_stability_test:
                self._run_stage(STABILITY, ledger, ctx, ppp)

    def _run_stage(self, stage_id: str, ledger: HealthLedger, ctx: st.StageContext, *inputs):
        """Run one stage and return its validated output, or None."""
        stage = self.stages[stage_id]
        try:
            outcome = stage.func(ledger, ctx, *inputs)
            return self._accept(stage, ledger, outcome)
        except CallerContractViolation:
            raise
        except StageShapeViolation as e:
            logger.warning(str(e))
            ledger.add(stage.name, CheckStatus.FAIL, str(e), stage.rank)
        except NoCredentials as e:
            ledger.add(stage.name, CheckStatus.FAIL, f"{stage.name}: {e}", stage.rank)
        except Exception as e:
            logger.error(f"Stage '{stage.name}' raised {type(e).__name__}: {e}", exc_info=True)
            ledger.add(stage.name, CheckStatus.FAIL,
                       f"{stage.name}: stage failed ({type(e).__name__}: {e})", stage.rank)
        return None

    @staticmethod
    def _accept(stage: Stage, ledger: HealthLedger, outcome: Any):
        """
        Validate a stage outcome before anything reads from it.

        Raises:
            StageShapeViolation: on an absent or malformed outcome
        """
        if outcome is None:
            raise StageShapeViolation(stage.name, "stage returned no outcome")
        if not isinstance(outcome, st.StageOutcome):
            raise StageShapeViolation(
                stage.name, f"expected StageOutcome, got {type(outcome).__name__}")
        if not isinstance(outcome.ledger, HealthLedger):
            raise StageShapeViolation(
                stage.name, f"outcome ledger is {type(outcome.ledger).__name__}")
        if outcome.ledger is not ledger:
            # Records a stage added to a ledger of its own are carried over
            present = set(ledger.records())
            for record in outcome.ledger.records():
                if record not in present:
                    ledger.add(record.label, record.status, record.detail, record.rank)

        output = outcome.output
        if output is None:
            return None
        if not stage.output_types or not isinstance(output, stage.output_types):
            expected = ', '.join(t.__name__ for t in stage.output_types) or 'None'
            raise StageShapeViolation(
                stage.name, f"expected output {expected}, got {type(output).__name__}")
        return output

    def _saved_store_lookup(self):
        return getattr(self.dialer, 'saved_credentials', None)

    def _record_path(self, options: WorkflowOptions) -> Optional[Path]:
        if self.record_path is not None:
            return self.record_path
        if options.state_dir:
            return Path(options.state_dir) / RECORD_FILENAME
        return None

    def _maybe_disconnect(self, options: WorkflowOptions, result: WorkflowResult) -> None:
        connection = result.connection_result
        if not (options.disconnect_after and connection and connection.success):
            return
        try:
            outcome = self.dialer.disconnect(options.pppoe_name)
        except Exception as e:
            logger.error(f"Disconnecting '{options.pppoe_name}' raised {type(e).__name__}: {e}")
            return
        if outcome:
            logger.info(f"Disconnected '{options.pppoe_name}'")
        else:
            logger.warning(f"Could not disconnect '{options.pppoe_name}': {outcome.message}")


def run_quick_workflow(options: Optional[WorkflowOptions] = None, **capabilities) -> WorkflowResult:
    """System, adapter, PPP discovery and connectivity checks."""
    return WorkflowDriver(**capabilities).run_quick(options)


def run_full_workflow(options: Optional[WorkflowOptions] = None, **capabilities) -> WorkflowResult:
    """The quick checks plus dial with credential fallback, route tuning,
    advanced connectivity, traceroute and the optional stability test."""
    return WorkflowDriver(**capabilities).run_full(options)
