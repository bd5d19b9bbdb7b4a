"""
Scenario runner: drives every (scenario, variant) pair through

  Idle -> SessionReady -> VariantSelected -> InstanceReady
       -> ScenarioExecuting -> Asserted -> Passed | Failed

Each run gets its own chain session. Runs are independent, so they may be
spread over a thread pool; only the deploy step is serialized, through the
registry's bytecode slot. Fatal errors abort the whole matrix, everything
else is recorded against the pair that raised it.
"""

import time
import traceback

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence

from .accounts import FixtureAccount, derive_accounts
from .canonical import MAINNET_FORK, verify_canonical_facts
from .chain import ForkedChainConfig, LocalChainConfig, remote_web3, start_session
from .config import Settings
from .driver import TransactionDriver
from .errors import FatalHarnessError, ScenarioError
from .invariants import check_exclusive
from .scenarios import SCENARIOS, Scenario, ScenarioContext
from .utils import log
from .variants import DEFECT, NAIVE, ContractVariant, VariantRegistry

EXCLUSIVITY = "withdraw-spec-exclusivity"


class RunState(str, Enum):
    IDLE = "Idle"
    SESSION_READY = "SessionReady"
    VARIANT_SELECTED = "VariantSelected"
    INSTANCE_READY = "InstanceReady"
    SCENARIO_EXECUTING = "ScenarioExecuting"
    ASSERTED = "Asserted"
    PASSED = "Passed"
    FAILED = "Failed"
    SKIPPED = "Skipped"


TRANSITIONS = {
    RunState.IDLE: {RunState.SESSION_READY, RunState.SKIPPED, RunState.FAILED},
    RunState.SESSION_READY: {RunState.VARIANT_SELECTED, RunState.FAILED},
    RunState.VARIANT_SELECTED: {RunState.INSTANCE_READY, RunState.FAILED},
    RunState.INSTANCE_READY: {RunState.SCENARIO_EXECUTING, RunState.FAILED},
    RunState.SCENARIO_EXECUTING: {RunState.ASSERTED, RunState.FAILED},
    RunState.ASSERTED: {RunState.PASSED, RunState.FAILED},
}

TERMINAL = {RunState.PASSED, RunState.FAILED, RunState.SKIPPED}


@dataclass
class ScenarioRun:
    scenario: str
    variant: str
    informational: bool = False
    state: RunState = RunState.IDLE
    history: List[RunState] = field(default_factory=lambda: [RunState.IDLE])
    detail: Optional[str] = None
    checks: List[str] = field(default_factory=list)

    def advance(self, new_state: RunState):
        if new_state not in TRANSITIONS.get(self.state, ()):
            raise RuntimeError(f"{self.scenario} x {self.variant}: illegal transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def fail(self, detail: str):
        self.detail = detail
        self.advance(RunState.FAILED)

    def skip(self, detail: str):
        self.detail = detail
        self.advance(RunState.SKIPPED)


@dataclass(frozen=True)
class ScenarioResult:
    scenario: str
    variant: str
    status: RunState
    detail: Optional[str] = None
    states: Sequence[str] = ()
    checks: Sequence[str] = ()
    informational: bool = False
    duration: float = 0.0

    @property
    def counted(self) -> bool:
        # informational runs measure the other withdraw specification; they never gate the exit status
        return not self.informational

    @property
    def passed(self) -> bool:
        return self.status == RunState.PASSED

    @property
    def failed(self) -> bool:
        return self.status == RunState.FAILED

    @classmethod
    def from_run(cls, run: ScenarioRun, duration: float = 0.0):
        return cls(
            scenario=run.scenario,
            variant=run.variant,
            status=run.state,
            detail=run.detail,
            states=tuple(s.value for s in run.history),
            checks=tuple(run.checks),
            informational=run.informational,
            duration=round(duration, 3),
        )

    def to_dict(self) -> dict:
        return {
            "scenario": self.scenario,
            "variant": self.variant,
            "status": self.status.value,
            "detail": self.detail,
            "states": list(self.states),
            "checks": list(self.checks),
            "informational": self.informational,
            "duration": self.duration,
        }


@dataclass
class RunReport:
    results: List[ScenarioResult]
    canonical: Optional[dict] = None

    @property
    def failures(self) -> List[ScenarioResult]:
        return [r for r in self.results if r.counted and r.failed]

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0

    def counts(self) -> Dict[str, int]:
        counts = {s.value: 0 for s in TERMINAL}
        for r in self.results:
            if r.counted:
                counts[r.status.value] += 1
        return counts

    def print_summary(self):
        print("\n=== HelpMeSave scenario matrix ===", flush=True)
        for r in self.results:
            tag = f"[{r.status.value.upper()}]"
            if r.informational:
                tag += " (info)"
            line = f"{tag:<18} {r.scenario:<26} {r.variant}"
            if r.detail and not r.passed:
                line += f" - {r.detail}"
            print(line, flush=True)
        counts = self.counts()
        log(f"Passed {counts['Passed']}, failed {counts['Failed']}, skipped {counts['Skipped']}")

    def to_dict(self) -> dict:
        return {
            "exit_code": self.exit_code,
            "counts": self.counts(),
            "canonical": self.canonical,
            "results": [r.to_dict() for r in self.results],
        }


class ScenarioRunner:
    def __init__(
        self,
        registry: VariantRegistry,
        settings: Optional[Settings] = None,
        accounts: Optional[Sequence[FixtureAccount]] = None,
        scenarios: Sequence[Scenario] = SCENARIOS,
        cross_check: bool = False,
    ):
        self.registry = registry
        self.settings = settings or Settings()
        self.accounts = list(accounts) if accounts is not None else derive_accounts()
        if len(self.accounts) < 2:
            raise ValueError("scenarios need two fixture accounts")
        self.scenarios = list(scenarios)
        self.cross_check = cross_check

    # -------------------------
    # Matrix
    # -------------------------
    def run(self, tags: Optional[Sequence[str]] = None) -> RunReport:
        variants = [self.registry.select(tag) for tag in (tags or self.registry.tags)]
        canonical = None
        if any(not v.deployable for v in variants):
            canonical = self.verify_fork()

        jobs = [(scenario, variant) for variant in variants for scenario in self.scenarios]
        log(f"Running {len(jobs)} scenario runs over {', '.join(v.tag for v in variants)}"
            f"{' (cross-check)' if self.cross_check else ''}")

        workers = max(1, self.settings.workers)
        if workers == 1:
            results = [self.run_one(scenario, variant) for scenario, variant in jobs]
        else:
            executor = ThreadPoolExecutor(max_workers=workers)
            try:
                futures = [executor.submit(self.run_one, scenario, variant) for scenario, variant in jobs]
                results = [f.result() for f in futures]
            except FatalHarnessError:
                executor.shutdown(wait=True, cancel_futures=True)
                raise
            executor.shutdown(wait=True)

        if self.cross_check:
            results.extend(self.exclusivity_results(variants, results))
        return RunReport(results=results, canonical=canonical)

    def verify_fork(self) -> dict:
        """Check the remote node's history once before any forked run."""
        if not self.settings.fork_url:
            raise FatalHarnessError("forked-reference variant selected but FORK_NODE_URL is not set")
        log(f"Verifying canonical facts against {self.settings.fork_url}")
        w3 = remote_web3(self.settings.fork_url, self.settings.rpc_timeout)
        return verify_canonical_facts(w3, MAINNET_FORK)

    def exclusivity_results(self, variants: Sequence[ContractVariant], results: Sequence[ScenarioResult]):
        by_key = {(r.scenario, r.variant): r for r in results}
        extra = []
        for variant in variants:
            naive = next((by_key.get((s.name, variant.tag)) for s in self.scenarios if s.withdraw_spec == NAIVE), None)
            defect = next((by_key.get((s.name, variant.tag)) for s in self.scenarios if s.withdraw_spec == DEFECT), None)
            if naive is None or defect is None:
                continue
            try:
                check_exclusive(variant.tag, naive.passed, defect.passed)
            except ScenarioError as e:
                status, detail = RunState.FAILED, str(e)
            else:
                status, detail = RunState.PASSED, f"satisfies {NAIVE if naive.passed else DEFECT} only"
            extra.append(ScenarioResult(EXCLUSIVITY, variant.tag, status, detail, states=(status.value,)))
        return extra

    # -------------------------
    # One run
    # -------------------------
    def chain_config_for(self, variant: ContractVariant):
        if variant.deployable:
            return LocalChainConfig(accounts=self.accounts)
        return ForkedChainConfig(
            accounts=self.accounts,
            fork_url=self.settings.fork_url,
            anvil_bin=self.settings.anvil_bin,
            start_timeout=self.settings.fork_start_timeout,
            rpc_timeout=self.settings.rpc_timeout,
        )

    def run_one(self, scenario: Scenario, variant: ContractVariant) -> ScenarioResult:
        run = ScenarioRun(
            scenario.name,
            variant.tag,
            informational=bool(scenario.withdraw_spec) and scenario.withdraw_spec != variant.withdraw_spec,
        )
        started = time.time()

        applicable, reason = scenario.applies_to(variant, self.cross_check)
        if not applicable:
            run.skip(reason)
            log(f"[SKIPPED] {scenario.name} x {variant.tag}: {reason}")
            return ScenarioResult.from_run(run, time.time() - started)

        log(f"\n[{scenario.name} x {variant.tag}] {scenario.description}")
        try:
            self._drive(run, scenario, variant)
        except FatalHarnessError:
            raise
        except ScenarioError as e:
            run.fail(str(e))
        except Exception as e:
            run.fail(f"{type(e).__name__}: {e}")
            log(f"[ERROR] {scenario.name} x {variant.tag} raised\n{traceback.format_exc()}")

        result = ScenarioResult.from_run(run, time.time() - started)
        if result.passed:
            log(f"[PASSED] {scenario.name} x {variant.tag}")
        else:
            log(f"[FAILED] {scenario.name} x {variant.tag}: {result.detail}")
        return result

    def _drive(self, run: ScenarioRun, scenario: Scenario, variant: ContractVariant):
        saver, other = self.accounts[0], self.accounts[1]
        with start_session(self.chain_config_for(variant), self.settings.receipt_timeout) as session:
            run.advance(RunState.SESSION_READY)
            driver = TransactionDriver(session, self.settings.priority_fee_gwei)

            with self.registry.activated(variant.tag) as selected:
                run.advance(RunState.VARIANT_SELECTED)
                if selected.deployable:
                    instance = driver.deploy(
                        selected, saver, self.settings.gas_limit, bytecode=self.registry.active_bytecode
                    )
                else:
                    instance = driver.attach(selected)
            run.advance(RunState.INSTANCE_READY)

            ctx = ScenarioContext(
                session=session,
                driver=driver,
                instance=instance,
                saver=saver,
                other=other,
                gas_limit=self.settings.gas_limit,
            )
            run.advance(RunState.SCENARIO_EXECUTING)
            checks = scenario.script(ctx)

        run.advance(RunState.ASSERTED)
        for label, check in checks:
            check()
            run.checks.append(label)
        run.advance(RunState.PASSED)
