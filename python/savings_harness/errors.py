"""Error taxonomy for the harness.

Fatal errors abort the whole run before any result is reported. Scenario
errors are caught at the scenario boundary and recorded against the
(scenario, variant) pair that raised them.
"""


class HarnessError(Exception):
    """Base class for everything the harness raises on purpose."""


class FatalHarnessError(HarnessError):
    """Setup or configuration problem; the run cannot be trusted."""


class ScenarioError(HarnessError):
    """Problem confined to one scenario run."""


class UnknownVariant(FatalHarnessError):
    def __init__(self, tag, known=()):
        self.tag = tag
        self.known = tuple(known)
        super().__init__(f"unknown contract variant {tag!r} (known: {', '.join(self.known) or 'none'})")


class ArtifactError(FatalHarnessError):
    """Compiled artifact missing or unreadable."""


class UnderfundedFixture(FatalHarnessError):
    """Starting balances cannot reach the saving goal twice."""


class ForkUnreachable(FatalHarnessError):
    """Remote node or local fork did not answer within its bound."""


class AnvilExited(ForkUnreachable):
    def __init__(self, code, stderr=""):
        self.code = code
        self.stderr = stderr
        super().__init__(f"anvil exited with code {code}: {stderr.strip()[:500]}")

    @property
    def port_in_use(self) -> bool:
        return "address already in use" in self.stderr.lower()


class CanonicalFactMismatch(FatalHarnessError):
    def __init__(self, fact, expected, observed):
        self.fact = fact
        self.expected = expected
        self.observed = observed
        super().__init__(f"canonical fact {fact!r} mismatch: expected {expected!r}, observed {observed!r}")


class DeployError(ScenarioError):
    def __init__(self, message, receipt=None):
        self.receipt = receipt
        super().__init__(message)


class UnexpectedRevert(ScenarioError):
    def __init__(self, method, outcome):
        self.method = method
        self.outcome = outcome
        super().__init__(
            f"{method} reverted (gasUsed={outcome.receipt.gas_used}/{outcome.receipt.gas_limit}, "
            f"tx={outcome.receipt.tx_hash})"
        )


class BalanceMismatch(ScenarioError):
    def __init__(self, label, expected, observed):
        self.label = label
        self.expected = expected
        self.observed = observed
        super().__init__(f"{label}: expected {expected} wei, observed {observed} wei (diff {observed - expected})")


class InvariantViolation(ScenarioError):
    """An expected post-condition did not hold."""
