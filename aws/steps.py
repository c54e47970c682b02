#!/usr/bin/env python3
"""
Step runner shared by the provisioning and teardown flows.

Each step is a callable returning a StepResult. run_step() consults the
status file first, so a re-run skips work that is already done, and records
the outcome afterwards.
"""
import enum
import time


class Outcome(enum.Enum):
    COMPLETED = 'completed'
    PENDING = 'pending'
    RETRYABLE = 'retryable'
    TIMED_OUT = 'timed_out'
    ADVISORY = 'advisory'
    SKIPPED = 'skipped'
    FATAL = 'fatal'


class DeployError(Exception):
    """Fatal precondition or unrecoverable AWS error; the run must stop."""


class StepResult:
    """Outcome of one step plus any identifiers to write to the status file."""

    def __init__(self, outcome, message="", outputs=None):
        self.outcome = outcome
        self.message = message
        self.outputs = outputs or {}

    @property
    def ok(self):
        return self.outcome in (Outcome.COMPLETED, Outcome.SKIPPED)

    def __repr__(self):
        return f"StepResult({self.outcome.name}, {self.message!r})"


def completed(message="", **outputs):
    return StepResult(Outcome.COMPLETED, message, outputs)


def pending(message="", **outputs):
    return StepResult(Outcome.PENDING, message, outputs)


def retryable(message="", **outputs):
    return StepResult(Outcome.RETRYABLE, message, outputs)


def timed_out(message="", **outputs):
    return StepResult(Outcome.TIMED_OUT, message, outputs)


def advisory(message="", **outputs):
    return StepResult(Outcome.ADVISORY, message, outputs)


def skipped(message=""):
    return StepResult(Outcome.SKIPPED, message)


def run_step(store, name, action, exists=None, dependents=()):
    """
    Run one provisioning step unless the status file says it already ran.

    Args:
        store: StatusStore for this deployment.
        name: Step name; flags are stored as <name>_completed etc.
        action: Zero-argument callable returning a StepResult.
        exists: Optional zero-argument callable that checks the step's AWS
            resource is still there. A completed step whose resource is gone
            is run again.
        dependents: Later steps built on this step's resource. Whenever the
            action completes, those already completed are marked stale so
            they run again against the new resource.

    Returns the StepResult. FATAL outcomes raise DeployError.
    """
    if store.is_step_completed(name):
        if exists is None or exists():
            print(f"Step '{name}' already completed, skipping")
            return StepResult(Outcome.COMPLETED, "already completed")
        print(f"Warning: step '{name}' is marked completed but its resource no longer exists; provisioning it again")

    result = action()

    if result.outcome == Outcome.COMPLETED:
        store.mark_completed(name, **result.outputs)
        if result.message:
            print(result.message)
        for dependent in dependents:
            if store.is_step_completed(dependent):
                print(f"Note: step '{dependent}' depends on '{name}' and will run again")
                store.mark_stale(dependent)
    elif result.outcome == Outcome.PENDING:
        store.mark_pending(name, **result.outputs)
        print(f"Warning: {result.message or name + ' is still pending'}")
        print("  Re-run the same command later to resume from this step.")
    elif result.outcome == Outcome.FATAL:
        raise DeployError(result.message or f"Step '{name}' failed")
    else:
        if result.outputs:
            store.update(result.outputs)
        if result.outcome == Outcome.ADVISORY:
            print(f"Warning: {result.message}")
        elif result.outcome != Outcome.SKIPPED:
            print(f"Warning: {result.message or name + ' did not complete'}")
            print("  Re-run the same command to retry this step.")
    return result


def poll_until(check, max_attempts, interval, label=None):
    """
    Call check() up to max_attempts times, sleeping interval seconds between calls.

    Returns the first non-None value check() produces, or None when every
    attempt came back empty.
    """
    for attempt in range(1, max_attempts + 1):
        value = check()
        if value is not None:
            return value
        if attempt < max_attempts:
            if label:
                print(f"  {label} (attempt {attempt}/{max_attempts}, retrying in {interval}s)")
            time.sleep(interval)
    return None
