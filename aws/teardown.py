#!/usr/bin/env python3
"""
Pieces shared by the static-site and redirect teardown flows: the
confirmation prompt and bookkeeping for removed resources.
"""
import sys

from . import steps
from .confirm import confirm
from .status import utc_timestamp


def confirm_destruction(lines, title="DESTROY: The following will be permanently removed",
                        yes=False, confirm_callback=None):
    """
    Show what is about to be removed and ask for confirmation. Unlike the
    provisioning prompt, only a typed 'yes' counts.
    """
    return confirm(
        lines, title, question="Type 'yes' to confirm destruction:",
        yes=yes, confirm_callback=confirm_callback, accepted=('yes',),
    )


def check_previous_removal(store, yes=False, confirm_callback=None):
    """A record whose removal already completed is only processed again after confirmation."""
    if not store.get('removal_completed'):
        return
    print(f"Note: removal already completed at {store.get('removal_completed_at', 'an earlier run')}")
    lines = [f"  Status file: {store.path}", "  Every recorded resource will be checked and removed again if present."]
    if not confirm_destruction(lines, title="Run the removal again?", yes=yes, confirm_callback=confirm_callback):
        print("Aborted.")
        sys.exit(0)


class Teardown:
    """Runs removal actions against a status record and collects what is left behind."""

    def __init__(self, store):
        self.store = store
        self.manual_cleanup = []

    def remove(self, name, action, dependents=()):
        """
        Run one removal action.

        Args:
            name: Step name in the status record (e.g. 'cloudfront', 'a.com:bucket').
            action: Zero-argument callable returning a StepResult.
            dependents: Steps whose work went away with this resource; they are
                marked removed too so a later deploy runs them again.
        """
        result = self.attempt(name, action)
        if result.ok:
            self.store.mark_removed(name)
            for dependent in dependents:
                if self.store.has(f"{dependent}_completed"):
                    self.store.mark_removed(dependent)
        return result

    def attempt(self, label, action):
        """Run a removal action with no step of its own; failures go on the manual cleanup list."""
        result = action()
        if result.ok:
            # SKIPPED: the resource now belongs to someone else and is left alone
            print(f"  {'Note: ' if result.outcome == steps.Outcome.SKIPPED else ''}{result.message}")
        else:
            print(f"  Warning: {result.message}")
            self.manual_cleanup.append(f"{label}: {result.message}")
        return result

    def defer(self, label, reason):
        """Leave a resource for a later run because something it serves is still there."""
        print(f"  Warning: {reason}")
        self.manual_cleanup.append(f"{label}: {reason}")

    def finish(self):
        """Record removal_completed when nothing is left; returns True in that case."""
        if self.manual_cleanup:
            print("\nThe following may need manual cleanup (or run the removal again later):")
            for line in self.manual_cleanup:
                print(f"  - {line}")
            return False
        self.store.update({'removal_completed': True, 'removal_completed_at': utc_timestamp()})
        print("\nTeardown complete. You can re-deploy with the same command to recreate the infrastructure.")
        return True
