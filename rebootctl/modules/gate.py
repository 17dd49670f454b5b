"""Operator checkpoints.

The scheduler and the CLI never read the terminal directly; they ask a gate.
``InteractiveGate`` prompts with typer, ``AutoApproveGate`` is used with
``--yes`` and in tests.
"""
import logging

import typer

from .models import NodeResult, NodeTarget

logger = logging.getLogger("rebootctl.gate")


class OperatorGate:
    """Answers continue/skip/abort questions raised during a run."""

    interactive = False

    def confirm(self, message: str) -> bool:
        raise NotImplementedError

    def confirm_node(self, node: NodeTarget) -> bool:
        return self.confirm(f"Reboot node {node.name}?")

    def confirm_continue(self, result: NodeResult) -> bool:
        return self.confirm(f"Node {result.node} failed ({result.error}). Continue with next batch?")


class InteractiveGate(OperatorGate):
    interactive = True

    def confirm(self, message: str) -> bool:
        try:
            return typer.confirm(message, default=False)
        except typer.Abort:
            # Ctrl-C / EOF at a prompt stops the run like any other interrupt
            raise KeyboardInterrupt from None


class AutoApproveGate(OperatorGate):
    """Answers yes to every question and logs what it approved."""

    def confirm(self, message: str) -> bool:
        logger.debug("Auto-confirming: %s", message)
        return True
