"""Run report rendering and persistence."""
import getpass
import logging
import socket
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from .models import NodeResult, RunOutcome

logger = logging.getLogger("rebootctl.report")

RULE = "=" * 42


@dataclass
class ReportMetadata:
    """Invocation details stored alongside the counts."""
    version: str
    role: Optional[str] = None
    node_name: Optional[str] = None
    parallel_count: int = 0
    dry_run: bool = False
    runtime: str = ""
    command: str = field(default_factory=lambda: " ".join(sys.argv))
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def operator(self) -> str:
        try:
            user = getpass.getuser()
        except (KeyError, OSError):
            user = "unknown"
        return f"{user}@{socket.gethostname()}"


def _phase(result: NodeResult) -> str:
    return result.failed_phase.value if result.failed_phase else "unknown"


def render_summary(outcome: RunOutcome) -> List[str]:
    """Count lines shared by the console and file reports."""
    lines = [
        f"Total nodes processed:  {outcome.total}",
        f"Successfully rebooted:  {outcome.succeeded}",
        f"Failed to reboot:       {outcome.failed}",
        f"Skipped nodes:          {outcome.skipped}",
        f"Success rate:           {outcome.success_rate}%",
    ]
    if outcome.failed_nodes:
        lines.append(f"Failed nodes:           {', '.join(outcome.failed_nodes)}")
    if outcome.skipped_nodes:
        lines.append(f"Skipped node names:     {', '.join(outcome.skipped_nodes)}")
    if outcome.remediation_nodes:
        lines.append(f"Left cordoned (manual): {', '.join(outcome.remediation_nodes)}")
    if not outcome.completed:
        lines.append(f"Run aborted:            {outcome.abort_reason}")
    return lines


def log_report(outcome: RunOutcome) -> None:
    logger.info(RULE)
    logger.info("Reboot Status Report")
    logger.info(RULE)
    for line in render_summary(outcome):
        logger.info(line)
    for result in outcome.results:
        if result.error:
            logger.info("  %s: %s (%s)", result.node, result.error, _phase(result))
    logger.info(RULE)


def render_report(outcome: RunOutcome, metadata: ReportMetadata) -> str:
    lines = [
        RULE,
        f"Reboot Status Report - {metadata.generated_at:%a %b %d %H:%M:%S %Y}",
        RULE,
        *render_summary(outcome),
    ]
    failures = [r for r in outcome.results if r.error]
    if failures:
        lines.append("Failure details:")
        for result in failures:
            lines.append(f"  - {result.node} [{_phase(result)}]: {result.error}")
    lines += [
        RULE,
        f"Tool version: {metadata.version}",
        f"Report generated: {metadata.generated_at.isoformat(timespec='seconds')}",
        f"User: {metadata.operator}",
        f"Command used: {metadata.command}",
    ]
    if metadata.role:
        lines.append(f"Node role: {metadata.role}")
    if metadata.node_name:
        lines.append(f"Node name: {metadata.node_name}")
    lines.append(f"Parallel count: {metadata.parallel_count}")
    lines.append(f"Dry run: {'yes' if metadata.dry_run else 'no'}")
    if metadata.runtime:
        lines.append(f"Runtime: {metadata.runtime}")
    return "\n".join(lines) + "\n"


def write_report(outcome: RunOutcome, metadata: ReportMetadata, directory: str = ".") -> Path:
    """Write the timestamped plain-text report and return its path."""
    report_dir = Path(directory).expanduser()
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / f"reboot-report-{metadata.generated_at:%Y%m%d-%H%M%S}.txt"
    with open(path, "w") as f:
        f.write(render_report(outcome, metadata))
    logger.info("Report saved to: %s", path)
    return path
