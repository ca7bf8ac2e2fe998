"""Publish the captain's status file and its markdown view.

``queue/captain_status.yaml`` is what other roles read to decide whether the
command is finished. ``docs/dashboard.md`` is rendered from the same data for
humans and is never parsed.
"""

import logging
from pathlib import Path

from shogun.core.documents import DocumentStore, write_text_atomic
from shogun.core.schemas import CaptainStatus, RunStatus, TaskStatus

logger = logging.getLogger(__name__)

_STATUS_LABELS = {
    TaskStatus.ASSIGNED: "Assigned",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.COMPLETED: "Completed",
    TaskStatus.DONE: "Completed",
    TaskStatus.FAILED: "Failed",
    TaskStatus.BLOCKED: "Blocked",
}


def render_dashboard(status: CaptainStatus) -> str:
    remaining = status.total - status.completed - status.failed
    lines = [
        "# Multi-Agent Development Dashboard",
        "",
        f"**Last Updated**: {status.updated_at}",
        f"**Command**: {status.command_id or '-'}",
        "",
        "---",
        "",
        "## Task Overview",
        "",
        f"- **Total Tasks**: {status.total}",
        f"- **Completed**: {status.completed}",
        f"- **Failed**: {status.failed}",
        f"- **Remaining**: {remaining}",
        f"- **Progress**: {status.progress_percent}%",
        "",
        "---",
        "",
        "## Player Assignments",
        "",
    ]

    by_player: dict[str, list] = {}
    for assignment in status.assignments:
        by_player.setdefault(assignment.player_id, []).append(assignment)
    for player_id, assignments in by_player.items():
        lines.append(f"### {player_id}")
        lines.append("")
        for a in assignments:
            lines.append(f"- **{a.task_id}**: {a.description} - {_STATUS_LABELS[a.status]}")
        lines.append("")

    if status.blockers:
        lines += ["---", "", "## Blockers", ""]
        for note in status.blockers:
            lines.append(f"- **{note.player_id}** ({note.task_id or '-'}): {note.reason}")
        lines.append("")

    lines += ["---", "", "## Next Steps", ""]
    if status.status is RunStatus.COMPLETED:
        lines.append("All tasks completed. Director has been notified.")
    elif status.status is RunStatus.FAILED:
        lines.append(f"{status.failed} task(s) failed. Director has been notified.")
    else:
        lines.append(f"Waiting for {remaining} task(s) to complete...")

    return "\n".join(lines) + "\n"


class StatusBoard:
    def __init__(self, status_path: str | Path, dashboard_path: str | Path, store: DocumentStore | None = None):
        self.status_path = Path(status_path)
        self.dashboard_path = Path(dashboard_path)
        self.store = store or DocumentStore()

    def publish(self, status: CaptainStatus) -> None:
        self.store.write(self.status_path, status, CaptainStatus)
        write_text_atomic(self.dashboard_path, render_dashboard(status))
        logger.debug(
            "Status %s: %d/%d completed", status.status.value, status.completed, status.total
        )

    def read(self) -> CaptainStatus | None:
        if not self.store.exists(self.status_path):
            return None
        return self.store.read(self.status_path, CaptainStatus)
