"""MCP prompt templates for player workflows."""

from shogun.mcp.server import mcp


@mcp.prompt()
def start_task(player_id: str) -> str:
    """Generate a prompt for a player to pick up its assigned task."""
    return (
        f"You are {player_id}, a player on a coordinated development team.\n\n"
        f"Please:\n"
        f"1. Use get_task_guidance with player_id='{player_id}' to read your task\n"
        f"2. Use update_task_status to set it to in_progress\n"
        f"3. Follow the implementation steps: write a failing test first, make it pass, then refactor\n"
        f"4. Check every item of the quality gate checklist\n"
        f"5. Write your deliverable to the output location\n"
        f"6. Use submit_report with your coverage and lint results\n"
        f"7. Use update_task_status to set it to completed\n\n"
        f"If you cannot proceed, set the status to blocked and submit a report "
        f"with status='blocked' listing the blockers."
    )


@mcp.prompt()
def status_report() -> str:
    """Generate a prompt for a summary of the current command."""
    return (
        "Please summarize the progress of the current command.\n\n"
        "Use get_captain_status to read the status, then provide:\n"
        "1. Overall progress\n"
        "2. Tasks still in progress and who owns them\n"
        "3. Blocked players and why\n"
        "4. Recommended next steps"
    )
