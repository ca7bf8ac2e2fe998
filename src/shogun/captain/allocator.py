"""Least-loaded assignment of subtasks to players."""

import logging
from dataclasses import dataclass

from shogun.core.schemas import Subtask
from shogun.errors import AllocationError

logger = logging.getLogger(__name__)


@dataclass
class PlayerAssignment:
    player_id: str
    subtask: Subtask


class PlayerAllocator:
    """Track in-flight work per player and pick the least busy one.

    Counters live in memory only; they are a load-balancing hint and are lost
    when the process restarts.
    """

    def __init__(self, players: list[str]):
        self.players = list(players)
        self._workload: dict[str, int] = {p: 0 for p in self.players}

    def assign(self, subtasks: list[Subtask]) -> list[PlayerAssignment]:
        assignments = []
        for subtask in subtasks:
            player_id = subtask.assigned_to or self._least_loaded()
            self._workload[player_id] = self._workload.get(player_id, 0) + 1
            assignments.append(PlayerAssignment(player_id=player_id, subtask=subtask))
            logger.info("Assigned %s to %s", subtask.id, player_id)
        return assignments

    def _least_loaded(self) -> str:
        if not self.players:
            raise AllocationError("No players configured")
        best = self.players[0]
        for player_id in self.players[1:]:
            if self._workload[player_id] < self._workload[best]:
                best = player_id
        return best

    def complete_task(self, player_id: str) -> None:
        self._workload[player_id] = max(0, self._workload.get(player_id, 0) - 1)

    def workload(self, player_id: str) -> int:
        return self._workload.get(player_id, 0)

    def workload_summary(self) -> dict[str, int]:
        return dict(self._workload)

    def reset(self) -> None:
        self._workload = {p: 0 for p in self.players}
