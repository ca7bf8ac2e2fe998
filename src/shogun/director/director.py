"""Director: write a Command for the captain and wait for the outcome."""

import logging

from shogun.config import Config
from shogun.core.documents import DocumentStore
from shogun.core.schemas import Command, RunStatus, TaskType
from shogun.director.decomposer import IdSequence, TaskDecomposer, UserCommand
from shogun.director.progress import ProgressMonitor
from shogun.errors import CommunicationError
from shogun.integrations.tmux import TmuxBridge

logger = logging.getLogger(__name__)

CAPTAIN_MESSAGE = "New command ready. Check {command_file} and execute it."


class Director:
    def __init__(
        self,
        config: Config,
        store: DocumentStore | None = None,
        bridge: TmuxBridge | None = None,
        progress: ProgressMonitor | None = None,
    ):
        self.config = config
        self.store = store or DocumentStore()
        self.bridge = bridge or TmuxBridge()
        self.progress = progress or ProgressMonitor(config.progress_interval, store=self.store)
        self.decomposer = TaskDecomposer(IdSequence(config.id_sequence_file))

    def submit(self, description: str, task_type: TaskType | None = None, context: str | None = None) -> Command:
        """Decompose the request, write the Command and notify the captain.

        Notification failures are logged; the command file is already in place
        and the captain's watcher picks it up regardless.
        """
        subtasks = self.decomposer.decompose(
            UserCommand(description=description, type=task_type, context=context)
        )
        result = self.decomposer.validate_subtasks(subtasks)
        for error in result.errors:
            logger.warning(error)

        command = self.decomposer.build_command(description, subtasks, task_type or TaskType.FEATURE)
        self.store.write(self.config.command_file, command, Command)
        logger.info("Command %s written to %s", command.command.id, self.config.command_file)

        try:
            self.bridge.send_message(
                self.config.captain_target,
                CAPTAIN_MESSAGE.format(command_file=self.config.display_path(self.config.command_file)),
            )
        except CommunicationError as e:
            logger.error("Could not notify captain: %s", e)
        return command

    def wait(self, command_id: str | None = None) -> RunStatus | None:
        return self.progress.watch(self.config.status_file, command_id=command_id)

    def stop(self):
        self.progress.stop()
