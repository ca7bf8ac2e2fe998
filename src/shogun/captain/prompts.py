"""Enrich subtasks into worker-facing Task documents."""

import logging

from shogun.core.schemas import Dependencies, Subtask, Task, TaskBody, TaskStatus, utc_now

logger = logging.getLogger(__name__)

QUALITY_REQUIREMENTS = [
    "- Follow TDD: Write tests FIRST (RED), then implement (GREEN), then refactor (REFACTOR)",
    "- Keep PR size < 200 lines (recommended), max 400 lines",
    "- Ensure test coverage >= 80%",
    "- All lint and type checks must pass",
    "- No debug print statements in production code",
]

IMPLEMENTATION_STEPS = [
    "1. **RED**: Write failing test(s) first",
    "2. **GREEN**: Implement minimal code to make tests pass",
    "3. **REFACTOR**: Clean up code while keeping tests green",
    "4. **VERIFY**: Run all quality gates (lint, typecheck, coverage)",
    "5. **UPDATE**: Update YAML status to completed",
    "6. **NOTIFY**: Send completion notice to Captain",
]


def _num(value: float) -> str:
    return f"{value:g}"


class PromptOptimizer:
    """Pure transform from Subtask to Task; performs no I/O."""

    def enrich(self, subtask: Subtask, parent_description: str, parent_id: str | None = None) -> Task:
        dependencies = None
        if subtask.depends_on:
            dependencies = Dependencies(depends_on=subtask.depends_on)

        task = Task(
            task=TaskBody(
                id=subtask.id,
                parent_id=parent_id,
                description=subtask.description,
                goal=self.build_goal(subtask),
                type=subtask.type,
                status=TaskStatus.ASSIGNED,
                timestamp=utc_now(),
                context=self.build_context(subtask, parent_description),
                output_location=subtask.output_location,
                output_format=subtask.output_format,
                output_filename=subtask.output_filename,
                quality_gates=subtask.quality_gates,
                dependencies=dependencies,
            )
        )
        logger.debug("Enriched subtask %s", subtask.id)
        return task

    def build_context(self, subtask: Subtask, parent_description: str) -> str:
        parts = [f"## Parent Command\n{parent_description}"]

        if subtask.context:
            parts.append(f"\n## Additional Context\n{subtask.context}")

        parts.append("\n## Quality Requirements")
        parts.extend(QUALITY_REQUIREMENTS)

        if subtask.output_location:
            parts.append(f"\n## Output Location\n{subtask.output_location}")
            if subtask.output_filename:
                parts.append(f"Filename: {subtask.output_filename}")

        if subtask.depends_on:
            parts.append(f"\n## Dependencies\nThis task depends on: {subtask.depends_on}")
            parts.append("Ensure dependent task is completed before starting.")

        return "\n".join(parts)

    def build_goal(self, subtask: Subtask) -> str:
        goal = subtask.goal + "\n\n## Implementation Steps\n" + "\n".join(IMPLEMENTATION_STEPS)

        gates = subtask.quality_gates
        if gates:
            checklist = []
            if gates.lint:
                checklist.append("- [ ] Lint passing")
            if gates.typecheck:
                checklist.append("- [ ] Type check passing")
            if gates.test_coverage:
                checklist.append(f"- [ ] Test coverage >= {_num(gates.test_coverage)}%")
            if gates.max_lines:
                checklist.append(f"- [ ] PR size < {gates.max_lines} lines")
            if checklist:
                goal += "\n\n## Quality Gate Checklist\n" + "\n".join(checklist)

        return goal

    def add_examples(self, task: Task, examples: list[str]) -> Task:
        if not examples:
            return task
        section = "\n\n## Examples\n" + "\n".join(f"{i}. {ex}" for i, ex in enumerate(examples, 1))
        task.task.context = (task.task.context or "") + section
        return task
