"""Schema-validated YAML documents on disk.

The queue protocol is nothing more than files at well-known paths, so every
read and write of a queue document goes through ``DocumentStore``. Writes
replace the whole file atomically: a failed write never leaves a half
serialized document behind.
"""

import logging
import os
from pathlib import Path
from typing import Any, TypeVar

import yaml
from pydantic import BaseModel, ValidationError

from shogun.core.schemas import dump_model
from shogun.errors import DocumentValidationError, PathNotFoundError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def write_text_atomic(path: str | Path, text: str) -> None:
    """Write ``text`` to a sibling temp file, fsync, then rename over ``path``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, path)
    finally:
        if tmp.exists():
            tmp.unlink()


def dump_yaml(data: Any) -> str:
    # width=inf keeps long goal/context strings on a single line
    return yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
        width=float("inf"),
    )


def _validate(model: type[M], data: Any, path: Path) -> M:
    try:
        return model.model_validate(data)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        raise DocumentValidationError(
            f"{path}: {len(errors)} validation error(s) for {model.__name__}",
            errors=errors,
            context={"path": str(path), "schema": model.__name__},
        ) from e


class DocumentStore:
    """Read and write queue documents, optionally through a pydantic schema."""

    def read(self, path: str | Path, model: type[M]) -> M:
        """Parse ``path`` and validate it against ``model``.

        Raises DocumentValidationError on schema violations. Missing files and
        malformed YAML propagate as ``FileNotFoundError`` / ``yaml.YAMLError``.
        """
        path = Path(path)
        return _validate(model, self.read_raw(path), path)

    def read_raw(self, path: str | Path) -> Any:
        with Path(path).open(encoding="utf-8") as f:
            return yaml.safe_load(f)

    def write(self, path: str | Path, value: BaseModel | dict, model: type[BaseModel] | None = None) -> None:
        path = Path(path)
        data = dump_model(value) if isinstance(value, BaseModel) else value
        if model is not None:
            data = dump_model(_validate(model, data, path))
        write_text_atomic(path, dump_yaml(data))
        logger.debug("Wrote %s", path)

    def update_field(self, path: str | Path, keys: list[str], value: Any) -> None:
        """Replace one nested field, leaving its siblings untouched."""
        if not keys:
            raise PathNotFoundError([], context={"path": str(path)})
        data = self.read_raw(path)
        node = data
        for key in keys[:-1]:
            if not isinstance(node, dict) or key not in node:
                raise PathNotFoundError(keys, context={"path": str(path)})
            node = node[key]
        if not isinstance(node, dict) or keys[-1] not in node:
            raise PathNotFoundError(keys, context={"path": str(path)})
        node[keys[-1]] = value
        self.write(path, data)

    def exists(self, path: str | Path) -> bool:
        try:
            return Path(path).is_file()
        except OSError:
            return False
