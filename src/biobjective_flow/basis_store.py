"""Named basis checkpoints shared between the per-objective engines.

The pivot procedure hands bases from one engine instance to the other through
named checkpoints (``"pbasis"``, ``"basis"``, ``"basis1"``, ``"basis2"``). Each
checkpoint is a small JSON document on disk holding one status name per arc and
per node, e.g.::

    {"arcs": ["BASIC", "AT_LOWER", ...], "nodes": ["AT_LOWER", "BASIC", ...]}
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import tempfile
from pathlib import Path
from types import TracebackType

from .exceptions import BasisStoreError
from .model import BasisStatus, NetworkBasis

logger = logging.getLogger(__name__)

BASIS_SUFFIX = ".bas.json"
_VALID_NAME = re.compile(r"^[A-Za-z0-9_.-]+$")


class BasisStore:
    """Directory of named persisted bases.

    Args:
        directory: Where checkpoints are written. When None a temporary directory is
                   created and removed again by ``cleanup()`` or on context exit.

    Examples:
        >>> with BasisStore() as store:
        ...     store.save("pbasis", basis)
        ...     restored = store.load("pbasis")
    """

    def __init__(self, directory: str | Path | None = None) -> None:
        self._owns_directory = directory is None
        if directory is None:
            self.directory = Path(tempfile.mkdtemp(prefix="biobjective-basis-"))
        else:
            self.directory = Path(directory)
            self.directory.mkdir(parents=True, exist_ok=True)

    def __enter__(self) -> BasisStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.cleanup()

    def path_for(self, name: str) -> Path:
        if not _VALID_NAME.match(name):
            raise BasisStoreError(
                f"Invalid basis name '{name}'. Use letters, digits, '_', '-' or '.'.",
                name=name,
            )
        return self.directory / f"{name}{BASIS_SUFFIX}"

    def save(self, name: str, basis: NetworkBasis) -> Path:
        """Persist ``basis`` under ``name``, replacing any earlier checkpoint."""
        path = self.path_for(name)
        payload = {
            "arcs": [status.name for status in basis.arc_status],
            "nodes": [status.name for status in basis.node_status],
        }
        with path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh)
        logger.debug(
            "Persisted basis",
            extra={"basis_name": name, "basic_arcs": len(basis.basic_arcs())},
        )
        return path

    def load(self, name: str) -> NetworkBasis:
        """Read the checkpoint saved under ``name``."""
        path = self.path_for(name)
        if not path.exists():
            raise BasisStoreError(f"No persisted basis named '{name}' in {self.directory}", name=name)
        try:
            with path.open("r", encoding="utf-8") as fh:
                payload = json.load(fh)
            arcs = [BasisStatus[label] for label in payload["arcs"]]
            nodes = [BasisStatus[label] for label in payload["nodes"]]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise BasisStoreError(f"Persisted basis '{name}' is malformed: {e}", name=name) from e
        return NetworkBasis(arc_status=arcs, node_status=nodes)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.path_for(name).exists()

    def names(self) -> list[str]:
        return sorted(
            path.name[: -len(BASIS_SUFFIX)] for path in self.directory.glob(f"*{BASIS_SUFFIX}")
        )

    def cleanup(self) -> None:
        """Remove the backing directory if this store created it."""
        if self._owns_directory and self.directory.exists():
            shutil.rmtree(self.directory, ignore_errors=True)
