"""SHA-indexed archive of variants that passed every oracle test."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Optional


class VariantArchive:
    """Store repaired variant sources and their edit/fitness metadata."""

    def __init__(self, archive_dir: str = "repairs", suffix: str = ".txt") -> None:
        self.dir = Path(archive_dir)
        self.dir.mkdir(parents=True, exist_ok=True)
        self.suffix = suffix
        self.db: dict[str, dict[str, Any]] = {}
        self._load_existing()

    def _load_existing(self) -> None:
        for meta_file in self.dir.glob("variant_*_meta.json"):
            try:
                metadata = json.loads(meta_file.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError):
                continue
            sha = str(metadata.get("sha", "")) if isinstance(metadata, dict) else ""
            if sha:
                self.db[sha] = metadata

    def save(
        self,
        source: str,
        name: str,
        fitness: Optional[float] = None,
        suffix: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
    ) -> str:
        """Save variant source and metadata, then return its short SHA.

        Saving the same source again keeps the first file and records the
        additional edit list under ``aliases``.
        """

        sha = hashlib.sha256(source.encode("utf-8")).hexdigest()[:12]
        suffix = suffix or self.suffix
        meta_path = self.dir / f"variant_{sha}_meta.json"

        if sha in self.db:
            metadata = self.db[sha]
            if name != metadata.get("name"):
                aliases = metadata.setdefault("aliases", [])
                if name not in aliases:
                    aliases.append(name)
            if fitness is not None:
                metadata["fitness"] = float(fitness)
            if extra:
                metadata.update(extra)
            source_path = self.dir / str(metadata.get("file", f"variant_{sha}{suffix}"))
            if not source_path.exists():
                source_path.write_text(source, encoding="utf-8")
            meta_path.write_text(json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8")
            return sha

        source_name = f"variant_{sha}{suffix}"
        (self.dir / source_name).write_text(source, encoding="utf-8")
        metadata = {
            "sha": sha,
            "name": name,
            "edits": name.split() if name != "original" else [],
            "fitness": float(fitness) if fitness is not None else None,
            "file": source_name,
        }
        if extra:
            metadata.update(extra)
        meta_path.write_text(json.dumps(metadata, ensure_ascii=False, indent=2), encoding="utf-8")
        self.db[sha] = metadata
        return sha

    def get_source(self, sha: str) -> str:
        """Load archived source by SHA."""

        metadata = self.get_meta(sha)
        path = self.dir / str(metadata.get("file", f"variant_{sha}{self.suffix}"))
        return path.read_text(encoding="utf-8")

    def get_meta(self, sha: str) -> dict[str, Any]:
        if sha not in self.db:
            raise KeyError(f"Unknown variant SHA: {sha}")
        return self.db[sha]

    def __len__(self) -> int:
        return len(self.db)
