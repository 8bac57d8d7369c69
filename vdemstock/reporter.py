"""
Run reporter for one stock computation.

Stages record warnings and metrics as they go; the CLI records the error that
stopped a run. The summary is written as JSON next to the logs.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

import numpy as np

log = logging.getLogger("vdemstock.reporter")


def _to_native(obj):
    # numpy scalars are not JSON serialisable
    if isinstance(obj, np.generic):
        return obj.item()
    if isinstance(obj, dict):
        return {str(k): _to_native(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set)):
        return [_to_native(item) for item in obj]
    return obj


@dataclass
class RunReporter:
    stage: str = "stock"
    warnings: List[str] = field(default_factory=list)
    critical_errors: List[str] = field(default_factory=list)
    metrics: Dict[str, Any] = field(default_factory=dict)
    started: float = field(default_factory=time.perf_counter)

    @property
    def status(self) -> str:
        if self.critical_errors:
            return "failed"
        return "warning" if self.warnings else "success"

    def add_warning(self, message: str):
        self.warnings.append(message)
        log.warning(f"⚠️  {message}")

    def add_critical_error(self, message: str):
        self.critical_errors.append(message)
        log.error(f"❌ {message}")

    def add_metric(self, key: str, value):
        self.metrics[key] = value

    def finalize(self) -> Dict:
        return {
            "stage": self.stage,
            "status": self.status,
            "finished_at": datetime.now(timezone.utc).isoformat(),
            "duration_seconds": round(time.perf_counter() - self.started, 2),
            "warnings_count": len(self.warnings),
            "critical_errors_count": len(self.critical_errors),
            "warnings": list(self.warnings),
            "critical_errors": list(self.critical_errors),
            "metrics": _to_native(self.metrics),
        }

    def save(self, output_path: Path) -> Path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(json.dumps(self.finalize(), indent=2))
        log.info(f"✓ Run summary → {output_path}")
        return output_path
