"""
bcp_exorcist package

Repairs "broken" CSV exports (single-byte field/record terminators, raw
quotes and newlines inside fields) into quoted CSV.

Key responsibilities are split across modules:
- `reader.py`: streaming, chunk-size independent repair
- `exorcism.py`: in-place file repair with backup/restore
- `release_config.py`: parse the YAML release configuration
- `workflow.py`: render/check the release workflow manifest
- `github_client.py`: GitHub REST calls for manual release dispatch
- `cli.py`: CLI entrypoint and orchestration
"""

from __future__ import annotations

from bcp_exorcist.exorcism import ExorcismError, exorcize_csv
from bcp_exorcist.reader import ExorcismOptions, ExorcismStats, Exorcist, exorcize_stream

__all__ = [
    "__version__",
    "ExorcismError",
    "ExorcismOptions",
    "ExorcismStats",
    "Exorcist",
    "exorcize_csv",
    "exorcize_stream",
]

__version__ = "0.2.0"
