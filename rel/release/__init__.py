"""Release bounded context.

- state, lock: persisted records of one checkout
- steps, pipeline, verify: the sequential release and its resume logic
- rollback: compensations keyed on the last completed step
- dry_run: projections used under --dry-run
- ports, adapters: git, npm, gh and pnpm behind narrow protocols
- orchestrator: wiring for one CLI invocation
"""

from __future__ import annotations
