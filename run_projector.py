"""
Rebuild read models (recurrence_rules, tasks) from the event log for one account

Usage:
    python run_projector.py <account_id>
"""
import sys
import traceback

from cadence.infrastructure.db.session import get_db
from cadence.readmodels.projectors.base import ProjectorOrchestrator
from cadence.readmodels.projectors.recurrence_rules import RecurrenceRulesProjector
from cadence.readmodels.projectors.tasks import TasksProjector


def build_orchestrator(db) -> ProjectorOrchestrator:
    orchestrator = ProjectorOrchestrator(db)
    orchestrator.register(RecurrenceRulesProjector(db))
    orchestrator.register(TasksProjector(db))
    return orchestrator


def main(account_id: int) -> int:
    db = next(get_db())
    try:
        print(f"Rebuilding read models for account_id={account_id}...")
        results = build_orchestrator(db).rebuild_all(account_id)
        for name, count in results.items():
            print(f"  {name}: {count} event(s)")
        return 0
    except Exception as e:
        print(f"ERROR: {e}")
        traceback.print_exc()
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(main(int(sys.argv[1])))
