"""
Script to seed a demo support directory.

Creates, for each building, one junior group per floor, a senior group and a
supervisor group, plus the escalation rules between them:
- junior floor group -> senior group (SLA, MANUAL, REOPEN_COUNT; priority 1)
- junior floor group -> supervisor group (CRITICAL; priority 2)
- senior group -> supervisor group (SLA, MANUAL; priority 2)
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from ticketflow.lib.database import Database
from ticketflow.lib.logger import get_logger, setup_logging
from ticketflow.models.directory import GroupMemberCreate, Role, SupportGroupCreate
from ticketflow.models.escalation import EscalationRuleCreate, EscalationTrigger
from ticketflow.services.directory_service import DirectoryService

setup_logging()
logger = get_logger(__name__)

DEFAULT_BUILDINGS = {
    "HQ": [1, 2, 3],
    "ANNEX": [1, 2],
}

# Demo identity-service user ids start here
FIRST_USER_ID = 1000


def seed_directory(db: Database, juniors_per_floor: int = 2) -> None:
    """
    Create the demo groups, members and rules.

    Args:
        db: Target database
        juniors_per_floor: Junior technicians added to each floor group
    """
    directory = DirectoryService(db)
    if directory.list_groups():
        print("  Skipped: directory already has active groups")
        return

    user_id = FIRST_USER_ID
    group_count = member_count = rule_count = 0

    for building, floors in DEFAULT_BUILDINGS.items():
        senior = directory.create_group(
            SupportGroupCreate(name=f"{building} Senior Support", building=building, floor=0)
        )
        supervisor = directory.create_group(
            SupportGroupCreate(name=f"{building} Supervisors", building=building, floor=-1)
        )
        group_count += 2

        for group, role in ((senior, Role.SENIOR), (supervisor, Role.SUPERVISOR)):
            directory.add_member(GroupMemberCreate(
                user_id=user_id, group_id=group.id, role=role, can_assign=True, can_escalate=True,
            ))
            user_id += 1
            member_count += 1

        for trigger in (EscalationTrigger.SLA, EscalationTrigger.MANUAL):
            directory.create_escalation_rule(EscalationRuleCreate(
                source_group_id=senior.id, target_group_id=supervisor.id, trigger_type=trigger, priority=2,
            ))
            rule_count += 1

        for floor in floors:
            group = directory.create_group(SupportGroupCreate(
                name=f"{building} Floor {floor} Support",
                building=building,
                floor=floor,
                parent_group_id=senior.id,
            ))
            group_count += 1

            for _ in range(juniors_per_floor):
                directory.add_member(GroupMemberCreate(user_id=user_id, group_id=group.id, role=Role.JUNIOR))
                user_id += 1
                member_count += 1

            rules = [
                EscalationRuleCreate(
                    source_group_id=group.id, target_group_id=senior.id,
                    trigger_type=EscalationTrigger.SLA, delay_minutes=240, priority=1,
                ),
                EscalationRuleCreate(
                    source_group_id=group.id, target_group_id=senior.id,
                    trigger_type=EscalationTrigger.MANUAL, priority=1,
                ),
                EscalationRuleCreate(
                    source_group_id=group.id, target_group_id=senior.id,
                    trigger_type=EscalationTrigger.REOPEN_COUNT, reopen_threshold=3, priority=1,
                ),
                EscalationRuleCreate(
                    source_group_id=group.id, target_group_id=supervisor.id,
                    trigger_type=EscalationTrigger.CRITICAL, priority=2,
                ),
            ]
            for rule in rules:
                directory.create_escalation_rule(rule)
                rule_count += 1

        print(f"  Seeded building {building} ({len(floors)} floor group(s))")

    print(f"\nSummary:")
    print(f"  Groups: {group_count}")
    print(f"  Members: {member_count}")
    print(f"  Escalation rules: {rule_count}")


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Seed a demo support directory",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Seed into the configured database
  python scripts/seed_directory.py

  # Create tables first (no Alembic), three juniors per floor
  python scripts/seed_directory.py --init-schema --juniors 3
        """,
    )
    parser.add_argument("--init-schema", action="store_true", help="Create tables before seeding")
    parser.add_argument("--juniors", type=int, default=2, help="Juniors per floor group (default: 2)")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")

    args = parser.parse_args()

    print("=" * 60)
    print("Support Directory Seeding")
    print("=" * 60)
    print()

    db = Database(args.database_url)
    try:
        if args.init_schema:
            db.init_schema()
            print("  Schema created")
        seed_directory(db, juniors_per_floor=args.juniors)
        print("\nSUCCESS: Directory seeded!")
    except Exception as e:
        logger.error(f"Directory seeding failed: {e}")
        print(f"\nERROR: Directory seeding failed: {e}")
        sys.exit(1)
    finally:
        db.dispose()


if __name__ == "__main__":
    main()
