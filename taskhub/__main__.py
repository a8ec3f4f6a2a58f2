"""Small demo lifecycle: python -m taskhub."""

import asyncio
import logging
from datetime import UTC, datetime, timedelta

from taskhub.core.kv_store import InMemoryKeyValueStore
from taskhub.domain.profile import Profile
from taskhub.domain.task import Task
from taskhub.main import build_app, lifespan


logger = logging.getLogger(__name__)


async def main() -> None:
    app = build_app(kv=InMemoryKeyValueStore())
    async with lifespan(app, schedule_maintenance=False):
        orchestrator = app.orchestrator
        now = datetime.now(UTC)

        work = orchestrator.suggest_category("Prepare client presentation")
        await orchestrator.create(
            Task(
                title="Prepare client presentation",
                due_date=now + timedelta(hours=3),
                has_reminder=True,
                reminder_date=now + timedelta(hours=2),
                category_id=work.id if work else None,
            )
        )
        groceries = await orchestrator.create(Task(title="Buy groceries"))
        await orchestrator.add_quick_list_item(groceries.id, "Milk")
        await orchestrator.toggle_completion(groceries.id)
        await orchestrator.drain()

        logger.info("Badge: %s", app.badge.last_written)
        logger.info("Pending reminders: %s", sorted(app.reminders.scheduled_ids))

        await orchestrator.switch_profile(Profile.WORK)
        await orchestrator.drain()
        logger.info("Work profile has %d task(s)", len(orchestrator.tasks))

        report = await orchestrator.run_maintenance()
        logger.info("Maintenance: %s", report.model_dump_json())


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    asyncio.run(main())
