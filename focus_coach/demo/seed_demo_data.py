# focus_coach/demo/seed_demo_data.py

from datetime import date, datetime, timedelta

from focus_coach.storage.db import DEFAULT_DB_PATH
from focus_coach.storage.models import ActivitySample, Goal, Task, UsageRecord
from focus_coach.storage.repository import CoachRepository, initialize_schema


def seed_demo_data(db_path: str = DEFAULT_DB_PATH) -> None:
    initialize_schema(db_path)
    repository = CoachRepository(db_path)
    now = datetime.now()

    repository.insert_task(Task(title="Write quarterly report", status="pending", priority="high",
                                due_date=now - timedelta(days=1)))
    repository.insert_task(Task(title="Review pull requests", status="completed"))
    repository.insert_task(Task(title="Plan sprint", status="in_progress", priority="low"))

    repository.insert_goal(Goal(title="Read 12 books", target_value=12, current_value=5,
                                created_at=now - timedelta(days=120), deadline=now + timedelta(days=245)))

    meditate = repository.insert_habit("Meditate", streak=6)
    repository.insert_habit("Exercise", streak=2)
    repository.log_habit_entry(meditate, date.today(), completed=True)

    for app_name, category, minutes, score in [
        ("Visual Studio Code", "development", 95, 95),
        ("Chrome", "browsing", 40, 60),
        ("Slack", "communication", 25, 70),
    ]:
        repository.insert_activity_sample(ActivitySample(
            timestamp=now,
            app_name=app_name,
            window_title=None,
            duration=minutes * 60,
            category=category,
            productivity_score=score,
        ))

    repository.insert_usage_record(UsageRecord(
        timestamp=now,
        provider="openai",
        model="gpt-4",
        input_tokens=1200,
        output_tokens=300,
        cost=0.054,
        request_kind="feedback",
        latency_ms=2400,
    ))


if __name__ == "__main__":
    seed_demo_data()
    print("Demo data inserted")
