from assessment_engine.core.clock import Clock, utcnow
from assessment_engine.db.session import SessionLocal
from assessment_engine.services.notifications import DatabaseNotificationChannel, NotificationChannel


# every request that needs DB will get a fresh session, and it will always close.
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_clock() -> Clock:
    return utcnow


def get_notification_channel() -> NotificationChannel:
    return DatabaseNotificationChannel(SessionLocal)
