from app.db.base import Base
from app.db.session import engine
from app.db.models import Member, PushSubscription, Team  # noqa: F401

if __name__ == "__main__":
    print("Creating tables...")
    Base.metadata.create_all(bind=engine)
    print("Tables created.")
