import structlog

from booking_sync.dependencies import get_repository
from booking_sync.db.engine import engine
from booking_sync.logging_config import setup_logging
from booking_sync.services.reconcile import pull_bookings, pull_rooms

# Setup logging
setup_logging()
logger = structlog.get_logger(__name__)


def main() -> None:
    # Rooms first so pulled bookings find their room
    repo = get_repository(engine)
    pull_rooms(repo)
    pull_bookings(repo)


if __name__ == "__main__":
    main()
