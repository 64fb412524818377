from logging.config import fileConfig

from sqlalchemy import engine_from_config, pool

from alembic import context  # type: ignore[attr-defined]
from booking_sync.config import DATABASE_URL
from booking_sync.models.base import Base
from booking_sync.models.bookings import Booking, BookingNight  # noqa: F401
from booking_sync.models.guests import Guest  # noqa: F401
from booking_sync.models.ical_feeds import IcalFeed  # noqa: F401
from booking_sync.models.price_rules import PriceRule  # noqa: F401
from booking_sync.models.properties import Property  # noqa: F401
from booking_sync.models.rooms import Room  # noqa: F401
from booking_sync.models.vouchers import VoucherCode, VoucherRedemption  # noqa: F401
from booking_sync.models.webhook_logs import WebhookLog  # noqa: F401

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
config.set_main_option("sqlalchemy.url", DATABASE_URL)


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    Configures the context with just a URL so SQL can be emitted as a
    script without a DBAPI connection.
    """
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode against a live connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
