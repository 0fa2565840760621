"""Database configuration and initialization."""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base

# Create SQLAlchemy base
Base = declarative_base()

# Global session and engine
engine = None
db_session = scoped_session(sessionmaker(autocommit=False, autoflush=False))


def _install_sqlite_immediate_begin(sqlite_engine):
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write, so two transactions can read
    the same stock row and then race to write it. Taking the write lock at
    BEGIN serializes movements the way FOR UPDATE does on PostgreSQL.
    """
    @event.listens_for(sqlite_engine, 'connect')
    def do_connect(dbapi_connection, connection_record):
        # Disable pysqlite's own BEGIN handling
        dbapi_connection.isolation_level = None
        dbapi_connection.execute('PRAGMA foreign_keys=ON')

    @event.listens_for(sqlite_engine, 'begin')
    def do_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')


def build_engine(database_uri, echo=False, lock_timeout_ms=5000):
    """Create an engine for the given URI with per-dialect settings."""
    if database_uri.startswith('sqlite'):
        new_engine = create_engine(
            database_uri,
            echo=echo,
            connect_args={
                'timeout': lock_timeout_ms / 1000.0,  # busy timeout in seconds
                'check_same_thread': False,
            },
        )
        _install_sqlite_immediate_begin(new_engine)
        return new_engine

    return create_engine(
        database_uri,
        echo=echo,
        pool_pre_ping=True,  # Enable connection health checks
        pool_size=10,
        max_overflow=20
    )


def init_db(app):
    """Initialize database connection."""
    global engine

    engine = build_engine(
        app.config['SQLALCHEMY_DATABASE_URI'],
        echo=app.config.get('SQLALCHEMY_ECHO', False),
        lock_timeout_ms=app.config.get('STOCK_LOCK_TIMEOUT_MS', 5000),
    )

    db_session.remove()
    db_session.configure(bind=engine)
    Base.query = db_session.query_property()

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_all():
    """Create every table known to the models package."""
    import app.models  # noqa: F401 - registers mappers on Base.metadata
    Base.metadata.create_all(bind=engine)


def drop_all():
    """Drop all tables. Only used by tests."""
    import app.models  # noqa: F401
    Base.metadata.drop_all(bind=engine)


def get_engine():
    """Get the active engine."""
    return engine


def get_session():
    """Get database session."""
    return db_session


# Alias for easier imports
db = db_session
