"""Database configuration and initialization."""
from sqlalchemy import BigInteger, Integer, create_engine, event
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

# Create SQLAlchemy base
Base = declarative_base()

# BIGINT primary keys on PostgreSQL; SQLite only autoincrements INTEGER PRIMARY KEY
IdType = BigInteger().with_variant(Integer, 'sqlite')

# Global session and engine
engine = None
db_session = None


def _configure_sqlite(sqlite_engine):
    """
    Make pysqlite honour SAVEPOINT and foreign keys.

    pysqlite issues its own BEGIN lazily, which breaks nested transactions;
    we take over transaction start and enable FK enforcement per connection.
    """
    @event.listens_for(sqlite_engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(sqlite_engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN')


def init_db(app):
    """Initialize database connection."""
    global engine, db_session

    database_uri = app.config['SQLALCHEMY_DATABASE_URI']
    engine_options = {'echo': app.config.get('SQLALCHEMY_ECHO', False)}

    if database_uri.startswith('sqlite'):
        # One shared connection so in-memory databases outlive a single session
        engine_options.update(
            connect_args={'check_same_thread': False},
            poolclass=StaticPool
        )
    else:
        engine_options.update(
            pool_pre_ping=True,  # Enable connection health checks
            pool_size=10,
            max_overflow=20
        )

    engine = create_engine(database_uri, **engine_options)
    if engine.dialect.name == 'sqlite':
        _configure_sqlite(engine)

    db_session = scoped_session(
        sessionmaker(autoflush=False, bind=engine)
    )

    # Register teardown
    @app.teardown_appcontext
    def shutdown_session(exception=None):
        """Close database session and rollback on error."""
        if exception:
            db_session.rollback()
        db_session.remove()


def create_tables():
    """Create every table known to the models package."""
    import posapp.models  # noqa: F401 - registers the mappers on Base
    Base.metadata.create_all(engine)


def drop_tables():
    """Drop every table known to the models package."""
    import posapp.models  # noqa: F401
    Base.metadata.drop_all(engine)


def get_session():
    """Get database session."""
    return db_session


def get_engine():
    """Get the engine bound by init_db."""
    return engine
