# Schema bootstrap for the Diary API
import logging
import database

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ["users", "calendars", "calendar_members", "events", "tags", "sessions"]

SCHEMA_STATEMENTS = [
    """
    -- Users
    CREATE TABLE IF NOT EXISTS users (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        email                VARCHAR(255) NOT NULL UNIQUE,
        password_hash        VARCHAR(255) NOT NULL,
        name                 VARCHAR(255) NULL,
        utc_offset_minutes   SMALLINT     NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP
    )
    """,
    """
    -- Calendars, every user owns one personal calendar
    CREATE TABLE IF NOT EXISTS calendars (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        type                 ENUM('personal','shared') NOT NULL DEFAULT 'personal',
        name                 VARCHAR(255) NOT NULL,
        owner_id             INT          NOT NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS calendar_members (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        calendar_id          INT          NOT NULL,
        user_id              INT          NOT NULL,
        role                 ENUM('owner','editor','viewer') NOT NULL DEFAULT 'owner',
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (calendar_id) REFERENCES calendars(id) ON DELETE CASCADE,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE,
        UNIQUE (calendar_id, user_id)
    )
    """,
    """
    -- Events
    CREATE TABLE IF NOT EXISTS events (
        id                   INT          AUTO_INCREMENT PRIMARY KEY,
        calendar_id          INT          NOT NULL,
        title                VARCHAR(255) NOT NULL,
        start_at             DATETIME     NOT NULL,
        end_at               DATETIME     NOT NULL,
        memo                 TEXT         NULL,
        tag_id               VARCHAR(64)  NOT NULL DEFAULT 't1',
        rrule                TEXT         NULL,
        created_by           INT          NOT NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        updated_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP ON UPDATE CURRENT_TIMESTAMP,
        FOREIGN KEY (calendar_id) REFERENCES calendars(id) ON DELETE CASCADE,
        FOREIGN KEY (created_by) REFERENCES users(id) ON DELETE CASCADE,
        INDEX (calendar_id, start_at)
    )
    """,
    """
    -- Tags, ids are chosen by the client and unique per user
    CREATE TABLE IF NOT EXISTS tags (
        id                   VARCHAR(64)  NOT NULL,
        user_id              INT          NOT NULL,
        name                 VARCHAR(255) NOT NULL,
        color                CHAR(7)      NOT NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        PRIMARY KEY (user_id, id),
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
    """
    -- Login sessions, only the token hash is stored
    CREATE TABLE IF NOT EXISTS sessions (
        token_hash           CHAR(64)     PRIMARY KEY,
        user_id              INT          NOT NULL,
        expires_at           DATETIME     NOT NULL,
        created_at           DATETIME     NOT NULL DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
    )
    """,
]


def check_db_is_setup():
    """Check if the diary database exists and contains all required tables."""
    db_cursor = database.get_connection().cursor()
    db_cursor.execute("SHOW DATABASES")
    databases = [db[0] for db in db_cursor.fetchall()]

    if database.MYSQL_DATABASE not in databases:
        return False

    db_cursor.execute(f"USE {database.MYSQL_DATABASE}")
    db_cursor.execute("SHOW TABLES")
    tables = [table[0] for table in db_cursor.fetchall()]

    database.get_connection().commit()

    return all(table in tables for table in REQUIRED_TABLES)


def create_db_and_scheme():
    """Create the diary database and all necessary tables."""
    db_cursor = database.get_connection().cursor()

    db_cursor.execute(f"CREATE DATABASE IF NOT EXISTS {database.MYSQL_DATABASE}")
    db_cursor.execute(f"USE {database.MYSQL_DATABASE}")
    for statement in SCHEMA_STATEMENTS:
        db_cursor.execute(statement)

    database.get_connection().commit()


def setup_database():
    """Ensure the database is configured, create schema if needed."""
    logger.info("Checking if the database is set up...")
    if not check_db_is_setup():
        logger.info("Database not found or incomplete. Setting up...")
        create_db_and_scheme()
        logger.info("Database and tables created successfully.")
        return True
    else:
        logger.info("Database is already set up.")
        return False
