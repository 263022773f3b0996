"""Relational table adapter for the incoming directory.

Also defines the users table read by the database authenticator.
"""

import calendar
import datetime
import logging

import sqlalchemy as sql
import sqlalchemy.orm as orm
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from sftpgateway.adapters.base import IncomingStorage
from sftpgateway.exceptions import SFTPBackendUnavailable
from sftpgateway.models import Entry

logger = logging.getLogger(__name__)

Base = orm.declarative_base()


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class UserModel(Base):
    __tablename__ = 'users'

    id = sql.Column(sql.Integer, primary_key=True)
    username = sql.Column(sql.String(50), unique=True, nullable=False, index=True)
    password_hash = sql.Column(sql.String(255), nullable=False)
    created_at = sql.Column(sql.DateTime, default=_utcnow)
    updated_at = sql.Column(sql.DateTime, default=_utcnow, onupdate=_utcnow)
    is_active = sql.Column(sql.Boolean, default=True, nullable=False)

    def __repr__(self):
        return '<User %s>' % self.username


class IncomingFileModel(Base):
    __tablename__ = 'incoming_files'
    __table_args__ = (sql.UniqueConstraint('username', 'filename'),)

    id = sql.Column(sql.Integer, primary_key=True)
    username = sql.Column(
        sql.String(50),
        sql.ForeignKey('users.username', ondelete='CASCADE'),
        nullable=False,
        index=True
    )
    filename = sql.Column(sql.String(255), nullable=False)
    file_content = sql.Column(sql.LargeBinary, nullable=False)
    file_size = sql.Column(sql.Integer, nullable=False)
    created_at = sql.Column(sql.DateTime, default=_utcnow, nullable=False)

    def __repr__(self):
        return '<IncomingFile %s/%s>' % (self.username, self.filename)


def create_engine(url, timeout=30):
    """Build the engine shared by every session."""
    connect_args = {}
    if url.startswith('postgresql'):
        # per-statement ceiling, in milliseconds
        connect_args['options'] = '-c statement_timeout=%d' % (timeout * 1000)
    return sql.create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def create_tables(engine):
    Base.metadata.create_all(engine)


class DatabaseIncomingStorage(IncomingStorage):
    """Keep incoming uploads in the incoming_files table.

    A second upload of the same filename by the same user replaces
    the first one.
    """

    def __init__(self, engine):
        self.engine = engine
        self.table = IncomingFileModel.__table__

    def _upsert(self, conn, values):
        dialect = self.engine.dialect.name
        if dialect in ('postgresql', 'sqlite'):
            insert = postgresql.insert if dialect == 'postgresql' else sqlite.insert
            stmt = insert(self.table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=['username', 'filename'],
                set_={
                    'file_content': stmt.excluded.file_content,
                    'file_size': stmt.excluded.file_size,
                    'created_at': stmt.excluded.created_at,
                }
            )
            conn.execute(stmt)
            return

        result = conn.execute(
            self.table.update()
            .where(self.table.c.username == values['username'])
            .where(self.table.c.filename == values['filename'])
            .values(**values)
        )
        if result.rowcount == 0:
            conn.execute(self.table.insert().values(**values))

    def store(self, identity, filename, content):
        values = {
            'username': identity.username,
            'filename': filename,
            'file_content': content,
            'file_size': len(content),
            'created_at': _utcnow(),
        }
        try:
            with self.engine.begin() as conn:
                self._upsert(conn, values)
        except SQLAlchemyError as e:
            raise SFTPBackendUnavailable(
                'failed to store incoming file %s: %s' % (filename, e))

        logger.info("Stored incoming file: %s/%s (%d bytes)",
                    identity.username, filename, len(content))

    def list(self, identity):
        query = (
            sql.select(
                self.table.c.filename,
                self.table.c.file_size,
                self.table.c.created_at
            )
            .where(self.table.c.username == identity.username)
            .order_by(self.table.c.filename)
        )
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            raise SFTPBackendUnavailable(
                'failed to list incoming files: %s' % e)

        return [
            Entry(row.filename, row.file_size,
                  calendar.timegm(row.created_at.utctimetuple()), False)
            for row in rows
        ]
