from sqlalchemy import create_engine, Column, String, Text, DateTime, Boolean, text
from sqlalchemy.orm import declarative_base, sessionmaker
from datetime import datetime
import os

Base = declarative_base()

# Use DATABASE_PATH env var if set, otherwise default to local path
DATABASE_PATH = os.getenv('DATABASE_PATH', 'database.sqlite')


def make_session_factory(database_url=None):
    """Create the engine, ensure tables exist and return a session factory."""
    url = database_url or f'sqlite:///{DATABASE_PATH}'
    engine = create_engine(url)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def check_connection(session_factory):
    """Run a trivial query; raises SQLAlchemyError if the store is unusable."""
    db = session_factory()
    try:
        db.execute(text('SELECT 1'))
    finally:
        db.close()


class MirrorEvent(Base):
    __tablename__ = 'event'
    id = Column(String, primary_key=True, index=True)  # calendar event id == task id
    summary = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    location = Column(String, nullable=True)
    start = Column(String, nullable=False)  # YYYY-MM-DD when all_day, else RFC3339 UTC
    end = Column(String, nullable=False)
    all_day = Column(Boolean, default=True)
    ends_at = Column(DateTime, nullable=True, index=True)  # naive UTC, used for pruning
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

# CRUD functions


def find_or_create_event(db, event_id, fields):
    event = db.query(MirrorEvent).filter(MirrorEvent.id == event_id).first()
    if event:
        return event, False
    event = MirrorEvent(id=event_id, **fields)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event, True

def update_event(db, event_id, fields):
    event = db.query(MirrorEvent).filter(MirrorEvent.id == event_id).first()
    if event:
        for key, value in fields.items():
            setattr(event, key, value)
        db.commit()
    return event

def get_event(db, event_id):
    return db.query(MirrorEvent).filter(MirrorEvent.id == event_id).first()

def get_all_events(db):
    return db.query(MirrorEvent).all()

def delete_event(db, event_id):
    event = db.query(MirrorEvent).filter(MirrorEvent.id == event_id).first()
    if event:
        db.delete(event)
        db.commit()
    return event

def delete_events_not_in(db, event_ids):
    query = db.query(MirrorEvent)
    if event_ids:
        query = query.filter(MirrorEvent.id.notin_(list(event_ids)))
    count = query.delete(synchronize_session=False)
    db.commit()
    return count

def delete_events_ended_before(db, cutoff, keep=()):
    query = db.query(MirrorEvent).filter(MirrorEvent.ends_at < cutoff)
    if keep:
        query = query.filter(MirrorEvent.id.notin_(list(keep)))
    count = query.delete(synchronize_session=False)
    db.commit()
    return count
