from contextlib import contextmanager

from commission_hub import db


@contextmanager
def atomic():
    """Run the block as one unit of work: commit on success, roll back on any error."""
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
