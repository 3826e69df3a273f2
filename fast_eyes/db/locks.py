"""
Room write lock.

Every mutating operation on a room (join, start, claim, reset) begins by taking this lock, and holds it until the
transaction ends. That totally orders them per room, and each one then reads a consistent snapshot of
`current_target`, `status` and the claims.

The lock is taken by writing to the room row first:
* PostgreSQL: the UPDATE takes the row lock (same as SELECT ... FOR UPDATE), other transactions on the room wait.
* SQLite: the first write of a transaction takes the database write lock, other writers wait (busy timeout).
Reads issued afterwards in the same transaction see everything committed before the lock was granted.
"""

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from fast_eyes.core.timeutils import utc_now
from fast_eyes.db.schema import DBRoom


def lock_room(db: Session, room_id: UUID) -> DBRoom | None:
    """
    Take the room's write lock and return the freshly read row (None if the room does not exist).

    Must be called inside a transaction (the repository's @transactional methods).
    """
    touched = db.execute(
        update(DBRoom)
        .where(DBRoom.id == room_id)
        .values(updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if touched.rowcount == 0:
        return None

    query = (
        select(DBRoom)
        .where(DBRoom.id == room_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.scalar(query)
