from __future__ import annotations

from ..extensions import db
from canteen.time_utils import to_utc_z


CANTEEN_TYPE_MAIN = "main"
CANTEEN_TYPE_SUB = "sub"
CANTEEN_TYPES = (CANTEEN_TYPE_MAIN, CANTEEN_TYPE_SUB)


class Canteen(db.Model):
    """
    A selling location with its own stock and one sale per business day.

    LOCK STATE: is_locked / locked_at / locked_by_user_id / lock_reason are
    set together and cleared together. A locked canteen accepts no sale
    mutations; the daily auto-unlock sweep clears locks taken before the
    current calendar day.
    """
    __tablename__ = "canteens"
    __table_args__ = (
        db.Index("ix_canteens_locked", "is_locked", "locked_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    type = db.Column(db.String(16), nullable=False, default=CANTEEN_TYPE_SUB)
    location = db.Column(db.String(255), nullable=False)
    contact_number = db.Column(db.String(32), nullable=False)

    is_locked = db.Column(db.Boolean, nullable=False, default=False)
    locked_at = db.Column(db.DateTime, nullable=True)
    # Plain id, no FK: users already reference canteens
    locked_by_user_id = db.Column(db.Integer, nullable=True)
    lock_reason = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Canteen id={self.id} name={self.name!r} locked={self.is_locked}>"

    def clear_lock(self) -> None:
        self.is_locked = False
        self.locked_at = None
        self.locked_by_user_id = None
        self.lock_reason = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "contact_number": self.contact_number,
            "is_locked": self.is_locked,
            "locked_at": to_utc_z(self.locked_at),
            "locked_by_user_id": self.locked_by_user_id,
            "lock_reason": self.lock_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
