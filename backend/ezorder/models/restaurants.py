from __future__ import annotations

from ..extensions import db
from ezorder.time_utils import to_utc_z


class Restaurant(db.Model):
    """Tenant unit. Cash sessions, sales and expenses belong to one restaurant."""
    __tablename__ = "restaurants"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class UserRestaurant(db.Model):
    """
    Restaurant membership (many-to-many user <-> restaurant).

    Scopes admin-tier access to the restaurants they own or manage.
    """
    __tablename__ = "user_restaurants"
    __table_args__ = (
        db.UniqueConstraint("user_id", "restaurant_id", name="uq_user_restaurants"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    is_owner = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User", backref=db.backref("restaurant_memberships", lazy=True))
    restaurant = db.relationship("Restaurant", backref=db.backref("memberships", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "restaurant_id": self.restaurant_id,
            "is_owner": self.is_owner,
        }
