from __future__ import annotations

from ..extensions import db


class Setting(db.Model):
    """
    Key-value operational settings stored inside the database file.

    Holds the bill sequence counter next to configuration so that a backup
    captures both together. Values are text; callers parse them.
    """
    __tablename__ = "settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}
