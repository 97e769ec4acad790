"""
Prize model
"""
from datetime import datetime
from enum import Enum

from extensions import db


class PrizeStatus(str, Enum):
    ACTIVE = 'ACTIVE'
    INACTIVE = 'INACTIVE'


class Prize(db.Model):
    """Redeemable prize. stock_qty NULL means unlimited stock."""
    __tablename__ = 'prizes'
    __table_args__ = (
        db.CheckConstraint('cost_points >= 1', name='ck_prizes_cost_points_positive'),
        db.CheckConstraint('stock_qty IS NULL OR stock_qty >= 0', name='ck_prizes_stock_qty_non_negative'),
    )

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    image_url = db.Column(db.String(500), nullable=True)
    cost_points = db.Column(db.Integer, nullable=False)
    stock_qty = db.Column(db.Integer, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=PrizeStatus.ACTIVE.value)

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.now)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now)

    @property
    def is_active(self):
        return self.status == PrizeStatus.ACTIVE.value

    @property
    def in_stock(self):
        return self.stock_qty is None or self.stock_qty > 0

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'imageUrl': self.image_url,
            'costPoints': self.cost_points,
            'stockQty': self.stock_qty,
            'status': self.status,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<Prize {self.name}>'
