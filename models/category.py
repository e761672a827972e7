"""
Category Model

Static reference data; each recipe belongs to exactly one category.
"""

from .base import db


class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(100), unique=True, nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    recipes = db.relationship('Recipe', back_populates='category')
