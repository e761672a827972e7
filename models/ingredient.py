"""
Ingredient Model

Global ingredient catalog shared across recipes.
"""

from .base import db, TimestampMixin


class Ingredient(TimestampMixin, db.Model):
    """Catalog ingredient, reused by recipes through RecipeIngredient."""
    __tablename__ = 'ingredients'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    image_path = db.Column(db.String(500), nullable=True)

    # No cascade: an ingredient in use must not be deleted
    usages = db.relationship('RecipeIngredient', back_populates='ingredient')


db.Index('ix_ingredients_name_lower', db.func.lower(Ingredient.name), unique=True)
