"""
Recipe Models

Contains the Recipe model and its ordered child collections:
ingredient usages, instruction steps and tips.
"""

from .base import db, TimestampMixin


class Recipe(TimestampMixin, db.Model):
    """Recipe with metadata, publish state and child rows."""
    __tablename__ = 'recipes'

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('categories.id'), nullable=False, index=True)
    slug = db.Column(db.String(220), unique=True, nullable=False, index=True)
    title = db.Column(db.String(200), nullable=False)
    subtitle = db.Column(db.String(300), nullable=True)
    description = db.Column(db.Text, nullable=False, default='')
    # Bucket-relative object path (or a legacy absolute URL / local path)
    image_path = db.Column(db.String(500), nullable=True)
    prep_minutes = db.Column(db.Integer, nullable=True)
    cook_minutes = db.Column(db.Integer, nullable=True)
    serves = db.Column(db.Integer, nullable=True)
    is_published = db.Column(db.Boolean, nullable=False, default=False, index=True)

    category = db.relationship('Category', back_populates='recipes')
    ingredients = db.relationship(
        'RecipeIngredient', back_populates='recipe', cascade='all, delete-orphan',
        order_by='RecipeIngredient.position'
    )
    steps = db.relationship(
        'RecipeStep', back_populates='recipe', cascade='all, delete-orphan',
        order_by='RecipeStep.step_number'
    )
    tips = db.relationship(
        'RecipeTip', back_populates='recipe', cascade='all, delete-orphan',
        order_by='RecipeTip.position'
    )


# Titles are unique case-insensitively
db.Index('ix_recipes_title_lower', db.func.lower(Recipe.title), unique=True)


class RecipeIngredient(db.Model):
    """Join table linking recipes to catalog ingredients with an amount."""
    __tablename__ = 'recipe_ingredients'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredients.id'), nullable=False, index=True)
    amount_value = db.Column(db.Float, nullable=True)
    amount_unit = db.Column(db.String(50), nullable=True)
    amount_text = db.Column(db.String(100), nullable=True)  # free-form override, e.g. "a pinch"
    position = db.Column(db.Integer, nullable=False, default=0)

    recipe = db.relationship('Recipe', back_populates='ingredients')
    ingredient = db.relationship('Ingredient', back_populates='usages')


class RecipeStep(db.Model):
    """Instruction step; step_number is 1-based and contiguous per recipe."""
    __tablename__ = 'recipe_steps'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    step_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=True)
    body = db.Column(db.Text, nullable=False)

    recipe = db.relationship('Recipe', back_populates='steps')


class RecipeTip(db.Model):
    __tablename__ = 'recipe_tips'

    id = db.Column(db.Integer, primary_key=True)
    recipe_id = db.Column(db.Integer, db.ForeignKey('recipes.id', ondelete='CASCADE'), nullable=False, index=True)
    tip = db.Column(db.Text, nullable=False)
    position = db.Column(db.Integer, nullable=False, default=0)

    recipe = db.relationship('Recipe', back_populates='tips')
