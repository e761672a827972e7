"""
Models Package

Exports all database models and the db instance for use throughout the application.
"""

from .base import db, utcnow

from .category import Category
from .ingredient import Ingredient
from .recipe import Recipe, RecipeIngredient, RecipeStep, RecipeTip
from .admin import AdminUser, AdminAuditLog

__all__ = [
    'db',
    'utcnow',
    'Category',
    'Ingredient',
    'Recipe',
    'RecipeIngredient',
    'RecipeStep',
    'RecipeTip',
    'AdminUser',
    'AdminAuditLog',
]
