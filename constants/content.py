"""
Content Constants

Contains the seeded recipe categories, categories hidden from the
public navigation, and the audit log vocabulary.
"""

# Seed categories (slug -> title), in navigation order
DEFAULT_CATEGORIES = [
    ('breakfast', 'Breakfast Recipes'),
    ('lunch', 'Lunch Recipes'),
    ('dinner', 'Dinner Recipes'),
    ('dessert', 'Dessert Recipes'),
    ('set-menu', 'Set Menu Recipes'),
    ('new-recipes', 'New Recipes'),
]

# Categories that exist for grouping but have no public page
HIDDEN_CATEGORY_SLUGS = {'new-recipes'}

# Home page
LATEST_RECIPES_LIMIT = 6
CATEGORY_SECTION_LIMIT = 4

# Audit log actions
AUDIT_RECIPE_CREATE = 'recipe.create'
AUDIT_RECIPE_UPDATE = 'recipe.update'
AUDIT_RECIPE_PUBLISH = 'recipe.publish'
AUDIT_RECIPE_UNPUBLISH = 'recipe.unpublish'
AUDIT_RECIPE_DELETE = 'recipe.delete'
AUDIT_INGREDIENT_CREATE = 'ingredient.create'
AUDIT_INGREDIENT_UPDATE = 'ingredient.update'
AUDIT_INGREDIENT_DELETE = 'ingredient.delete'
