"""
Public Routes

Home page, category listings and recipe pages.
"""

from flask import Blueprint, render_template

from constants import HIDDEN_CATEGORY_SLUGS
from services.content import (
    get_category_by_slug, get_home_page_data, get_nav_categories,
    get_recipe_details, get_recipes_by_category,
)
from services.errors import NotFoundError

public_bp = Blueprint('public', __name__)


def _visible_category(slug):
    category = get_category_by_slug(slug) if slug not in HIDDEN_CATEGORY_SLUGS else None
    if category is None:
        raise NotFoundError('Category not found.')
    return category


@public_bp.route('/')
def index():
    data = get_home_page_data()
    return render_template('index.html', active_page='home', **data)


@public_bp.route('/categories/<category_slug>')
def category_page(category_slug):
    category = _visible_category(category_slug)
    recipes = get_recipes_by_category(category.slug)
    return render_template(
        'category.html',
        active_page=category.slug,
        categories=get_nav_categories(),
        category=category,
        recipes=recipes,
    )


@public_bp.route('/categories/<category_slug>/<recipe_slug>')
def recipe_page(category_slug, recipe_slug):
    _visible_category(category_slug)
    recipe = get_recipe_details(category_slug, recipe_slug)
    if recipe is None:
        raise NotFoundError('Recipe not found.')
    return render_template(
        'recipe.html',
        active_page=category_slug,
        categories=get_nav_categories(),
        recipe=recipe,
    )
