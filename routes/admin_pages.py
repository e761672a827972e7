"""
Admin Page Routes

Server-rendered admin screens. Writes go through the JSON API; these
views only render lists and forms.
"""

from flask import Blueprint, render_template, request

from services.admin import (
    get_dashboard_counts, get_ingredient, get_recipe_admin_details,
    list_ingredients, list_recipes,
)
from services.content import get_form_categories
from services.search import build_pagination, parse_pagination, parse_status
from utils.decorators import admin_page_required

admin_pages_bp = Blueprint('admin_pages', __name__, url_prefix='/admin')

EMPTY_RECIPE = {
    'id': None,
    'category_slug': '',
    'title': '',
    'subtitle': '',
    'description': '',
    'image_path': '',
    'prep_minutes': None,
    'cook_minutes': None,
    'serves': None,
    'is_published': False,
    'ingredients': [],
    'steps': [],
    'tips': [],
}


@admin_pages_bp.route('')
@admin_page_required
def dashboard():
    return render_template(
        'admin/dashboard.html',
        admin_nav='dashboard',
        counts=get_dashboard_counts(),
    )


@admin_pages_bp.route('/recipes')
@admin_page_required
def recipes_list():
    search = (request.args.get('search') or '').strip()
    status = parse_status(request.args.get('status'))
    category = (request.args.get('category') or '').strip()
    page, page_size = parse_pagination(request.args)

    result = list_recipes(search=search, status=status, category=category,
                          page=page, page_size=page_size)
    pagination = build_pagination(
        page, page_size, result['total'], '/admin/recipes',
        {'search': search, 'status': status, 'category': category},
    )
    return render_template(
        'admin/recipes_list.html',
        admin_nav='recipes',
        items=result['items'],
        search_feedback=result['search_feedback'],
        categories=get_form_categories(),
        filters={'search': search, 'status': status, 'category': category, 'page_size': page_size},
        pagination=pagination,
    )


@admin_pages_bp.route('/recipes/new')
@admin_page_required
def recipe_new():
    categories = get_form_categories()
    recipe = dict(EMPTY_RECIPE, category_slug=categories[0].slug if categories else '')
    return render_template(
        'admin/recipe_form.html',
        admin_nav='recipes',
        mode='create',
        categories=categories,
        recipe=recipe,
    )


@admin_pages_bp.route('/recipes/<int:recipe_id>/edit')
@admin_page_required
def recipe_edit(recipe_id):
    recipe = get_recipe_admin_details(recipe_id)
    return render_template(
        'admin/recipe_form.html',
        admin_nav='recipes',
        mode='edit',
        categories=get_form_categories(),
        recipe=recipe,
    )


@admin_pages_bp.route('/ingredients')
@admin_page_required
def ingredients_list():
    search = (request.args.get('search') or '').strip()
    page, page_size = parse_pagination(request.args)

    result = list_ingredients(search=search, page=page, page_size=page_size)
    pagination = build_pagination(page, page_size, result['total'], '/admin/ingredients',
                                  {'search': search})
    return render_template(
        'admin/ingredients_list.html',
        admin_nav='ingredients',
        items=result['items'],
        search_feedback=result['search_feedback'],
        filters={'search': search, 'page_size': page_size},
        pagination=pagination,
    )


@admin_pages_bp.route('/ingredients/new')
@admin_page_required
def ingredient_new():
    return render_template(
        'admin/ingredient_form.html',
        admin_nav='ingredients',
        mode='create',
        ingredient={'id': None, 'name': '', 'image_path': ''},
    )


@admin_pages_bp.route('/ingredients/<int:ingredient_id>/edit')
@admin_page_required
def ingredient_edit(ingredient_id):
    return render_template(
        'admin/ingredient_form.html',
        admin_nav='ingredients',
        mode='edit',
        ingredient=get_ingredient(ingredient_id),
    )
