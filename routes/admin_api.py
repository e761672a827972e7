"""
Admin API Routes

JSON CRUD for recipes and ingredients under /api/admin. Every route
needs an admin session; mutations also need a same-origin request and a
valid CSRF token. Errors are returned as {"error": message}.
"""

import logging

from flask import Blueprint, jsonify, request

from constants import INGREDIENT_IMAGE_BUCKET, RECIPE_IMAGE_BUCKET
from constants.content import (
    AUDIT_INGREDIENT_CREATE, AUDIT_INGREDIENT_DELETE, AUDIT_INGREDIENT_UPDATE,
    AUDIT_RECIPE_CREATE, AUDIT_RECIPE_DELETE, AUDIT_RECIPE_PUBLISH,
    AUDIT_RECIPE_UNPUBLISH, AUDIT_RECIPE_UPDATE,
)
from services import admin as admin_service
from services.audit import write_audit_log
from services.auth import current_actor
from services.errors import HttpError, ValidationError
from services.images import delete_image, delete_images
from services.search import parse_pagination, parse_status, total_pages
from utils.decorators import admin_api_required, csrf_required, same_origin_required

logger = logging.getLogger(__name__)

admin_api_bp = Blueprint('admin_api', __name__, url_prefix='/api/admin')


@admin_api_bp.errorhandler(HttpError)
def handle_http_error(error):
    if error.status >= 500:
        logger.error('Admin API error: %s', error.message)
    return jsonify({'error': error.message}), error.status


def _json_body(required=True):
    body = request.get_json(silent=True)
    if body is None and not required:
        return {}
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object.')
    return body


def _list_response(result, page, page_size):
    return jsonify({
        'items': result['items'],
        'search_feedback': result['search_feedback'],
        'fuzzy_used': result['fuzzy_used'],
        'page': page,
        'page_size': page_size,
        'total': result['total'],
        'total_pages': total_pages(result['total'], page_size),
    })


def _recipe_audit_metadata(recipe):
    return {
        'slug': recipe.slug,
        'category_slug': recipe.category.slug,
        'is_published': recipe.is_published,
    }


# =============================================================================
# Recipes
# =============================================================================

@admin_api_bp.route('/recipes', methods=['GET'])
@admin_api_required
def recipes_index():
    page, page_size = parse_pagination(request.args)
    result = admin_service.list_recipes(
        search=(request.args.get('search') or '').strip(),
        status=parse_status(request.args.get('status')),
        category=(request.args.get('category') or '').strip(),
        page=page,
        page_size=page_size,
    )
    return _list_response(result, page, page_size)


@admin_api_bp.route('/recipes', methods=['POST'])
@admin_api_required
@same_origin_required
@csrf_required
def recipes_create():
    recipe = admin_service.create_recipe(_json_body())
    write_audit_log(current_actor(), AUDIT_RECIPE_CREATE, 'recipe', recipe.id,
                    _recipe_audit_metadata(recipe))
    return jsonify(admin_service.recipe_write_result(recipe)), 201


@admin_api_bp.route('/recipes/<int:recipe_id>', methods=['GET'])
@admin_api_required
def recipes_show(recipe_id):
    return jsonify(admin_service.get_recipe_admin_details(recipe_id))


@admin_api_bp.route('/recipes/<int:recipe_id>', methods=['PATCH'])
@admin_api_required
@same_origin_required
@csrf_required
def recipes_update(recipe_id):
    recipe = admin_service.update_recipe(recipe_id, _json_body())
    write_audit_log(current_actor(), AUDIT_RECIPE_UPDATE, 'recipe', recipe.id,
                    _recipe_audit_metadata(recipe))
    return jsonify(admin_service.recipe_write_result(recipe))


@admin_api_bp.route('/recipes/<int:recipe_id>/publish', methods=['PATCH'])
@admin_api_required
@same_origin_required
@csrf_required
def recipes_publish(recipe_id):
    requested = _json_body(required=False).get('is_published')
    recipe = admin_service.toggle_publish(
        recipe_id, requested if isinstance(requested, bool) else None
    )
    action = AUDIT_RECIPE_PUBLISH if recipe.is_published else AUDIT_RECIPE_UNPUBLISH
    write_audit_log(current_actor(), action, 'recipe', recipe.id,
                    {'is_published': recipe.is_published})
    return jsonify({'id': recipe.id, 'is_published': recipe.is_published})


@admin_api_bp.route('/recipes/<int:recipe_id>', methods=['DELETE'])
@admin_api_required
@same_origin_required
@csrf_required
def recipes_delete(recipe_id):
    images = admin_service.delete_recipe(recipe_id)
    write_audit_log(current_actor(), AUDIT_RECIPE_DELETE, 'recipe', recipe_id,
                    {'image_count': len(images)})
    delete_images([(path, RECIPE_IMAGE_BUCKET) for path in images])
    return '', 204


# =============================================================================
# Ingredients
# =============================================================================

@admin_api_bp.route('/ingredients', methods=['GET'])
@admin_api_required
def ingredients_index():
    page, page_size = parse_pagination(request.args)
    result = admin_service.list_ingredients(
        search=(request.args.get('search') or '').strip(),
        page=page,
        page_size=page_size,
    )
    return _list_response(result, page, page_size)


@admin_api_bp.route('/ingredients', methods=['POST'])
@admin_api_required
@same_origin_required
@csrf_required
def ingredients_create():
    ingredient = admin_service.create_ingredient(_json_body())
    write_audit_log(current_actor(), AUDIT_INGREDIENT_CREATE, 'ingredient', ingredient.id,
                    {'name': ingredient.name})
    return jsonify(admin_service.ingredient_row(ingredient)), 201


@admin_api_bp.route('/ingredients/<int:ingredient_id>', methods=['GET'])
@admin_api_required
def ingredients_show(ingredient_id):
    return jsonify(admin_service.get_ingredient(ingredient_id))


@admin_api_bp.route('/ingredients/<int:ingredient_id>', methods=['PATCH'])
@admin_api_required
@same_origin_required
@csrf_required
def ingredients_update(ingredient_id):
    ingredient = admin_service.update_ingredient(ingredient_id, _json_body())
    write_audit_log(current_actor(), AUDIT_INGREDIENT_UPDATE, 'ingredient', ingredient.id,
                    {'name': ingredient.name})
    return jsonify(admin_service.ingredient_row(ingredient))


@admin_api_bp.route('/ingredients/<int:ingredient_id>', methods=['DELETE'])
@admin_api_required
@same_origin_required
@csrf_required
def ingredients_delete(ingredient_id):
    deleted = admin_service.delete_ingredient(ingredient_id)
    write_audit_log(current_actor(), AUDIT_INGREDIENT_DELETE, 'ingredient', deleted['id'],
                    {'name': deleted['name']})
    delete_image(deleted['image_path'], INGREDIENT_IMAGE_BUCKET)
    return '', 204
