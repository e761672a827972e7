"""
Admin Service

Validation and persistence for admin writes (recipes, ingredients),
the admin list views and the dashboard counters.

Recipe writes run in this order: validate input, check title
uniqueness, resolve the category, pick a unique slug, resolve catalog
ingredients, upload images, then write the recipe and all of its child
rows in one database transaction. Images uploaded for a write that
fails to commit are removed again (best effort).
"""

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import contains_eager

from constants import INGREDIENT_IMAGE_BUCKET, MAX_LENGTHS, RECIPE_IMAGE_BUCKET
from models import (
    db, utcnow, Category, Ingredient, Recipe, RecipeIngredient, RecipeStep, RecipeTip,
)
from utils.sanitizer import (
    clean_text, clean_optional_text, to_slug, parse_number, parse_bool, parse_id,
)
from utils.storage import normalize_image_path
from .errors import ConflictError, NotFoundError, UpstreamError, ValidationError
from .images import delete_image, delete_images, to_display_url, upload_image
from .search import SearchTarget, search_records

logger = logging.getLogger(__name__)

INGREDIENT_UPLOAD_FOLDER = 'ingredients'

RECIPE_SEARCH = SearchTarget(
    Recipe,
    fields=[Recipe.title, Recipe.slug],
    order_by=[Recipe.updated_at.desc(), Recipe.id.asc()],
    count_procedure='admin_count_recipes_fuzzy',
    search_procedure='admin_search_recipes_fuzzy',
    label='Recipe',
)

INGREDIENT_SEARCH = SearchTarget(
    Ingredient,
    fields=[Ingredient.name],
    order_by=[Ingredient.name.asc(), Ingredient.id.asc()],
    count_procedure='admin_count_ingredients_fuzzy',
    search_procedure='admin_search_ingredients_fuzzy',
    label='Ingredient',
)


# =============================================================================
# Formatting
# =============================================================================

def format_date_label(value):
    """'Jan 5, 2026' style label for list views."""
    if value is None:
        return '-'
    return f'{value:%b} {value.day}, {value.year}'


def recipe_links(recipe):
    return {
        'link': f'/categories/{recipe.category.slug}/{recipe.slug}',
        'edit_link': f'/admin/recipes/{recipe.id}/edit',
    }


def recipe_write_result(recipe):
    """Response body for a created or updated recipe."""
    return {
        'id': recipe.id,
        'slug': recipe.slug,
        'is_published': recipe.is_published,
        **recipe_links(recipe),
    }


def recipe_list_row(recipe):
    category = recipe.category
    return {
        'id': recipe.id,
        'slug': recipe.slug,
        'title': recipe.title,
        'category_slug': category.slug if category else '',
        'category_title': category.title if category else '-',
        'is_published': bool(recipe.is_published),
        'prep_minutes': recipe.prep_minutes,
        'cook_minutes': recipe.cook_minutes,
        'serves': recipe.serves,
        'updated_at': recipe.updated_at.isoformat() if recipe.updated_at else None,
        'updated_label': format_date_label(recipe.updated_at),
    }


def ingredient_row(ingredient, usage_count=None):
    row = {
        'id': ingredient.id,
        'name': ingredient.name,
        'image_path': to_display_url(ingredient.image_path, INGREDIENT_IMAGE_BUCKET),
        'updated_at': ingredient.updated_at.isoformat() if ingredient.updated_at else None,
        'updated_label': format_date_label(ingredient.updated_at),
    }
    if usage_count is not None:
        row['recipe_usage_count'] = usage_count
    return row


# =============================================================================
# Input normalization
# =============================================================================

def _require_mapping(body):
    if not isinstance(body, dict):
        raise ValidationError('Request body must be a JSON object.')
    return body


def _list_of_dicts(value):
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _whole_number(body, field, minimum, message):
    raw = body.get(field)
    value = parse_number(raw)
    if value is None:
        if raw not in (None, ''):
            raise ValidationError(f'{field} must be a number.')
        return None
    if not isinstance(value, int):
        raise ValidationError(f'{field} must be a whole number.')
    if value < minimum:
        raise ValidationError(message)
    return value


def normalize_recipe_input(body):
    """
    Validate a recipe create/update body.

    Blank ingredient rows, steps and tips are dropped; steps are
    renumbered from 1 and positions follow submission order.

    Raises:
        ValidationError: on any invalid field (nothing has been written)
    """
    body = _require_mapping(body)

    category = clean_text(body.get('category'))
    title = clean_text(body.get('title'), MAX_LENGTHS['title'])
    description = clean_text(body.get('description'))
    if not category or not title or not description:
        raise ValidationError('category, title, and description are required.')

    data = {
        'category': category,
        'title': title,
        'slug_source': clean_text(body.get('slug')) or title,
        'subtitle': clean_optional_text(body.get('subtitle'), MAX_LENGTHS['subtitle']),
        'description': description,
        'image_base64': clean_text(body.get('recipe_image_base64')),
        'existing_image_path': clean_optional_text(body.get('existing_recipe_image_path')),
        'prep_minutes': _whole_number(body, 'prep_minutes', 0, 'prep_minutes must be 0 or greater.'),
        'cook_minutes': _whole_number(body, 'cook_minutes', 0, 'cook_minutes must be 0 or greater.'),
        'serves': _whole_number(body, 'serves', 1, 'serves must be greater than 0.'),
        'is_published': parse_bool(body.get('is_published'), False),
    }

    ingredients = []
    seen_names = set()
    for item in _list_of_dicts(body.get('ingredients')):
        name = clean_text(item.get('name'), MAX_LENGTHS['ingredient_name'])
        if not name:
            continue
        amount_value = parse_number(item.get('amount_value'))
        if amount_value is not None and amount_value < 0:
            raise ValidationError(f'Amount value cannot be negative for ingredient "{name}".')
        key = name.lower()
        if key in seen_names:
            raise ValidationError(f'Ingredient "{name}" is duplicated in this recipe.')
        seen_names.add(key)
        ingredients.append({
            'ingredient_id': parse_id(item.get('ingredient_id')),
            'name': name,
            'amount_value': amount_value,
            'amount_unit': clean_optional_text(item.get('amount_unit'), MAX_LENGTHS['amount_unit']),
            'amount_text': clean_optional_text(item.get('amount_text'), MAX_LENGTHS['amount_text']),
            'image_base64': clean_text(item.get('image_base64')),
            'existing_image_path': clean_optional_text(item.get('existing_image_path')),
            'position': len(ingredients),
        })
    if not ingredients:
        raise ValidationError('At least one ingredient is required.')

    steps = []
    for item in _list_of_dicts(body.get('steps')):
        step_body = clean_text(item.get('body'))
        if not step_body:
            continue
        steps.append({
            'step_number': len(steps) + 1,
            'title': clean_optional_text(item.get('title'), MAX_LENGTHS['step_title']),
            'body': step_body,
        })
    if not steps:
        raise ValidationError('At least one instruction step is required.')

    tips = []
    for item in _list_of_dicts(body.get('tips')):
        tip = clean_text(item.get('tip'))
        if tip:
            tips.append({'tip': tip, 'position': len(tips)})

    data.update(ingredients=ingredients, steps=steps, tips=tips)
    return data


# =============================================================================
# Lookups
# =============================================================================

def get_recipe_or_404(recipe_id):
    recipe = db.session.get(Recipe, recipe_id) if parse_id(recipe_id) else None
    if recipe is None:
        raise NotFoundError('Recipe not found.')
    return recipe


def get_ingredient_or_404(ingredient_id):
    ingredient = db.session.get(Ingredient, ingredient_id) if parse_id(ingredient_id) else None
    if ingredient is None:
        raise NotFoundError('Ingredient not found.')
    return ingredient


def ensure_unique_recipe_title(title, exclude_id=None):
    query = Recipe.query.filter(func.lower(Recipe.title) == func.lower(title))
    if exclude_id is not None:
        query = query.filter(Recipe.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f'Recipe title "{title}" already exists.')


def ensure_unique_ingredient_name(name, exclude_id=None):
    query = Ingredient.query.filter(func.lower(Ingredient.name) == func.lower(name))
    if exclude_id is not None:
        query = query.filter(Ingredient.id != exclude_id)
    if query.first() is not None:
        raise ConflictError('Ingredient name already exists.')


def get_category_or_400(slug):
    category = Category.query.filter_by(slug=slug).first()
    if category is None:
        raise ValidationError(f'Unknown category: {slug}')
    return category


def unique_recipe_slug(value, exclude_id=None):
    """Slug from value, suffixed -2, -3, ... until unused."""
    base = to_slug(value)[:MAX_LENGTHS['slug']].strip('-')
    if not base:
        raise ValidationError('Title is required to generate a recipe slug.')

    candidate = base
    suffix = 2
    while True:
        query = Recipe.query.filter(Recipe.slug == candidate)
        if exclude_id is not None:
            query = query.filter(Recipe.id != exclude_id)
        if query.first() is None:
            return candidate
        candidate = f'{base}-{suffix}'
        suffix += 1


def find_catalog_ingredient(ingredient_id, name):
    """Catalog ingredient by id, else by case-insensitive name, else None."""
    if ingredient_id:
        ingredient = db.session.get(Ingredient, ingredient_id)
        if ingredient is not None:
            return ingredient
    return Ingredient.query.filter(func.lower(Ingredient.name) == func.lower(name)).first()


def resolve_catalog_ingredients(items):
    """
    Pair each submitted ingredient with its catalog row (or None if new).

    New catalog entries need an image; existing ones keep theirs.
    """
    resolved = []
    for item in items:
        ingredient = find_catalog_ingredient(item['ingredient_id'], item['name'])
        if ingredient is None and not (item['image_base64'] or item['existing_image_path']):
            raise ValidationError(f'Image is required for ingredient "{item["name"]}".')
        resolved.append((item, ingredient))
    return resolved


# =============================================================================
# Image uploads
# =============================================================================

class UploadBatch:
    """Tracks images uploaded during one write so they can be rolled back."""

    def __init__(self):
        self.uploaded = []

    def upload(self, bucket, folder, data_url, field_name):
        path = upload_image(bucket, folder, data_url, field_name)
        self.uploaded.append((path, bucket))
        return path

    def discard(self):
        delete_images(self.uploaded)
        self.uploaded = []


def _upload_recipe_images(batch, data, slug, resolved, current_image=None):
    """
    Upload the recipe image and the images of new catalog ingredients.

    Returns:
        tuple: (recipe_image_path, {position: ingredient_image_path})
    """
    if data['image_base64']:
        image_path = batch.upload(RECIPE_IMAGE_BUCKET, slug, data['image_base64'], 'recipe image')
    else:
        image_path = normalize_image_path(data['existing_image_path'] or current_image, RECIPE_IMAGE_BUCKET)
    if not image_path:
        raise ValidationError('Recipe image is required.')

    ingredient_images = {}
    for item, ingredient in resolved:
        if ingredient is not None:
            continue
        if item['image_base64']:
            ingredient_images[item['position']] = batch.upload(
                INGREDIENT_IMAGE_BUCKET, slug, item['image_base64'],
                f'ingredient image ({item["name"]})',
            )
        else:
            ingredient_images[item['position']] = normalize_image_path(
                item['existing_image_path'], INGREDIENT_IMAGE_BUCKET
            )
    return image_path, ingredient_images


def _build_children(data, resolved, ingredient_images):
    usages = []
    for item, ingredient in resolved:
        if ingredient is None:
            ingredient = Ingredient(name=item['name'], image_path=ingredient_images[item['position']])
        usages.append(RecipeIngredient(
            ingredient=ingredient,
            amount_value=item['amount_value'],
            amount_unit=item['amount_unit'],
            amount_text=item['amount_text'],
            position=item['position'],
        ))
    steps = [RecipeStep(**step) for step in data['steps']]
    tips = [RecipeTip(**tip) for tip in data['tips']]
    return usages, steps, tips


def _conflict_for(error, title):
    if 'ix_ingredients_name_lower' in str(error.orig):
        return ConflictError('Ingredient name already exists.')
    return ConflictError(f'Recipe title "{title}" already exists.')


def _commit_write(failure_message, batch=None, title=None):
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        logger.warning('%s: %s', failure_message, e)
        if batch is not None:
            batch.discard()
        if title is None:
            raise UpstreamError(f'{failure_message}: {e.orig}')
        raise _conflict_for(e, title)
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('%s: %s', failure_message, e)
        if batch is not None:
            batch.discard()
        raise UpstreamError(f'{failure_message}: {getattr(e, "orig", None) or e}')


# =============================================================================
# Recipes
# =============================================================================

def create_recipe(body):
    """
    Create a recipe with its ingredients, steps and tips.

    Returns:
        The new Recipe

    Raises:
        ValidationError (400), ConflictError (409), UpstreamError (400)
    """
    data = normalize_recipe_input(body)
    ensure_unique_recipe_title(data['title'])
    category = get_category_or_400(data['category'])
    slug = unique_recipe_slug(data['slug_source'])
    resolved = resolve_catalog_ingredients(data['ingredients'])

    batch = UploadBatch()
    try:
        image_path, ingredient_images = _upload_recipe_images(batch, data, slug, resolved)
    except Exception:
        batch.discard()
        raise

    usages, steps, tips = _build_children(data, resolved, ingredient_images)
    recipe = Recipe(
        category=category,
        slug=slug,
        title=data['title'],
        subtitle=data['subtitle'],
        description=data['description'],
        image_path=image_path,
        prep_minutes=data['prep_minutes'],
        cook_minutes=data['cook_minutes'],
        serves=data['serves'],
        is_published=data['is_published'],
        ingredients=usages,
        steps=steps,
        tips=tips,
    )
    db.session.add(recipe)
    _commit_write('Recipe creation failed', batch, title=data['title'])
    logger.info('Created recipe %s (%s)', recipe.id, recipe.slug)
    return recipe


def update_recipe(recipe_id, body):
    """
    Replace a recipe's fields and all of its child rows.

    The previous recipe image is removed from storage after the commit
    when a new one was uploaded.
    """
    recipe = get_recipe_or_404(recipe_id)
    data = normalize_recipe_input(body)
    ensure_unique_recipe_title(data['title'], exclude_id=recipe.id)
    category = get_category_or_400(data['category'])
    slug = unique_recipe_slug(data['slug_source'], exclude_id=recipe.id)
    resolved = resolve_catalog_ingredients(data['ingredients'])

    old_image = recipe.image_path
    batch = UploadBatch()
    try:
        image_path, ingredient_images = _upload_recipe_images(
            batch, data, slug, resolved, current_image=old_image
        )
    except Exception:
        batch.discard()
        raise

    usages, steps, tips = _build_children(data, resolved, ingredient_images)
    recipe.category = category
    recipe.slug = slug
    recipe.title = data['title']
    recipe.subtitle = data['subtitle']
    recipe.description = data['description']
    recipe.image_path = image_path
    recipe.prep_minutes = data['prep_minutes']
    recipe.cook_minutes = data['cook_minutes']
    recipe.serves = data['serves']
    recipe.is_published = data['is_published']
    recipe.ingredients = usages
    recipe.steps = steps
    recipe.tips = tips
    recipe.updated_at = utcnow()
    _commit_write('Recipe update failed', batch, title=data['title'])

    if data['image_base64'] and old_image and old_image != image_path:
        delete_image(old_image, RECIPE_IMAGE_BUCKET)
    return recipe


def toggle_publish(recipe_id, is_published=None):
    """Set is_published explicitly, or flip it when no value is given."""
    recipe = get_recipe_or_404(recipe_id)
    recipe.is_published = (not recipe.is_published) if is_published is None else bool(is_published)
    _commit_write('Publish update failed')
    return recipe


def delete_recipe(recipe_id):
    """
    Delete a recipe and its child rows.

    Returns:
        list of image references to remove from storage
    """
    recipe = get_recipe_or_404(recipe_id)
    images = [recipe.image_path] if recipe.image_path else []
    db.session.delete(recipe)
    _commit_write('Recipe delete failed')
    return images


def get_recipe_admin_details(recipe_id):
    """Recipe with its children, shaped for the edit form and the API."""
    recipe = get_recipe_or_404(recipe_id)
    return {
        'id': recipe.id,
        'category_slug': recipe.category.slug,
        'category_title': recipe.category.title,
        'slug': recipe.slug,
        'title': recipe.title,
        'subtitle': recipe.subtitle or '',
        'description': recipe.description,
        'image_path': to_display_url(recipe.image_path, RECIPE_IMAGE_BUCKET),
        'prep_minutes': recipe.prep_minutes,
        'cook_minutes': recipe.cook_minutes,
        'serves': recipe.serves,
        'is_published': recipe.is_published,
        'ingredients': [
            {
                'ingredient_id': usage.ingredient_id,
                'name': usage.ingredient.name,
                'image_path': to_display_url(usage.ingredient.image_path, INGREDIENT_IMAGE_BUCKET),
                'amount_value': usage.amount_value,
                'amount_unit': usage.amount_unit or '',
                'amount_text': usage.amount_text,
                'position': usage.position,
            }
            for usage in recipe.ingredients
        ],
        'steps': [
            {'step_number': s.step_number, 'title': s.title or '', 'body': s.body}
            for s in recipe.steps
        ],
        'tips': [{'position': t.position, 'tip': t.tip} for t in recipe.tips],
    }


def list_recipes(search='', status='all', category='', page=1, page_size=20):
    """One page of the admin recipe list."""
    query = (Recipe.query
             .join(Recipe.category)
             .options(contains_eager(Recipe.category)))
    if status == 'published':
        query = query.filter(Recipe.is_published.is_(True))
    elif status == 'draft':
        query = query.filter(Recipe.is_published.is_(False))
    if category:
        query = query.filter(Category.slug == category)

    result = search_records(
        query, RECIPE_SEARCH, search, page, page_size,
        fuzzy_params={'p_status': status, 'p_category_slug': category or None},
    )
    return {
        'items': [recipe_list_row(r) for r in result.items],
        'total': result.total,
        'search_feedback': result.feedback,
        'fuzzy_used': result.fuzzy_used,
    }


# =============================================================================
# Ingredients
# =============================================================================

def usage_counts(ingredient_ids):
    """Map ingredient id -> number of recipe usages."""
    if not ingredient_ids:
        return {}
    rows = (db.session.query(RecipeIngredient.ingredient_id, func.count(RecipeIngredient.id))
            .filter(RecipeIngredient.ingredient_id.in_(ingredient_ids))
            .group_by(RecipeIngredient.ingredient_id)
            .all())
    return {ingredient_id: count for ingredient_id, count in rows}


def list_ingredients(search='', page=1, page_size=20):
    """One page of the admin ingredient catalog, with usage counts."""
    result = search_records(Ingredient.query, INGREDIENT_SEARCH, search, page, page_size)
    counts = usage_counts([i.id for i in result.items])
    return {
        'items': [ingredient_row(i, counts.get(i.id, 0)) for i in result.items],
        'total': result.total,
        'search_feedback': result.feedback,
        'fuzzy_used': result.fuzzy_used,
    }


def get_ingredient(ingredient_id):
    return ingredient_row(get_ingredient_or_404(ingredient_id))


def create_ingredient(body):
    body = _require_mapping(body)
    name = clean_text(body.get('name'), MAX_LENGTHS['ingredient_name'])
    image_base64 = clean_text(body.get('image_base64'))
    if not name:
        raise ValidationError('Ingredient name is required.')
    if not image_base64:
        raise ValidationError('Ingredient image is required.')
    ensure_unique_ingredient_name(name)

    batch = UploadBatch()
    image_path = batch.upload(
        INGREDIENT_IMAGE_BUCKET, INGREDIENT_UPLOAD_FOLDER, image_base64, f'ingredient image ({name})'
    )
    ingredient = Ingredient(name=name, image_path=image_path)
    db.session.add(ingredient)
    _commit_ingredient('Ingredient creation failed', batch)
    return ingredient


def update_ingredient(ingredient_id, body):
    body = _require_mapping(body)
    name = clean_text(body.get('name'), MAX_LENGTHS['ingredient_name'])
    image_base64 = clean_text(body.get('image_base64'))
    existing_image = clean_optional_text(body.get('existing_image_path'))
    if not name:
        raise ValidationError('Ingredient name is required.')

    ingredient = get_ingredient_or_404(ingredient_id)
    ensure_unique_ingredient_name(name, exclude_id=ingredient.id)

    old_image = ingredient.image_path
    batch = UploadBatch()
    if image_base64:
        image_path = batch.upload(
            INGREDIENT_IMAGE_BUCKET, INGREDIENT_UPLOAD_FOLDER, image_base64, f'ingredient image ({name})'
        )
    else:
        image_path = normalize_image_path(existing_image or old_image, INGREDIENT_IMAGE_BUCKET)
    if not image_path:
        raise ValidationError('Ingredient image is required.')

    ingredient.name = name
    ingredient.image_path = image_path
    ingredient.updated_at = utcnow()
    _commit_ingredient('Ingredient update failed', batch)

    if image_base64 and old_image and old_image != image_path:
        delete_image(old_image, INGREDIENT_IMAGE_BUCKET)
    return ingredient


def _commit_ingredient(failure_message, batch):
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        batch.discard()
        raise ConflictError('Ingredient name already exists.')
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('%s: %s', failure_message, e)
        batch.discard()
        raise UpstreamError(f'{failure_message}: {getattr(e, "orig", None) or e}')


def delete_ingredient(ingredient_id):
    """
    Delete an unused catalog ingredient.

    Returns:
        dict with the deleted ingredient's id, name and image_path

    Raises:
        NotFoundError: no such ingredient
        ConflictError: the ingredient is still used by recipes
    """
    ingredient = get_ingredient_or_404(ingredient_id)
    usage_count = usage_counts([ingredient.id]).get(ingredient.id, 0)
    if usage_count > 0:
        raise ConflictError(
            f'Ingredient "{ingredient.name}" is used in {usage_count} recipes. '
            'Remove usage before deleting.'
        )

    deleted = {'id': ingredient.id, 'name': ingredient.name, 'image_path': ingredient.image_path}
    db.session.delete(ingredient)
    _commit_write('Ingredient delete failed')
    return deleted


# =============================================================================
# Dashboard
# =============================================================================

def get_dashboard_counts():
    """Headline counts for the admin dashboard (zeros when the query fails)."""
    try:
        return {
            'categories': Category.query.count(),
            'recipes': Recipe.query.count(),
            'published_recipes': Recipe.query.filter(Recipe.is_published.is_(True)).count(),
            'draft_recipes': Recipe.query.filter(Recipe.is_published.is_(False)).count(),
            'ingredients': Ingredient.query.count(),
        }
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error('Admin dashboard count query failed: %s', e)
        return {
            'categories': 0, 'recipes': 0, 'published_recipes': 0,
            'draft_recipes': 0, 'ingredients': 0,
        }
