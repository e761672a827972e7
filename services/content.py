"""
Public Content Service

Read-only queries behind the public pages. Only published recipes are
visible; stored image references are resolved to display URLs.
"""

from sqlalchemy.orm import joinedload, selectinload

from constants import (
    CATEGORY_SECTION_LIMIT, HIDDEN_CATEGORY_SLUGS, INGREDIENT_IMAGE_BUCKET,
    LATEST_RECIPES_LIMIT, RECIPE_IMAGE_BUCKET,
)
from models import Category, Recipe, RecipeIngredient
from .images import to_display_url


def format_number(value):
    """Drop a trailing .0 from whole amounts."""
    if value is None:
        return ''
    if float(value).is_integer():
        return str(int(value))
    return f'{value:g}'


def build_recipe_meta(prep_minutes, cook_minutes, serves):
    meta = []
    if prep_minutes is not None:
        meta.append(f'⏱ {prep_minutes} min Prep')
    if cook_minutes is not None:
        meta.append(f'🔥 {cook_minutes} min Cook')
    if serves is not None:
        meta.append(f'👥 Serves {serves}')
    return meta


def format_amount(usage):
    """Amount shown next to an ingredient, or None when there is none."""
    if usage.amount_text:
        return usage.amount_text
    if usage.amount_value is None:
        return None
    if usage.amount_unit:
        return f'{format_number(usage.amount_value)} {usage.amount_unit}'
    return format_number(usage.amount_value)


def recipe_link(recipe):
    return f'/categories/{recipe.category.slug}/{recipe.slug}'


def recipe_card(recipe):
    total_minutes = (recipe.prep_minutes or 0) + (recipe.cook_minutes or 0)
    return {
        'title': recipe.title,
        'link': recipe_link(recipe),
        'image': to_display_url(recipe.image_path, RECIPE_IMAGE_BUCKET),
        'alt': recipe.title,
        'description': recipe.description,
        'time': f'{total_minutes} min' if total_minutes > 0 else None,
        'time_iso': f'PT{total_minutes}M' if total_minutes > 0 else None,
    }


def _published():
    return (Recipe.query
            .options(joinedload(Recipe.category))
            .filter(Recipe.is_published.is_(True)))


def get_nav_categories():
    """Categories for the site navigation, hidden ones excluded."""
    categories = Category.query.order_by(Category.title).all()
    return [c for c in categories if c.slug not in HIDDEN_CATEGORY_SLUGS]


def get_form_categories():
    """Categories offered in the admin recipe form."""
    return get_nav_categories()


def get_category_by_slug(slug):
    return Category.query.filter_by(slug=slug).first()


def get_recipes_by_category(slug, limit=None):
    """Published recipes of a category, newest first, as cards."""
    query = (_published()
             .join(Recipe.category)
             .filter(Category.slug == slug)
             .order_by(Recipe.created_at.desc(), Recipe.id.desc()))
    if limit:
        query = query.limit(limit)
    return [recipe_card(r) for r in query.all()]


def get_recipe_details(category_slug, recipe_slug):
    """
    Full published recipe for the recipe page.

    Returns:
        dict, or None when no published recipe matches both slugs
    """
    recipe = (_published()
              .join(Recipe.category)
              .filter(Category.slug == category_slug, Recipe.slug == recipe_slug)
              .options(
                  selectinload(Recipe.ingredients).joinedload(RecipeIngredient.ingredient),
                  selectinload(Recipe.steps),
                  selectinload(Recipe.tips),
              )
              .first())
    if recipe is None:
        return None

    return {
        'title': recipe.title,
        'subtitle': recipe.subtitle or recipe.title,
        'description': recipe.description,
        'image': to_display_url(recipe.image_path, RECIPE_IMAGE_BUCKET),
        'category_slug': recipe.category.slug,
        'category_title': recipe.category.title,
        'serves': recipe.serves,
        'prep_minutes': recipe.prep_minutes,
        'cook_minutes': recipe.cook_minutes,
        'meta': build_recipe_meta(recipe.prep_minutes, recipe.cook_minutes, recipe.serves),
        'ingredients': [
            {
                'name': usage.ingredient.name if usage.ingredient else 'Ingredient',
                'image': to_display_url(
                    usage.ingredient.image_path if usage.ingredient else None,
                    INGREDIENT_IMAGE_BUCKET,
                ),
                'amount': format_amount(usage),
            }
            for usage in recipe.ingredients
        ],
        'instructions': [{'title': step.title, 'text': step.body} for step in recipe.steps],
        'tips': [tip.tip for tip in recipe.tips],
    }


def get_home_page_data():
    """Navigation, featured recipe, latest recipes and per-category sections."""
    categories = get_nav_categories()
    latest = (_published()
              .order_by(Recipe.created_at.desc(), Recipe.id.desc())
              .limit(LATEST_RECIPES_LIMIT)
              .all())
    latest_cards = [recipe_card(r) for r in latest]

    sections = []
    for category in categories:
        cards = get_recipes_by_category(category.slug, limit=CATEGORY_SECTION_LIMIT)
        if cards:
            sections.append({
                'slug': category.slug,
                'title': category.title,
                'link': f'/categories/{category.slug}',
                'recipes': cards,
            })

    return {
        'categories': categories,
        'featured': latest_cards[0] if latest_cards else None,
        'latest': latest_cards,
        'sections': sections,
    }
