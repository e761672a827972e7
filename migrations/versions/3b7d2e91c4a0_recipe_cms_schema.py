"""Recipe CMS schema with admin search helpers

Revision ID: 3b7d2e91c4a0
Revises:
Create Date: 2026-09-28 10:12:44.518307

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3b7d2e91c4a0'
down_revision = None
branch_labels = None
depends_on = None


# Minimum word similarity for a fuzzy match
FUZZY_THRESHOLD = 0.3

RECIPE_FILTERS = """
    (p_status = 'all'
     OR (p_status = 'published' AND r.is_published)
     OR (p_status = 'draft' AND NOT r.is_published))
    AND (p_category_slug IS NULL OR p_category_slug = '' OR c.slug = p_category_slug)
"""

FUZZY_FUNCTIONS = [
    f"""
    CREATE OR REPLACE FUNCTION admin_count_recipes_fuzzy(
        p_search text, p_status text DEFAULT 'all', p_category_slug text DEFAULT NULL
    ) RETURNS integer LANGUAGE sql STABLE AS $$
        SELECT count(*)::integer
        FROM recipes r JOIN categories c ON c.id = r.category_id
        WHERE {RECIPE_FILTERS}
          AND greatest(word_similarity(p_search, r.title), word_similarity(p_search, r.slug)) >= {FUZZY_THRESHOLD}
    $$
    """,
    f"""
    CREATE OR REPLACE FUNCTION admin_search_recipes_fuzzy(
        p_search text, p_status text DEFAULT 'all', p_category_slug text DEFAULT NULL,
        p_limit integer DEFAULT 20, p_offset integer DEFAULT 0
    ) RETURNS TABLE(id integer, score real) LANGUAGE sql STABLE AS $$
        SELECT r.id, greatest(word_similarity(p_search, r.title), word_similarity(p_search, r.slug)) AS score
        FROM recipes r JOIN categories c ON c.id = r.category_id
        WHERE {RECIPE_FILTERS}
          AND greatest(word_similarity(p_search, r.title), word_similarity(p_search, r.slug)) >= {FUZZY_THRESHOLD}
        ORDER BY score DESC, r.updated_at DESC, r.id ASC
        LIMIT p_limit OFFSET p_offset
    $$
    """,
    f"""
    CREATE OR REPLACE FUNCTION admin_count_ingredients_fuzzy(p_search text)
    RETURNS integer LANGUAGE sql STABLE AS $$
        SELECT count(*)::integer
        FROM ingredients i
        WHERE word_similarity(p_search, i.name) >= {FUZZY_THRESHOLD}
    $$
    """,
    f"""
    CREATE OR REPLACE FUNCTION admin_search_ingredients_fuzzy(
        p_search text, p_limit integer DEFAULT 20, p_offset integer DEFAULT 0
    ) RETURNS TABLE(id integer, score real) LANGUAGE sql STABLE AS $$
        SELECT i.id, word_similarity(p_search, i.name) AS score
        FROM ingredients i
        WHERE word_similarity(p_search, i.name) >= {FUZZY_THRESHOLD}
        ORDER BY score DESC, i.name ASC, i.id ASC
        LIMIT p_limit OFFSET p_offset
    $$
    """,
]

FUZZY_FUNCTION_SIGNATURES = [
    'admin_count_recipes_fuzzy(text, text, text)',
    'admin_search_recipes_fuzzy(text, text, text, integer, integer)',
    'admin_count_ingredients_fuzzy(text)',
    'admin_search_ingredients_fuzzy(text, integer, integer)',
]


def _is_postgresql():
    return op.get_bind().dialect.name == 'postgresql'


def upgrade():
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    op.create_table(
        'ingredients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('image_path', sa.String(length=500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ingredients_updated_at', 'ingredients', ['updated_at'])
    op.create_index('ix_ingredients_name_lower', 'ingredients', [sa.text('lower(name)')], unique=True)

    op.create_table(
        'recipes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=220), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('subtitle', sa.String(length=300), nullable=True),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('image_path', sa.String(length=500), nullable=True),
        sa.Column('prep_minutes', sa.Integer(), nullable=True),
        sa.Column('cook_minutes', sa.Integer(), nullable=True),
        sa.Column('serves', sa.Integer(), nullable=True),
        sa.Column('is_published', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipes_category_id', 'recipes', ['category_id'])
    op.create_index('ix_recipes_slug', 'recipes', ['slug'], unique=True)
    op.create_index('ix_recipes_is_published', 'recipes', ['is_published'])
    op.create_index('ix_recipes_updated_at', 'recipes', ['updated_at'])
    op.create_index('ix_recipes_title_lower', 'recipes', [sa.text('lower(title)')], unique=True)

    op.create_table(
        'recipe_ingredients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipe_id', sa.Integer(), nullable=False),
        sa.Column('ingredient_id', sa.Integer(), nullable=False),
        sa.Column('amount_value', sa.Float(), nullable=True),
        sa.Column('amount_unit', sa.String(length=50), nullable=True),
        sa.Column('amount_text', sa.String(length=100), nullable=True),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['recipe_id'], ['recipes.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['ingredient_id'], ['ingredients.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipe_ingredients_recipe_id', 'recipe_ingredients', ['recipe_id'])
    op.create_index('ix_recipe_ingredients_ingredient_id', 'recipe_ingredients', ['ingredient_id'])

    op.create_table(
        'recipe_steps',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipe_id', sa.Integer(), nullable=False),
        sa.Column('step_number', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['recipe_id'], ['recipes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipe_steps_recipe_id', 'recipe_steps', ['recipe_id'])

    op.create_table(
        'recipe_tips',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipe_id', sa.Integer(), nullable=False),
        sa.Column('tip', sa.Text(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['recipe_id'], ['recipes.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recipe_tips_recipe_id', 'recipe_tips', ['recipe_id'])

    op.create_table(
        'admin_users',
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'admin_audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('actor_user_id', sa.String(length=64), nullable=True),
        sa.Column('actor_email', sa.String(length=320), nullable=True),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_admin_audit_logs_actor_user_id', 'admin_audit_logs', ['actor_user_id'])
    op.create_index('ix_admin_audit_logs_action', 'admin_audit_logs', ['action'])
    op.create_index('ix_admin_audit_logs_created_at', 'admin_audit_logs', ['created_at'])

    # Fuzzy search helpers need pg_trgm; other databases fall back to exact search only
    if _is_postgresql():
        op.execute('CREATE EXTENSION IF NOT EXISTS pg_trgm')
        for statement in FUZZY_FUNCTIONS:
            op.execute(statement)


def downgrade():
    if _is_postgresql():
        for signature in FUZZY_FUNCTION_SIGNATURES:
            op.execute(f'DROP FUNCTION IF EXISTS {signature}')

    op.drop_index('ix_admin_audit_logs_created_at', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_action', table_name='admin_audit_logs')
    op.drop_index('ix_admin_audit_logs_actor_user_id', table_name='admin_audit_logs')
    op.drop_table('admin_audit_logs')
    op.drop_table('admin_users')
    op.drop_index('ix_recipe_tips_recipe_id', table_name='recipe_tips')
    op.drop_table('recipe_tips')
    op.drop_index('ix_recipe_steps_recipe_id', table_name='recipe_steps')
    op.drop_table('recipe_steps')
    op.drop_index('ix_recipe_ingredients_ingredient_id', table_name='recipe_ingredients')
    op.drop_index('ix_recipe_ingredients_recipe_id', table_name='recipe_ingredients')
    op.drop_table('recipe_ingredients')
    op.drop_index('ix_recipes_title_lower', table_name='recipes')
    op.drop_index('ix_recipes_updated_at', table_name='recipes')
    op.drop_index('ix_recipes_is_published', table_name='recipes')
    op.drop_index('ix_recipes_slug', table_name='recipes')
    op.drop_index('ix_recipes_category_id', table_name='recipes')
    op.drop_table('recipes')
    op.drop_index('ix_ingredients_name_lower', table_name='ingredients')
    op.drop_index('ix_ingredients_updated_at', table_name='ingredients')
    op.drop_table('ingredients')
    op.drop_index('ix_categories_slug', table_name='categories')
    op.drop_table('categories')
