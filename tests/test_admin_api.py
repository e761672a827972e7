"""
Tests for the admin JSON API: recipe and ingredient writes, publish
toggling, audit entries and image storage side effects.
"""

from conftest import API_HEADERS, ADMIN_USER, make_data_url
from models import db, AdminAuditLog, Ingredient, Recipe, RecipeIngredient, RecipeStep


def audit_actions():
    return [entry.action for entry in AdminAuditLog.query.order_by(AdminAuditLog.id).all()]


def create_recipe(client, body):
    response = client.post('/api/admin/recipes', json=body, headers=API_HEADERS)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


# =============================================================================
# Recipe create
# =============================================================================

def test_create_recipe_writes_recipe_children_and_audit(admin_client, recipe_body, storage):
    data = create_recipe(admin_client, recipe_body())

    assert data['slug'] == 'garlic-noodles'
    assert data['is_published'] is False
    assert data['link'] == '/categories/dinner/garlic-noodles'
    assert data['edit_link'] == f'/admin/recipes/{data["id"]}/edit'

    recipe = db.session.get(Recipe, data['id'])
    assert recipe.category.slug == 'dinner'
    assert [u.ingredient.name for u in recipe.ingredients] == ['Garlic', 'Noodles']
    assert [u.position for u in recipe.ingredients] == [0, 1]
    assert [(s.step_number, s.title) for s in recipe.steps] == [(1, 'Boil'), (2, None)]
    assert [t.tip for t in recipe.tips] == ['Use fresh garlic.']
    assert recipe.image_path.startswith('garlic-noodles/')
    assert recipe.image_path.endswith('.png')

    # One recipe image plus one image per new catalog ingredient
    assert sorted(bucket for bucket, _ in storage.uploads) == [
        'ingredient-images', 'ingredient-images', 'recipe-images',
    ]
    assert storage.exists('recipe-images', recipe.image_path)

    entry = AdminAuditLog.query.one()
    assert entry.action == 'recipe.create'
    assert entry.actor_user_id == ADMIN_USER['id']
    assert entry.actor_email == ADMIN_USER['email']
    assert entry.entity_type == 'recipe'
    assert entry.entity_id == str(data['id'])
    assert entry.details['slug'] == 'garlic-noodles'


def test_create_recipe_reuses_catalog_ingredients(admin_client, recipe_body, storage):
    db.session.add(Ingredient(name='Garlic', image_path='ingredients/garlic.png'))
    db.session.commit()

    body = recipe_body(ingredients=[{'name': 'garlic', 'amount_text': 'a whole bulb'}])
    data = create_recipe(admin_client, body)

    recipe = db.session.get(Recipe, data['id'])
    assert Ingredient.query.count() == 1
    assert recipe.ingredients[0].ingredient.name == 'Garlic'
    assert recipe.ingredients[0].amount_text == 'a whole bulb'
    assert [bucket for bucket, _ in storage.uploads] == ['recipe-images']


def test_new_catalog_ingredient_needs_an_image(admin_client, recipe_body, storage):
    body = recipe_body(ingredients=[{'name': 'Saffron', 'amount_text': 'a pinch'}])

    response = admin_client.post('/api/admin/recipes', json=body, headers=API_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {'error': 'Image is required for ingredient "Saffron".'}
    assert storage.uploads == []


def test_duplicate_title_is_rejected_before_any_upload(admin_client, recipe_body, storage):
    create_recipe(admin_client, recipe_body())
    uploads_before = len(storage.uploads)

    response = admin_client.post('/api/admin/recipes', json=recipe_body(title='garlic noodles'),
                                 headers=API_HEADERS)

    assert response.status_code == 409
    assert response.get_json() == {'error': 'Recipe title "garlic noodles" already exists.'}
    assert len(storage.uploads) == uploads_before
    assert Recipe.query.count() == 1
    assert audit_actions() == ['recipe.create']


def test_duplicate_non_ascii_titles_conflict(admin_client, recipe_body):
    create_recipe(admin_client, recipe_body(title='Борщ', slug='borshch'))
    create_recipe(admin_client, recipe_body(title='ÉCLAIR', slug='eclair'))

    cyrillic = admin_client.post('/api/admin/recipes', json=recipe_body(title='БОРЩ', slug='borshch-red'),
                                 headers=API_HEADERS)
    accented = admin_client.post('/api/admin/recipes', json=recipe_body(title='Éclair', slug='eclair-2'),
                                 headers=API_HEADERS)

    assert cyrillic.status_code == 409
    assert cyrillic.get_json() == {'error': 'Recipe title "БОРЩ" already exists.'}
    assert accented.status_code == 409
    assert accented.get_json() == {'error': 'Recipe title "Éclair" already exists.'}
    assert sorted(r.title for r in Recipe.query.all()) == ['ÉCLAIR', 'Борщ']


def test_title_taken_during_write_is_a_conflict(admin_client, recipe_body, storage, monkeypatch):
    create_recipe(admin_client, recipe_body())
    monkeypatch.setattr('services.admin.ensure_unique_recipe_title', lambda title, exclude_id=None: None)
    uploads_before = len(storage.uploads)

    response = admin_client.post('/api/admin/recipes', json=recipe_body(title='garlic noodles'),
                                 headers=API_HEADERS)

    assert response.status_code == 409
    assert response.get_json() == {'error': 'Recipe title "garlic noodles" already exists.'}
    new_uploads = storage.uploads[uploads_before:]
    assert new_uploads
    assert all(not storage.exists(bucket, path) for bucket, path in new_uploads)
    assert Recipe.query.count() == 1
    assert audit_actions() == ['recipe.create']


def test_ingredient_created_during_write_is_a_conflict(admin_client, recipe_body, monkeypatch):
    create_recipe(admin_client, recipe_body())
    monkeypatch.setattr('services.admin.find_catalog_ingredient', lambda ingredient_id, name: None)

    response = admin_client.post('/api/admin/recipes', json=recipe_body(title='Garlic Bread'),
                                 headers=API_HEADERS)

    assert response.status_code == 409
    assert response.get_json() == {'error': 'Ingredient name already exists.'}
    assert Recipe.query.count() == 1
    assert Ingredient.query.count() == 2


def test_colliding_slugs_get_numeric_suffixes(admin_client, recipe_body):
    first = create_recipe(admin_client, recipe_body(title='Tomato Soup'))
    second = create_recipe(admin_client, recipe_body(title='Tomato Soup!'))
    third = create_recipe(admin_client, recipe_body(title='Tomato-Soup'))

    assert [first['slug'], second['slug'], third['slug']] == [
        'tomato-soup', 'tomato-soup-2', 'tomato-soup-3',
    ]


def test_recipe_without_ingredients_is_rejected_without_writes(admin_client, recipe_body, storage):
    body = recipe_body(ingredients=[{'name': '   ', 'amount_value': 1}])

    response = admin_client.post('/api/admin/recipes', json=body, headers=API_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {'error': 'At least one ingredient is required.'}
    assert Recipe.query.count() == 0
    assert Ingredient.query.count() == 0
    assert storage.uploads == []
    assert audit_actions() == []


def test_recipe_without_steps_is_rejected_without_writes(admin_client, recipe_body, storage):
    response = admin_client.post('/api/admin/recipes', json=recipe_body(steps=[{'body': ''}]),
                                 headers=API_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {'error': 'At least one instruction step is required.'}
    assert Recipe.query.count() == 0
    assert storage.uploads == []


def test_recipe_validation_messages(admin_client, recipe_body):
    cases = [
        (recipe_body(title=''), 'category, title, and description are required.'),
        (recipe_body(prep_minutes='soon'), 'prep_minutes must be a number.'),
        (recipe_body(cook_minutes=2.5), 'cook_minutes must be a whole number.'),
        (recipe_body(prep_minutes=-1), 'prep_minutes must be 0 or greater.'),
        (recipe_body(serves=0), 'serves must be greater than 0.'),
        (recipe_body(category='brunch'), 'Unknown category: brunch'),
        (recipe_body(recipe_image_base64=''), 'Recipe image is required.'),
        (recipe_body(ingredients=[{'name': 'Salt', 'amount_value': -2}]),
         'Amount value cannot be negative for ingredient "Salt".'),
        (recipe_body(ingredients=[{'name': 'Salt'}, {'name': 'salt'}]),
         'Ingredient "salt" is duplicated in this recipe.'),
    ]
    for body, message in cases:
        response = admin_client.post('/api/admin/recipes', json=body, headers=API_HEADERS)
        assert response.status_code == 400, message
        assert response.get_json() == {'error': message}

    assert Recipe.query.count() == 0


def test_invalid_image_is_rejected(admin_client, recipe_body, storage):
    jpeg_as_png = make_data_url(fmt='JPEG', mime='image/png')

    response = admin_client.post('/api/admin/recipes', json=recipe_body(recipe_image_base64=jpeg_as_png),
                                 headers=API_HEADERS)

    assert response.status_code == 400
    assert 'does not match its declared type' in response.get_json()['error']
    assert Recipe.query.count() == 0


def test_non_object_body_is_rejected(admin_client):
    response = admin_client.post('/api/admin/recipes', json=['not', 'an', 'object'], headers=API_HEADERS)

    assert response.status_code == 400
    assert response.get_json() == {'error': 'Request body must be a JSON object.'}


# =============================================================================
# Recipe read / update / delete
# =============================================================================

def test_get_recipe_details(admin_client, recipe_body):
    created = create_recipe(admin_client, recipe_body())

    response = admin_client.get(f'/api/admin/recipes/{created["id"]}')

    data = response.get_json()
    assert response.status_code == 200
    assert data['title'] == 'Garlic Noodles'
    assert data['category_slug'] == 'dinner'
    assert data['image_path'].startswith('/static/uploads/recipe-images/garlic-noodles/')
    assert [i['name'] for i in data['ingredients']] == ['Garlic', 'Noodles']
    assert data['ingredients'][0]['amount_value'] == 6
    assert [s['step_number'] for s in data['steps']] == [1, 2]
    assert data['tips'] == [{'position': 0, 'tip': 'Use fresh garlic.'}]


def test_missing_recipe_is_404(admin_client):
    response = admin_client.get('/api/admin/recipes/999')

    assert response.status_code == 404
    assert response.get_json() == {'error': 'Recipe not found.'}


def test_update_replaces_children_and_keeps_image(admin_client, recipe_body, png_data_url, storage):
    created = create_recipe(admin_client, recipe_body())
    details = admin_client.get(f'/api/admin/recipes/{created["id"]}').get_json()
    uploads_before = len(storage.uploads)

    body = recipe_body(
        title='Garlic Butter Noodles',
        recipe_image_base64='',
        existing_recipe_image_path=details['image_path'],
        ingredients=[{'name': 'Basil', 'amount_text': 'a handful', 'image_base64': png_data_url}],
        steps=[{'body': 'Boil.'}, {'body': 'Toss.'}, {'body': 'Serve.'}],
        tips=[],
    )
    response = admin_client.patch(f'/api/admin/recipes/{created["id"]}', json=body, headers=API_HEADERS)

    assert response.status_code == 200
    assert response.get_json()['slug'] == 'garlic-butter-noodles'

    recipe = db.session.get(Recipe, created['id'])
    assert recipe.title == 'Garlic Butter Noodles'
    assert [u.ingredient.name for u in recipe.ingredients] == ['Basil']
    assert [s.step_number for s in recipe.steps] == [1, 2, 3]
    assert recipe.tips == []
    assert RecipeIngredient.query.count() == 1
    assert RecipeStep.query.count() == 3

    # Existing image kept as a bucket-relative path; only the new ingredient image uploaded
    assert recipe.image_path.startswith('garlic-noodles/')
    assert len(storage.uploads) == uploads_before + 1
    # Catalog entries survive removal from a recipe
    assert Ingredient.query.filter_by(name='Garlic').count() == 1
    assert audit_actions() == ['recipe.create', 'recipe.update']


def test_update_with_new_image_removes_the_old_one(admin_client, recipe_body, storage):
    created = create_recipe(admin_client, recipe_body())
    old_image = db.session.get(Recipe, created['id']).image_path

    body = recipe_body(recipe_image_base64=make_data_url(color='blue'))
    response = admin_client.patch(f'/api/admin/recipes/{created["id"]}', json=body, headers=API_HEADERS)

    assert response.status_code == 200
    recipe = db.session.get(Recipe, created['id'])
    assert recipe.image_path != old_image
    assert ('recipe-images', [old_image]) in storage.removals
    assert not storage.exists('recipe-images', old_image)


def test_update_may_keep_its_own_title(admin_client, recipe_body):
    created = create_recipe(admin_client, recipe_body())

    response = admin_client.patch(f'/api/admin/recipes/{created["id"]}',
                                  json=recipe_body(title='GARLIC NOODLES'), headers=API_HEADERS)

    assert response.status_code == 200
    assert response.get_json()['slug'] == 'garlic-noodles'


def test_publish_toggle_twice_is_audited(admin_client, recipe_body):
    created = create_recipe(admin_client, recipe_body())
    url = f'/api/admin/recipes/{created["id"]}/publish'

    first = admin_client.patch(url, json={}, headers=API_HEADERS)
    second = admin_client.patch(url, json={}, headers=API_HEADERS)

    assert first.get_json() == {'id': created['id'], 'is_published': True}
    assert second.get_json() == {'id': created['id'], 'is_published': False}
    assert audit_actions() == ['recipe.create', 'recipe.publish', 'recipe.unpublish']
    assert db.session.get(Recipe, created['id']).is_published is False


def test_publish_with_explicit_value(admin_client, recipe_body):
    created = create_recipe(admin_client, recipe_body(is_published=True))
    url = f'/api/admin/recipes/{created["id"]}/publish'

    response = admin_client.patch(url, json={'is_published': True}, headers=API_HEADERS)

    assert response.get_json()['is_published'] is True


def test_delete_recipe_removes_rows_and_image(admin_client, recipe_body, storage):
    created = create_recipe(admin_client, recipe_body())
    image_path = db.session.get(Recipe, created['id']).image_path

    response = admin_client.delete(f'/api/admin/recipes/{created["id"]}', headers=API_HEADERS)

    assert response.status_code == 204
    assert db.session.get(Recipe, created['id']) is None
    assert RecipeIngredient.query.count() == 0
    assert RecipeStep.query.count() == 0
    assert Ingredient.query.count() == 2
    assert ('recipe-images', [image_path]) in storage.removals
    entry = AdminAuditLog.query.filter_by(action='recipe.delete').one()
    assert entry.details == {'image_count': 1}


# =============================================================================
# Recipe list
# =============================================================================

def test_recipe_list_filters_by_status_and_category(admin_client, recipe_body):
    create_recipe(admin_client, recipe_body(title='Pancakes', category='breakfast', is_published=True))
    create_recipe(admin_client, recipe_body(title='Porridge', category='breakfast'))
    create_recipe(admin_client, recipe_body(title='Lasagne', category='dinner', is_published=True))

    published = admin_client.get('/api/admin/recipes?status=published').get_json()
    breakfast_drafts = admin_client.get('/api/admin/recipes?status=draft&category=breakfast').get_json()

    assert sorted(item['title'] for item in published['items']) == ['Lasagne', 'Pancakes']
    assert [item['title'] for item in breakfast_drafts['items']] == ['Porridge']
    assert breakfast_drafts['items'][0]['category_title'] == 'Breakfast Recipes'


# =============================================================================
# Ingredients
# =============================================================================

def test_ingredient_crud(admin_client, png_data_url, storage):
    response = admin_client.post('/api/admin/ingredients',
                                 json={'name': 'Sumac', 'image_base64': png_data_url},
                                 headers=API_HEADERS)
    assert response.status_code == 201
    created = response.get_json()
    assert created['name'] == 'Sumac'
    assert created['image_path'].startswith('/static/uploads/ingredient-images/ingredients/')

    response = admin_client.patch(f'/api/admin/ingredients/{created["id"]}',
                                  json={'name': 'Ground Sumac', 'existing_image_path': created['image_path']},
                                  headers=API_HEADERS)
    assert response.status_code == 200
    assert response.get_json()['name'] == 'Ground Sumac'
    assert response.get_json()['image_path'] == created['image_path']

    listing = admin_client.get('/api/admin/ingredients').get_json()
    assert listing['items'][0]['recipe_usage_count'] == 0

    response = admin_client.delete(f'/api/admin/ingredients/{created["id"]}', headers=API_HEADERS)
    assert response.status_code == 204
    assert Ingredient.query.count() == 0
    assert storage.removals[-1][0] == 'ingredient-images'
    assert audit_actions() == ['ingredient.create', 'ingredient.update', 'ingredient.delete']


def test_ingredient_create_requires_name_and_image(admin_client, png_data_url):
    missing_image = admin_client.post('/api/admin/ingredients', json={'name': 'Sumac'}, headers=API_HEADERS)
    missing_name = admin_client.post('/api/admin/ingredients',
                                     json={'name': ' ', 'image_base64': png_data_url}, headers=API_HEADERS)

    assert missing_image.get_json() == {'error': 'Ingredient image is required.'}
    assert missing_name.get_json() == {'error': 'Ingredient name is required.'}


def test_duplicate_ingredient_name_conflicts(admin_client, png_data_url, storage):
    db.session.add(Ingredient(name='Sumac', image_path='ingredients/sumac.png'))
    db.session.commit()

    response = admin_client.post('/api/admin/ingredients',
                                 json={'name': 'SUMAC', 'image_base64': png_data_url},
                                 headers=API_HEADERS)

    assert response.status_code == 409
    assert response.get_json() == {'error': 'Ingredient name already exists.'}
    assert storage.uploads == []


def test_duplicate_non_ascii_ingredient_names_conflict(admin_client, png_data_url):
    first = admin_client.post('/api/admin/ingredients',
                              json={'name': 'Буряк', 'image_base64': png_data_url}, headers=API_HEADERS)
    second = admin_client.post('/api/admin/ingredients',
                               json={'name': 'БУРЯК', 'image_base64': png_data_url}, headers=API_HEADERS)

    assert first.status_code == 201
    assert second.status_code == 409
    assert second.get_json() == {'error': 'Ingredient name already exists.'}
    assert [i.name for i in Ingredient.query.all()] == ['Буряк']


def test_in_use_ingredient_cannot_be_deleted(admin_client, recipe_body, storage):
    create_recipe(admin_client, recipe_body())
    garlic = Ingredient.query.filter_by(name='Garlic').one()
    removals_before = list(storage.removals)

    response = admin_client.delete(f'/api/admin/ingredients/{garlic.id}', headers=API_HEADERS)

    assert response.status_code == 409
    assert response.get_json() == {
        'error': 'Ingredient "Garlic" is used in 1 recipes. Remove usage before deleting.'
    }
    assert db.session.get(Ingredient, garlic.id) is not None
    assert storage.removals == removals_before
    assert storage.exists('ingredient-images', garlic.image_path)
    assert 'ingredient.delete' not in audit_actions()


def test_ingredient_list_shows_usage_counts(admin_client, recipe_body):
    create_recipe(admin_client, recipe_body())
    garlic = Ingredient.query.filter_by(name='Garlic').one()
    create_recipe(admin_client, recipe_body(
        title='Garlic Bread',
        ingredients=[{'ingredient_id': garlic.id, 'name': 'Garlic', 'amount_value': 2}],
    ))

    listing = admin_client.get('/api/admin/ingredients?search=garlic').get_json()

    assert [(i['name'], i['recipe_usage_count']) for i in listing['items']] == [('Garlic', 2)]


def test_missing_ingredient_is_404(admin_client):
    response = admin_client.delete('/api/admin/ingredients/42', headers=API_HEADERS)

    assert response.status_code == 404
    assert response.get_json() == {'error': 'Ingredient not found.'}


# =============================================================================
# Storage not configured
# =============================================================================

def test_upload_without_storage_is_503(app, admin_client, png_data_url):
    app.extensions['recipe_storage'] = None

    response = admin_client.post('/api/admin/ingredients',
                                 json={'name': 'Sumac', 'image_base64': png_data_url},
                                 headers=API_HEADERS)

    assert response.status_code == 503
    assert response.get_json() == {'error': 'Image storage is not configured.'}
    assert Ingredient.query.count() == 0


# =============================================================================
# Admin pages
# =============================================================================

def test_admin_pages_render_saved_records(admin_client, recipe_body):
    created = create_recipe(admin_client, recipe_body())
    garlic = Ingredient.query.filter_by(name='Garlic').one()

    listing = admin_client.get('/admin/recipes?search=garlic')
    edit = admin_client.get(f'/admin/recipes/{created["id"]}/edit')
    ingredients = admin_client.get('/admin/ingredients?search=gar')
    ingredient_edit = admin_client.get(f'/admin/ingredients/{garlic.id}/edit')

    assert listing.status_code == 200
    assert b'Garlic Noodles' in listing.data
    assert edit.status_code == 200
    assert b'Fry the garlic in butter and toss.' in edit.data
    assert f'data-url="/api/admin/recipes/{created["id"]}"'.encode() in edit.data
    assert ingredients.status_code == 200
    assert b'1 recipe<' in ingredients.data
    assert ingredient_edit.status_code == 200


def test_admin_list_page_shows_search_feedback(admin_client):
    response = admin_client.get('/admin/ingredients?search=zzz')

    assert response.status_code == 200
    assert b'Fuzzy helper is not deployed yet.' in response.data


def test_admin_edit_page_for_missing_recipe_is_404(admin_client):
    response = admin_client.get('/admin/recipes/999/edit')

    assert response.status_code == 404
    assert b'Recipe not found.' in response.data
