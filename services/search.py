"""
Admin Search Service

Two-tier ranked search with a database fuzzy fallback, shared by the
admin recipe and ingredient lists.

For a non-empty term, matches are split into:
    Tier A: a searched field starts with the term
    Tier B: a searched field contains the term, but no field starts with it
The list is Tier A followed by Tier B, each in the target's order.
Only when both tiers are empty is the fuzzy database procedure called.

The outcome of a search is resolved once (Unfiltered / Exact / Fuzzy /
Empty) and every page is then cut from it the same way.
"""

import logging
import math
from collections import namedtuple
from urllib.parse import urlencode

from flask import current_app
from sqlalchemy import and_, not_, or_, text
from sqlalchemy.exc import DBAPIError

from constants import (
    ADMIN_DEFAULT_PAGE_SIZE, ADMIN_MAX_PAGE_SIZE,
    DEFAULT_STATUS_FILTER, VALID_STATUS_FILTERS,
)
from models import db
from utils.sanitizer import escape_like
from .errors import UpstreamError

logger = logging.getLogger(__name__)


# Search outcomes
Unfiltered = namedtuple('Unfiltered', ['total'])
Exact = namedtuple('Exact', ['prefix_count', 'contains_count'])
Fuzzy = namedtuple('Fuzzy', ['count'])
Empty = namedtuple('Empty', ['feedback'])

SearchPage = namedtuple('SearchPage', ['items', 'total', 'feedback', 'fuzzy_used'])

# Undefined function (PostgreSQL SQLSTATE)
UNDEFINED_FUNCTION = '42883'


class ProcedureNotFound(Exception):
    """The fuzzy search procedure is not installed in the database."""
    pass


class SearchTarget:
    """
    What a search runs against.

    Args:
        model: mapped class whose rows are returned
        fields: columns matched against the term
        order_by: ordering applied inside each tier
        count_procedure: fuzzy count function name
        search_procedure: fuzzy search function name (returns ids)
        label: used in error messages, e.g. 'Recipe'
    """

    def __init__(self, model, fields, order_by, count_procedure, search_procedure, label):
        self.model = model
        self.fields = fields
        self.order_by = order_by
        self.count_procedure = count_procedure
        self.search_procedure = search_procedure
        self.label = label

    def prefix_clause(self, term):
        pattern = escape_like(term) + '%'
        return or_(*[field.ilike(pattern, escape='\\') for field in self.fields])

    def contains_clause(self, term):
        """Tier B: contains the term and is not a prefix match."""
        pattern = '%' + escape_like(term) + '%'
        contains = or_(*[field.ilike(pattern, escape='\\') for field in self.fields])
        return and_(contains, not_(self.prefix_clause(term)))


class DatabaseFuzzySearch:
    """Calls the fuzzy similarity functions installed in the database."""

    def count(self, procedure, params):
        sql = text(f'SELECT {procedure}({_placeholders(params)})')
        return int(self._execute(sql, params).scalar() or 0)

    def search(self, procedure, params):
        """Return matching ids in similarity order."""
        sql = text(f'SELECT id FROM {procedure}({_placeholders(params)})')
        return [row[0] for row in self._execute(sql, params)]

    def _execute(self, sql, params):
        try:
            return db.session.execute(sql, params)
        except DBAPIError as e:
            db.session.rollback()
            if is_missing_procedure(e):
                raise ProcedureNotFound(str(e.orig))
            raise


def _placeholders(params):
    # Positional; params are built in the functions' argument order
    return ', '.join(f':{name}' for name in params)


def is_missing_procedure(error):
    """True when a DBAPI error reports an undefined function."""
    orig = getattr(error, 'orig', None)
    code = getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)
    if code == UNDEFINED_FUNCTION:
        return True
    return 'no such function' in str(orig or error).lower()


def get_fuzzy_backend():
    return current_app.extensions.get('fuzzy_search') or DatabaseFuzzySearch()


def no_match_feedback(term):
    return f'No exact matches for "{term}".'


def resolve_search(query, target, term, fuzzy_params=None):
    """
    Work out which kind of result a search produces.

    Args:
        query: base query with the non-search filters applied
        target: SearchTarget
        term: stripped search term ('' for no search)
        fuzzy_params: filter arguments for the fuzzy procedures

    Returns:
        Unfiltered, Exact, Fuzzy or Empty
    """
    if not term:
        return Unfiltered(query.order_by(None).count())

    try:
        prefix_count = query.filter(target.prefix_clause(term)).order_by(None).count()
        contains_count = query.filter(target.contains_clause(term)).order_by(None).count()
    except DBAPIError as e:
        db.session.rollback()
        logger.error('%s search failed: %s', target.label, e)
        raise UpstreamError(f'{target.label} search failed: {e.orig}')

    if prefix_count + contains_count > 0:
        return Exact(prefix_count, contains_count)

    params = {'p_search': term, **(fuzzy_params or {})}
    try:
        count = get_fuzzy_backend().count(target.count_procedure, params)
    except ProcedureNotFound:
        logger.info('Fuzzy helper %s is not deployed', target.count_procedure)
        return Empty(f'{no_match_feedback(term)} Fuzzy helper is not deployed yet.')
    except DBAPIError as e:
        logger.error('%s fuzzy search failed: %s', target.label, e)
        raise UpstreamError(f'{target.label} fuzzy search failed: {e.orig}')
    return Fuzzy(count)


def fetch_page(query, target, term, outcome, offset, limit, fuzzy_params=None):
    """Cut the window [offset, offset + limit) out of a resolved outcome."""
    if isinstance(outcome, Empty):
        return SearchPage([], 0, outcome.feedback, False)

    if isinstance(outcome, Unfiltered):
        rows = query.order_by(*target.order_by).offset(offset).limit(limit).all()
        return SearchPage(rows, outcome.total, None, False)

    if isinstance(outcome, Exact):
        rows = _fetch_tiers(query, target, term, outcome, offset, limit)
        return SearchPage(rows, outcome.prefix_count + outcome.contains_count, None, False)

    params = {'p_search': term, **(fuzzy_params or {}), 'p_limit': limit, 'p_offset': offset}
    try:
        ids = get_fuzzy_backend().search(target.search_procedure, params)
    except ProcedureNotFound:
        return SearchPage([], 0, f'{no_match_feedback(term)} Fuzzy helper is not deployed yet.', False)
    except DBAPIError as e:
        logger.error('%s fuzzy search failed: %s', target.label, e)
        raise UpstreamError(f'{target.label} fuzzy search failed: {e.orig}')

    rows = _load_in_order(target.model, ids)
    if rows:
        return SearchPage(rows, outcome.count, f'{no_match_feedback(term)} Showing closest matches.', True)
    return SearchPage([], outcome.count, no_match_feedback(term), False)


def _fetch_tiers(query, target, term, outcome, offset, limit):
    prefix_query = query.filter(target.prefix_clause(term)).order_by(*target.order_by)
    contains_query = query.filter(target.contains_clause(term)).order_by(*target.order_by)

    if offset >= outcome.prefix_count:
        return contains_query.offset(offset - outcome.prefix_count).limit(limit).all()

    rows = prefix_query.offset(offset).limit(limit).all()
    remaining = limit - len(rows)
    if remaining > 0 and outcome.contains_count:
        rows.extend(contains_query.limit(remaining).all())
    return rows


def _load_in_order(model, ids):
    if not ids:
        return []
    found = {row.id: row for row in model.query.filter(model.id.in_(ids)).all()}
    return [found[i] for i in ids if i in found]


def search_records(query, target, term, page, page_size, fuzzy_params=None):
    """
    Resolve a search and return one page of it.

    Returns:
        SearchPage(items, total, feedback, fuzzy_used)
    """
    term = (term or '').strip()
    outcome = resolve_search(query, target, term, fuzzy_params)
    offset = (page - 1) * page_size
    return fetch_page(query, target, term, outcome, offset, page_size, fuzzy_params)


def _positive_int(value):
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def parse_pagination(args):
    """Read page / page_size query arguments."""
    page = _positive_int(args.get('page')) or 1
    page_size = _positive_int(args.get('page_size')) or ADMIN_DEFAULT_PAGE_SIZE
    return page, min(page_size, ADMIN_MAX_PAGE_SIZE)


def parse_status(value):
    status = str(value or '').strip().lower()
    return status if status in VALID_STATUS_FILTERS else DEFAULT_STATUS_FILTER


def total_pages(total, page_size):
    return math.ceil(total / page_size) if page_size else 0


def build_pagination(page, page_size, total, base_path, extra_query=None):
    """
    Pager view model for the admin list pages.

    The current page is clamped to the last page; there is always at
    least one page.
    """
    pages = max(1, total_pages(total, page_size))
    current = min(max(page, 1), pages)
    query = {k: v for k, v in (extra_query or {}).items() if v not in (None, '')}

    def page_url(number):
        params = dict(query, page=number, page_size=page_size)
        return f'{base_path}?{urlencode(params)}'

    return {
        'page': current,
        'page_size': page_size,
        'total': total,
        'total_pages': pages,
        'has_prev': current > 1,
        'has_next': current < pages,
        'prev_url': page_url(current - 1) if current > 1 else None,
        'next_url': page_url(current + 1) if current < pages else None,
    }
