"""INSERT ... ON CONFLICT helpers.

Webhook writes are keyed on natural identifiers (email, slug, order id)
and go through the database's own upsert so concurrent deliveries of the
same order converge on one row instead of racing a check-then-insert.
Only PostgreSQL and SQLite provide it; create_app() refuses to start on
anything else.
"""

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite

from storefront.extensions import db

_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def insert_for(dialect_name):
    """The ON CONFLICT-capable insert() for a dialect.

    Raises RuntimeError naming the backend when it has none.
    """
    insert = _INSERTS.get(dialect_name)
    if insert is None:
        raise RuntimeError(
            f"Database backend '{dialect_name}' is not supported: upserts need "
            f"one of {', '.join(sorted(_INSERTS))}."
        )
    return insert


def upsert(model, values, conflict_on, update=None):
    """Insert ``values`` or, on a conflict over ``conflict_on``, apply ``update``.

    Column ``onupdate`` hooks do not fire for ON CONFLICT updates, so
    callers pass ``updated_at`` themselves when the model has one.
    Returns the row, reloaded from the database.
    """
    insert = insert_for(db.engine.dialect.name)

    stmt = insert(model.__table__).values(**values)
    if update:
        stmt = stmt.on_conflict_do_update(index_elements=conflict_on, set_=update)
    else:
        stmt = stmt.on_conflict_do_nothing(index_elements=conflict_on)
    db.session.execute(stmt)

    key = {column: values[column] for column in conflict_on}
    return db.session.execute(
        select(model)
        .filter_by(**key)
        .execution_options(populate_existing=True)
    ).scalar_one()
