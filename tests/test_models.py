from sqlalchemy import inspect

from kwangu.db.base import Base

TABLES = {"external_listings", "properties"}


def test_tables_exist(engine):
    Base.metadata.create_all(engine)
    insp = inspect(engine)
    names = set(insp.get_table_names())
    assert TABLES.issubset(names)


def test_staging_url_is_unique(engine):
    insp = inspect(engine)
    unique_cols = {tuple(c["column_names"]) for c in insp.get_unique_constraints("external_listings")}
    unique_idx = {tuple(i["column_names"]) for i in insp.get_indexes("external_listings") if i["unique"]}
    assert ("url",) in unique_cols | unique_idx
