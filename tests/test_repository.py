from sqlalchemy import Text, func, select

from kwangu.db.models import ExternalListing
from kwangu.db.repository import ExternalListingRepository


def test_upsert_creates_with_defaults(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)

    row, created = repo.upsert_by_url(make_candidate())
    db_session.commit()

    assert created
    assert row.id is not None
    assert row.normalized is False
    assert row.imported is False
    assert row.status == "pending"
    assert row.raw == {"price_text": "KSh 80,000"}
    assert row.created_at is not None


def test_upsert_updates_by_url(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    repo.upsert_by_url(make_candidate(bedrooms=2, images=["https://cdn.example/a.jpg"]))
    db_session.commit()

    row, created = repo.upsert_by_url(make_candidate(
        bedrooms=None, price="KSh 90,000", images=["https://cdn.example/b.jpg"],
    ))
    db_session.commit()

    assert not created
    assert row.bedrooms is None
    assert row.price == "KSh 90,000"
    assert row.images == ["https://cdn.example/b.jpg"]
    assert db_session.scalar(select(func.count(ExternalListing.id))) == 1


def test_rescrape_clears_dropped_fields(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    repo.upsert_by_url(make_candidate(bedrooms=2, price="KSh 80,000", address="Kilimani"))
    db_session.commit()

    row, _ = repo.upsert_by_url(make_candidate(bedrooms=None, price=None, address=None))
    db_session.commit()
    db_session.expire_all()

    stored = repo.get_by_url(row.url)
    assert stored.bedrooms is None
    assert stored.price is None
    assert stored.address is None
    assert stored.title == "2 bedroom apartment in Kilimani"


def test_scraped_text_columns_are_unbounded():
    table = ExternalListing.__table__
    for name in ("price", "source_id", "listing_type", "property_type"):
        assert isinstance(table.c[name].type, Text), name
        assert getattr(table.c[name].type, "length", None) is None, name


def test_long_scraped_price_is_stored(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    long_price = "KSh 80,000 " + "negotiable " * 60

    row, _ = repo.upsert_by_url(make_candidate(price=long_price, source_id="x" * 300))
    db_session.commit()

    assert row.price == long_price
    assert len(row.source_id) == 300


def test_pending_and_mark(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    a, _ = repo.upsert_by_url(make_candidate("https://jiji.co.ke/ad/a.html"))
    b, _ = repo.upsert_by_url(make_candidate("https://jiji.co.ke/ad/b.html"))
    db_session.commit()

    repo.mark_imported(a)
    repo.mark_failed(b, "boom")
    db_session.commit()

    assert [r.url for r in repo.pending(10)] == ["https://jiji.co.ke/ad/b.html"]
    assert b.status == "failed"
    assert b.last_error == "boom"
    assert a.last_error is None


def test_stats(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    a, _ = repo.upsert_by_url(make_candidate("https://jiji.co.ke/ad/a.html"))
    repo.upsert_by_url(make_candidate("https://jiji.co.ke/ad/b.html"))
    repo.upsert_by_url(make_candidate("https://www.property24.co.ke/1", source="property24"))
    repo.mark_imported(a)
    db_session.commit()

    stats = repo.stats()

    assert stats["total"] == 3
    assert stats["imported"] == 1
    assert stats["pending"] == 2
    assert stats["failed"] == 0
    assert [(s["source"], s["count"]) for s in stats["sources"]] == [("jiji", 2), ("property24", 1)]
    assert all(s["last_scraped"] is not None for s in stats["sources"])


def test_page_filters(db_session, make_candidate):
    repo = ExternalListingRepository(db_session)
    for i in range(5):
        repo.upsert_by_url(make_candidate(f"https://jiji.co.ke/ad/{i}.html"))
    repo.upsert_by_url(make_candidate("https://www.property24.co.ke/1", source="property24"))
    db_session.commit()

    rows, total = repo.page(1, 2, source="jiji")
    assert total == 5
    assert [r.url for r in rows] == ["https://jiji.co.ke/ad/4.html", "https://jiji.co.ke/ad/3.html"]

    rows, total = repo.page(3, 2, source="jiji")
    assert [r.url for r in rows] == ["https://jiji.co.ke/ad/0.html"]

    rows, total = repo.page(1, 10, imported=True)
    assert (rows, total) == ([], 0)
