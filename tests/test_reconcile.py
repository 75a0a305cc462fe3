from datetime import timedelta

from inventory_engine import reconcile

# -------------------------
# Future stock
# -------------------------

def test_future_stock_zeroed_under_zero_offset(make_variant, today):
    variant = make_variant(stock=5, ship_date=today + timedelta(days=30))
    assert reconcile.zero_future_stock([variant], offset_days=0, today=today) == 1
    assert variant.stock == 0
    assert variant.stock_zeroed


def test_future_stock_kept_under_negative_offset(make_variant, today):
    variant = make_variant(stock=5, ship_date=today + timedelta(days=30))
    assert reconcile.zero_future_stock([variant], offset_days=-40, today=today) == 0
    assert variant.stock == 5
    assert not variant.stock_zeroed


def test_ship_date_today_counts_as_arrived(make_variant, today):
    variant = make_variant(stock=5, ship_date=today)
    reconcile.zero_future_stock([variant], offset_days=0, today=today)
    assert variant.stock == 5


def test_zero_stock_future_variant_flagged_but_not_counted(make_variant, today):
    variant = make_variant(stock=0, ship_date=today + timedelta(days=1))
    assert reconcile.zero_future_stock([variant], offset_days=0, today=today) == 0
    assert variant.stock_zeroed

# -------------------------
# Deduplication
# -------------------------

def test_dedup_example(make_variant, today):
    variants = [
        make_variant("A", "Red", "6", stock=0, ship_date="2099-01-01"),
        make_variant("A", "Red", "6", stock=3),
    ]
    survivors, removed, zeroed = reconcile.reconcile(variants, offset_days=0, today=today)
    assert removed == 1
    assert zeroed == 0
    assert len(survivors) == 1
    assert survivors[0].stock == 3
    assert survivors[0].ship_date is None


def test_dedup_is_case_insensitive_and_keeps_order(make_variant, today):
    variants = [
        make_variant("A", "red", "m", stock=1),
        make_variant("B", "Blue", "S", stock=1),
        make_variant("a", "RED", "M", stock=4),
    ]
    survivors, removed = reconcile.deduplicate(variants, today=today)
    assert removed == 1
    assert [(v.style, v.stock) for v in survivors] == [("a", 4), ("B", 1)]


def test_dedup_highest_stock_ties_keep_first(make_variant, today):
    first = make_variant(stock=2, price="10")
    second = make_variant(stock=2, price="20")
    survivors, _ = reconcile.deduplicate([first, second], today=today)
    assert survivors == [first]


def test_dedup_prefers_soonest_future_date(make_variant, today):
    later = make_variant(stock=0, ship_date=today + timedelta(days=10))
    sooner = make_variant(stock=0, ship_date=today + timedelta(days=5))
    undated = make_variant(stock=0)
    survivors, _ = reconcile.deduplicate([undated, later, sooner], offset_days=0, today=today)
    assert survivors == [sooner]


def test_dedup_falls_back_to_most_recent_past_date(make_variant, today):
    older = make_variant(stock=0, ship_date=today - timedelta(days=10))
    recent = make_variant(stock=0, ship_date=today - timedelta(days=3))
    survivors, _ = reconcile.deduplicate([older, recent], offset_days=0, today=today)
    assert survivors == [recent]


def test_dedup_undated_zero_stock_keeps_first(make_variant, today):
    first, second = make_variant(stock=0), make_variant(stock=0)
    survivors, _ = reconcile.deduplicate([first, second], today=today)
    assert survivors[0] is first


def test_reconcile_zeroes_before_picking(make_variant, today):
    incoming = make_variant(stock=4, ship_date=today + timedelta(days=10))
    sold_out = make_variant(stock=0)
    survivors, removed, zeroed = reconcile.reconcile([sold_out, incoming], offset_days=0, today=today)
    assert (removed, zeroed) == (1, 1)
    assert survivors[0] is incoming
    assert incoming.stock == 0
    assert incoming.stock_zeroed
