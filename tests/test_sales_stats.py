from __future__ import annotations

from core.services.sales_stats import UNKNOWN, calculate_stats, sale_state, state_heatmap

SALES = [
    {"amount": 100, "state_backup": "Lagos"},
    {"amount": 250, "state_backup": " Ogun "},
    {"amount": "75.5", "address": {"state": "Lagos"}},
    {"amount": None, "state_backup": "", "address": {"state": "Kano"}},
    {"amount": "n/a", "address": "12 Broad St"},
    {"amount": 40},
]


def test_state_falls_back_from_backup_to_address_to_unknown():
    assert [sale_state(s) for s in SALES] == ["Lagos", "Ogun", "Lagos", "Kano", UNKNOWN, UNKNOWN]


def test_heatmap_groups_counts_and_sums_per_state():
    buckets = {b.name: (b.count, b.amount) for b in state_heatmap(SALES)}

    assert buckets == {
        "Lagos": (2, 175.5),
        "Ogun": (1, 250.0),
        "Kano": (1, 0.0),
        UNKNOWN: (2, 40.0),
    }


def test_heatmap_orders_by_count_then_name():
    assert [b.name for b in state_heatmap(SALES)] == ["Lagos", UNKNOWN, "Kano", "Ogun"]


def test_heatmap_of_no_sales_is_empty():
    assert state_heatmap([]) == []


def test_top_states_are_ranked_by_amount():
    stats = calculate_stats(SALES, top=2)

    assert [b.name for b in stats.top_states] == ["Ogun", "Lagos"]
    assert stats.total_sales == 6
    assert stats.total_amount == 465.5
