"""
Pytest configuration and shared fixtures.

Synthetic transactions mimic the credit card table: Time (seconds over two
days), V1..V28 components, Amount, and a heavily imbalanced Class label.
"""
import numpy as np
import pandas as pd
import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (touches the filesystem)"
    )
    config.addinivalue_line(
        "markers",
        "unit: mark test as unit test (fast, isolated)"
    )


def build_transactions(n_rows: int = 5000, n_fraud: int = 10, n_components: int = 28, seed: int = 0) -> pd.DataFrame:
    """Credit-card-shaped DataFrame with exactly n_fraud positive rows."""
    rng = np.random.RandomState(seed)

    labels = np.zeros(n_rows, dtype=int)
    labels[rng.choice(n_rows, size=n_fraud, replace=False)] = 1

    data = {"Time": np.sort(rng.uniform(0, 172_800, n_rows)).round(0)}
    for i in range(1, n_components + 1):
        data[f"V{i}"] = rng.normal(0, 1, n_rows) + labels * (0.5 if i <= 3 else 0.0)
    data["Amount"] = rng.exponential(80, n_rows).round(2)
    data["Class"] = labels

    return pd.DataFrame(data)


@pytest.fixture
def make_transactions():
    """Factory fixture: make_transactions(n_rows, n_fraud, ...)."""
    return build_transactions


@pytest.fixture
def transactions():
    """5,000 rows at 0.2% fraud."""
    return build_transactions()
