"""
Credit Card Fraud: Data Preparation & Evaluation
================================================

This package implements the substrate every fraud classifier depends on:
- Stratified, leakage-safe train/validation/test splitting
- Fit-once / apply-many feature engineering (no test statistics leak into train)
- Imbalance-aware evaluation with cost-sensitive metrics

Models themselves are external: anything exposing predict_labels() and
predict_probabilities() can be evaluated.
"""

__version__ = "1.0.0"
