"""Rider Dispatch - order lifecycle, rider assignment and payment reconciliation API."""
