"""Core (UI-agnostic) sales dashboard logic.

This package contains:
- record ingestion (JSON / XLSX rows -> pandas) and normalization
- keyword category classification
- filter normalization and role-scoped filtering
- aggregation / trend compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
- summary CSV export
"""
