"""Core (UI-agnostic) marketplace logic.

This package contains:
- configuration and the hosted backend client (auth + tables)
- auth session handling and role-based routing
- data loading / writing (backend rows -> pandas)
- filter normalization
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
