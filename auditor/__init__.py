"""Core (UI-agnostic) campaign auditor logic.

This package contains:
- upload parsing (CSV/XLSX -> pandas) and schema normalization
- volume tiering
- filter and audit evaluation
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
