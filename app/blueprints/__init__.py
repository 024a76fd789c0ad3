"""
Pharmacoeconomic Request Workflow
Blueprint registry.

One module per component, each exposing a ``<name>_bp`` Blueprint that
create_app() registers under /api/v1.
"""
