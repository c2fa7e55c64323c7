"""CRM domain module -- entities, persistence gateway and business rules.

Provides SQLAlchemy models for leads, clients, projects, partners, fund
tracker rows, master data, permissions, outreach and bot links; Pydantic
schemas with camelCase wire aliases; CrmRepository for async CRUD; and
CrmService, which layers visibility, conversion, cascading deletes,
duplicate checks and the master-data permission workflow on top.
"""
