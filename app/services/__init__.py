# app/services/__init__.py
"""
Service layer root package.

Services implement application use-cases on top of the fault-recovering
database handler (app.db.error_handler) and the Pydantic schemas
(app.schemas.*). Per-item outcomes inside batch operations are reported
through ServiceResult values instead of exceptions.
"""
