"""Style DNA Studio: FastAPI REST API layer.

This package contains the FastAPI application, Pydantic request/response
models, and reference image upload validation.

Modules
-------
main
    FastAPI application with all route handlers and the ``main()`` CLI
    entry point.
models
    Pydantic models for API request and response validation.
uploads
    Upload rules for the style extraction endpoint.
"""
