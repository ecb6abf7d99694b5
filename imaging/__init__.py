"""Image processing service package.

This package contains the pieces behind the ``/api/images`` endpoints:
upload storage, parameter parsing, the Pillow transforms themselves and
the response schemas. The FastAPI application is assembled in ``main.py``
at the repository root. See individual modules for details.
"""
