"""
Serving — FastAPI application for search and document upload.

The routes only translate HTTP requests into calls on
:class:`~docsearch.service.DocumentService`.
"""
