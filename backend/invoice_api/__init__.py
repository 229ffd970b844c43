"""Top-level application package for the invoice ingestion API.

This package contains everything required to run the FastAPI backend:
database models, Pydantic schemas, the OCR and structuring services
that turn an uploaded invoice into a canonical JSON document, quota
enforcement against subscription plans, and the API routers.

To run the API locally you can execute:

```bash
uvicorn invoice_api.api.main:app --reload
```

Configuration values are read from environment variables or a ``.env``
file at the project root (see ``invoice_api.core.config``).
"""

__all__: list[str] = []
