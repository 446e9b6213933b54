"""Top-level application package for the fiscal receipt extraction API.

Given the link read from a tax-receipt QR code, the service recovers a
best-effort structured record (document identifier, amount paid and
emission date) from the link itself and from the receipt portal page it
points to. It includes the configuration and observability layer, the
pydantic schemas, the extraction strategies and pipeline, and the
FastAPI routers.

To run the API locally you can execute:

```bash
uvicorn fiscal_receipt.api.main:app --reload --app-dir backend
```

This will serve the FastAPI application on http://localhost:8000.
Configuration values can be overridden using environment variables or a
``.env`` file at the project root.
"""

__all__: list[str] = []
