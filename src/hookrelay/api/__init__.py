"""FastAPI REST API for hookrelay.

This module provides the REST API layer: event ingestion, webhook
registration and the admin surface over the delivery log.

Example:
    ```python
    import uvicorn
    from hookrelay.api import create_app

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)
    ```

Or run directly:
    ```bash
    uvicorn hookrelay.api:app
    ```
"""

from .app import app, create_app
from .router import router

__all__ = [
    "app",
    "create_app",
    "router",
]
