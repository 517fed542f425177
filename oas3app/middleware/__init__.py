# Middleware package init
"""
oas3-app: Pipeline Stages
==========================

One module per stage. AppConfig installs them in this execution order:

    Request → [CORS] → [failure boundary] → [body parser] → [logging]
            → [cookies] → [docs UI] → [validator] → [parameters]
            → [custom middlewares] → router

Responses travel back through the same stages in reverse, so the logging
stage sees the final status of everything registered after it.
"""
