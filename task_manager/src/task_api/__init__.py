"""
Task Manager backend package.

The ASGI application lives in `src.task_api.main` (`app`, or `create_app()`
to build one around a specific store).
"""
