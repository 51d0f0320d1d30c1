# scribeflow/core/__init__.py
"""
Core application modules.
Contains essential infrastructure components:
- bootstrap: Default super-admin creation and workflow service wiring
- db: Database configuration and connection management
- errors: Workflow error taxonomy
- pubsub: WebSocket draft-status broadcasting
- security: Password hashing and JWT tokens
- store: In-memory workflow store
"""
