"""
Accounts package: credential store, token service and saved-book synchronization.

This package contains:
- User and saved-book models
- Salted password hashing
- Stateless signed access tokens
- MongoDB and in-memory user stores
- Idempotent saved-book synchronizer
- Account service operations (register, login, me, save, remove)
"""

__version__ = "1.0.0"
