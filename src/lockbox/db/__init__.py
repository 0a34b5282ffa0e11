"""
Persistence for Lockbox.

Usage:
    # Startup
    store = UserStore("data/lockbox.db").open()

    user = store.get_by_username("Alice")
    user["banks"].append(bank)
    store.replace(user)          # compare-and-swap on user["version"]

    # Shutdown
    store.close()
"""

from .store import UserStore, username_key

__all__ = [
    "UserStore",
    "username_key",
]
