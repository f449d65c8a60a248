"""Core domain package for chanvault.

Core holds the backup, discovery, restore and reconciliation engine without
any HTTP, Bot API or storage-specific code, keeping the business logic
portable across adapters.
"""
