"""Cosmos DB MCP Server.

An MCP server that exposes Azure Cosmos DB (service or local emulator)
through nine tools: database and container management, single-item writes
and reads, SQL queries, and atomic batch creation.
"""

__version__ = "0.1.0"
