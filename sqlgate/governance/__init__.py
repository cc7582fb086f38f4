"""Statement governance for the sqlgate MCP server.

- SQL statement classification (sqlglot-based parsing into statement kinds)
- Query policy (denylist by default, optional allowlist)
"""
