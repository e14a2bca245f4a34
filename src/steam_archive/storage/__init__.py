"""Storage directory (and corresponding __init__.py)

The repository doubles as the database. RepositoryTransport is the handful of version-control primitives we need (read a blob, stage a blob, commit,
tag, push), GitTransport and MemoryTransport implement them, and AccountStore builds the account/manifest key-value model on top.
Nothing outside this directory writes to the repository.
"""
