"""steam_archive

Archives Steam account credentials and depot manifests into a git repository that doubles as an encrypted, tag-indexed object store.

storage/    the repository-as-database: transports, the AccountStore and its record types.
session/    the contract an externally supplied Steam session must honour, plus logon result classification.
scheduler/  the two-level bounded-concurrency pass over accounts and their manifests.
"""

__version__ = "1.0.0"
