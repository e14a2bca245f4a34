"""Session directory (and corresponding __init__.py)

Everything the archiver knows about talking to Steam. The logon protocol itself is not implemented here: a SteamSession is supplied from outside and resolved
from a "module:attribute" factory at startup. What lives here is the contract that session must honour, the classification of its logon results into
terminal denials and transient failures, and the protocol-free helpers (appinfo parsing, content server downloads) a session implementation can build on.
"""
