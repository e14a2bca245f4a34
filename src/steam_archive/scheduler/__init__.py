"""Scheduler directory (and corresponding __init__.py)

One pass over a set of accounts. TaskScheduler gates how many accounts are connected at once and, per account, how many manifests download at once.
Manifest writes are funnelled through a single DeferredManifestWriter so downloads never wait on the repository. account_state.py describes the lifecycle
every account goes through, account_source.py reads the operator's account file for targeted passes.
"""
