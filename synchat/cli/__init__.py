"""Command-line tools for the SynChat knowledge core.

- ``python -m synchat.cli ingest`` - ingest a page for a tenant
- ``python -m synchat.cli search`` - run a hybrid search
- ``python -m synchat.cli purge`` - delete the chunks of one page
- ``python -m synchat.cli stats`` - chunk counts per page

Heavy imports (OpenAI SDK, asyncpg) are deferred inside the handlers so
``--help`` stays fast.
"""
