"""Search-result prospecting: provider search cycles, dedup, cursors and scan state.

Rows are owned per user. A link is stored once per user, normalized to its
scheme and host, and moves through unprocessed -> in progress -> completed
or error as the external scan service reports back.
"""
