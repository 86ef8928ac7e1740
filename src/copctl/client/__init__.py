"""HTTP client for the platform's knowledge-store API.

Classes:
    :class:`KnowledgeStoreClient` -- blocking client backed by
    :class:`httpx.Client` that sends the session's bearer token with every
    request and maps error statuses onto :mod:`copctl.exceptions`.

Example::

    from copctl.client import KnowledgeStoreClient

    with KnowledgeStoreClient(session) as client:
        raw = client.get_object("fmm:namespace", "my-ns", layer_id, "TENANT")
"""

from copctl.client.knowledge_store import KnowledgeStoreClient

__all__ = ["KnowledgeStoreClient"]
