from __future__ import annotations


class ListResponseMixin:
    """Wrap a service's ``list`` result in the paged envelope the API returns.

    Services call ``list_response`` with the same arguments as ``list``;
    ``limit`` and ``offset`` are always the last two.
    """

    @classmethod
    def list_response(cls, db, *args, **kwargs):
        items = cls.list(db, *args, **kwargs)
        limit = kwargs.get("limit", args[-2] if len(args) >= 2 else None)
        offset = kwargs.get("offset", args[-1] if args else None)
        return {"items": items, "count": len(items), "limit": limit, "offset": offset}
