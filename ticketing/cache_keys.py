"""Cache keys for catalog responses."""

EVENT_LIST = "events:list"


def event_detail(event_id) -> str:
    return f"events:{event_id}"
