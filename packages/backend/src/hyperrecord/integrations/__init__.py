"""Adapters translating ORM model callbacks into PubSubService calls."""
