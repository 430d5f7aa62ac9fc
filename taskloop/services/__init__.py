"""Service layer: task lifecycle, reputation, chat, storage, cleanup, realtime."""
