"""Match-lifecycle synchronization between the canonical match store and the slip cache."""
