"""Core building blocks shared by the deletion watcher and the reconciler."""
