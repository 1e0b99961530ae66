"""Backend indexing clients."""
