"""Document storage and retitling."""
