"""XChain command-line tools."""
