"""saledger core: canonical hashing, blocks, sealing, event model."""
