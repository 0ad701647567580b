"""Client-side encrypted file storage on IPFS."""

__version__ = "0.1.0"
