"""Command-line tools for building smart contracts from Rust crates or Solidity sources."""

__version__ = "0.1.0"
